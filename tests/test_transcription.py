import pytest

from clipforge.services.transcription_service import (
    TranscriptionService,
    normalize_assemblyai,
    normalize_python_whisper,
    normalize_whisper_cpp,
    parse_timestamp,
)
from clipforge.utils import paths as paths_module
from clipforge.utils.exceptions import ParseError


@pytest.mark.parametrize("value,expected", [
    (None, 0.0),
    (3, 3.0),
    ("00:01:02,500", 62.5),
    ("01:00:00.000", 3600.0),
    ("02:03.25", 123.25),
    ("7.5", 7.5),
])
def test_parse_timestamp(value, expected):
    assert parse_timestamp(value) == pytest.approx(expected)


def test_parse_timestamp_rejects_garbage():
    with pytest.raises(ParseError):
        parse_timestamp("soon")


def test_whisper_cpp_offsets_and_special_tokens():
    raw = {
        "result": {"language": "de"},
        "transcription": [{
            "offsets": {"from": 1000, "to": 2500},
            "text": " Hallo Welt",
            "tokens": [
                {"text": "[_BEG_]", "offsets": {"from": 1000, "to": 1000}},
                {"text": " Hallo", "offsets": {"from": 1000, "to": 1600}, "p": 0.9},
                {"text": " Welt", "timestamps": {"from": "00:00:01,600", "to": "00:00:02,500"}},
            ],
        }],
    }
    result = normalize_whisper_cpp(raw)
    assert result.language == "de"
    segment = result.segments[0]
    assert (segment.start, segment.end, segment.text) == (1.0, 2.5, "Hallo Welt")
    assert [(w.word, w.start, w.end) for w in segment.words] == [("Hallo", 1.0, 1.6), ("Welt", 1.6, 2.5)]
    assert result.full_text == "Hallo Welt"


def test_whisper_cpp_without_list_is_a_parse_error():
    with pytest.raises(ParseError):
        normalize_whisper_cpp({"transcription": "nope"})


def test_python_whisper_drops_empty_words():
    raw = {
        "language": "en",
        "text": " hi there",
        "segments": [{"start": 0, "end": 1.2, "text": " hi there",
                      "words": [{"start": 0, "end": 0.5, "word": " hi"},
                                {"start": 0.5, "end": 0.6, "word": " "},
                                {"start": 0.6, "end": 1.2, "word": " there", "probability": 0.8}]}],
    }
    result = normalize_python_whisper(raw)
    assert [w.word for w in result.segments[0].words] == ["hi", "there"]
    assert result.full_text == "hi there"


def test_assemblyai_groups_sentences():
    raw = {
        "language_code": "en",
        "words": [
            {"text": "Hello", "start": 0, "end": 400},
            {"text": "world.", "start": 400, "end": 900},
            {"text": "Again", "start": 1200, "end": 1600},
        ],
    }
    result = normalize_assemblyai(raw)
    assert [s.text for s in result.segments] == ["Hello world.", "Again"]
    assert (result.segments[0].start, result.segments[0].end) == (0.0, 0.9)
    assert result.full_text == "Hello world. Again"


def test_service_uses_injected_backend(tmp_path, sample_transcription):
    class Backend:
        name = "fake"

        def __init__(self):
            self.calls = []

        def transcribe(self, audio_path, output_dir, model, language, on_progress=None):
            self.calls.append((model, language))
            return sample_transcription

    backend = Backend()
    service = TranscriptionService(backend)
    out_dir = tmp_path / "out"
    result = service.transcribe(tmp_path / "a.wav", out_dir, model="tiny", language="en")

    assert result is sample_transcription
    assert backend.calls == [("tiny", "en")]
    assert out_dir.is_dir()

    TranscriptionService.save(tmp_path / "t.json", result)
    assert TranscriptionService.load(tmp_path / "t.json") == result


def test_save_replaces_transcript_atomically(tmp_path, sample_transcription, monkeypatch):
    path = tmp_path / "transcription.json"
    TranscriptionService.save(path, sample_transcription)
    assert [p.name for p in tmp_path.iterdir()] == ["transcription.json"]
    before = path.read_text(encoding="utf-8")

    def failing_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(paths_module.os, "replace", failing_replace)
    empty = sample_transcription.model_copy(update={"segments": []})
    with pytest.raises(OSError):
        TranscriptionService.save(path, empty)

    assert path.read_text(encoding="utf-8") == before
    assert [p.name for p in tmp_path.iterdir()] == ["transcription.json"]
