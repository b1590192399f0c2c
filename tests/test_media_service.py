from pathlib import Path

import pytest

from clipforge.services import media_service
from clipforge.services.media_service import (
    EncodeOptions,
    MediaService,
    parse_progress_time,
    progress_percent,
)
from clipforge.services.render.filter_graph import Filter, FilterGraph
from clipforge.utils.exceptions import ProcessExitError
from clipforge.utils.process_runner import ProcessResult

from conftest import write_file


class FakeRunner:
    """Stands in for run_process: records argv, replays stderr lines, writes or fails."""

    def __init__(self, lines=(), fail=False, write_output=True):
        self.lines = list(lines)
        self.fail = fail
        self.write_output = write_output
        self.calls = []
        self.side_files_seen = []

    def __call__(self, cmd, timeout=None, on_line=None, cwd=None, capture_stdout=False):
        self.calls.append(cmd)
        if "-filter_complex_script" in cmd:
            script = Path(cmd[cmd.index("-filter_complex_script") + 1])
            self.side_files_seen.append((script, script.read_text(encoding="utf-8")))
        for line in self.lines:
            if on_line:
                on_line(line)
        if self.write_output:
            write_file(Path(cmd[-1]), b"partial")
        if self.fail:
            raise ProcessExitError(cmd, 1, "Conversion failed!")
        return ProcessResult(returncode=0, stdout="", stderr_tail="")


@pytest.fixture
def runner(monkeypatch):
    def install(**kwargs):
        fake = FakeRunner(**kwargs)
        monkeypatch.setattr(media_service, "run_process", fake)
        monkeypatch.setattr(media_service, "get_ffmpeg_path", lambda: "ffmpeg")
        return fake
    return install


def _graph() -> FilterGraph:
    graph = FilterGraph()
    graph.add("0:v", Filter("scale", "1080:1920"), "vout")
    graph.add("0:a", Filter("volume", "1.0"), "aout")
    return graph


def test_progress_line_parsing():
    assert parse_progress_time("frame=  120 fps=30 time=00:01:02.50 bitrate=") == 62.5
    assert parse_progress_time("Press [q] to stop") is None
    assert progress_percent(5, 10) == 50
    assert progress_percent(12, 10) == 100
    assert progress_percent(1, 0) == 0


def test_compose_filter_graph_reports_progress_and_removes_side_file(runner, tmp_path):
    fake = runner(lines=["time=00:00:05.00 bitrate=1k", "noise", "time=00:00:10.00"])
    out = tmp_path / "act1.mp4"
    progress = []

    MediaService(timeout=5).compose_filter_graph([["src.mp4"]], _graph(), out,
                                                 duration=10.0, on_progress=progress.append)

    assert progress == [50, 100, 100]
    script, text = fake.side_files_seen[0]
    assert "[0:v]scale=1080:1920[vout]" in text
    assert not script.exists()

    cmd = fake.calls[0]
    assert cmd[:3] == ["ffmpeg", "-hide_banner", "-y"]
    assert cmd[cmd.index("-t") + 1] == "10.000"
    assert cmd[-1] == str(out)


def test_compose_filter_graph_failure_still_removes_side_file(runner, tmp_path):
    fake = runner(fail=True)
    with pytest.raises(ProcessExitError):
        MediaService(timeout=5).compose_filter_graph([["src.mp4"]], _graph(), tmp_path / "act1.mp4",
                                                     encode=EncodeOptions(faststart=False))

    script, _ = fake.side_files_seen[0]
    assert not script.exists()
    assert "-movflags" not in fake.calls[0]


def test_extract_audio_replaces_target_only_on_success(runner, tmp_path):
    fake = runner()
    audio = tmp_path / "source-audio.wav"

    assert MediaService(timeout=5).extract_audio(tmp_path / "source.mp4", audio) == audio

    written_to = Path(fake.calls[0][-1])
    assert written_to != audio
    assert written_to.suffix == ".wav"
    assert audio.read_bytes() == b"partial"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["source-audio.wav"]


def test_failed_extract_audio_leaves_no_partial_wav(runner, tmp_path):
    runner(fail=True)
    audio = tmp_path / "source-audio.wav"

    with pytest.raises(ProcessExitError):
        MediaService(timeout=5).extract_audio(tmp_path / "source.mp4", audio)

    assert list(tmp_path.iterdir()) == []


def test_failed_extract_audio_keeps_previous_wav(runner, tmp_path):
    runner(fail=True)
    audio = write_file(tmp_path / "source-audio.wav", b"good")

    with pytest.raises(ProcessExitError):
        MediaService(timeout=5).extract_audio(tmp_path / "source.mp4", audio)

    assert audio.read_bytes() == b"good"
    assert [p.name for p in tmp_path.iterdir()] == ["source-audio.wav"]
