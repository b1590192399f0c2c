"""
Transcription backends normalized into one Transcription schema.

Each engine gets an adapter that produces the same segment/word shape, so nothing
downstream needs to know which engine wrote a transcript.
"""

import json
import logging
import os
import re
import shutil
import sys
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol

import requests

from clipforge.config.settings import settings
from clipforge.models.project import Transcription, TranscriptSegment, TranscriptWord
from clipforge.utils.exceptions import ConfigError, ParseError, UpstreamError
from clipforge.utils.paths import PathLike, atomic_write_text
from clipforge.utils.process_runner import run_process

logger = logging.getLogger(__name__)

TranscribeProgress = Callable[[int, str], None]

_CPP_PROGRESS_RE = re.compile(r"progress\s*=\s*(\d+)%")
_PY_SEGMENT_RE = re.compile(r"^\[(\d+:)?(\d+):(\d+(?:\.\d+)?)\s*-->\s*(\d+:)?(\d+):(\d+(?:\.\d+)?)\]")


def parse_timestamp(value: Any) -> float:
    """Float seconds, or an "HH:MM:SS.mmm" / "HH:MM:SS,mmm" / "MM:SS.mmm" string"""
    if value is None or value == "":
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip().replace(",", ".")
    parts = text.split(":")
    try:
        if len(parts) == 3:
            return int(parts[0]) * 3600 + int(parts[1]) * 60 + float(parts[2])
        if len(parts) == 2:
            return int(parts[0]) * 60 + float(parts[1])
        return float(text)
    except ValueError:
        raise ParseError(f"Unrecognized timestamp: {value!r}")


def _join_text(segments: List[TranscriptSegment]) -> str:
    return " ".join(s.text for s in segments if s.text).strip()


# ---------------------------------------------------------------------------
# whisper.cpp
# ---------------------------------------------------------------------------

def _cpp_time(item: Dict[str, Any], key_from: str) -> float:
    """whisper.cpp writes offsets in ms, timestamps as strings, legacy t0/t1 in 10ms units"""
    offsets = item.get("offsets") or {}
    if key_from in offsets:
        return float(offsets[key_from]) / 1000.0
    stamps = item.get("timestamps") or {}
    if key_from in stamps:
        return parse_timestamp(stamps[key_from])
    legacy = "t0" if key_from == "from" else "t1"
    if legacy in item:
        return float(item[legacy]) / 100.0
    plain = "start" if key_from == "from" else "end"
    return parse_timestamp(item.get(plain))


def normalize_whisper_cpp(raw: Dict[str, Any]) -> Transcription:
    entries = raw.get("transcription")
    if entries is None:
        entries = raw.get("segments", [])
    if not isinstance(entries, list):
        raise ParseError("whisper.cpp output has no transcription list")

    language = (raw.get("result") or {}).get("language") or raw.get("language") or "en"

    segments: List[TranscriptSegment] = []
    for entry in entries:
        words = []
        for token in entry.get("tokens") or entry.get("words") or []:
            text = (token.get("text") or token.get("word") or "").strip()
            if not text or (text.startswith("[_") and text.endswith("]")):
                continue
            words.append(TranscriptWord(
                start=_cpp_time(token, "from"),
                end=_cpp_time(token, "to"),
                word=text,
                probability=token.get("p"),
            ))
        segments.append(TranscriptSegment(
            start=_cpp_time(entry, "from"),
            end=_cpp_time(entry, "to"),
            text=(entry.get("text") or "").strip(),
            words=words,
        ))

    return Transcription(language=language, segments=segments, full_text=_join_text(segments))


class WhisperCppTranscriber:
    name = "whisper-cpp"

    def __init__(self, binary: Optional[str] = None, timeout: Optional[float] = None):
        self.binary = binary or settings.WHISPER_CPP_BINARY
        self.timeout = timeout or settings.TRANSCRIBE_TIMEOUT_SEC

    def is_available(self) -> bool:
        return shutil.which(self.binary) is not None

    def _resolve_model(self, model: str) -> str:
        filename = f"ggml-{model}.bin"
        candidates = [
            Path(settings.WHISPER_CPP_MODEL_DIR) / filename if settings.WHISPER_CPP_MODEL_DIR else None,
            Path(filename),
            Path.home() / ".cache" / "whisper" / filename,
        ]
        for candidate in candidates:
            if candidate and candidate.exists():
                return str(candidate)
        return filename

    def transcribe(self, audio_path: PathLike, output_dir: PathLike, model: str, language: str,
                   on_progress: Optional[TranscribeProgress] = None) -> Transcription:
        output_base = Path(output_dir) / "transcript-whispercpp"
        cmd = [
            self.binary,
            "-m", self._resolve_model(model),
            "-f", str(audio_path),
            "--output-json-full",
            "-of", str(output_base),
            "-pp",
            "-l", language or "auto",
        ]

        def on_line(line: str) -> None:
            match = _CPP_PROGRESS_RE.search(line)
            if match and on_progress:
                on_progress(int(match.group(1)), f"Transcribing... {match.group(1)}%")

        run_process(cmd, timeout=self.timeout, on_line=on_line)

        json_path = output_base.with_suffix(".json")
        if not json_path.exists():
            raise ParseError(f"Whisper output not found: {json_path}")
        try:
            raw = json.loads(json_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ParseError(f"Invalid whisper.cpp JSON: {e}")
        finally:
            json_path.unlink(missing_ok=True)
        return normalize_whisper_cpp(raw)


# ---------------------------------------------------------------------------
# openai-whisper (python CLI)
# ---------------------------------------------------------------------------

def normalize_python_whisper(raw: Dict[str, Any]) -> Transcription:
    if not isinstance(raw.get("segments"), list):
        raise ParseError("whisper output has no segments list")

    segments: List[TranscriptSegment] = []
    for seg in raw["segments"]:
        words = [
            TranscriptWord(
                start=parse_timestamp(w.get("start")),
                end=parse_timestamp(w.get("end")),
                word=(w.get("word") or "").strip(),
                probability=w.get("probability"),
            )
            for w in seg.get("words") or []
            if (w.get("word") or "").strip()
        ]
        segments.append(TranscriptSegment(
            start=parse_timestamp(seg.get("start")),
            end=parse_timestamp(seg.get("end")),
            text=(seg.get("text") or "").strip(),
            words=words,
        ))

    return Transcription(
        language=raw.get("language") or "en",
        segments=segments,
        full_text=(raw.get("text") or "").strip() or _join_text(segments),
    )


class PythonWhisperTranscriber:
    name = "openai-whisper"

    def __init__(self, timeout: Optional[float] = None, audio_duration: Optional[float] = None):
        self.timeout = timeout or settings.TRANSCRIBE_TIMEOUT_SEC
        self.audio_duration = audio_duration

    def transcribe(self, audio_path: PathLike, output_dir: PathLike, model: str, language: str,
                   on_progress: Optional[TranscribeProgress] = None) -> Transcription:
        cmd = [
            sys.executable, "-m", "whisper", str(audio_path),
            "--model", model,
            "--output_format", "json",
            "--word_timestamps", "True",
            "--output_dir", str(output_dir),
            "--verbose", "True",
        ]
        if language and language != "auto":
            cmd += ["--language", language]

        def on_line(line: str) -> None:
            if not on_progress or not self.audio_duration:
                return
            match = _PY_SEGMENT_RE.match(line.strip())
            if match:
                hours = int((match.group(4) or "0:")[:-1])
                reached = hours * 3600 + int(match.group(5)) * 60 + float(match.group(6))
                pct = min(99, round(reached / self.audio_duration * 100))
                on_progress(pct, f"Transcribing... {pct}%")

        run_process(cmd, timeout=self.timeout, on_line=on_line)

        json_path = Path(output_dir) / f"{Path(audio_path).stem}.json"
        if not json_path.exists():
            raise ParseError(f"Whisper output not found: {json_path}")
        try:
            raw = json.loads(json_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ParseError(f"Invalid whisper JSON: {e}")
        finally:
            json_path.unlink(missing_ok=True)
        return normalize_python_whisper(raw)


# ---------------------------------------------------------------------------
# AssemblyAI (HTTP)
# ---------------------------------------------------------------------------

_SENTENCE_END = (".", "?", "!", "。", "？", "！")
_MAX_WORDS_PER_SEGMENT = 24


def normalize_assemblyai(raw: Dict[str, Any]) -> Transcription:
    """AssemblyAI reports word timings as integer milliseconds; segments are rebuilt
    from sentence punctuation."""
    segments: List[TranscriptSegment] = []
    current: List[TranscriptWord] = []

    def flush() -> None:
        if current:
            segments.append(TranscriptSegment(
                start=current[0].start,
                end=current[-1].end,
                text=" ".join(w.word for w in current),
                words=list(current),
            ))
            current.clear()

    for w in raw.get("words") or []:
        text = (w.get("text") or "").strip()
        if not text:
            continue
        current.append(TranscriptWord(
            start=float(w.get("start", 0)) / 1000.0,
            end=float(w.get("end", 0)) / 1000.0,
            word=text,
            probability=w.get("confidence"),
        ))
        if text.endswith(_SENTENCE_END) or len(current) >= _MAX_WORDS_PER_SEGMENT:
            flush()
    flush()

    return Transcription(
        language=raw.get("language_code") or "en",
        segments=segments,
        full_text=(raw.get("text") or "").strip() or _join_text(segments),
    )


class AssemblyAITranscriber:
    name = "assemblyai"
    base_url = "https://api.assemblyai.com/v2"

    def __init__(self, api_key: Optional[str] = None, timeout: Optional[float] = None,
                 poll_interval: float = 2.0):
        self.api_key = api_key or settings.ASSEMBLYAI_API_KEY
        self.timeout = timeout or settings.TRANSCRIBE_TIMEOUT_SEC
        self.poll_interval = poll_interval

    def transcribe(self, audio_path: PathLike, output_dir: PathLike, model: str, language: str,
                   on_progress: Optional[TranscribeProgress] = None) -> Transcription:
        if not self.api_key:
            raise ConfigError("ASSEMBLYAI_API_KEY not set")
        headers = {"authorization": self.api_key}

        try:
            with open(audio_path, "rb") as f:
                up = requests.post(f"{self.base_url}/upload", headers=headers, data=f, timeout=600)
            up.raise_for_status()
            if on_progress:
                on_progress(10, "Audio uploaded")

            payload: Dict[str, Any] = {"audio_url": up.json()["upload_url"], "punctuate": True, "format_text": True}
            if language and language != "auto":
                payload["language_code"] = language
            else:
                payload["language_detection"] = True
            r = requests.post(f"{self.base_url}/transcript", headers=headers, json=payload, timeout=60)
            r.raise_for_status()
            transcript_id = r.json()["id"]

            deadline = time.monotonic() + self.timeout
            while True:
                g = requests.get(f"{self.base_url}/transcript/{transcript_id}", headers=headers, timeout=60)
                g.raise_for_status()
                status = g.json()
                if status.get("status") == "completed":
                    return normalize_assemblyai(status)
                if status.get("status") == "error":
                    raise UpstreamError(f"AssemblyAI transcription failed: {status.get('error', 'unknown error')}")
                if time.monotonic() > deadline:
                    raise UpstreamError(f"AssemblyAI transcription did not finish within {self.timeout:.0f}s")
                if on_progress:
                    on_progress(50, f"AssemblyAI status: {status.get('status')}")
                time.sleep(self.poll_interval)
        except requests.RequestException as e:
            code = getattr(getattr(e, "response", None), "status_code", None)
            raise UpstreamError(f"AssemblyAI request failed: {e}", status_code=code)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class TranscriptionBackend(Protocol):
    name: str

    def transcribe(self, audio_path: PathLike, output_dir: PathLike, model: str, language: str,
                   on_progress: Optional[TranscribeProgress] = None) -> Transcription:
        ...


class TranscriptionService:
    def __init__(self, backend: Optional[TranscriptionBackend] = None):
        self._backend = backend

    def _select_backend(self) -> TranscriptionBackend:
        choice = settings.WHISPER_BACKEND.lower()
        if choice == "whisper-cpp":
            return WhisperCppTranscriber()
        if choice == "openai-whisper":
            return PythonWhisperTranscriber()
        if choice == "assemblyai":
            return AssemblyAITranscriber()
        if choice != "auto":
            raise ConfigError(f"Unknown WHISPER_BACKEND: {settings.WHISPER_BACKEND}")

        cpp = WhisperCppTranscriber()
        if cpp.is_available():
            return cpp
        logger.info("whisper.cpp not found, using Python whisper")
        return PythonWhisperTranscriber()

    def transcribe(
        self,
        audio_path: PathLike,
        output_dir: PathLike,
        model: Optional[str] = None,
        language: Optional[str] = None,
        on_progress: Optional[TranscribeProgress] = None,
        audio_duration: Optional[float] = None,
    ) -> Transcription:
        backend = self._backend or self._select_backend()
        if isinstance(backend, PythonWhisperTranscriber) and audio_duration:
            backend.audio_duration = audio_duration

        model = model or settings.WHISPER_MODEL
        language = language or settings.WHISPER_LANGUAGE
        logger.info(f"🎙️ Transcribing {audio_path} with {backend.name} ({model}, {language})")

        os.makedirs(output_dir, exist_ok=True)
        transcription = backend.transcribe(audio_path, output_dir, model, language, on_progress)
        logger.info(f"✅ Transcribed {len(transcription.segments)} segments ({transcription.language})")
        return transcription

    @staticmethod
    def load(path: PathLike) -> Transcription:
        try:
            return Transcription.model_validate_json(Path(path).read_text(encoding="utf-8"))
        except ValueError as e:
            raise ParseError(f"Unreadable transcript {path}: {e}")

    @staticmethod
    def save(path: PathLike, transcription: Transcription) -> None:
        atomic_write_text(path, transcription.model_dump_json(indent=2))
