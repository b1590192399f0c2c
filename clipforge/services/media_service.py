"""
Media probe / cut / concat / filter-graph backend over ffmpeg and ffprobe.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from clipforge.config.constants import (
    AUDIO_BITRATE,
    AUDIO_CODEC,
    RENDER_PRESET,
    TRANSCRIBE_CHANNELS,
    TRANSCRIBE_SAMPLE_RATE,
    VIDEO_CODEC,
    VIDEO_CRF,
)
from clipforge.config.settings import settings
from clipforge.services.render.filter_graph import FilterGraph, format_number
from clipforge.utils.exceptions import ParseError
from clipforge.utils.ffmpeg_helper import get_ffmpeg_path, get_ffprobe_path
from clipforge.utils.paths import PathLike, atomic_output, concat_list_entry, temp_files
from clipforge.utils.process_runner import run_process

logger = logging.getLogger(__name__)

ProgressFn = Callable[[int], None]

_TIME_RE = re.compile(r"time=(\d+):(\d+):(\d+(?:\.\d+)?)")


@dataclass
class MediaInfo:
    duration: float
    streams: List[Dict[str, Any]] = field(default_factory=list)
    format: Dict[str, Any] = field(default_factory=dict)

    def has_stream(self, codec_type: str) -> bool:
        return any(s.get("codec_type") == codec_type for s in self.streams)


@dataclass
class EncodeOptions:
    preset: str = RENDER_PRESET
    crf: str = VIDEO_CRF
    audio_bitrate: str = AUDIO_BITRATE
    fps: Optional[int] = None
    faststart: bool = True

    def args(self) -> List[str]:
        out = ["-c:v", VIDEO_CODEC, "-preset", self.preset, "-crf", self.crf,
               "-c:a", AUDIO_CODEC, "-b:a", self.audio_bitrate]
        if self.fps:
            out += ["-r", str(self.fps)]
        if self.faststart:
            out += ["-movflags", "+faststart"]
        return out


def parse_progress_time(line: str) -> Optional[float]:
    """Seconds encoded so far, from an ffmpeg `time=HH:MM:SS.xx` status line"""
    match = _TIME_RE.search(line)
    if not match:
        return None
    h, m, s = match.groups()
    return int(h) * 3600 + int(m) * 60 + float(s)


def progress_percent(current_sec: float, total_sec: float) -> int:
    if total_sec <= 0:
        return 0
    return max(0, min(100, round(current_sec / total_sec * 100)))


class MediaService:
    """Thin ffmpeg wrapper; every call blocks until the child process exits."""

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout or settings.FFMPEG_TIMEOUT_SEC

    def _ffmpeg(self, args: Sequence[Any], on_line=None) -> None:
        run_process([get_ffmpeg_path(), "-hide_banner", *[str(a) for a in args]],
                    timeout=self.timeout, on_line=on_line)

    def probe(self, path: PathLike) -> MediaInfo:
        result = run_process(
            [get_ffprobe_path(), "-v", "quiet", "-print_format", "json",
             "-show_format", "-show_streams", str(path)],
            timeout=60,
            capture_stdout=True,
        )
        try:
            raw = json.loads(result.stdout)
            fmt = raw.get("format", {})
            duration = float(fmt.get("duration", 0) or 0)
        except (ValueError, AttributeError) as e:
            raise ParseError(f"Unreadable ffprobe output for {path}: {e}")
        return MediaInfo(duration=duration, streams=raw.get("streams", []), format=fmt)

    def get_duration(self, path: PathLike) -> float:
        return self.probe(path).duration

    def extract_audio(self, video_path: PathLike, audio_path: PathLike) -> Path:
        """16kHz mono PCM, what whisper expects. A failed run leaves no partial wav behind."""
        with atomic_output(audio_path) as tmp:
            self._ffmpeg([
                "-y", "-i", video_path, "-vn",
                "-acodec", "pcm_s16le",
                "-ar", TRANSCRIBE_SAMPLE_RATE,
                "-ac", TRANSCRIBE_CHANNELS,
                tmp,
            ])
        return Path(audio_path)

    def cut(self, src: PathLike, out: PathLike, start_sec: float, end_sec: float) -> Path:
        """Stream-copy cut, no re-encode"""
        duration = max(0.0, end_sec - start_sec)
        self._ffmpeg([
            "-y",
            "-ss", format_number(start_sec),
            "-i", src,
            "-t", format_number(duration),
            "-c", "copy",
            "-avoid_negative_ts", "make_zero",
            out,
        ])
        return Path(out)

    def concat(self, files: Sequence[PathLike], out: PathLike,
               encode: Optional[EncodeOptions] = None) -> Path:
        """Concatenate with the concat demuxer; stream copy unless `encode` is given."""
        out = Path(out)
        list_path = out.with_name(f"{out.stem}_concat.txt")
        with temp_files(list_path):
            list_path.write_text("\n".join(concat_list_entry(f) for f in files), encoding="utf-8")
            args: List[Any] = ["-y", "-f", "concat", "-safe", "0", "-i", list_path]
            args += encode.args() if encode else ["-c", "copy"]
            self._ffmpeg([*args, out])
        return out

    def generate_silence(self, out: PathLike, duration: float, sample_rate: int = 44100) -> Path:
        self._ffmpeg([
            "-y", "-f", "lavfi", "-i", f"anullsrc=r={sample_rate}:cl=mono",
            "-t", f"{duration:.2f}", out,
        ])
        return Path(out)

    def trim_audio(self, src: PathLike, out: PathLike, start_sec: float = 0.0,
                   duration: Optional[float] = None, sample_rate: int = 44100) -> Path:
        """Cut an audio span into PCM wav; the source may be mp3 from a TTS provider"""
        args: List[Any] = ["-y", "-i", src]
        if start_sec > 0:
            args += ["-ss", f"{start_sec:.2f}"]
        if duration is not None:
            args += ["-t", f"{duration:.2f}"]
        self._ffmpeg([*args, "-acodec", "pcm_s16le", "-ar", sample_rate, out])
        return Path(out)

    def compose_filter_graph(
        self,
        inputs: Sequence[Sequence[Any]],
        graph: FilterGraph,
        out: PathLike,
        maps: Sequence[str] = ("[vout]", "[aout]"),
        duration: Optional[float] = None,
        encode: Optional[EncodeOptions] = None,
        on_progress: Optional[ProgressFn] = None,
    ) -> Path:
        """Apply a declarative filter graph and encode with fixed quality parameters.

        `inputs` is a list of per-input argument lists, each ending with the input
        path (e.g. ["-ss", "12", "src.mp4"] or ["-f", "lavfi", "color=..."]). The
        graph travels through a side file passed with -filter_complex_script so no
        shell or argv escaping is involved.
        """
        out = Path(out)
        encode = encode or EncodeOptions()
        script_path = out.with_name(f"{out.stem}_filter.txt")

        def on_line(line: str) -> None:
            if on_progress is None or not duration:
                return
            current = parse_progress_time(line)
            if current is not None:
                on_progress(progress_percent(current, duration))

        with temp_files(script_path):
            script_path.write_text(graph.serialize(), encoding="utf-8")

            args: List[Any] = ["-y"]
            for input_args in inputs:
                *opts, source = input_args
                args += [*opts, "-i", source]
            args += ["-filter_complex_script", script_path]
            for label in maps:
                args += ["-map", label]
            args += encode.args()
            if duration:
                args += ["-t", f"{duration:.3f}"]
            args.append(out)

            self._ffmpeg(args, on_line=on_line)

        if on_progress:
            on_progress(100)
        return out

    def transcode(self, args: Sequence[Any], duration: Optional[float] = None,
                  on_progress: Optional[ProgressFn] = None) -> None:
        """Run a raw ffmpeg argument list, reporting time= progress against `duration`"""
        def on_line(line: str) -> None:
            if on_progress and duration:
                current = parse_progress_time(line)
                if current is not None:
                    on_progress(progress_percent(current, duration))

        self._ffmpeg(list(args), on_line=on_line)
