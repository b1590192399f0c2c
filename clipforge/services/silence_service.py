"""
Silence analysis: ffmpeg silencedetect parsing and active-span partitioning.
"""

import logging
import re
from typing import Iterable, List, Optional, Sequence

from clipforge.config.constants import (
    MIN_GAP_TO_REMOVE_SEC,
    SILENCE_MIN_DURATION_SEC,
    SILENCE_NOISE_THRESHOLD_DB,
)
from clipforge.models.project import SilenceGap, TimeSpan
from clipforge.utils.ffmpeg_helper import get_ffmpeg_path
from clipforge.utils.paths import PathLike
from clipforge.utils.process_runner import run_process

logger = logging.getLogger(__name__)

_START_RE = re.compile(r"silence_start:\s*(-?[\d.]+)")
_END_RE = re.compile(r"silence_end:\s*([\d.]+)\s*\|\s*silence_duration:\s*([\d.]+)")


class SilenceLogParser:
    """Incremental parser for silencedetect log lines.

    A `silence_start` line opens a gap and the next `silence_end | silence_duration`
    line closes it. An end with no open start is ignored, and a start that is never
    closed (e.g. silence running to EOF without an end line) is discarded.
    """

    def __init__(self) -> None:
        self._open_start: Optional[float] = None
        self.gaps: List[SilenceGap] = []

    def feed(self, line: str) -> None:
        start_match = _START_RE.search(line)
        if start_match:
            self._open_start = max(0.0, float(start_match.group(1)))
            return

        end_match = _END_RE.search(line)
        if end_match and self._open_start is not None:
            end = float(end_match.group(1))
            duration = float(end_match.group(2))
            self.gaps.append(SilenceGap(start=self._open_start, end=end, duration=duration))
            self._open_start = None

    def result(self) -> List[SilenceGap]:
        return sorted(self.gaps, key=lambda g: g.start)


def parse_silence_output(output: str) -> List[SilenceGap]:
    parser = SilenceLogParser()
    for line in output.splitlines():
        parser.feed(line)
    return parser.result()


def detect_silence(
    audio_path: PathLike,
    noise_threshold_db: float = SILENCE_NOISE_THRESHOLD_DB,
    min_duration_sec: float = SILENCE_MIN_DURATION_SEC,
) -> List[SilenceGap]:
    """Run silencedetect over the audio and return gaps sorted by start"""
    parser = SilenceLogParser()
    run_process(
        [
            get_ffmpeg_path(), "-hide_banner", "-nostats",
            "-i", str(audio_path),
            "-af", f"silencedetect=noise={noise_threshold_db:g}dB:d={min_duration_sec:g}",
            "-f", "null", "-",
        ],
        on_line=parser.feed,
    )
    gaps = parser.result()
    logger.info(f"🔇 Detected {len(gaps)} silence gaps in {audio_path}")
    return gaps


def get_active_segments(
    start_sec: float,
    end_sec: float,
    gaps: Sequence[SilenceGap],
    min_gap_to_remove_sec: float = MIN_GAP_TO_REMOVE_SEC,
) -> List[TimeSpan]:
    """Non-silent spans of [start_sec, end_sec].

    Only gaps fully inside the window and at least `min_gap_to_remove_sec` long are
    removed. Gaps must be sorted by start and non-overlapping.
    """
    qualifying = [
        g for g in gaps
        if g.start >= start_sec and g.end <= end_sec and g.duration >= min_gap_to_remove_sec
    ]
    if not qualifying:
        return [TimeSpan(start=start_sec, end=end_sec)]

    spans: List[TimeSpan] = []
    cursor = start_sec
    for gap in qualifying:
        if gap.start > cursor:
            spans.append(TimeSpan(start=cursor, end=gap.start))
        cursor = max(cursor, gap.end)
    if cursor < end_sec:
        spans.append(TimeSpan(start=cursor, end=end_sec))
    return spans


def total_silence(gaps: Iterable[SilenceGap]) -> float:
    return sum(g.duration for g in gaps)
