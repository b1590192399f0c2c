import random

import pytest

from clipforge.models.project import SilenceGap, TimeSpan
from clipforge.services import silence_service
from clipforge.services.silence_service import (
    SilenceLogParser,
    get_active_segments,
    parse_silence_output,
    total_silence,
)

FFMPEG_LOG = """\
[silencedetect @ 0x7f8] silence_start: 12
[silencedetect @ 0x7f8] silence_end: 14.5 | silence_duration: 2.5
size=N/A time=00:00:20.00 bitrate=N/A
[silencedetect @ 0x7f8] silence_start: 3.2
[silencedetect @ 0x7f8] silence_end: 3.9 | silence_duration: 0.7
[silencedetect @ 0x7f8] silence_start: 40
"""


def test_parser_pairs_start_and_end_and_sorts():
    gaps = parse_silence_output(FFMPEG_LOG)
    assert [(g.start, g.end) for g in gaps] == [(3.2, 3.9), (12.0, 14.5)]
    assert gaps[1].duration == pytest.approx(2.5)


def test_parser_clamps_negative_start_and_ignores_orphan_end():
    parser = SilenceLogParser()
    parser.feed("silence_end: 1.0 | silence_duration: 1.0")
    parser.feed("silence_start: -0.02")
    parser.feed("silence_end: 0.8 | silence_duration: 0.82")
    assert parser.result() == [SilenceGap(start=0.0, end=0.8, duration=0.82)]


def test_active_segments_split_around_a_long_gap():
    gaps = [SilenceGap.of(12, 14.5)]
    assert get_active_segments(10, 20, gaps) == [TimeSpan(start=10, end=12), TimeSpan(start=14.5, end=20)]


def test_short_and_outside_gaps_are_kept():
    gaps = [SilenceGap.of(11, 11.5), SilenceGap.of(18, 25)]
    assert get_active_segments(10, 20, gaps) == [TimeSpan(start=10, end=20)]


def test_gap_touching_window_edge_leaves_no_empty_span():
    gaps = [SilenceGap.of(10, 11), SilenceGap.of(15, 20)]
    assert get_active_segments(10, 20, gaps) == [TimeSpan(start=11, end=15)]


def test_total_silence():
    assert total_silence([SilenceGap.of(0, 1), SilenceGap.of(5, 7.5)]) == pytest.approx(3.5)


def test_detect_silence_streams_ffmpeg_output(monkeypatch):
    captured = {}

    def fake_run(cmd, on_line=None, **kwargs):
        captured["cmd"] = cmd
        for line in FFMPEG_LOG.splitlines():
            on_line(line)

    monkeypatch.setattr(silence_service, "run_process", fake_run)
    gaps = silence_service.detect_silence("audio.wav")

    assert len(gaps) == 2
    assert "silencedetect=noise=-30dB:d=0.5" in captured["cmd"]


def _random_gaps(rng: random.Random, limit: float):
    gaps, cursor = [], 0.0
    while True:
        start = cursor + rng.choice([0, 0.25, 0.5, 1, 2, 4])
        end = start + rng.choice([0.1, 0.25, 0.5, 0.75, 1, 3])
        if end > limit:
            return gaps
        gaps.append(SilenceGap.of(start, end))
        cursor = end


@pytest.mark.parametrize("seed", range(25))
def test_spans_and_removed_gaps_rebuild_the_window(seed):
    rng = random.Random(seed)
    gaps = _random_gaps(rng, 60)
    start = rng.choice([0, 2.5, 5, 10])
    end = start + rng.choice([5, 15, 30, 45])
    min_gap = 0.5

    spans = get_active_segments(start, end, gaps, min_gap_to_remove_sec=min_gap)
    removed = [g for g in gaps if g.start >= start and g.end <= end and g.duration >= min_gap]

    pieces = sorted([(s.start, s.end) for s in spans] + [(g.start, g.end) for g in removed])
    assert pieces[0][0] == pytest.approx(start)
    assert pieces[-1][1] == pytest.approx(end)
    for (_, prev_end), (next_start, _) in zip(pieces, pieces[1:]):
        assert next_start == pytest.approx(prev_end)
    assert all(s.end > s.start for s in spans)
    assert sum(s.end - s.start for s in spans) + total_silence(removed) == pytest.approx(end - start)
