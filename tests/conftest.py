from pathlib import Path
from types import SimpleNamespace
from typing import List
from unittest.mock import MagicMock

import pytest

from clipforge.config.settings import settings
from clipforge.models.project import (
    Clip,
    StoryMeta,
    Transcription,
    TranscriptSegment,
    TranscriptWord,
)
from clipforge.pipeline.manifest import ProjectManifestStore


@pytest.fixture
def workspace(tmp_path, monkeypatch) -> Path:
    """Isolated workspace + fonts dir wired into settings."""
    ws = tmp_path / "workspace"
    fonts = tmp_path / "fonts"
    ws.mkdir()
    fonts.mkdir()
    monkeypatch.setattr(settings, "WORKSPACE_DIR", str(ws))
    monkeypatch.setattr(settings, "FONTS_DIR", str(fonts))
    return ws


@pytest.fixture
def store(workspace) -> ProjectManifestStore:
    return ProjectManifestStore(workspace)


@pytest.fixture
def fake_media() -> MagicMock:
    """MediaService stand-in: every call succeeds and returns its output path."""
    media = MagicMock()
    media.get_duration.return_value = 10.0
    media.cut.side_effect = lambda src, out, start, end: Path(out)
    media.concat.side_effect = lambda files, out, encode=None: Path(out)
    media.generate_silence.side_effect = lambda out, duration, sample_rate=44100: Path(out)
    media.trim_audio.side_effect = lambda src, out, *a, **kw: Path(out)
    media.compose_filter_graph.side_effect = lambda inputs, graph, out, **kw: Path(out)
    return media


def write_file(path: Path, content: bytes = b"data") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return path


@pytest.fixture
def sample_transcription() -> Transcription:
    return Transcription(
        language="en",
        segments=[
            TranscriptSegment(start=0.0, end=4.0, text="Welcome back to the channel"),
            TranscriptSegment(
                start=10.0, end=14.0, text="this is the moment",
                words=[
                    TranscriptWord(start=10.0, end=11.0, word="this"),
                    TranscriptWord(start=11.0, end=12.0, word="is"),
                    TranscriptWord(start=12.0, end=13.0, word="the"),
                    TranscriptWord(start=13.0, end=14.0, word="moment"),
                ],
            ),
            TranscriptSegment(start=30.0, end=34.0, text="thanks for watching"),
        ],
        full_text="Welcome back to the channel this is the moment thanks for watching",
    )


def make_clip(index: int = 1, project_id: str = "proj1", story: bool = False, **overrides) -> Clip:
    data = dict(
        id=f"{project_id}-clip-{index}",
        project_id=project_id,
        title=f"Clip {index}",
        description="Something surprising happens",
        start_sec=10.0,
        end_sec=20.0,
        viral_score=7,
        tags=["funny", "live stream"],
    )
    if story:
        data["story_meta"] = StoryMeta(
            hook="Nobody expected this",
            context="The streamer had been losing all night until one final round",
            payoff_frame="the comeback",
            emotional_arc="triumph",
            share_hook="Watch till the end",
        )
    data.update(overrides)
    return Clip(**data)


@pytest.fixture
def clip_factory():
    return make_clip


def fake_llm_response(content: str) -> SimpleNamespace:
    """Shape of an OpenAI chat completion, enough for HighlightService.complete"""
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


@pytest.fixture
def llm_client_factory():
    def build(content: str) -> MagicMock:
        client = MagicMock()
        client.chat.completions.create.return_value = fake_llm_response(content)
        return client
    return build


def event_types(events: List) -> List[str]:
    return [e.type for e in events]
