"""
On-disk project state: the clip manifest plus the cached stage artifacts.

Everything lives under WORKSPACE_DIR/<project_id>/; the filesystem is the only
store, so a restarted server sees the same state a running pipeline left behind.
"""

import logging
from pathlib import Path
from typing import Any, List, Optional

from pydantic import TypeAdapter, ValidationError

from clipforge.config.settings import settings
from clipforge.models.pipeline import PipelineStep, new_step_catalog
from clipforge.models.project import Clip, SilenceGap, Transcription, VideoMetadata
from clipforge.services.transcription_service import TranscriptionService
from clipforge.services.video_downloader import read_metadata
from clipforge.utils.exceptions import (
    ClipNotFoundError,
    MissingAssetError,
    ParseError,
    ProjectNotFoundError,
)
from clipforge.utils.paths import PathLike, ProjectPaths, atomic_write_text, file_ready, validate_project_id

logger = logging.getLogger(__name__)

_CLIPS = TypeAdapter(List[Clip])
_GAPS = TypeAdapter(List[SilenceGap])


class ProjectManifestStore:
    def __init__(self, workspace_dir: Optional[PathLike] = None):
        self.workspace_dir = Path(workspace_dir or settings.WORKSPACE_DIR).resolve()

    def paths(self, project_id: str, create: bool = True) -> ProjectPaths:
        validate_project_id(project_id)
        paths = ProjectPaths(root=self.workspace_dir / project_id)
        return paths.ensure() if create else paths

    def exists(self, project_id: str) -> bool:
        return self.paths(project_id, create=False).root.is_dir()

    def _require_project(self, project_id: str) -> ProjectPaths:
        paths = self.paths(project_id, create=False)
        if not paths.root.is_dir():
            raise ProjectNotFoundError(project_id)
        return paths

    # Clips

    def load_clips(self, project_id: str) -> List[Clip]:
        paths = self._require_project(project_id)
        if not paths.analysis.is_file():
            raise MissingAssetError(f"No clips for project {project_id}", stage="analyze")
        try:
            return _CLIPS.validate_json(paths.analysis.read_text(encoding="utf-8"))
        except ValidationError as e:
            raise ParseError(f"Corrupt clip manifest for {project_id}: {e}")

    def save_clips(self, project_id: str, clips: List[Clip]) -> None:
        paths = self.paths(project_id)
        atomic_write_text(paths.analysis, _CLIPS.dump_json(clips, indent=2).decode("utf-8"))

    def get_clip(self, project_id: str, clip_id: str) -> Clip:
        for clip in self.load_clips(project_id):
            if clip.id == clip_id:
                return clip
        raise ClipNotFoundError(project_id, clip_id)

    def update_clip(self, project_id: str, clip_id: str, **changes: Any) -> Clip:
        clips = self.load_clips(project_id)
        for i, clip in enumerate(clips):
            if clip.id == clip_id:
                # validate through the model so bad edits never reach disk
                updated = Clip.model_validate({**clip.model_dump(), **changes})
                clips[i] = updated
                self.save_clips(project_id, clips)
                return updated
        raise ClipNotFoundError(project_id, clip_id)

    # Stage artifacts

    def load_metadata(self, project_id: str) -> VideoMetadata:
        paths = self._require_project(project_id)
        if paths.metadata.is_file():
            try:
                return VideoMetadata.model_validate_json(paths.metadata.read_text(encoding="utf-8"))
            except ValidationError as e:
                raise ParseError(f"Corrupt metadata for {project_id}: {e}")
        return read_metadata(paths.root)

    def save_metadata(self, project_id: str, metadata: VideoMetadata) -> None:
        atomic_write_text(self.paths(project_id).metadata, metadata.model_dump_json(indent=2))

    def load_transcription(self, project_id: str) -> Transcription:
        paths = self._require_project(project_id)
        if not file_ready(paths.transcript):
            raise MissingAssetError("Transcript not found", stage="transcribe")
        return TranscriptionService.load(paths.transcript)

    def save_transcription(self, project_id: str, transcription: Transcription) -> None:
        TranscriptionService.save(self.paths(project_id).transcript, transcription)

    def load_silence(self, project_id: str) -> List[SilenceGap]:
        paths = self._require_project(project_id)
        if not paths.silence.is_file():
            raise MissingAssetError("Silence map not found", stage="detect-silence")
        try:
            return _GAPS.validate_json(paths.silence.read_text(encoding="utf-8"))
        except ValidationError as e:
            raise ParseError(f"Corrupt silence map for {project_id}: {e}")

    def save_silence(self, project_id: str, gaps: List[SilenceGap]) -> None:
        atomic_write_text(self.paths(project_id).silence, _GAPS.dump_json(gaps, indent=2).decode("utf-8"))

    # Status

    def derive_status(self, project_id: str) -> List[PipelineStep]:
        """Stage status reconstructed from the artifacts on disk"""
        paths = self._require_project(project_id)
        clips: List[Clip] = []
        if paths.analysis.is_file():
            try:
                clips = self.load_clips(project_id)
            except ParseError as e:
                logger.warning(f"Ignoring unreadable manifest for {project_id}: {e}")

        def all_ready(attr: str) -> bool:
            return bool(clips) and all(file_ready(getattr(c, attr)) for c in clips)

        done = {
            "download": file_ready(paths.source),
            "extract-audio": file_ready(paths.audio),
            "transcribe": file_ready(paths.transcript),
            "detect-silence": paths.silence.is_file(),
            "analyze": paths.analysis.is_file(),
            "extract-clips": all_ready("source_path"),
            "render": all_ready("rendered_path"),
            "story-compose": any(file_ready(c.story_path) for c in clips),
        }
        story_skipped = done["render"] and not any(c.story_meta for c in clips)

        steps = new_step_catalog()
        for step in steps:
            if step.id == "story-compose" and story_skipped:
                step.finish("Skipped: no clips with story metadata", skipped=True)
            elif done[step.id]:
                step.finish("Completed")
        return steps

    def summary(self, project_id: str) -> dict:
        steps = self.derive_status(project_id)
        return {
            "project_id": project_id,
            "steps": [s.model_dump(mode="json") for s in steps],
            "complete": all(s.status in ("done", "skipped") for s in steps),
        }
