import logging
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from clipforge.models.project import Clip, SilenceGap
from clipforge.services.media_service import MediaService
from clipforge.services.silence_service import get_active_segments
from clipforge.utils.exceptions import MissingAssetError
from clipforge.utils.paths import PathLike, file_ready, get_project_paths, temp_files

logger = logging.getLogger(__name__)

BatchProgress = Callable[[int, int, str], None]


class ClipExtractor:
    """Cuts each clip's range out of the source, dropping long internal silences."""

    def __init__(self, media: Optional[MediaService] = None, workspace_dir: Optional[PathLike] = None):
        self.media = media or MediaService()
        self.workspace_dir = workspace_dir

    def extract_clip(self, project_id: str, clip: Clip, gaps: Sequence[SilenceGap],
                     remove_silence: bool = True) -> Path:
        paths = get_project_paths(project_id, self.workspace_dir)
        if not file_ready(paths.source):
            raise MissingAssetError("Source video not found", stage="download")

        output_path = paths.clips_dir / f"{clip.id}.mp4"
        if not remove_silence or not gaps:
            return self.media.cut(paths.source, output_path, clip.start_sec, clip.end_sec)

        segments = get_active_segments(clip.start_sec, clip.end_sec, gaps)
        if len(segments) <= 1:
            span = segments[0] if segments else None
            start = span.start if span else clip.start_sec
            end = span.end if span else clip.end_sec
            return self.media.cut(paths.source, output_path, start, end)

        logger.info(f"✂️ {clip.id}: joining {len(segments)} active segments")
        with temp_files() as parts:
            for i, segment in enumerate(segments):
                part = paths.clips_dir / f"{clip.id}_part{i}.mp4"
                parts.append(part)
                self.media.cut(paths.source, part, segment.start, segment.end)
            self.media.concat(parts, output_path)
        return output_path

    def extract_all(self, project_id: str, clips: Sequence[Clip], gaps: Sequence[SilenceGap],
                    on_progress: Optional[BatchProgress] = None,
                    remove_silence: bool = True) -> List[Clip]:
        results = []
        for i, clip in enumerate(clips):
            if on_progress:
                on_progress(i + 1, len(clips), clip.title)
            source_path = self.extract_clip(project_id, clip, gaps, remove_silence)
            results.append(clip.model_copy(update={"source_path": str(source_path), "status": "extracted"}))
        return results
