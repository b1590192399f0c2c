"""
Project workspace layout and file helpers.
"""

import logging
import os
import re
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Union

from clipforge.config.settings import settings

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

_PROJECT_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def validate_project_id(project_id: str) -> str:
    if not project_id or not _PROJECT_ID_RE.match(project_id):
        raise ValueError(f"Invalid project id: {project_id!r}")
    return project_id


@dataclass(frozen=True)
class ProjectPaths:
    root: Path

    @property
    def source(self) -> Path:
        return self.root / "source.mp4"

    @property
    def audio(self) -> Path:
        return self.root / "source-audio.wav"

    @property
    def metadata(self) -> Path:
        return self.root / "metadata.json"

    @property
    def transcript(self) -> Path:
        return self.root / "transcript.json"

    @property
    def silence(self) -> Path:
        return self.root / "silence.json"

    @property
    def analysis(self) -> Path:
        """Clip manifest"""
        return self.root / "analysis.json"

    @property
    def clips_dir(self) -> Path:
        return self.root / "clips"

    @property
    def rendered_dir(self) -> Path:
        return self.root / "rendered"

    @property
    def story_dir(self) -> Path:
        return self.root / "story"

    def ensure(self) -> "ProjectPaths":
        for d in (self.root, self.clips_dir, self.rendered_dir, self.story_dir):
            d.mkdir(parents=True, exist_ok=True)
        return self


def get_project_paths(project_id: str, workspace_dir: Optional[PathLike] = None) -> ProjectPaths:
    validate_project_id(project_id)
    base = Path(workspace_dir or settings.WORKSPACE_DIR).resolve()
    return ProjectPaths(root=base / project_id).ensure()


def get_fonts_dir() -> Path:
    return Path(settings.FONTS_DIR).resolve()


def file_ready(path: Optional[PathLike]) -> bool:
    """True when the file exists and is non-empty"""
    if not path:
        return False
    p = Path(path)
    try:
        return p.is_file() and p.stat().st_size > 0
    except OSError:
        return False


def ffmpeg_path(p: PathLike) -> str:
    """Normalize path for ffmpeg (forward slashes)"""
    return str(p).replace("\\", "/")


def ffmpeg_filter_path(p: PathLike) -> str:
    """Escape a path for use inside a filter graph argument"""
    return ffmpeg_path(p).replace(":", "\\:").replace("'", "'\\''")


def concat_list_entry(p: PathLike) -> str:
    return "file '" + ffmpeg_path(Path(p).resolve()).replace("'", "'\\''") + "'"


@contextmanager
def temp_files(*initial: PathLike) -> Iterator[List[Path]]:
    """Collect paths during a stage and delete them on exit, success or failure."""
    registered: List[Path] = [Path(p) for p in initial]
    try:
        yield registered
    finally:
        for p in registered:
            try:
                p.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Could not remove temp file {p}: {e}")


@contextmanager
def atomic_output(path: PathLike) -> Iterator[Path]:
    """Yield a sibling tmp path that replaces `path` only if the block succeeds.

    The tmp name keeps the suffix so ffmpeg still infers the container.
    """
    final = Path(path)
    tmp = final.with_name(f"{final.stem}.tmp{final.suffix}")
    try:
        yield tmp
        os.replace(tmp, final)
    finally:
        tmp.unlink(missing_ok=True)


def atomic_write_text(path: PathLike, text: str) -> None:
    with atomic_output(path) as tmp:
        tmp.write_text(text, encoding="utf-8")
