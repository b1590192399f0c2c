import json
import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlparse

import yt_dlp

from clipforge.config.constants import (
    DOWNLOAD_FORMAT,
    DOWNLOAD_FRAGMENT_RETRIES,
    DOWNLOAD_RETRIES,
    DOWNLOAD_SOCKET_TIMEOUT_SEC,
    METADATA_DESCRIPTION_CHARS,
    SUPPORTED_VIDEO_HOSTS,
)
from clipforge.config.settings import settings
from clipforge.models.project import VideoMetadata
from clipforge.utils.exceptions import InvalidUrlError, ParseError, ProcessTimeoutError, UpstreamError
from clipforge.utils.paths import PathLike

logger = logging.getLogger(__name__)

ProgressFn = Callable[[int], None]


class DownloadDeadlineExceeded(yt_dlp.utils.DownloadCancelled):
    """Raised from the progress hook once a download runs past its deadline"""

    msg = "Download deadline exceeded"


def is_valid_youtube_url(url: str) -> bool:
    try:
        parsed = urlparse(url.strip())
    except (AttributeError, ValueError):
        return False
    return parsed.scheme in ("http", "https") and (parsed.hostname or "").lower() in SUPPORTED_VIDEO_HOSTS


def _download_percent(d: Dict[str, Any]) -> Optional[int]:
    total = d.get("total_bytes") or d.get("total_bytes_estimate")
    downloaded = d.get("downloaded_bytes")
    if not total or downloaded is None:
        return None
    return max(0, min(100, round(downloaded / total * 100)))


class VideoDownloadService:
    """Downloads the source video with yt-dlp next to its info json and thumbnail.

    A stalled socket is bounded by yt-dlp's socket_timeout; the whole download is
    bounded by `timeout`, checked every time yt-dlp reports progress.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout or settings.DOWNLOAD_TIMEOUT_SEC

    def _build_options(self, output_path: Path, on_progress: Optional[ProgressFn],
                       deadline: float) -> Dict[str, Any]:
        def progress_hook(d: Dict[str, Any]) -> None:
            if time.monotonic() > deadline:
                raise DownloadDeadlineExceeded()
            if on_progress is None:
                return
            if d.get("status") == "downloading":
                percent = _download_percent(d)
                if percent is not None:
                    on_progress(percent)
            elif d.get("status") == "finished":
                on_progress(100)

        return {
            "format": DOWNLOAD_FORMAT,
            "merge_output_format": "mp4",
            "outtmpl": str(output_path),
            "noplaylist": True,
            "writeinfojson": True,
            "writethumbnail": True,
            "postprocessors": [{"key": "FFmpegThumbnailsConvertor", "format": "jpg"}],
            "socket_timeout": DOWNLOAD_SOCKET_TIMEOUT_SEC,
            "retries": DOWNLOAD_RETRIES,
            "fragment_retries": DOWNLOAD_FRAGMENT_RETRIES,
            "quiet": True,
            "no_warnings": True,
            "noprogress": True,
            "progress_hooks": [progress_hook],
        }

    def download(self, url: str, output_path: PathLike, on_progress: Optional[ProgressFn] = None) -> Path:
        if not is_valid_youtube_url(url):
            raise InvalidUrlError(f"Unsupported video URL: {url}")

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"📥 Downloading {url} -> {output_path}")

        deadline = time.monotonic() + self.timeout
        try:
            with yt_dlp.YoutubeDL(self._build_options(output_path, on_progress, deadline)) as ydl:
                ydl.download([url])
        except DownloadDeadlineExceeded:
            logger.error(f"⏱️ Download exceeded {self.timeout}s, aborting")
            raise ProcessTimeoutError(["yt-dlp", url], self.timeout)
        except yt_dlp.utils.DownloadError as e:
            raise UpstreamError(f"Video download failed: {e}")

        if not output_path.exists():
            raise UpstreamError(f"Download finished but {output_path.name} is missing")
        logger.info(f"✅ Download complete: {output_path.stat().st_size / 1024 / 1024:.1f}MB")
        return output_path


def _find_info_json(project_dir: Path) -> Optional[Path]:
    for name in ("source.mp4.info.json", "source.info.json"):
        candidate = project_dir / name
        if candidate.is_file():
            return candidate
    return next(iter(sorted(project_dir.glob("*.info.json"))), None)


def read_metadata(project_dir: PathLike) -> VideoMetadata:
    """Video metadata from the yt-dlp info json; Unknown placeholders when absent."""
    info_path = _find_info_json(Path(project_dir))
    if info_path is None:
        return VideoMetadata()

    try:
        info = json.loads(info_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ParseError(f"Unreadable info json {info_path.name}: {e}")

    return VideoMetadata(
        title=info.get("title") or info.get("fulltitle") or "Untitled",
        channel_name=info.get("channel") or info.get("uploader") or "Unknown",
        duration=float(info.get("duration") or 0),
        thumbnail_url=info.get("thumbnail") or "",
        description=(info.get("description") or "")[:METADATA_DESCRIPTION_CHARS],
    )
