"""
Centralized FFmpeg Path Helper
"""
import os
import shutil
import subprocess
import logging
from typing import Optional

from clipforge.config.settings import settings

logger = logging.getLogger(__name__)


def _resolve(binary: str, override: Optional[str]) -> str:
    if override:
        return override

    found = shutil.which(binary)
    if found:
        return found

    # Common Windows paths
    windows_paths = [
        rf"C:\Program Files\ffmpeg-master-latest-win64-gpl-shared\bin\{binary}.exe",
        rf"C:\ffmpeg\bin\{binary}.exe",
    ]
    for path in windows_paths:
        if os.path.exists(path):
            return path

    # Let the OS report the missing binary when it is first spawned
    return binary


def get_ffmpeg_path() -> str:
    """Get FFmpeg executable path - centralized function"""
    return _resolve("ffmpeg", settings.FFMPEG_PATH)


def get_ffprobe_path() -> str:
    return _resolve("ffprobe", settings.FFPROBE_PATH)


def verify_ffmpeg():
    """Verify FFmpeg is available and working"""
    ffmpeg_path = get_ffmpeg_path()

    try:
        result = subprocess.run([ffmpeg_path, '-version'],
                                capture_output=True, text=True, timeout=10)
        if result.returncode == 0:
            version_line = result.stdout.split('\n')[0]
            return True, f"FFmpeg available: {version_line}"
        else:
            return False, f"FFmpeg execution failed: {result.stderr}"
    except FileNotFoundError:
        return False, "FFmpeg not found"
    except subprocess.TimeoutExpired:
        return False, "FFmpeg check timed out"
