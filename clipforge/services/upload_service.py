"""
YouTube upload over the Data API v3 resumable protocol.

Credentials are an installed-app OAuth client secret plus a previously authorized
user token; the token is refreshed and written back when it expires.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

import google.auth.exceptions
from google.auth.transport.requests import AuthorizedSession, Request
from google.oauth2.credentials import Credentials

from clipforge.config.constants import (
    YOUTUBE_DEFAULT_CATEGORY,
    YOUTUBE_DEFAULT_PRIVACY,
    YOUTUBE_UPLOAD_CHUNK_SIZE,
)
from clipforge.config.settings import settings
from clipforge.utils.exceptions import ConfigError, MissingAssetError, UpstreamError
from clipforge.utils.paths import PathLike, file_ready

logger = logging.getLogger(__name__)

YOUTUBE_UPLOAD_SCOPE = "https://www.googleapis.com/auth/youtube.upload"
YOUTUBE_UPLOAD_URL = "https://www.googleapis.com/upload/youtube/v3/videos"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"


@dataclass
class UploadMeta:
    title: str
    description: str = ""
    tags: List[str] = field(default_factory=list)
    category_id: str = YOUTUBE_DEFAULT_CATEGORY
    privacy_status: str = YOUTUBE_DEFAULT_PRIVACY

    def to_body(self) -> dict:
        return {
            "snippet": {
                "title": self.title[:100],
                "description": self.description,
                "tags": self.tags,
                "categoryId": self.category_id,
            },
            "status": {
                "privacyStatus": self.privacy_status,
                "selfDeclaredMadeForKids": False,
            },
        }


def build_description(title: str, tags: List[str], channel_url: Optional[str] = None) -> str:
    lines = [title, ""]
    if channel_url:
        lines += [f"🔗 {channel_url}", ""]
    hashtags = " ".join("#" + tag.replace(" ", "") for tag in tags if tag.strip())
    if hashtags:
        lines += [hashtags, ""]
    lines.append("Generated with ClipForge")
    return "\n".join(lines)


def _read_json(path: Path, what: str) -> dict:
    if not path.is_file():
        raise ConfigError(f"YouTube {what} not found: {path}")
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigError(f"Unreadable YouTube {what} {path}: {e}")


class YouTubeUploadService:
    def __init__(self, client_secret_path: Optional[PathLike] = None,
                 token_path: Optional[PathLike] = None, session=None):
        self.client_secret_path = Path(client_secret_path or settings.YOUTUBE_CLIENT_SECRET_PATH)
        self.token_path = Path(token_path or settings.YOUTUBE_TOKEN_PATH)
        self._session = session

    def _load_credentials(self) -> Credentials:
        secret = _read_json(self.client_secret_path, "client secret")
        client = secret.get("installed") or secret.get("web") or secret
        token = _read_json(self.token_path, "token")

        creds = Credentials(
            token=token.get("token") or token.get("access_token"),
            refresh_token=token.get("refresh_token"),
            token_uri=client.get("token_uri", GOOGLE_TOKEN_URI),
            client_id=client.get("client_id"),
            client_secret=client.get("client_secret"),
            scopes=[YOUTUBE_UPLOAD_SCOPE],
        )
        if not creds.valid:
            if not creds.refresh_token:
                raise ConfigError("YouTube token has no refresh_token; re-authorize the account")
            try:
                creds.refresh(Request())
            except google.auth.exceptions.RefreshError as e:
                raise UpstreamError(f"YouTube token refresh failed: {e}")
            self.token_path.write_text(creds.to_json(), encoding="utf-8")
            logger.info("🔑 YouTube token refreshed")
        return creds

    def _get_session(self) -> AuthorizedSession:
        if self._session is None:
            self._session = AuthorizedSession(self._load_credentials())
        return self._session

    def upload(self, video_path: PathLike, meta: UploadMeta,
               on_progress: Optional[Callable[[int], None]] = None) -> str:
        """Upload a video and return its YouTube id"""
        video_path = Path(video_path)
        if not file_ready(video_path):
            raise MissingAssetError(f"Video not found: {video_path.name}", stage="render")

        session = self._get_session()
        total = os.path.getsize(video_path)
        logger.info(f"📤 Uploading {video_path.name} ({total / 1024 / 1024:.1f}MB) to YouTube")

        init = session.post(
            YOUTUBE_UPLOAD_URL,
            params={"uploadType": "resumable", "part": "snippet,status"},
            json=meta.to_body(),
            headers={"X-Upload-Content-Type": "video/*", "X-Upload-Content-Length": str(total)},
        )
        if init.status_code != 200 or "Location" not in init.headers:
            raise UpstreamError(f"YouTube upload init failed: {init.status_code} {init.text[:200]}",
                                status_code=init.status_code)
        upload_url = init.headers["Location"]

        offset = 0
        with open(video_path, "rb") as f:
            while offset < total:
                f.seek(offset)
                chunk = f.read(YOUTUBE_UPLOAD_CHUNK_SIZE)
                end = offset + len(chunk) - 1
                res = session.put(upload_url, data=chunk,
                                  headers={"Content-Range": f"bytes {offset}-{end}/{total}"})

                if res.status_code in (200, 201):
                    if on_progress:
                        on_progress(100)
                    video_id = res.json().get("id")
                    if not video_id:
                        raise UpstreamError("YouTube upload response had no video id")
                    logger.info(f"✅ Uploaded to YouTube: {video_id}")
                    return video_id
                if res.status_code != 308:
                    raise UpstreamError(f"YouTube upload failed: {res.status_code} {res.text[:200]}",
                                        status_code=res.status_code)

                # 308 Resume Incomplete: Range says how much the server has
                received = res.headers.get("Range")
                offset = int(received.rsplit("-", 1)[1]) + 1 if received else end + 1
                if on_progress:
                    on_progress(min(99, offset * 100 // total))

        raise UpstreamError("YouTube upload ended without a completion response")
