from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from clipforge.services import upload_service
from clipforge.services.upload_service import UploadMeta, YouTubeUploadService, build_description
from clipforge.utils.exceptions import ConfigError, MissingAssetError, UpstreamError

from conftest import write_file


def _response(status_code, headers=None, body=None):
    return SimpleNamespace(status_code=status_code, headers=headers or {}, text="",
                           json=lambda: body or {})


def test_description_layout():
    text = build_description("Epic clutch", ["funny", "live stream"], "https://youtube.com/@chan")
    assert text.splitlines() == [
        "Epic clutch", "", "🔗 https://youtube.com/@chan", "", "#funny #livestream", "", "Generated with ClipForge",
    ]
    assert build_description("t", []) == "t\n\nGenerated with ClipForge"


def test_body_truncates_title():
    body = UploadMeta(title="x" * 150, privacy_status="unlisted").to_body()
    assert len(body["snippet"]["title"]) == 100
    assert body["status"] == {"privacyStatus": "unlisted", "selfDeclaredMadeForKids": False}


def test_resumable_upload(tmp_path, monkeypatch):
    monkeypatch.setattr(upload_service, "YOUTUBE_UPLOAD_CHUNK_SIZE", 4)
    video = write_file(tmp_path / "clip.mp4", b"0123456789")

    session = MagicMock()
    session.post.return_value = _response(200, {"Location": "https://upload/session"})
    session.put.side_effect = [
        _response(308, {"Range": "bytes=0-3"}),
        _response(200, body={"id": "abc123"}),
    ]
    progress = []
    video_id = YouTubeUploadService(session=session).upload(video, UploadMeta(title="Clip"), progress.append)

    assert video_id == "abc123"
    assert progress == [40, 100]
    ranges = [c.kwargs["headers"]["Content-Range"] for c in session.put.call_args_list]
    assert ranges == ["bytes 0-3/10", "bytes 4-7/10"]
    assert session.post.call_args.kwargs["params"]["uploadType"] == "resumable"


def test_upload_failures(tmp_path):
    session = MagicMock()
    with pytest.raises(MissingAssetError):
        YouTubeUploadService(session=session).upload(tmp_path / "none.mp4", UploadMeta(title="t"))

    video = write_file(tmp_path / "clip.mp4")
    session.post.return_value = _response(403)
    with pytest.raises(UpstreamError) as exc:
        YouTubeUploadService(session=session).upload(video, UploadMeta(title="t"))
    assert exc.value.status_code == 403


def test_missing_credentials_are_config_errors(tmp_path):
    service = YouTubeUploadService(tmp_path / "secret.json", tmp_path / "token.json")
    with pytest.raises(ConfigError):
        service.upload(write_file(tmp_path / "clip.mp4"), UploadMeta(title="t"))
