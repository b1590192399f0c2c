from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

import main
from clipforge.dependencies.services import get_title_service, get_upload_service
from clipforge.models.project import VideoMetadata
from clipforge.utils.exceptions import PipelineBusyError

from conftest import make_clip, write_file

URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"


@pytest.fixture
def client(workspace, monkeypatch):
    monkeypatch.setattr(main, "verify_ffmpeg", lambda: (True, "FFmpeg available: test"))
    with TestClient(main.app) as c:
        c.app.state.runner = MagicMock()
        c.app.state.runner.is_running.return_value = False
        yield c
    main.app.dependency_overrides.clear()


@pytest.fixture
def project(client):
    store = client.app.state.store
    store.save_clips("proj1", [make_clip(1), make_clip(2, story=True)])
    store.save_metadata("proj1", VideoMetadata(title="Stream VOD", duration=600.0))
    return store


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json()["status"] == "ok"


def test_start_pipeline(client):
    res = client.post("/api/pipeline", json={"project_id": "proj1", "url": URL})
    assert res.json() == {"started": True, "project_id": "proj1"}
    client.app.state.runner.start.assert_called_once_with("proj1", URL)


def test_start_pipeline_rejects_bad_input(client):
    res = client.post("/api/pipeline", json={"project_id": "proj1", "url": "https://vimeo.com/1"})
    assert res.status_code == 400
    assert res.json() == {"error": "Invalid YouTube URL"}

    res = client.post("/api/pipeline", json={"project_id": "../x", "url": URL})
    assert res.status_code == 400


def test_start_pipeline_while_running(client):
    client.app.state.runner.start.side_effect = PipelineBusyError("proj1")
    res = client.post("/api/pipeline", json={"project_id": "proj1", "url": URL})
    assert res.status_code == 409
    assert res.json() == {"error": "Pipeline already running"}


def test_clips_for_unknown_and_unanalyzed_projects(client):
    assert client.get("/api/projects/ghost/clips").status_code == 404

    client.app.state.store.paths("fresh")
    assert client.get("/api/projects/fresh/clips").json() == {"clips": [], "metadata": None}


def test_clips_and_status(client, project):
    body = client.get("/api/projects/proj1/clips").json()
    assert [c["id"] for c in body["clips"]] == ["proj1-clip-1", "proj1-clip-2"]
    assert body["metadata"]["title"] == "Stream VOD"

    status = client.get("/api/projects/proj1/status").json()
    assert status["running"] is False
    assert status["complete"] is False
    assert {s["id"]: s["status"] for s in status["steps"]}["analyze"] == "done"


def test_templates(client):
    ids = [t["id"] for t in client.get("/api/templates").json()["templates"]]
    assert "sandpaper" in ids


def test_patch_clip(client, project):
    res = client.patch("/api/projects/proj1/clips/proj1-clip-1",
                       json={"title": "  New title ", "template_id": "cinema-black"})
    assert res.status_code == 200
    assert res.json()["clip"]["title"] == "New title"
    assert project.get_clip("proj1", "proj1-clip-1").template_id == "cinema-black"

    assert client.patch("/api/projects/proj1/clips/proj1-clip-1", json={}).status_code == 400
    assert client.patch("/api/projects/proj1/clips/proj1-clip-1",
                        json={"template_id": "nope"}).status_code == 400
    assert client.patch("/api/projects/proj1/clips/missing", json={"title": "x"}).status_code == 404


def test_render_requires_transcript(client, project):
    res = client.post("/api/projects/proj1/render", json={})
    assert res.status_code == 409
    assert "transcribe" in res.json()["error"]


def test_titles(client, project):
    titles = MagicMock()
    titles.generate_titles.return_value = ["One", "Two"]
    client.app.dependency_overrides[get_title_service] = lambda: titles

    res = client.post("/api/projects/proj1/titles", json={"clip_id": "proj1-clip-1", "count": 2})
    assert res.json() == {"success": True, "titles": ["One", "Two"]}
    titles.generate_titles.assert_called_once_with("Something surprising happens", "Stream VOD", 2)


def test_upload_prefers_hooked_video(client, project, workspace):
    paths = project.paths("proj1")
    rendered = write_file(paths.rendered_dir / "proj1-clip-1_rendered.mp4")
    hooked = write_file(paths.rendered_dir / "proj1-clip-1_hooked.mp4")
    project.update_clip("proj1", "proj1-clip-1", rendered_path=str(rendered), hooked_path=str(hooked))

    uploader = MagicMock()
    uploader.upload.return_value = "yt123"
    client.app.dependency_overrides[get_upload_service] = lambda: uploader

    res = client.post("/api/projects/proj1/upload", json={"clip_id": "proj1-clip-1", "tags": ["gaming"]})
    body = res.json()
    assert body["url"] == "https://youtube.com/shorts/yt123"
    assert body["clip"]["status"] == "uploaded"

    video_path, meta = uploader.upload.call_args.args
    assert video_path == str(hooked)
    assert meta.tags == ["gaming"]
    assert meta.privacy_status == "private"
    assert "#gaming" in meta.description


def test_upload_story_without_story_video(client, project):
    client.app.dependency_overrides[get_upload_service] = lambda: MagicMock()
    res = client.post("/api/projects/proj1/upload", json={"clip_id": "proj1-clip-2", "use_story": True})
    assert res.status_code == 409
