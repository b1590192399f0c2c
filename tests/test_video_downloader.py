import json
from pathlib import Path
from types import SimpleNamespace

import pytest
import yt_dlp

from clipforge.services import video_downloader
from clipforge.services.video_downloader import VideoDownloadService, is_valid_youtube_url, read_metadata
from clipforge.utils.exceptions import InvalidUrlError, ParseError, ProcessTimeoutError, UpstreamError

from conftest import write_file


@pytest.mark.parametrize("url,expected", [
    ("https://www.youtube.com/watch?v=dQw4w9WgXcQ", True),
    ("https://youtu.be/dQw4w9WgXcQ", True),
    ("http://m.youtube.com/watch?v=abc", True),
    ("https://vimeo.com/123", False),
    ("ftp://youtube.com/watch?v=abc", False),
    ("https://youtube.com.evil.io/watch", False),
    ("not a url", False),
])
def test_url_validation(url, expected):
    assert is_valid_youtube_url(url) is expected


def test_metadata_fallbacks(tmp_path):
    write_file(tmp_path / "source.info.json", json.dumps({
        "fulltitle": "Full title",
        "uploader": "Uploader",
        "duration": 61,
        "description": "d" * 900,
    }).encode())
    meta = read_metadata(tmp_path)
    assert meta.title == "Full title"
    assert meta.channel_name == "Uploader"
    assert meta.duration == 61.0
    assert len(meta.description) == 500


def test_metadata_prefers_mp4_info_json(tmp_path):
    write_file(tmp_path / "other.info.json", b'{"title": "Other"}')
    write_file(tmp_path / "source.mp4.info.json", b'{"title": "Source", "channel": "Chan"}')
    assert read_metadata(tmp_path).title == "Source"


def test_metadata_defaults_and_bad_json(tmp_path):
    assert read_metadata(tmp_path).title == "Unknown"
    write_file(tmp_path / "source.info.json", b"{oops")
    with pytest.raises(ParseError):
        read_metadata(tmp_path)


class _FakeYDL:
    instances = []

    def __init__(self, options):
        self.options = options
        _FakeYDL.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def download(self, urls):
        hook = self.options["progress_hooks"][0]
        hook({"status": "downloading", "downloaded_bytes": 25, "total_bytes": 100})
        hook({"status": "downloading", "downloaded_bytes": 10})
        write_file(Path(self.options["outtmpl"]))
        hook({"status": "finished"})


def test_download_reports_progress(tmp_path, monkeypatch):
    monkeypatch.setattr(video_downloader.yt_dlp, "YoutubeDL", _FakeYDL)
    progress = []
    out = VideoDownloadService().download("https://youtu.be/abc", tmp_path / "p" / "source.mp4", progress.append)

    assert out.is_file()
    assert progress == [25, 100]
    options = _FakeYDL.instances[-1].options
    assert options["noplaylist"] is True
    assert options["writeinfojson"] is True


def test_download_errors(tmp_path, monkeypatch):
    with pytest.raises(InvalidUrlError):
        VideoDownloadService().download("https://vimeo.com/1", tmp_path / "source.mp4")

    class FailingYDL(_FakeYDL):
        def download(self, urls):
            raise yt_dlp.utils.DownloadError("Video unavailable")

    monkeypatch.setattr(video_downloader.yt_dlp, "YoutubeDL", FailingYDL)
    with pytest.raises(UpstreamError, match="Video unavailable"):
        VideoDownloadService().download("https://youtu.be/abc", tmp_path / "source.mp4")

    class SilentYDL(_FakeYDL):
        def download(self, urls):
            pass

    monkeypatch.setattr(video_downloader.yt_dlp, "YoutubeDL", SilentYDL)
    with pytest.raises(UpstreamError, match="missing"):
        VideoDownloadService().download("https://youtu.be/abc", tmp_path / "source.mp4")


def test_download_options_bound_stalls_and_retries(tmp_path, monkeypatch):
    monkeypatch.setattr(video_downloader.yt_dlp, "YoutubeDL", _FakeYDL)
    VideoDownloadService(timeout=60).download("https://youtu.be/abc", tmp_path / "source.mp4")

    options = _FakeYDL.instances[-1].options
    assert options["socket_timeout"] == 30
    assert options["retries"] == 3
    assert options["fragment_retries"] == 5


def test_download_past_deadline_is_a_timeout(tmp_path, monkeypatch):
    clock = iter([0.0, 5.0, 120.0, 130.0])
    monkeypatch.setattr(video_downloader, "time", SimpleNamespace(monotonic=lambda: next(clock)))

    class SlowYDL(_FakeYDL):
        def download(self, urls):
            hook = self.options["progress_hooks"][0]
            hook({"status": "downloading", "downloaded_bytes": 10, "total_bytes": 100})
            hook({"status": "downloading", "downloaded_bytes": 20, "total_bytes": 100})
            write_file(Path(self.options["outtmpl"]))

    monkeypatch.setattr(video_downloader.yt_dlp, "YoutubeDL", SlowYDL)
    progress = []
    with pytest.raises(ProcessTimeoutError) as exc:
        VideoDownloadService(timeout=60).download("https://youtu.be/abc", tmp_path / "source.mp4", progress.append)

    assert progress == [10]
    assert exc.value.timeout == 60
    assert exc.value.command[0] == "yt-dlp"
    assert not (tmp_path / "source.mp4").exists()


def test_default_timeout_comes_from_settings(monkeypatch):
    monkeypatch.setattr(video_downloader.settings, "DOWNLOAD_TIMEOUT_SEC", 42)
    assert VideoDownloadService().timeout == 42
