from pathlib import Path

import pytest

from clipforge.services.hook_service import HookService, build_freeze_frame_graph
from clipforge.utils.exceptions import MissingAssetError, UpstreamError
from clipforge.utils.paths import get_project_paths

from conftest import make_clip, write_file


class Synth:
    def __init__(self, fail=False):
        self.fail = fail

    def synthesize(self, text, output_path):
        if self.fail:
            raise UpstreamError("TTS error: 500")
        return write_file(Path(output_path))


def test_freeze_frame_graph():
    text = build_freeze_frame_graph(2.5).serialize()
    assert "[0:v]trim=start=0:end=0.04,loop=loop=63:size=1:start=0,setpts=PTS-STARTPTS[hv]" in text
    assert "[1:a]aresample=44100[ha]" in text


def test_prepend_hook(workspace, fake_media):
    rendered = write_file(get_project_paths("proj1", workspace).rendered_dir / "proj1-clip-1_rendered.mp4")
    clip = make_clip(rendered_path=str(rendered))

    out = HookService(fake_media, Synth(), workspace).prepend_hook("proj1", clip, "  Wait for it  ")

    assert out.name == "proj1-clip-1_hooked.mp4"
    assert fake_media.compose_filter_graph.call_args.kwargs["maps"] == ("[hv]", "[ha]")
    files, output = fake_media.concat.call_args.args
    assert files[1] == rendered
    assert output == out
    assert not files[0].exists()


def test_hook_requires_render_and_tts(workspace, fake_media):
    service = HookService(fake_media, Synth(fail=True), workspace)
    with pytest.raises(ValueError):
        service.prepend_hook("proj1", make_clip(), "   ")
    with pytest.raises(MissingAssetError):
        service.prepend_hook("proj1", make_clip(), "hook")

    rendered = write_file(get_project_paths("proj1", workspace).rendered_dir / "r.mp4")
    with pytest.raises(UpstreamError):
        service.prepend_hook("proj1", make_clip(rendered_path=str(rendered)), "hook")
    fake_media.concat.assert_not_called()
