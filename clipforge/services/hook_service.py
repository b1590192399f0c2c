"""
Hook prepender: narrates a hook line over a freeze frame of the clip's first frame
and splices it in front of the rendered short.
"""

import logging
import math
from pathlib import Path
from typing import Optional

from clipforge.config.constants import HOOK_FREEZE_FPS, NARRATION_SAMPLE_RATE, STORY_PRESET
from clipforge.models.project import Clip
from clipforge.services.media_service import EncodeOptions, MediaService
from clipforge.services.render.filter_graph import Filter, FilterGraph
from clipforge.services.speech_service import SpeechSynthesizer, get_speech_synthesizer
from clipforge.utils.exceptions import MissingAssetError, UpstreamError
from clipforge.utils.paths import PathLike, file_ready, get_project_paths, temp_files

logger = logging.getLogger(__name__)


def build_freeze_frame_graph(duration: float) -> FilterGraph:
    """Input 0: rendered clip, input 1: hook narration"""
    graph = FilterGraph()
    graph.add("0:v", [
        Filter("trim", {"start": 0, "end": 0.04}),
        Filter("loop", {"loop": math.ceil(duration * HOOK_FREEZE_FPS), "size": 1, "start": 0}),
        Filter("setpts", "PTS-STARTPTS"),
    ], "hv")
    graph.add("1:a", Filter("aresample", NARRATION_SAMPLE_RATE), "ha")
    return graph


class HookService:
    def __init__(self, media: Optional[MediaService] = None,
                 synthesizer: Optional[SpeechSynthesizer] = None,
                 workspace_dir: Optional[PathLike] = None):
        self.media = media or MediaService()
        self.synthesizer = synthesizer
        self.workspace_dir = workspace_dir

    def prepend_hook(self, project_id: str, clip: Clip, hook_text: str) -> Path:
        if not hook_text or not hook_text.strip():
            raise ValueError("Hook text must not be empty")
        if not file_ready(clip.rendered_path):
            raise MissingAssetError(f"Clip {clip.id} has not been rendered", stage="render")

        paths = get_project_paths(project_id, self.workspace_dir)
        rendered = Path(clip.rendered_path)
        output_path = paths.rendered_dir / f"{clip.id}_hooked.mp4"
        hook_audio = paths.rendered_dir / f"{clip.id}_hook_tts.audio"
        freeze_path = paths.rendered_dir / f"{clip.id}_hook_freeze.mp4"

        synthesizer = self.synthesizer or get_speech_synthesizer()
        logger.info(f"🪝 Prepending hook to {clip.id}: {hook_text[:50]}")

        with temp_files(hook_audio, freeze_path):
            # no silent fallback here: a hook without narration is pointless
            synthesizer.synthesize(hook_text.strip(), hook_audio)
            duration = self.media.get_duration(hook_audio)
            if duration <= 0:
                raise UpstreamError("TTS produced empty hook audio")

            self.media.compose_filter_graph(
                [[str(rendered)], [str(hook_audio)]],
                build_freeze_frame_graph(duration),
                freeze_path,
                maps=("[hv]", "[ha]"),
                duration=duration,
                encode=EncodeOptions(preset=STORY_PRESET, faststart=False),
            )
            self.media.concat([freeze_path, rendered], output_path)

        logger.info(f"✅ Hooked clip written: {output_path}")
        return output_path
