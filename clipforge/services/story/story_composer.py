"""
Story Composer

Builds a three-act short from a clip that carries story metadata:

    act 1  hook card    title + hook line over a dark backdrop, narrated
    act 2  context card context preview + share hook, narrated
    act 3  payoff       the clip itself, scaled to 1080x1920 with a volume swell

The acts are encoded separately and joined with the concat demuxer.
"""

import logging
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence, Tuple

from clipforge.config.constants import (
    ACT1_BACKGROUND,
    ACT1_TARGET_SEC,
    ACT2_BACKGROUND,
    ACT2_MAX_SEC,
    ACT2_TARGET_SEC,
    ACT_MARGIN_SEC,
    ARC_COLORS,
    BGM_VOLUME,
    CONTEXT_PREVIEW_CHARS,
    DEFAULT_ARC_COLOR,
    NARRATION_HOOK_RATIO,
    NARRATION_SAMPLE_RATE,
    NARRATION_SEPARATOR,
    OUTPUT_FPS,
    OUTPUT_HEIGHT,
    OUTPUT_WIDTH,
    STORY_PRESET,
    STORY_TEXT_FONT,
    STORY_TITLE_FONT,
)
from clipforge.config.settings import settings
from clipforge.models.project import Clip, StoryMeta
from clipforge.services.media_service import EncodeOptions, MediaService
from clipforge.services.render.filter_graph import (
    Filter,
    FilterGraph,
    escape_drawtext,
    format_number,
)
from clipforge.services.speech_service import (
    Degraded,
    SpeechSynthesizer,
    synthesize_narration,
)
from clipforge.utils.exceptions import MissingAssetError, MissingStoryMetaError
from clipforge.utils.paths import (
    PathLike,
    ffmpeg_filter_path,
    file_ready,
    get_fonts_dir,
    get_project_paths,
    temp_files,
)

logger = logging.getLogger(__name__)

BatchProgress = Callable[[int, int, str], None]

_AUDIO_OUT_FORMAT = Filter("aformat", {"sample_rates": NARRATION_SAMPLE_RATE, "channel_layouts": "stereo"})


def arc_to_color(arc: Optional[str]) -> str:
    return ARC_COLORS.get(arc or "", DEFAULT_ARC_COLOR)


def split_narration(duration: float) -> Tuple[float, float]:
    """Narration length -> (hook seconds, context seconds)"""
    hook = min(ACT1_TARGET_SEC, duration * NARRATION_HOOK_RATIO)
    return hook, max(0.0, duration - hook)


def act1_duration(hook_sec: float) -> float:
    return max(ACT1_TARGET_SEC, hook_sec + ACT_MARGIN_SEC)


def act2_duration(context_sec: float) -> float:
    return min(ACT2_MAX_SEC, max(ACT2_TARGET_SEC, context_sec + ACT_MARGIN_SEC))


def narration_text(meta: StoryMeta) -> str:
    return f"{meta.hook}{NARRATION_SEPARATOR}{meta.context}"


def context_preview(context: str) -> str:
    if len(context) <= CONTEXT_PREVIEW_CHARS:
        return context
    return context[:CONTEXT_PREVIEW_CHARS] + "..."


def _drawtext(font: Path, text: str, size: int, color: str, y: str, appear_at: float, **extra: Any) -> Filter:
    params = {
        "fontfile": f"'{ffmpeg_filter_path(font)}'",
        "text": f"'{escape_drawtext(text)}'",
        "fontsize": size,
        "fontcolor": color,
        "x": "(w-text_w)/2",
        "y": y,
    }
    params.update(extra)
    params["enable"] = f"'gte(t,{format_number(appear_at)})'"
    return Filter("drawtext", params)


def _ambient_bed(graph: FilterGraph, duration: float, noise_amplitude: float,
                 tone_hz: int, tone_volume: float) -> str:
    """Pink noise plus a low sine drone, mixed into one label"""
    d = format_number(duration)
    graph.add(None, Filter("anoisesrc", {"c": "pink", "a": noise_amplitude, "d": d, "r": NARRATION_SAMPLE_RATE}), "noise")
    graph.add(None, [
        Filter("sine", {"f": tone_hz, "d": d, "r": NARRATION_SAMPLE_RATE}),
        Filter("volume", tone_volume),
    ], "tone")
    return graph.add(["noise", "tone"], Filter("amix", {"inputs": 2, "duration": "longest"}), "bed")


def build_act1_graph(title: str, meta: StoryMeta, duration: float, fonts_dir: PathLike) -> FilterGraph:
    """Input 0: lavfi color backdrop, input 1: hook narration"""
    fonts_dir = Path(fonts_dir)
    accent = arc_to_color(meta.emotional_arc)
    graph = FilterGraph()

    graph.add("0:v", [
        Filter("drawbox", {"x": 0, "y": 80, "w": "iw", "h": 4, "color": accent, "t": "fill"}),
        _drawtext(fonts_dir / STORY_TITLE_FONT, title, 52, "white", "h*0.4", 0.3),
        _drawtext(fonts_dir / STORY_TEXT_FONT, meta.hook, 32, "0xcccccc", "h*0.55", 0.5),
    ], "vout")

    bed = _ambient_bed(graph, duration, 0.003, 120, BGM_VOLUME)
    graph.add("1:a", [Filter("aresample", NARRATION_SAMPLE_RATE), Filter("volume", "1.0")], "tts")
    graph.add(["tts", bed], [
        Filter("amix", {"inputs": 2, "duration": "longest", "weights": "'1 0.3'"}),
        Filter("afade", {"t": "out", "st": format_number(max(0.0, duration - 0.5)), "d": 0.5}),
        _AUDIO_OUT_FORMAT,
    ], "aout")
    return graph


def build_act2_graph(title: str, meta: StoryMeta, duration: float, fonts_dir: PathLike) -> FilterGraph:
    """Input 0: lavfi color backdrop, input 1: context narration"""
    fonts_dir = Path(fonts_dir)
    accent = arc_to_color(meta.emotional_arc)
    share_hook = meta.share_hook or meta.payoff_frame or title
    graph = FilterGraph()

    graph.add("0:v", [
        Filter("drawbox", {"x": 0, "y": "ih/2-3", "w": "iw", "h": 6, "color": accent, "t": "fill"}),
        _drawtext(fonts_dir / STORY_TEXT_FONT, context_preview(meta.context), 28, "0x888888", "h/3", 0.3),
        _drawtext(fonts_dir / STORY_TITLE_FONT, share_hook, 42, "white", "h*2/3", 0.8,
                  borderw=2, bordercolor="black@0.5"),
    ], "vout")

    bed = _ambient_bed(graph, duration, 0.004, 180, 0.06)
    graph.add("1:a", [Filter("aresample", NARRATION_SAMPLE_RATE), Filter("volume", "0.9")], "tts")
    graph.add(["tts", bed], [
        Filter("amix", {"inputs": 2, "duration": "longest"}),
        Filter("volume", {"volume": f"'0.4+0.6*t/{format_number(duration)}'", "eval": "frame"}),
        _AUDIO_OUT_FORMAT,
    ], "aout")
    return graph


def build_act3_args(input_args: Sequence[Any], output_path: PathLike) -> List[Any]:
    """Payoff act: the clip cropped to the vertical frame with a 0.7 -> 1.0 volume swell"""
    encode = EncodeOptions(preset=STORY_PRESET, fps=OUTPUT_FPS, faststart=False)
    return [
        "-y", *input_args,
        "-vf", f"scale={OUTPUT_WIDTH}:{OUTPUT_HEIGHT}:force_original_aspect_ratio=increase,"
               f"crop={OUTPUT_WIDTH}:{OUTPUT_HEIGHT}",
        "-af", "volume='min(1.0, 0.7+0.6*t)':eval=frame",
        *encode.args(),
        "-ar", NARRATION_SAMPLE_RATE, "-ac", 2,
        output_path,
    ]


def _color_input(color: str, duration: float) -> List[str]:
    return ["-f", "lavfi",
            f"color=c={color}:s={OUTPUT_WIDTH}x{OUTPUT_HEIGHT}:d={format_number(duration)}:r={OUTPUT_FPS}"]


class StoryComposer:
    def __init__(self, media: Optional[MediaService] = None,
                 synthesizer: Optional[SpeechSynthesizer] = None,
                 workspace_dir: Optional[PathLike] = None,
                 act3_source: Optional[str] = None):
        self.media = media or MediaService()
        self.synthesizer = synthesizer
        self.workspace_dir = workspace_dir
        self.act3_source = act3_source or settings.STORY_ACT3_SOURCE

    def _act3_input(self, project_id: str, clip: Clip) -> List[Any]:
        if self.act3_source != "source":
            if not file_ready(clip.rendered_path):
                raise MissingAssetError(f"Clip {clip.id} has not been rendered", stage="render")
            return ["-i", clip.rendered_path]

        paths = get_project_paths(project_id, self.workspace_dir)
        if file_ready(clip.source_path):
            return ["-i", clip.source_path]
        if file_ready(paths.source):
            return ["-ss", format_number(clip.start_sec), "-t", format_number(clip.duration),
                    "-i", str(paths.source)]
        raise MissingAssetError(f"No video available for clip {clip.id}", stage="download")

    def compose_story(self, project_id: str, clip: Clip,
                      on_progress: Optional[Callable[[int], None]] = None) -> Path:
        meta = clip.story_meta
        if meta is None:
            raise MissingStoryMetaError(clip.id)
        act3_input = self._act3_input(project_id, clip)

        def report(pct: int) -> None:
            if on_progress:
                on_progress(pct)

        paths = get_project_paths(project_id, self.workspace_dir)
        story_dir = paths.story_dir
        output_path = story_dir / f"{clip.id}_story.mp4"
        fonts_dir = get_fonts_dir()
        act_encode = EncodeOptions(preset=STORY_PRESET, faststart=False)

        logger.info(f"📖 Composing story for {clip.id} ({meta.emotional_arc})")
        with temp_files() as scratch:
            narration_path = story_dir / f"{clip.id}_narration.audio"
            hook_audio = story_dir / f"{clip.id}_hook.wav"
            context_audio = story_dir / f"{clip.id}_context.wav"
            act_paths = [story_dir / f"{clip.id}_act{n}.mp4" for n in (1, 2, 3)]
            scratch.extend([narration_path, hook_audio, context_audio, *act_paths])

            try:
                outcome = synthesize_narration(self.synthesizer, self.media, narration_text(meta),
                                               narration_path, hook_audio, context_audio)
                if isinstance(outcome, Degraded):
                    hook_sec, context_sec = outcome.hook_duration, outcome.context_duration
                else:
                    hook_sec, context_sec = split_narration(outcome.duration)
                    self.media.trim_audio(outcome.path, hook_audio, 0.0, hook_sec,
                                          sample_rate=NARRATION_SAMPLE_RATE)
                    self.media.trim_audio(outcome.path, context_audio, hook_sec, None,
                                          sample_rate=NARRATION_SAMPLE_RATE)
                report(10)

                act1_sec = act1_duration(hook_sec)
                self.media.compose_filter_graph(
                    [_color_input(ACT1_BACKGROUND, act1_sec), [str(hook_audio)]],
                    build_act1_graph(clip.title, meta, act1_sec, fonts_dir),
                    act_paths[0],
                    duration=act1_sec,
                    encode=act_encode,
                )
                report(30)

                act2_sec = act2_duration(context_sec)
                self.media.compose_filter_graph(
                    [_color_input(ACT2_BACKGROUND, act2_sec), [str(context_audio)]],
                    build_act2_graph(clip.title, meta, act2_sec, fonts_dir),
                    act_paths[1],
                    duration=act2_sec,
                    encode=act_encode,
                )
                report(50)

                self.media.transcode(
                    build_act3_args(act3_input, act_paths[2]),
                    duration=clip.duration,
                    on_progress=lambda pct: report(50 + pct * 35 // 100),
                )
                report(85)

                self.media.concat(act_paths, output_path,
                                  encode=EncodeOptions(preset=STORY_PRESET, fps=OUTPUT_FPS))
            except Exception:
                output_path.unlink(missing_ok=True)
                raise

        report(100)
        logger.info(f"✅ Story composed for {clip.id} -> {output_path}")
        return output_path

    def is_eligible(self, clip: Clip) -> bool:
        if clip.story_meta is None:
            return False
        return self.act3_source == "source" or file_ready(clip.rendered_path)

    def compose_all(self, project_id: str, clips: Sequence[Clip],
                    on_progress: Optional[BatchProgress] = None) -> List[Clip]:
        """Compose every eligible clip; the rest pass through unchanged."""
        eligible = [c for c in clips if self.is_eligible(c)]
        composed = {}
        for i, clip in enumerate(eligible):
            if on_progress:
                on_progress(i + 1, len(eligible), clip.title)
            story_path = self.compose_story(project_id, clip)
            composed[clip.id] = clip.model_copy(update={"story_path": str(story_path), "status": "story-composed"})
        return [composed.get(c.id, c) for c in clips]
