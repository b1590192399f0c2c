"""
Template Renderer

Turns an extracted clip into a 1080x1920 short: background treatment, video
placement, optional scrim / panels / border, then burned-in subtitles.
"""

import logging
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from clipforge.config.constants import OUTPUT_FPS, STORY_TITLE_FONT
from clipforge.config.templates import get_template
from clipforge.models.project import Clip, Transcription, TranscriptSegment
from clipforge.models.template import Template
from clipforge.services.media_service import EncodeOptions, MediaService
from clipforge.services.render.filter_graph import (
    Filter,
    FilterGraph,
    escape_drawtext,
    ffmpeg_color,
    format_number,
)
from clipforge.services.transcription_service import TranscriptionService
from clipforge.subtitles.ass_builder import write_subtitle_track
from clipforge.utils.exceptions import MissingAssetError
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


def segments_in_range(segments: Sequence[TranscriptSegment], start_sec: float,
                      end_sec: float) -> List[TranscriptSegment]:
    """Segments overlapping [start, end], shifted to clip-relative time and clamped
    to [0, clip duration]."""
    clip_duration = end_sec - start_sec

    def shift(value: float) -> float:
        return min(clip_duration, max(0.0, value - start_sec))

    result = []
    for seg in segments:
        if not (seg.end > start_sec and seg.start < end_sec):
            continue
        words = [
            w.model_copy(update={"start": shift(w.start), "end": shift(w.end)})
            for w in seg.words
            if w.end > start_sec and w.start < end_sec
        ]
        result.append(seg.model_copy(update={"start": shift(seg.start), "end": shift(seg.end), "words": words}))
    return result


def build_filter_graph(template: Template, ass_path: PathLike, fonts_dir: PathLike,
                       clip_title: str = "") -> FilterGraph:
    layout, overlay = template.layout, template.overlay
    w, h = layout.width, layout.height
    video_h = round(h * layout.video_scale)
    graph = FilterGraph()
    video = "0:v"

    if layout.background == "blur":
        radius = layout.blur_radius or 40
        graph.add(video, Filter("split", "2"), ["bg_in", "fg_in"])
        graph.add("bg_in", [
            Filter("scale", {"w": w, "h": h, "force_original_aspect_ratio": "increase"}),
            Filter("crop", [w, h]),
            Filter("boxblur", [radius, radius // 2]),
        ], "bg")
        graph.add("fg_in", [
            Filter("scale", {"w": w, "h": video_h, "force_original_aspect_ratio": "decrease"}),
            Filter("pad", [w, video_h, "(ow-iw)/2", "(oh-ih)/2", "color=black@0"]),
        ], "fg")
        video = graph.add(["bg", "fg"], Filter("overlay", [0, round((h - video_h) / 2)]), "composed")
    else:
        # black / color / gradient: video placed over a solid backdrop
        if layout.background == "black":
            bg_color = "0x000000"
        else:
            bg_color = ffmpeg_color(layout.background_tint or "0x000000")

        if layout.video_position == "fill":
            chain = [
                Filter("scale", {"w": w, "h": h, "force_original_aspect_ratio": "increase"}),
                Filter("crop", [w, h]),
            ]
        elif layout.video_position == "top":
            chain = [
                Filter("scale", {"w": w, "h": video_h, "force_original_aspect_ratio": "decrease"}),
                Filter("pad", [w, h, "(ow-iw)/2", 0, f"color={bg_color}"]),
            ]
        else:
            chain = [
                Filter("scale", {"w": w, "h": video_h, "force_original_aspect_ratio": "decrease"}),
                Filter("pad", [w, h, "(ow-iw)/2", round((h - video_h) / 2), f"color={bg_color}"]),
            ]
        video = graph.add(video, chain, "composed")

    if overlay and overlay.gradient:
        op = format_number(overlay.gradient.opacity)
        # bottom: darkest at the bottom edge, where captions sit
        ramp = "Y" if overlay.gradient.direction == "bottom" else "(H-Y)"
        graph.add(None, [
            Filter("color", {"c": "black", "s": f"{w}x{h}", "r": OUTPUT_FPS}),
            Filter("format", "rgba"),
            Filter("geq", {"r": 0, "g": 0, "b": 0, "a": f"'{ramp}/H*255*{op}'"}),
        ], "grad")
        video = graph.add([video, "grad"], Filter("overlay", {"x": 0, "y": 0, "shortest": 1}), "graded")

    if overlay and overlay.top_bar:
        bar = overlay.top_bar
        font = ffmpeg_filter_path(Path(fonts_dir) / STORY_TITLE_FONT)
        chain = [Filter("drawbox", {"x": 0, "y": 0, "w": w, "h": bar.height,
                                    "color": ffmpeg_color(bar.background_color), "t": "fill"})]
        if clip_title:
            chain.append(Filter("drawtext", {
                "fontfile": f"'{font}'",
                "text": f"'{escape_drawtext(clip_title)}'",
                "fontcolor": ffmpeg_color(bar.text_color),
                "fontsize": bar.font_size,
                "x": "(w-text_w)/2",
                "y": f"({bar.height}-text_h)/2",
            }))
        video = graph.add(video, chain, "topbar")

    if overlay and overlay.bottom_panel:
        panel = overlay.bottom_panel
        video = graph.add(video, Filter("drawbox", {
            "x": 0, "y": h - panel.height, "w": w, "h": panel.height,
            "color": ffmpeg_color(panel.background_color), "t": "fill",
        }), "panel")

    if overlay and overlay.border:
        video = graph.add(video, Filter("drawbox", {
            "x": 0, "y": 0, "w": w, "h": h,
            "color": ffmpeg_color(overlay.border.color), "t": overlay.border.width,
        }), "bordered")

    graph.add(video, Filter("ass", {
        "filename": f"'{ffmpeg_filter_path(ass_path)}'",
        "fontsdir": f"'{ffmpeg_filter_path(fonts_dir)}'",
    }), "vout")
    graph.add("0:a", Filter("acopy"), "aout")
    return graph


class TemplateRenderer:
    def __init__(self, media: Optional[MediaService] = None, workspace_dir: Optional[PathLike] = None):
        self.media = media or MediaService()
        self.workspace_dir = workspace_dir

    def render_clip(
        self,
        project_id: str,
        clip: Clip,
        on_progress: Optional[Callable[[int], None]] = None,
        transcription: Optional[Transcription] = None,
    ) -> Path:
        paths = get_project_paths(project_id, self.workspace_dir)
        template = get_template(clip.template_id)

        if file_ready(clip.source_path):
            inputs = [[clip.source_path]]
        elif file_ready(paths.source):
            inputs = [["-ss", format_number(clip.start_sec), str(paths.source)]]
        else:
            raise MissingAssetError(f"Source video not found for clip {clip.id}", stage="download")

        if transcription is None:
            if not file_ready(paths.transcript):
                raise MissingAssetError("Transcript not found", stage="transcribe")
            transcription = TranscriptionService.load(paths.transcript)

        clip_segments = segments_in_range(transcription.segments, clip.start_sec, clip.end_sec)
        output_path = paths.rendered_dir / f"{clip.id}_rendered.mp4"
        ass_path = paths.rendered_dir / f"{clip.id}.ass"

        logger.info(f"🎨 Rendering {clip.id} with template '{template.id}' ({len(clip_segments)} segments)")
        with temp_files(ass_path):
            write_subtitle_track(ass_path, clip_segments, template.layout.width, template.layout.height,
                                 template.caption, clip.caption_edits)
            graph = build_filter_graph(template, ass_path, get_fonts_dir(), clip.title)
            self.media.compose_filter_graph(
                inputs,
                graph,
                output_path,
                duration=clip.duration,
                encode=EncodeOptions(),
                on_progress=on_progress,
            )

        logger.info(f"✅ Rendered {clip.id} -> {output_path}")
        return output_path

    def render_all(self, project_id: str, clips: Sequence[Clip],
                   on_progress: Optional[BatchProgress] = None,
                   transcription: Optional[Transcription] = None) -> List[Clip]:
        results = []
        for i, clip in enumerate(clips):
            if on_progress:
                on_progress(i + 1, len(clips), clip.title)
            rendered_path = self.render_clip(project_id, clip, transcription=transcription)
            results.append(clip.model_copy(update={"rendered_path": str(rendered_path), "status": "rendered"}))
        return results
