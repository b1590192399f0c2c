"""
Static template catalog keyed by id.

Every clip references one of these by id; unknown ids fall back to the default.
"""

from typing import Dict, List

from clipforge.config.constants import DEFAULT_TEMPLATE_ID
from clipforge.models.template import (
    BorderOverlay,
    BottomPanel,
    CaptionStyle,
    GradientOverlay,
    OverlayConfig,
    Template,
    TemplateLayout,
    TopBar,
)

_CATALOG: List[Template] = [
    Template(
        id="sandpaper",
        name="Sandpaper",
        description="Blurred fill with centered video and bold bottom captions",
        preview="🟫",
        layout=TemplateLayout(video_position="center", video_scale=0.56, background="blur", blur_radius=40),
        caption=CaptionStyle(
            font_family="Pretendard",
            font_size=68,
            font_color="#FFFFFF",
            outline_color="#000000",
            outline_width=4,
            shadow_offset=2,
            position="bottom",
            margin_bottom=360,
            max_chars_per_line=16,
        ),
        overlay=OverlayConfig(gradient=GradientOverlay(direction="bottom", colors=["#000000"], opacity=0.5)),
    ),
    Template(
        id="blur-classic",
        name="Blur Classic",
        description="Soft blurred background, captions in the center",
        preview="🌫️",
        layout=TemplateLayout(video_position="center", video_scale=0.6, background="blur", blur_radius=24),
        caption=CaptionStyle(
            font_family="NotoSansKR",
            font_size=60,
            font_color="#FFFFFF",
            outline_color="#111111",
            outline_width=3,
            position="center",
            margin_bottom=0,
            max_chars_per_line=18,
        ),
    ),
    Template(
        id="cinema-black",
        name="Cinema Black",
        description="Letterboxed on black with boxed captions",
        preview="🎬",
        layout=TemplateLayout(video_position="center", video_scale=0.5, background="black"),
        caption=CaptionStyle(
            font_family="Pretendard",
            font_size=54,
            font_color="#F5F5F5",
            outline_color="#000000",
            outline_width=2,
            position="bottom",
            margin_bottom=420,
            max_chars_per_line=20,
            background_color="#000000B0",
        ),
    ),
    Template(
        id="neon-frame",
        name="Neon Frame",
        description="Full-bleed crop with a glowing border and top gradient",
        preview="💜",
        layout=TemplateLayout(video_position="fill", video_scale=1.0, background="color", background_tint="0x120024"),
        caption=CaptionStyle(
            font_family="Pretendard",
            font_size=72,
            font_color="#FFFFFF",
            outline_color="#8B5CF6",
            outline_width=5,
            position="bottom",
            margin_bottom=300,
            max_chars_per_line=14,
            highlight_color="#22D3EE",
        ),
        overlay=OverlayConfig(
            gradient=GradientOverlay(direction="top", colors=["#000000"], opacity=0.4),
            border=BorderOverlay(color="#8B5CF6", width=12, glow=True),
        ),
    ),
    Template(
        id="podcast-top",
        name="Podcast Top",
        description="Video pinned to the top with a title bar and caption panel",
        preview="🎙️",
        layout=TemplateLayout(video_position="top", video_scale=0.45, background="gradient", background_tint="0x0b1220"),
        caption=CaptionStyle(
            font_family="NotoSansKR",
            font_size=58,
            font_color="#FFFFFF",
            outline_color="#000000",
            outline_width=2,
            position="bottom",
            margin_bottom=260,
            max_chars_per_line=18,
        ),
        overlay=OverlayConfig(
            top_bar=TopBar(height=140, background_color="#111827", text_color="#FBBF24", font_size=44),
            bottom_panel=BottomPanel(height=520, background_color="#0B1220CC", text_color="#FFFFFF"),
        ),
    ),
]

TEMPLATES: Dict[str, Template] = {t.id: t for t in _CATALOG}


def get_template(template_id: str) -> Template:
    return TEMPLATES.get(template_id) or TEMPLATES[DEFAULT_TEMPLATE_ID]


def list_templates() -> List[Template]:
    return list(_CATALOG)
