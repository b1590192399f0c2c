from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from clipforge.config.constants import OUTPUT_HEIGHT, OUTPUT_WIDTH


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class TemplateLayout(_Frozen):
    width: int = OUTPUT_WIDTH
    height: int = OUTPUT_HEIGHT
    video_position: Literal["fill", "top", "center"] = "center"
    video_scale: float = Field(0.6, gt=0, le=1)  # portion of output height
    background: Literal["blur", "black", "gradient", "color"] = "blur"
    background_tint: Optional[str] = None
    blur_radius: int = 40


class CaptionStyle(_Frozen):
    font_family: str = "Pretendard"
    font_size: int = 64
    font_color: str = "#FFFFFF"
    outline_color: str = "#000000"
    outline_width: float = 3
    shadow_color: Optional[str] = None
    shadow_offset: float = 0
    position: Literal["bottom", "center", "top"] = "bottom"
    margin_bottom: int = 200
    max_chars_per_line: int = 18
    highlight_color: Optional[str] = None
    background_color: Optional[str] = None


class TopBar(_Frozen):
    height: int
    background_color: str
    text_color: str
    font_size: int


class BottomPanel(_Frozen):
    height: int
    background_color: str
    text_color: str


class GradientOverlay(_Frozen):
    direction: Literal["top", "bottom"] = "bottom"
    colors: List[str] = Field(default_factory=list)
    opacity: float = Field(0.6, ge=0, le=1)


class BorderOverlay(_Frozen):
    color: str
    width: int
    glow: bool = False


class OverlayConfig(_Frozen):
    top_bar: Optional[TopBar] = None
    bottom_panel: Optional[BottomPanel] = None
    gradient: Optional[GradientOverlay] = None
    border: Optional[BorderOverlay] = None


class Template(_Frozen):
    id: str
    name: str
    description: str = ""
    preview: str = ""
    layout: TemplateLayout = Field(default_factory=TemplateLayout)
    caption: CaptionStyle = Field(default_factory=CaptionStyle)
    overlay: Optional[OverlayConfig] = None
