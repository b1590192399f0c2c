from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from clipforge.config.constants import DEFAULT_EMOTIONAL_ARC, DEFAULT_TEMPLATE_ID, EMOTIONAL_ARCS

EmotionalArc = Literal["triumph", "surprise", "heartbreak", "humor", "tension"]
ClipStatus = Literal["pending", "extracted", "rendered", "story-composed", "uploaded"]


class VideoMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str = "Unknown"
    channel_name: str = "Unknown"
    duration: float = 0.0
    thumbnail_url: str = ""
    description: str = ""


class TranscriptWord(BaseModel):
    start: float
    end: float
    word: str
    probability: Optional[float] = None


class TranscriptSegment(BaseModel):
    start: float
    end: float
    text: str = ""
    words: List[TranscriptWord] = Field(default_factory=list)


class Transcription(BaseModel):
    language: str = "en"
    segments: List[TranscriptSegment] = Field(default_factory=list)
    full_text: str = ""


class SilenceGap(BaseModel):
    start: float
    end: float
    duration: float

    @classmethod
    def of(cls, start: float, end: float) -> "SilenceGap":
        return cls(start=start, end=end, duration=end - start)


class TimeSpan(BaseModel):
    start: float
    end: float

    @property
    def duration(self) -> float:
        return self.end - self.start


class StoryMeta(BaseModel):
    hook: str
    context: str
    payoff_frame: str = ""
    emotional_arc: EmotionalArc = DEFAULT_EMOTIONAL_ARC
    share_hook: str = ""

    @field_validator("emotional_arc", mode="before")
    @classmethod
    def coerce_arc(cls, v):
        if isinstance(v, str) and v.strip().lower() in EMOTIONAL_ARCS:
            return v.strip().lower()
        return DEFAULT_EMOTIONAL_ARC


class CaptionEdit(BaseModel):
    """User override for one generated subtitle line, clip-relative seconds"""
    index: int = Field(..., ge=0)
    start_sec: float = Field(..., ge=0)
    end_sec: float = Field(..., ge=0)
    text: str


class Clip(BaseModel):
    id: str
    project_id: str
    title: str
    description: str = ""
    start_sec: float
    end_sec: float
    viral_score: int = Field(5, ge=1, le=10)
    reason: str = ""
    tags: List[str] = Field(default_factory=list)
    template_id: str = DEFAULT_TEMPLATE_ID

    source_path: Optional[str] = None
    rendered_path: Optional[str] = None
    hooked_path: Optional[str] = None
    story_path: Optional[str] = None
    youtube_id: Optional[str] = None

    story_meta: Optional[StoryMeta] = None
    caption_edits: List[CaptionEdit] = Field(default_factory=list)
    status: ClipStatus = "pending"

    @property
    def duration(self) -> float:
        return self.end_sec - self.start_sec
