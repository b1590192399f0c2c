from .project import (
    CaptionEdit,
    Clip,
    SilenceGap,
    StoryMeta,
    TimeSpan,
    Transcription,
    TranscriptSegment,
    TranscriptWord,
    VideoMetadata,
)
from .pipeline import PIPELINE_STEPS, PipelineEvent, PipelineStep
from .template import CaptionStyle, OverlayConfig, Template, TemplateLayout

__all__ = [
    "CaptionEdit",
    "CaptionStyle",
    "Clip",
    "OverlayConfig",
    "PIPELINE_STEPS",
    "PipelineEvent",
    "PipelineStep",
    "SilenceGap",
    "StoryMeta",
    "Template",
    "TemplateLayout",
    "TimeSpan",
    "Transcription",
    "TranscriptSegment",
    "TranscriptWord",
    "VideoMetadata",
]
