from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from clipforge.config.templates import TEMPLATES
from clipforge.models.project import CaptionEdit
from clipforge.services.video_downloader import is_valid_youtube_url
from clipforge.utils.paths import validate_project_id


class StatusResponse(BaseModel):
    status: str
    message: str
    details: Optional[Dict[str, Any]] = None


def _check_template(v: Optional[str]) -> Optional[str]:
    if v is not None and v not in TEMPLATES:
        raise ValueError(f"Unknown template: {v}")
    return v


class PipelineRequest(BaseModel):
    project_id: str = Field(..., description="Workspace directory name for the project")
    url: str = Field(..., description="YouTube video URL")

    @field_validator('project_id')
    @classmethod
    def check_project_id(cls, v):
        return validate_project_id(v.strip())

    @field_validator('url')
    @classmethod
    def validate_url(cls, v):
        if not is_valid_youtube_url(v):
            raise ValueError("Invalid YouTube URL")
        return v.strip()


class RenderRequest(BaseModel):
    clip_id: Optional[str] = Field(None, description="Render only this clip; all clips when omitted")
    template_id: Optional[str] = Field(None, description="Re-template before rendering")

    @field_validator('template_id')
    @classmethod
    def validate_template(cls, v):
        return _check_template(v)


class StoryRequest(BaseModel):
    clip_id: Optional[str] = None


class HookRequest(BaseModel):
    clip_id: str
    hook_text: str = Field(..., max_length=300)

    @field_validator('hook_text')
    @classmethod
    def validate_hook_text(cls, v):
        if not v or not v.strip():
            raise ValueError("hook_text cannot be empty")
        return v.strip()


class TitlesRequest(BaseModel):
    clip_id: str
    count: int = Field(5, ge=1, le=10)


class ClipUpdateRequest(BaseModel):
    title: Optional[str] = Field(None, max_length=200)
    template_id: Optional[str] = None
    caption_edits: Optional[List[CaptionEdit]] = None

    @field_validator('title')
    @classmethod
    def validate_title(cls, v):
        if v is not None and not v.strip():
            raise ValueError("title cannot be empty")
        return v.strip() if v else v

    @field_validator('template_id')
    @classmethod
    def validate_template(cls, v):
        return _check_template(v)


class UploadRequest(BaseModel):
    clip_id: str
    title: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    tags: List[str] = Field(default_factory=list, max_length=30)
    privacy_status: Literal["private", "unlisted", "public"] = "private"
    use_story: bool = Field(False, description="Upload the story cut instead of the rendered short")
    channel_url: Optional[str] = None
