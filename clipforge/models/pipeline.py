from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, Field

StepStatus = Literal["pending", "running", "done", "error", "skipped"]
EventType = Literal["progress", "step-complete", "error", "done"]

# Ordered stage catalog, independent of any one project
PIPELINE_STEPS: Tuple[Tuple[str, str], ...] = (
    ("download", "Download Video"),
    ("extract-audio", "Extract Audio"),
    ("transcribe", "Transcribe"),
    ("detect-silence", "Detect Silence"),
    ("analyze", "AI Analysis"),
    ("extract-clips", "Extract Clips"),
    ("render", "Render Shorts"),
    ("story-compose", "Story Compose"),
)

STEP_IDS: Tuple[str, ...] = tuple(step_id for step_id, _ in PIPELINE_STEPS)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class PipelineStep(BaseModel):
    id: str
    name: str
    status: StepStatus = "pending"
    progress: int = Field(0, ge=0, le=100)
    message: str = ""
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error: Optional[str] = None

    def start(self, message: str) -> None:
        self.status = "running"
        self.progress = 0
        self.message = message
        self.started_at = _now()

    def finish(self, message: str, skipped: bool = False) -> None:
        self.status = "skipped" if skipped else "done"
        self.progress = 100
        self.message = message
        self.completed_at = _now()

    def fail(self, error: str) -> None:
        self.status = "error"
        self.error = error
        self.message = error
        self.completed_at = _now()


def new_step_catalog() -> List[PipelineStep]:
    return [PipelineStep(id=step_id, name=name) for step_id, name in PIPELINE_STEPS]


class PipelineEvent(BaseModel):
    type: EventType
    step_id: Optional[str] = None
    progress: Optional[int] = None
    message: Optional[str] = None
    data: Optional[Any] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.type in ("error", "done")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)
