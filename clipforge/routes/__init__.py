from .pipeline import router as pipeline_router
from .projects import router as projects_router
from .templates import router as templates_router

__all__ = ["pipeline_router", "projects_router", "templates_router"]
