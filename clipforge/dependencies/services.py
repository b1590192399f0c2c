from fastapi import Depends, Request

from clipforge.pipeline.manifest import ProjectManifestStore
from clipforge.pipeline.observers import ObserverRegistry
from clipforge.pipeline.orchestrator import PipelineRunner
from clipforge.services.hook_service import HookService
from clipforge.services.render.template_renderer import TemplateRenderer
from clipforge.services.story.story_composer import StoryComposer
from clipforge.services.title_service import TitleService
from clipforge.services.upload_service import YouTubeUploadService


def get_store(request: Request) -> ProjectManifestStore:
    return request.app.state.store


def get_registry(request: Request) -> ObserverRegistry:
    return request.app.state.registry


def get_runner(request: Request) -> PipelineRunner:
    return request.app.state.runner


def get_renderer(store: ProjectManifestStore = Depends(get_store)) -> TemplateRenderer:
    return TemplateRenderer(workspace_dir=store.workspace_dir)


def get_composer(store: ProjectManifestStore = Depends(get_store)) -> StoryComposer:
    return StoryComposer(workspace_dir=store.workspace_dir)


def get_hook_service(store: ProjectManifestStore = Depends(get_store)) -> HookService:
    return HookService(workspace_dir=store.workspace_dir)


def get_title_service() -> TitleService:
    return TitleService()


def get_upload_service() -> YouTubeUploadService:
    return YouTubeUploadService()
