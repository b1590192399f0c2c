import logging
from typing import List, Optional

from fastapi import APIRouter, Depends

from clipforge.dependencies.services import (
    get_composer,
    get_hook_service,
    get_renderer,
    get_runner,
    get_store,
    get_title_service,
    get_upload_service,
)
from clipforge.models.project import Clip
from clipforge.pipeline.manifest import ProjectManifestStore
from clipforge.pipeline.orchestrator import PipelineRunner
from clipforge.schemas import (
    ClipUpdateRequest,
    HookRequest,
    RenderRequest,
    StoryRequest,
    TitlesRequest,
    UploadRequest,
)
from clipforge.services.hook_service import HookService
from clipforge.services.render.template_renderer import TemplateRenderer
from clipforge.services.story.story_composer import StoryComposer
from clipforge.services.title_service import TitleService
from clipforge.services.upload_service import UploadMeta, YouTubeUploadService, build_description
from clipforge.utils.exceptions import ClipNotFoundError, MissingAssetError, ProjectNotFoundError
from clipforge.utils.paths import file_ready
from clipforge.utils.response_helper import handle_service_error

router = APIRouter()
logger = logging.getLogger(__name__)


def _select(clips: List[Clip], project_id: str, clip_id: Optional[str]) -> List[Clip]:
    if clip_id is None:
        return list(clips)
    selected = [c for c in clips if c.id == clip_id]
    if not selected:
        raise ClipNotFoundError(project_id, clip_id)
    return selected


def _merge(clips: List[Clip], updated: List[Clip]) -> List[Clip]:
    by_id = {c.id: c for c in updated}
    return [by_id.get(c.id, c) for c in clips]


def _dump(clips: List[Clip]) -> List[dict]:
    return [c.model_dump(mode="json") for c in clips]


@router.get("/projects/{project_id}/clips")
def get_clips(project_id: str, store: ProjectManifestStore = Depends(get_store)):
    try:
        if not store.exists(project_id):
            raise ProjectNotFoundError(project_id)
        if not store.paths(project_id, create=False).analysis.is_file():
            return {"clips": [], "metadata": None}
        clips = store.load_clips(project_id)
        metadata = store.load_metadata(project_id)
        return {"clips": _dump(clips), "metadata": metadata.model_dump(mode="json")}
    except Exception as e:
        return handle_service_error(e, "Get clips")


@router.get("/projects/{project_id}/status")
def get_status(project_id: str, store: ProjectManifestStore = Depends(get_store),
               runner: PipelineRunner = Depends(get_runner)):
    try:
        summary = store.summary(project_id)
        summary["running"] = runner.is_running(project_id)
        return summary
    except Exception as e:
        return handle_service_error(e, "Get status")


@router.post("/projects/{project_id}/render")
def render_clips(project_id: str, body: RenderRequest,
                 store: ProjectManifestStore = Depends(get_store),
                 renderer: TemplateRenderer = Depends(get_renderer)):
    try:
        clips = store.load_clips(project_id)
        targets = _select(clips, project_id, body.clip_id)
        if body.template_id:
            targets = [c.model_copy(update={"template_id": body.template_id}) for c in targets]

        transcription = store.load_transcription(project_id)
        rendered = renderer.render_all(project_id, targets, transcription=transcription)
        clips = _merge(clips, rendered)
        store.save_clips(project_id, clips)
        return {"success": True, "clips": _dump(rendered)}
    except Exception as e:
        return handle_service_error(e, "Render")


@router.post("/projects/{project_id}/story")
def compose_story(project_id: str, body: StoryRequest,
                  store: ProjectManifestStore = Depends(get_store),
                  composer: StoryComposer = Depends(get_composer)):
    try:
        clips = store.load_clips(project_id)
        if body.clip_id:
            clip = _select(clips, project_id, body.clip_id)[0]
            story_path = composer.compose_story(project_id, clip)
            updated = [clip.model_copy(update={"story_path": str(story_path), "status": "story-composed"})]
        else:
            updated = [c for c in composer.compose_all(project_id, clips) if c.story_path]
        store.save_clips(project_id, _merge(clips, updated))
        return {"success": True, "clips": _dump(updated)}
    except Exception as e:
        return handle_service_error(e, "Story compose")


@router.post("/projects/{project_id}/hook")
def prepend_hook(project_id: str, body: HookRequest,
                 store: ProjectManifestStore = Depends(get_store),
                 hook_service: HookService = Depends(get_hook_service)):
    try:
        clip = store.get_clip(project_id, body.clip_id)
        hooked_path = hook_service.prepend_hook(project_id, clip, body.hook_text)
        clip = store.update_clip(project_id, clip.id, hooked_path=str(hooked_path))
        return {"success": True, "clip": clip.model_dump(mode="json")}
    except Exception as e:
        return handle_service_error(e, "Hook")


@router.post("/projects/{project_id}/titles")
def generate_titles(project_id: str, body: TitlesRequest,
                    store: ProjectManifestStore = Depends(get_store),
                    title_service: TitleService = Depends(get_title_service)):
    try:
        clip = store.get_clip(project_id, body.clip_id)
        metadata = store.load_metadata(project_id)
        titles = title_service.generate_titles(clip.description or clip.title, metadata.title, body.count)
        return {"success": True, "titles": titles}
    except Exception as e:
        return handle_service_error(e, "Title generation")


@router.patch("/projects/{project_id}/clips/{clip_id}")
def update_clip(project_id: str, clip_id: str, body: ClipUpdateRequest,
                store: ProjectManifestStore = Depends(get_store)):
    try:
        changes = body.model_dump(exclude_none=True)
        if not changes:
            raise ValueError("No changes provided")
        clip = store.update_clip(project_id, clip_id, **changes)
        return {"success": True, "clip": clip.model_dump(mode="json")}
    except Exception as e:
        return handle_service_error(e, "Clip update")


@router.post("/projects/{project_id}/upload")
def upload_clip(project_id: str, body: UploadRequest,
                store: ProjectManifestStore = Depends(get_store),
                uploader: YouTubeUploadService = Depends(get_upload_service)):
    try:
        clip = store.get_clip(project_id, body.clip_id)
        if body.use_story:
            video_path, stage = clip.story_path, "story"
        else:
            video_path, stage = clip.hooked_path or clip.rendered_path, "render"
        if not file_ready(video_path):
            raise MissingAssetError(f"Clip {clip.id} has no video to upload", stage=stage)

        title = body.title or clip.title
        tags = body.tags or clip.tags
        meta = UploadMeta(
            title=title,
            description=body.description or build_description(title, tags, body.channel_url),
            tags=tags,
            privacy_status=body.privacy_status,
        )
        video_id = uploader.upload(video_path, meta)
        clip = store.update_clip(project_id, clip.id, youtube_id=video_id, status="uploaded")
        return {
            "success": True,
            "video_id": video_id,
            "url": f"https://youtube.com/shorts/{video_id}",
            "clip": clip.model_dump(mode="json"),
        }
    except Exception as e:
        return handle_service_error(e, "Upload")
