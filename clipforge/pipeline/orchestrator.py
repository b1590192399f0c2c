"""
Pipeline orchestrator: runs the fixed stage catalog for one project and reports
through a progress sink.

Each stage reads the previous stage's artifact from the manifest store and writes
its own, so a failed run can be started again and picks up what is on disk. The
orchestrator knows nothing about how events reach the client.
"""

import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Set

from clipforge.models.pipeline import PipelineEvent, PipelineStep, new_step_catalog
from clipforge.models.project import Clip, SilenceGap, Transcription, VideoMetadata
from clipforge.pipeline.manifest import ProjectManifestStore
from clipforge.pipeline.observers import Observer, ObserverRegistry, ProgressSink, registry_sink
from clipforge.services.clip_extractor import ClipExtractor
from clipforge.services.highlight_service import HighlightService
from clipforge.services.media_service import MediaService
from clipforge.services.render.template_renderer import TemplateRenderer
from clipforge.services.silence_service import detect_silence, total_silence
from clipforge.services.story.story_composer import StoryComposer
from clipforge.services.transcription_service import TranscriptionService
from clipforge.services.video_downloader import VideoDownloadService, read_metadata
from clipforge.utils.exceptions import PipelineBusyError
from clipforge.utils.paths import file_ready

logger = logging.getLogger(__name__)


class _StepFailed(Exception):
    def __init__(self, step: PipelineStep, error: Exception):
        super().__init__(str(error))
        self.step = step
        self.error = error


class _Run:
    """Per-run state: the transient step list plus the sink it is mirrored to."""

    def __init__(self, project_id: str, sink: ProgressSink):
        self.project_id = project_id
        self.sink = sink
        self.steps: Dict[str, PipelineStep] = {s.id: s for s in new_step_catalog()}

    def emit(self, event: PipelineEvent) -> None:
        self.sink(event)

    def progress(self, step_id: str, percent: int, message: str) -> None:
        step = self.steps[step_id]
        step.progress = max(0, min(100, int(percent)))
        step.message = message
        self.emit(PipelineEvent(type="progress", step_id=step_id, progress=step.progress, message=message))

    def batch_progress(self, step_id: str, verb: str) -> Callable[[int, int, str], None]:
        def report(current: int, total: int, title: str) -> None:
            self.progress(step_id, (current - 1) * 100 // max(total, 1), f"{verb} {current}/{total}: {title}")
        return report

    def steps_data(self) -> List[Dict[str, Any]]:
        return [s.model_dump(mode="json") for s in self.steps.values()]


class PipelineOrchestrator:
    def __init__(
        self,
        store: Optional[ProjectManifestStore] = None,
        downloader: Optional[VideoDownloadService] = None,
        media: Optional[MediaService] = None,
        transcriber: Optional[TranscriptionService] = None,
        highlighter: Optional[HighlightService] = None,
        extractor: Optional[ClipExtractor] = None,
        renderer: Optional[TemplateRenderer] = None,
        composer: Optional[StoryComposer] = None,
        silence_detector: Callable[..., List[SilenceGap]] = detect_silence,
    ):
        self.store = store or ProjectManifestStore()
        workspace = self.store.workspace_dir
        self.media = media or MediaService()
        self.downloader = downloader or VideoDownloadService()
        self.transcriber = transcriber or TranscriptionService()
        self.highlighter = highlighter or HighlightService()
        self.extractor = extractor or ClipExtractor(self.media, workspace)
        self.renderer = renderer or TemplateRenderer(self.media, workspace)
        self.composer = composer or StoryComposer(self.media, workspace_dir=workspace)
        self.silence_detector = silence_detector

    def _stage(self, run: _Run, step_id: str, start_message: str,
               body: Callable[[], Optional[str]]) -> None:
        step = run.steps[step_id]
        step.start(start_message)
        run.emit(PipelineEvent(type="progress", step_id=step_id, progress=0, message=start_message))
        try:
            finish_message = body()
        except Exception as e:
            raise _StepFailed(step, e)

        if step.status != "skipped":
            step.finish(finish_message or "Completed")
        run.emit(PipelineEvent(type="step-complete", step_id=step_id, progress=100,
                               message=step.message, data={"steps": run.steps_data()}))

    def run(self, project_id: str, url: str, sink: ProgressSink) -> bool:
        """Execute every stage in order. Returns True when the run reached `done`."""
        run = _Run(project_id, sink)
        paths = self.store.paths(project_id)
        state: Dict[str, Any] = {}
        logger.info(f"🚀 Pipeline started for {project_id}: {url}")

        def download() -> str:
            self.downloader.download(url, paths.source,
                                     on_progress=lambda pct: run.progress("download", pct, f"Downloading... {pct}%"))
            metadata = read_metadata(paths.root)
            if not metadata.duration:
                metadata = metadata.model_copy(update={"duration": self.media.get_duration(paths.source)})
            self.store.save_metadata(project_id, metadata)
            state["metadata"] = metadata
            return f"Downloaded: {metadata.title}"

        def extract_audio() -> str:
            if file_ready(paths.audio):
                run.progress("extract-audio", 100, "cached")
                return "Audio already extracted"
            self.media.extract_audio(paths.source, paths.audio)
            return "Audio extracted"

        def transcribe() -> str:
            if file_ready(paths.transcript):
                run.progress("transcribe", 100, "cached")
                state["transcription"] = self.store.load_transcription(project_id)
                return "Transcript loaded from cache"
            metadata: VideoMetadata = state["metadata"]
            transcription = self.transcriber.transcribe(
                paths.audio,
                paths.root,
                on_progress=lambda pct, msg: run.progress("transcribe", pct, msg),
                audio_duration=metadata.duration or None,
            )
            self.store.save_transcription(project_id, transcription)
            state["transcription"] = transcription
            return f"Transcribed {len(transcription.segments)} segments"

        def silence() -> str:
            gaps = self.silence_detector(paths.audio)
            self.store.save_silence(project_id, gaps)
            state["gaps"] = gaps
            return f"Found {len(gaps)} silent gaps ({total_silence(gaps):.1f}s total)"

        def analyze() -> str:
            metadata: VideoMetadata = state["metadata"]
            transcription: Transcription = state["transcription"]
            clips = self.highlighter.select_highlights(transcription, metadata.title, metadata.duration, project_id)
            self.store.save_clips(project_id, clips)
            state["clips"] = clips
            return f"Selected {len(clips)} clips"

        def extract_clips() -> str:
            clips = self.extractor.extract_all(project_id, state["clips"], state["gaps"],
                                               on_progress=run.batch_progress("extract-clips", "Cutting"))
            self.store.save_clips(project_id, clips)
            state["clips"] = clips
            return f"Extracted {len(clips)} clips"

        def render() -> str:
            clips = self.renderer.render_all(project_id, state["clips"],
                                             on_progress=run.batch_progress("render", "Rendering"),
                                             transcription=state["transcription"])
            self.store.save_clips(project_id, clips)
            state["clips"] = clips
            return f"Rendered {len(clips)} shorts"

        def story() -> str:
            clips: List[Clip] = state["clips"]
            if not any(c.story_meta for c in clips):
                run.steps["story-compose"].finish("Skipped: no clips with story metadata", skipped=True)
                return run.steps["story-compose"].message
            clips = self.composer.compose_all(project_id, clips,
                                              on_progress=run.batch_progress("story-compose", "Composing"))
            self.store.save_clips(project_id, clips)
            state["clips"] = clips
            return f"Composed {sum(1 for c in clips if c.story_path)} stories"

        stages = (
            ("download", "Downloading video...", download),
            ("extract-audio", "Extracting audio...", extract_audio),
            ("transcribe", "Transcribing...", transcribe),
            ("detect-silence", "Detecting silence...", silence),
            ("analyze", "Selecting highlights...", analyze),
            ("extract-clips", "Cutting clips...", extract_clips),
            ("render", "Rendering shorts...", render),
            ("story-compose", "Composing stories...", story),
        )

        try:
            for step_id, start_message, body in stages:
                self._stage(run, step_id, start_message, body)
        except _StepFailed as failure:
            step, error = failure.step, failure.error
            step.fail(str(error))
            logger.error(f"❌ Pipeline {project_id} failed at {step.id}: {error}",
                         exc_info=not isinstance(error, (ValueError, LookupError)))
            run.emit(PipelineEvent(type="error", step_id=step.id, message=str(error), error=str(error),
                                   data={"steps": run.steps_data()}))
            return False

        clips = state.get("clips", [])
        logger.info(f"🎉 Pipeline complete for {project_id}: {len(clips)} clips")
        run.emit(PipelineEvent(type="done", progress=100, message="Pipeline complete",
                               data={"clips": [c.model_dump(mode="json") for c in clips]}))
        return True


class PipelineRunner:
    """Starts orchestrator runs on daemon threads, one at a time per project."""

    def __init__(self, registry: ObserverRegistry,
                 orchestrator_factory: Callable[[], PipelineOrchestrator] = PipelineOrchestrator):
        self.registry = registry
        self.orchestrator_factory = orchestrator_factory
        self._running: Set[str] = set()
        self._lock = threading.Lock()

    def is_running(self, project_id: str) -> bool:
        with self._lock:
            return project_id in self._running

    def start(self, project_id: str, url: str, observer: Optional[Observer] = None) -> threading.Thread:
        with self._lock:
            if project_id in self._running:
                raise PipelineBusyError(project_id)
            self._running.add(project_id)

        if observer is not None:
            self.registry.register(project_id, observer)

        thread = threading.Thread(target=self._run, args=(project_id, url),
                                  name=f"pipeline-{project_id}", daemon=True)
        thread.start()
        return thread

    def _run(self, project_id: str, url: str) -> None:
        try:
            orchestrator = self.orchestrator_factory()
            orchestrator.run(project_id, url, registry_sink(self.registry, project_id))
        except Exception as e:
            logger.error(f"❌ Pipeline thread for {project_id} crashed: {e}", exc_info=True)
            self.registry.complete(project_id, PipelineEvent(type="error", message=str(e), error=str(e)))
        finally:
            with self._lock:
                self._running.discard(project_id)
