from .manifest import ProjectManifestStore
from .observers import CallbackObserver, ObserverRegistry, ProgressObserver, registry_sink
from .orchestrator import PipelineOrchestrator, PipelineRunner

__all__ = [
    "ProjectManifestStore",
    "CallbackObserver",
    "ObserverRegistry",
    "ProgressObserver",
    "registry_sink",
    "PipelineOrchestrator",
    "PipelineRunner",
]
