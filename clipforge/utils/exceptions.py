"""
Error taxonomy shared by every pipeline stage.

Stages raise these and never retry; the orchestrator turns them into a terminal
error event and the routes turn them into {"error": message} responses.
"""

from typing import List, Optional


class ClipForgeError(Exception):
    """Base class for all expected pipeline failures"""


class ConfigError(ClipForgeError):
    """A credential, model or other required setting is missing"""


class UpstreamError(ClipForgeError):
    """An AI, TTS, video-host or upload call failed or returned an error status"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ParseError(ClipForgeError):
    """Output from an external service or tool could not be interpreted"""


class InvalidUrlError(ClipForgeError):
    """The URL does not point at a supported video host"""


class MissingAssetError(ClipForgeError):
    """A prerequisite artifact is absent; `stage` names what must run first"""

    def __init__(self, message: str, stage: Optional[str] = None):
        if stage:
            message = f"{message} (run '{stage}' first)"
        super().__init__(message)
        self.stage = stage


class ClipNotFoundError(ClipForgeError, LookupError):
    def __init__(self, project_id: str, clip_id: str):
        super().__init__(f"Clip {clip_id} not found in project {project_id}")
        self.project_id = project_id
        self.clip_id = clip_id


class MissingStoryMetaError(MissingAssetError):
    def __init__(self, clip_id: str):
        super().__init__(f"Clip {clip_id} has no story metadata", stage="analyze")
        self.clip_id = clip_id


class ProcessTimeoutError(ClipForgeError, TimeoutError):
    """A child process exceeded its time budget and was killed"""

    def __init__(self, command: List[str], timeout: float):
        name = command[0] if command else "process"
        super().__init__(f"{name} timed out after {timeout:.0f}s")
        self.command = command
        self.timeout = timeout


class ProcessExitError(ClipForgeError):
    """A child process exited with a non-zero code"""

    def __init__(self, command: List[str], returncode: int, stderr_tail: str = ""):
        name = command[0] if command else "process"
        message = f"{name} exited with code {returncode}"
        if stderr_tail:
            message = f"{message}: {stderr_tail}"
        super().__init__(message)
        self.command = command
        self.returncode = returncode
        self.stderr_tail = stderr_tail


class PipelineBusyError(ClipForgeError, ValueError):
    def __init__(self, project_id: str):
        super().__init__("Pipeline already running")
        self.project_id = project_id


class ProjectNotFoundError(ClipForgeError, LookupError):
    def __init__(self, project_id: str):
        super().__init__(f"Project {project_id} not found")
        self.project_id = project_id
