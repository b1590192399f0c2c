"""
Progress observers: one live handle per project, fed from the pipeline thread.

Events are not buffered. A client that connects late, or reconnects, reads the
current state from GET /status and then follows the live stream.
"""

import asyncio
import logging
import threading
from typing import AsyncIterator, Callable, Dict, List, Optional, Protocol

from clipforge.models.pipeline import PipelineEvent

logger = logging.getLogger(__name__)

ProgressSink = Callable[[PipelineEvent], None]

_CLOSED = object()


class Observer(Protocol):
    closed: bool

    def send(self, event: PipelineEvent) -> None:
        ...

    def close(self) -> None:
        ...


class ProgressObserver:
    """Queue-backed handle consumed by an SSE response on the event loop that created it."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop or asyncio.get_event_loop()
        self._queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def _put(self, item) -> None:
        if self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._queue.put_nowait, item)

    def send(self, event: PipelineEvent) -> None:
        if self.closed:
            return
        self._put(event)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._put(_CLOSED)

    def __aiter__(self) -> AsyncIterator[PipelineEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[PipelineEvent]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item


class CallbackObserver:
    def __init__(self, callback: ProgressSink):
        self.callback = callback
        self.closed = False

    def send(self, event: PipelineEvent) -> None:
        if not self.closed:
            self.callback(event)

    def close(self) -> None:
        self.closed = True


class ObserverRegistry:
    """Current observer per project id. Registering a new handle supersedes the old one."""

    def __init__(self) -> None:
        self._observers: Dict[str, Observer] = {}
        self._lock = threading.Lock()

    def register(self, project_id: str, observer: Observer) -> None:
        with self._lock:
            previous = self._observers.get(project_id)
            self._observers[project_id] = observer
        if previous is not None and previous is not observer:
            logger.info(f"🔁 Observer for {project_id} superseded")
            previous.close()

    def unregister(self, project_id: str, observer: Optional[Observer] = None) -> None:
        with self._lock:
            current = self._observers.get(project_id)
            if current is None or (observer is not None and current is not observer):
                return
            del self._observers[project_id]

    def get(self, project_id: str) -> Optional[Observer]:
        with self._lock:
            return self._observers.get(project_id)

    def publish(self, project_id: str, event: PipelineEvent) -> None:
        observer = self.get(project_id)
        if observer is not None:
            observer.send(event)

    def complete(self, project_id: str, event: PipelineEvent) -> None:
        with self._lock:
            observer = self._observers.pop(project_id, None)
        if observer is not None:
            observer.send(event)
            observer.close()

    def active_ids(self) -> List[str]:
        with self._lock:
            return list(self._observers)


def registry_sink(registry: ObserverRegistry, project_id: str) -> ProgressSink:
    def sink(event: PipelineEvent) -> None:
        if event.is_terminal:
            registry.complete(project_id, event)
        else:
            registry.publish(project_id, event)
    return sink
