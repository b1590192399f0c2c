import asyncio
import threading

from clipforge.models.pipeline import PipelineEvent
from clipforge.pipeline.observers import CallbackObserver, ObserverRegistry, ProgressObserver, registry_sink


def _progress(pct: int) -> PipelineEvent:
    return PipelineEvent(type="progress", step_id="download", progress=pct, message=f"{pct}%")


def test_new_observer_supersedes_previous():
    registry = ObserverRegistry()
    first, second = [], []
    old = CallbackObserver(first.append)
    new = CallbackObserver(second.append)

    registry.register("p", old)
    registry.publish("p", _progress(10))
    registry.register("p", new)
    registry.publish("p", _progress(20))

    assert old.closed
    assert [e.progress for e in first] == [10]
    assert [e.progress for e in second] == [20]


def test_unregister_ignores_stale_handle():
    registry = ObserverRegistry()
    old = CallbackObserver(lambda e: None)
    new = CallbackObserver(lambda e: None)
    registry.register("p", old)
    registry.register("p", new)

    registry.unregister("p", old)
    assert registry.get("p") is new

    registry.unregister("p", new)
    assert registry.get("p") is None


def test_events_without_observer_are_dropped():
    registry = ObserverRegistry()
    sink = registry_sink(registry, "p")
    sink(_progress(50))

    received = []
    registry.register("p", CallbackObserver(received.append))
    sink(_progress(60))
    assert [e.progress for e in received] == [60]


def test_terminal_event_closes_observer():
    registry = ObserverRegistry()
    received = []
    observer = CallbackObserver(received.append)
    registry.register("p", observer)

    sink = registry_sink(registry, "p")
    sink(PipelineEvent(type="done", progress=100))
    sink(_progress(10))

    assert [e.type for e in received] == ["done"]
    assert observer.closed
    assert registry.active_ids() == []


def test_progress_observer_streams_events_from_another_thread():
    async def consume():
        observer = ProgressObserver(asyncio.get_running_loop())

        def producer():
            for pct in (0, 50, 100):
                observer.send(_progress(pct))
            observer.close()
            observer.send(_progress(999))

        threading.Thread(target=producer).start()
        return [event.progress async for event in observer]

    assert asyncio.run(consume()) == [0, 50, 100]


def test_event_wire_format_omits_empty_fields():
    event = PipelineEvent(type="progress", step_id="render", progress=40, message="Rendering 1/2")
    assert event.to_wire() == {"type": "progress", "step_id": "render", "progress": 40, "message": "Rendering 1/2"}
    assert PipelineEvent(type="error", error="x").is_terminal
