"""Progress reporting for long-running restores.

Every phase and table transition is emitted as one ``ProgressEvent``.  On
the wire the events are newline-delimited JSON, written as they happen, so
a client can render a live progress list without buffering the whole run.

Usage:
    from snapshot_restore.restore.progress import ProgressReporter, stream_events

    reporter = ProgressReporter()
    await reporter.send("download", "in_progress", message="Downloading...")

    async for line in stream_events(lambda rep: orchestrator.run(name, reporter=rep)):
        response.write(line)
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from snapshot_restore.restore.models import ProgressEvent

logger = logging.getLogger(__name__)

NDJSON_MEDIA_TYPE = "text/plain; charset=utf-8"
STREAM_HEADERS: dict[str, str] = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
}

EventSink = Callable[[ProgressEvent], Awaitable[Any]]

# Restores keep running after the client goes away; hold strong refs to them
_background_tasks: set[asyncio.Task] = set()


class ProgressReporter:
    """Ordered, append-only log of progress events with an optional sink.

    The log ends with exactly one terminal event (phase ``complete`` or
    ``error``).  Emitting anything after it is a programming error.

    Args:
        sink: Optional async callable invoked with every event, in order.
    """

    def __init__(self, sink: EventSink | None = None) -> None:
        self._sink = sink
        self.events: list[ProgressEvent] = []

    @property
    def finished(self) -> bool:
        """True once a terminal event has been emitted."""
        return bool(self.events) and self.events[-1].is_terminal

    async def emit(self, event: ProgressEvent) -> None:
        if self.finished:
            raise RuntimeError(
                f"Progress stream already ended; cannot emit {event.phase}/{event.status}"
            )
        self.events.append(event)
        logger.debug(
            "progress %s/%s table=%s", event.phase, event.status, event.table or "-"
        )
        if self._sink is not None:
            await self._sink(event)

    async def send(self, phase: str, status: str, **fields: Any) -> ProgressEvent:
        """Build and emit an event in one call."""
        event = ProgressEvent(phase=phase, status=status, **fields)
        await self.emit(event)
        return event


def encode_event(event: ProgressEvent) -> bytes:
    """Serialize one event as a compact JSON line."""
    return event.model_dump_json(exclude_none=True).encode("utf-8") + b"\n"


async def stream_events(
    run: Callable[[ProgressReporter], Awaitable[Any]],
) -> AsyncIterator[bytes]:
    """Run ``run(reporter)`` in its own task and yield its events as NDJSON.

    The task is not cancelled when the consumer stops iterating; a restore
    that has started deleting must be allowed to finish.  If ``run`` raises
    before emitting a terminal event, a final ``error`` event carrying the
    exception message is emitted so the stream always ends with one.
    """
    queue: asyncio.Queue[ProgressEvent | None] = asyncio.Queue()
    reporter = ProgressReporter(sink=queue.put)

    async def _runner() -> None:
        try:
            await run(reporter)
        except Exception as e:
            logger.exception("Restore task failed: %s", e)
            if not reporter.finished:
                await reporter.send("error", "error", error=str(e))
        finally:
            await queue.put(None)

    task = asyncio.create_task(_runner())
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)

    while True:
        event = await queue.get()
        if event is None:
            break
        yield encode_event(event)

    await task
