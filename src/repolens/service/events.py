"""Server-Sent Events protocol for analysis runs.

Events, in order:
- ``progress``      {label, percent, timestamp}  (any number)
- ``keep-alive``    {timestamp}                  (every keepalive interval)
- ``result``        {report}                     then ``done`` {message}
- ``error-message`` {error}                      instead of result/done

Exactly one terminal sequence is sent, then the stream closes.
"""

import asyncio
import dataclasses
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any

from repolens.errors import FatalAnalysisError, SerializationError
from repolens.models.report import AnalysisReport
from repolens.progress import ProgressEmitter, ProgressEvent

logger = logging.getLogger(__name__)

CIRCULAR = "[Circular]"
SERIALIZATION_FAILED = "Failed to serialize analysis result"

# Seconds between disconnect checks while waiting for events
POLL_INTERVAL = 1.0

_DONE = object()

RunAnalysis = Callable[[ProgressEmitter], Awaitable[AnalysisReport]]
DisconnectCheck = Callable[[], Awaitable[bool]]


def format_sse_event(event: str, data: Any) -> str:
    """Format one SSE frame (``event:`` + single-line JSON ``data:``)."""
    return f"event: {event}\ndata: {json.dumps(data, separators=(',', ':'))}\n\n"


def safe_serialize(value: Any, _ancestors: frozenset[int] = frozenset()) -> Any:
    """Convert a value into JSON-compatible data without recursing forever.

    A container that appears inside itself is replaced by ``"[Circular]"``.
    Datetimes become ISO strings, enums their values, dataclasses dicts, and
    anything else unknown its repr.
    """
    if value is None or isinstance(value, bool | int | float | str):
        return value
    if isinstance(value, datetime | date):
        return value.isoformat()
    if isinstance(value, Enum):
        return safe_serialize(value.value, _ancestors)

    marker = id(value)
    if marker in _ancestors:
        return CIRCULAR
    inner = _ancestors | {marker}

    if isinstance(value, dict):
        return {str(k): safe_serialize(v, inner) for k, v in value.items()}
    if isinstance(value, list | tuple | set | frozenset):
        return [safe_serialize(v, inner) for v in value]
    if hasattr(value, "to_dict"):
        return safe_serialize(value.to_dict(), inner)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            f.name: safe_serialize(getattr(value, f.name), inner) for f in dataclasses.fields(value)
        }
    return repr(value)


def serialize_report(report: AnalysisReport) -> str:
    """Serialize a report for the ``result`` event.

    Raises:
        SerializationError: If the report cannot be turned into JSON
    """
    try:
        return json.dumps({"report": safe_serialize(report)}, separators=(",", ":"))
    except (TypeError, ValueError, RecursionError) as e:
        raise SerializationError(f"{SERIALIZATION_FAILED}: {e}") from e


async def _heartbeat(queue: asyncio.Queue[Any], interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        queue.put_nowait(("keep-alive", {"timestamp": datetime.now(UTC).isoformat()}))


async def stream_analysis(
    run: RunAnalysis,
    is_disconnected: DisconnectCheck | None = None,
    keepalive_interval: float = 30.0,
) -> AsyncIterator[str]:
    """Run an analysis and yield its SSE frames.

    The heartbeat and the run are tasks scoped to this generator. Both are
    cancelled when the generator finishes or is closed, and when the client
    disconnects.

    Args:
        run: Coroutine function receiving the progress emitter
        is_disconnected: Async check for client disconnect (polled)
        keepalive_interval: Seconds between keep-alive events

    Yields:
        SSE frames
    """
    queue: asyncio.Queue[Any] = asyncio.Queue()

    def emit(event: ProgressEvent) -> None:
        queue.put_nowait(("progress", event.to_dict()))

    async def drive() -> AnalysisReport:
        try:
            return await run(emit)
        finally:
            queue.put_nowait(_DONE)

    run_task = asyncio.create_task(drive())
    heartbeat = asyncio.create_task(_heartbeat(queue, keepalive_interval))

    try:
        while True:
            try:
                item = await asyncio.wait_for(queue.get(), timeout=POLL_INTERVAL)
            except TimeoutError:
                item = None

            if is_disconnected is not None and await is_disconnected():
                logger.info("Client disconnected; abandoning analysis stream")
                return
            if item is None:
                continue
            if item is _DONE:
                break
            name, payload = item
            yield format_sse_event(name, payload)

        heartbeat.cancel()
        try:
            report = run_task.result()
        except FatalAnalysisError as e:
            yield format_sse_event("error-message", {"error": str(e)})
            return
        except Exception as e:
            logger.error("Analysis run crashed: %s", e)
            yield format_sse_event("error-message", {"error": f"Analysis failed: {e}"})
            return

        try:
            body = serialize_report(report)
        except SerializationError as e:
            logger.error("%s", e)
            yield format_sse_event("error-message", {"error": SERIALIZATION_FAILED})
            return

        yield f"event: result\ndata: {body}\n\n"
        yield format_sse_event("done", {"message": "Analysis complete"})
    finally:
        heartbeat.cancel()
        if not run_task.done():
            run_task.cancel()
