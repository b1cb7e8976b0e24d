"""HTTP service mode: FastAPI app and the SSE event protocol."""

from repolens.service.app import create_app, run_service
from repolens.service.events import format_sse_event, safe_serialize, stream_analysis

__all__ = ["create_app", "format_sse_event", "run_service", "safe_serialize", "stream_analysis"]
