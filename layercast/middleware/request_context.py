from dataclasses import dataclass
from time import perf_counter
from uuid import uuid4

from fastapi import Request

REQUEST_ID_HEADER = "X-Request-ID"


@dataclass
class RequestContext:
    request_id: str
    start_time: float

    @property
    def processing_time_ms(self) -> int:
        return int((perf_counter() - self.start_time) * 1000)


def create_request_context() -> RequestContext:
    return RequestContext(request_id=uuid4().hex, start_time=perf_counter())


def get_request_context(request: Request) -> RequestContext:
    """Per-request context, created on first access and cached on request.state."""
    context = getattr(request.state, "context", None)
    if context is None:
        context = create_request_context()
        request.state.context = context
    return context
