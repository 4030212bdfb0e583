"""Prometheus metrics for the concierge FastAPI backend.

Adds an HTTP middleware that records request latency per method/path/status,
plus counters describing what the completion segmenter emits.
"""

from __future__ import annotations

import time
from typing import Callable, Awaitable, Iterable

from prometheus_client import Counter, Histogram
from starlette.requests import Request
from starlette.responses import Response

# Histogram buckets chosen for web latencies (seconds)
REQUEST_LATENCY = Histogram(
    "concierge_request_latency_seconds",
    "HTTP request latency in seconds",
    labelnames=("method", "path", "status"),
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0),
)

EVENTS_EMITTED = Counter(
    "concierge_events_emitted_total",
    "Structured events written to the output stream",
    labelnames=("variant", "type"),
)

REWRITES_TRIGGERED = Counter(
    "concierge_rewrites_triggered_total",
    "Replies switched to the compressed first-sentence answer",
    labelnames=("variant",),
)

STREAM_FAILURES = Counter(
    "concierge_stream_failures_total",
    "Completion streams aborted or dropped",
    labelnames=("reason",),
)


def sanitize_path(path: str) -> str:
    """Reduce paths to a coarse label (e.g. /api/chat?variant=x -> /api/chat, /health/x -> /health)."""
    if not path:
        return "/"
    segs = path.split("?")[0].split("/")
    # Routes are also mounted under /api; keep the route name.
    if len(segs) > 2 and segs[1] == "api" and segs[2]:
        return "/api/" + segs[2]
    if len(segs) > 1:
        return "/" + segs[1]
    return path


def record_batch(variant: str, event_types: Iterable[str]) -> None:
    for event_type in event_types:
        EVENTS_EMITTED.labels(variant=variant, type=event_type).inc()


def metrics_middleware_factory() -> Callable[[Request, Callable[[Request], Awaitable[Response]]], Awaitable[Response]]:
    async def middleware(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        # Avoid observing the metrics endpoint itself
        if request.url.path.startswith("/metrics"):
            return await call_next(request)
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start
        REQUEST_LATENCY.labels(
            method=request.method,
            path=sanitize_path(request.url.path),
            status=str(response.status_code),
        ).observe(elapsed)
        return response

    return middleware
