"""Prometheus metrics for the PlanCoach FastAPI backend.

Adds an HTTP middleware that records request latency per method/path/status,
plus counters for assistant runs and extraction fallbacks.
"""

from __future__ import annotations

import time
from typing import Callable, Awaitable

from prometheus_client import Counter, Histogram
from starlette.requests import Request
from starlette.responses import Response

# Histogram buckets chosen for web latencies (seconds); turns wait on remote runs
REQUEST_LATENCY = Histogram(
    "plancoach_request_latency_seconds",
    "HTTP request latency in seconds",
    labelnames=("method", "path", "status"),
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

ASSISTANT_RUNS = Counter(
    "plancoach_assistant_runs_total",
    "Assistant runs by purpose and terminal status",
    labelnames=("purpose", "status"),
)

RUN_WAIT = Histogram(
    "plancoach_run_wait_seconds",
    "Time spent polling an assistant run until it reached a terminal state",
    labelnames=("purpose",),
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 40.0, 90.0, 180.0),
)

EXTRACTION_FALLBACKS = Counter(
    "plancoach_extraction_fallbacks_total",
    "Extraction passes that returned the default object",
    labelnames=("topic", "reason"),
)


def sanitize_path(path: str) -> str:
    """Reduce high-cardinality paths to a coarse label.

    ``/api/business-plans/BP-2025-0001/operations/kpis`` becomes
    ``/business-plans/{id}/operations/kpis``.
    """
    if not path:
        return "/"
    segs = [s for s in path.split("?")[0].split("/") if s]
    if segs and segs[0] == "api":
        segs = segs[1:]
    if len(segs) >= 2 and segs[0] == "business-plans":
        segs[1] = "{id}"
    return "/" + "/".join(segs)


def metrics_middleware_factory() -> Callable[[Request, Callable[[Request], Awaitable[Response]]], Awaitable[Response]]:
    async def middleware(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        # Avoid observing the metrics endpoint itself
        if request.url.path.endswith("/metrics"):
            return await call_next(request)
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start
        try:
            REQUEST_LATENCY.labels(
                method=request.method,
                path=sanitize_path(request.url.path),
                status=str(response.status_code),
            ).observe(elapsed)
        except Exception:
            # Never block the request due to metrics
            pass
        return response

    return middleware
