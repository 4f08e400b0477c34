from __future__ import annotations

from datetime import UTC, datetime
import logging

from dotenv import load_dotenv
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest

from ..config import get_settings
from ..domain.errors import PlanCoachError
from ..observability.metrics import metrics_middleware_factory
from .routers.plans import router as plans_router
from .routers.topics import router as topics_router

load_dotenv()  # OPENAI_API_KEY, assistant ids, PLANCOACH_* from .env if present

app = FastAPI(title="PlanCoach API", version="0.1.0")

log = logging.getLogger("plancoach.api")

# Observability: request latency histogram
app.middleware("http")(metrics_middleware_factory())

# Routers
app.include_router(plans_router)
app.include_router(topics_router)

# Same routers under /api, the path the web client calls
app.include_router(plans_router, prefix="/api")
app.include_router(topics_router, prefix="/api")

# CORS (for Next.js dev server on localhost:3000)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PlanCoachError)
async def plancoach_error_handler(request: Request, exc: PlanCoachError) -> JSONResponse:
    body = {"error": exc.public_message}
    headers = {}
    if exc.retry_after:
        body["retryAfter"] = exc.retry_after
        headers["Retry-After"] = str(exc.retry_after)
    if exc.status_code >= 500:
        log.warning("request_failed", extra={"path": request.url.path, "err": str(exc), "kind": type(exc).__name__})
        if get_settings().is_development:
            body["details"] = str(exc)
    return JSONResponse(status_code=exc.status_code, content=body, headers=headers)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("unhandled_error", extra={"path": request.url.path})
    body = {"error": PlanCoachError.public_message}
    if get_settings().is_development:
        body["details"] = str(exc)
    return JSONResponse(status_code=500, content=body)


def _health() -> dict:
    settings = get_settings()
    return {
        "status": "ok",
        "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
        "components": {
            "api": "ok",
            "assistant": "configured" if settings.api_key else "not-configured",
        },
    }


@app.get("/")
def root():
    return {"name": "PlanCoach API", "version": "0.1.0"}


@app.get("/health")
def health():
    return _health()


@app.get("/metrics")
def metrics() -> Response:
    # Expose Prometheus metrics
    data = generate_latest(REGISTRY)
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)


@app.get("/api/health")
def api_health():
    return _health()


@app.get("/api/metrics")
def api_metrics() -> Response:
    data = generate_latest(REGISTRY)
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
