"""
FastAPI + Uvicorn ASGI application — pass builds as a web service.

Architecture:
  - FastAPI: request parsing and routing
  - Uvicorn: production ASGI server (handles signals, graceful shutdown)
  - Lifespan: loads settings and wires adapters once; the value-set cache
    lives as long as the application
  - K8s Probes: liveness (/health) and readiness (/ready)

Endpoints:
  POST /passes        {"qr_text": "HC1:...", "color": "white"} → .pkpass
  POST /passes/file   raw image/PDF body, ?color=white          → .pkpass
  GET  /health, /ready, /info

Failures are returned as ErrorResponse JSON with the status mapped from
the ErrorCode. An expired certificate built under the advisory policy
carries the header X-Certificate-Advisory: EXPIRED.

Entry point for production: uvicorn covidpass.asgi:app --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from railway import ResultFailures
from railway.http_support import build_error_response
from railway.result import Result

from covidpass.adapters.qr_extractor import QrPayloadExtractor
from covidpass.config import AppSettings
from covidpass.domain.colors import ColorSelection
from covidpass.domain.models import PKPASS_MEDIA_TYPE, PassBuild, RawCertificateText
from covidpass.domain.ports import SymbolDecoder
from covidpass.main import PipelineFn, _create_adapters, configure_structlog

ADVISORY_HEADER = "X-Certificate-Advisory"

# ─────────────────────── Global State ───────────────────────
# Set during app startup and used by the handlers and health checks.

_extractor: QrPayloadExtractor | None = None
_pipeline_fn: PipelineFn | None = None
_ready = False
_error_message: str | None = None
# Replaced in tests to avoid loading the native zbar library.
_symbol_decoder: SymbolDecoder | None = None
log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    FastAPI lifespan context manager — runs on startup and shutdown.

    Startup: load settings and create adapters.
    Shutdown: drop them (and with them the value-set cache).
    """
    global _extractor, _pipeline_fn, _ready, _error_message

    log.info("asgi.startup")

    try:
        settings = AppSettings()
    except Exception as e:
        _error_message = f"Configuration error: {e}"
        log.error("asgi.startup_error", error=_error_message)
        raise

    configure_structlog(settings.log_level)
    log.info(
        "asgi.startup_config",
        version="0.1.0",
        log_level=settings.log_level,
        expiry_policy=settings.decoder.expiry_policy.value,
    )

    _extractor, _pipeline_fn = _create_adapters(settings, _symbol_decoder)
    _error_message = None
    _ready = True
    log.info("asgi.startup_complete")

    yield

    log.info("asgi.shutdown", reason="SIGTERM or server stop")
    _ready = False
    _extractor = None
    _pipeline_fn = None
    log.info("asgi.shutdown_complete")


# ─────────────────────── FastAPI Application ───────────────────────

app = FastAPI(
    title="covidpass",
    description="EU Digital COVID Certificate QR code → signed wallet pass",
    version="0.1.0",
    lifespan=lifespan,
)


class PassRequest(BaseModel):
    qr_text: str | None = None
    color: str = "white"


def _parse_color(value: str) -> Result[ColorSelection]:
    try:
        return Result.success(ColorSelection[value.strip().upper()])
    except KeyError:
        choices = ", ".join(c.name.lower() for c in ColorSelection)
        return ResultFailures.validation_error(f"Unknown color {value!r}; choose from {choices}")


def _unavailable() -> JSONResponse:
    return JSONResponse(
        status_code=503,
        content={"status": "unavailable", "reason": "Service not initialized"},
    )


async def _read_body(request: Request, limit: int) -> bytes:
    """Request body, cut off one byte past `limit`; the extractor rejects anything longer."""
    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > limit:
            break
    return bytes(body)


async def _build(raw: Result[RawCertificateText], color: str) -> Response:
    assert _pipeline_fn is not None
    pipeline_fn = _pipeline_fn
    result = await raw.flat_map(
        lambda text: _parse_color(color).map(lambda selection: (text, selection))
    ).flat_map_async(lambda pair: pipeline_fn(*pair))
    return _to_response(result)


def _to_response(result: Result[PassBuild]) -> Response:
    if result.is_failure():
        failure = result.error()
        log.warning("passes.failed", error_code=failure.code.value, reason=failure.message)
        return build_error_response(failure)

    build = result.value()
    archive = build.archive
    headers = {"Content-Disposition": f'attachment; filename="{archive.filename}"'}
    if build.advisories:
        headers[ADVISORY_HEADER] = ", ".join(a.code.value for a in build.advisories)
    log.info("passes.created", size_bytes=len(archive.content), variant=archive.image_variant.value)
    return Response(content=archive.content, media_type=PKPASS_MEDIA_TYPE, headers=headers)


@app.post("/passes", response_model=None)
async def create_pass(body: PassRequest) -> Response:
    """Build a pass from scanned QR text."""
    if _extractor is None or _pipeline_fn is None:
        return _unavailable()
    return await _build(_extractor.from_text(body.qr_text), body.color)


@app.post("/passes/file", response_model=None)
async def create_pass_from_file(request: Request, color: str = "white") -> Response:
    """Build a pass from an uploaded image or PDF (raw request body)."""
    if _extractor is None or _pipeline_fn is None:
        return _unavailable()
    data = await _read_body(request, _extractor.max_upload_bytes)
    return await _build(await _extractor.from_file(data), color)


@app.get("/health")
async def health() -> JSONResponse:
    """
    Kubernetes liveness probe.

    Returns 503 if configuration failed at startup, 200 otherwise.
    """
    if _error_message:
        log.warning("health.check_failed", error=_error_message)
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "error": _error_message},
        )
    return JSONResponse(status_code=200, content={"status": "healthy"})


@app.get("/ready")
async def ready() -> JSONResponse:
    """Kubernetes readiness probe — 200 once adapters are wired."""
    if not _ready:
        return JSONResponse(status_code=503, content={"status": "starting"})
    return JSONResponse(status_code=200, content={"status": "ready"})


@app.get("/info")
async def info() -> dict[str, Any]:
    """Application metadata, for debugging and monitoring."""
    return {
        "name": "covidpass",
        "version": "0.1.0",
        "ready": _ready,
        "has_error": _error_message is not None,
        "colors": [c.name.lower() for c in ColorSelection],
    }


if __name__ == "__main__":
    # For local testing: python -m uvicorn covidpass.asgi:app --reload
    import uvicorn

    uvicorn.run(
        "covidpass.asgi:app",
        host="0.0.0.0",
        port=8000,
        reload=False,
        log_level="info",
    )
