"""FastAPI application entrypoint."""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from wordai.api import gateway
from wordai.config import get_settings

settings = get_settings()

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.JSONRenderer(),
    ]
)
logger = structlog.get_logger()

app = FastAPI(title=settings.app_name, version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_size_guard(request: Request, call_next):
    """Reject oversized request bodies before expensive processing."""
    if request.method in {"POST", "PUT", "PATCH"}:
        content_length = request.headers.get("content-length")
        if content_length:
            try:
                max_bytes = settings.max_request_mb * 1024 * 1024
                if int(content_length) > max_bytes:
                    return JSONResponse(status_code=413, content={"detail": "Request body too large"})
            except ValueError:
                return JSONResponse(status_code=400, content={"detail": "Invalid Content-Length header"})
    return await call_next(request)


@app.on_event("startup")
def on_startup() -> None:
    logger.info("app.startup", env=settings.env, api_path=settings.api_path, word_table=settings.word_table)


@app.get("/healthz", tags=["health"])
def healthcheck() -> dict[str, str]:
    """Simple health endpoint for probes."""
    return {"status": "ok"}


app.include_router(gateway.router, prefix=settings.api_path, tags=["gateway"])
