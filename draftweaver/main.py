from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from time import perf_counter
from typing import Annotated
from uuid import uuid4

from fastapi import Depends, FastAPI, Request, Response
from structlog.contextvars import bind_contextvars, reset_contextvars

from draftweaver.api.routes import router
from draftweaver.dependencies import get_settings, get_signer, get_telemetry
from draftweaver.logging_config import configure_application_logging
from draftweaver.services.signer import LocalKeySigner

LOGGER = logging.getLogger("draftweaver.main")
REQUEST_ID_HEADER = "X-Request-ID"


def health_check(
    signer: Annotated[LocalKeySigner | None, Depends(get_signer)],
) -> dict[str, str]:
    return {"status": "ok", "signer": "configured" if signer is not None else "missing"}


@asynccontextmanager
async def app_lifespan(_: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    configure_application_logging(settings)
    LOGGER.info(
        "draftweaver api starting relays=%s signer=%s",
        len(settings.relay_urls),
        settings.secret_key is not None,
    )
    yield


def _request_id(request: Request) -> str:
    incoming = request.headers.get(REQUEST_ID_HEADER, "").strip()
    return incoming or uuid4().hex


async def bind_request_context(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """Tag every log line of a request with its id and report how it ended."""
    request_id = _request_id(request)
    context_tokens = bind_contextvars(
        http_request_id=request_id,
        http_method=request.method,
        http_path=request.url.path,
    )
    started_at = perf_counter()
    status_code: int | None = None
    error_type: str | None = None
    try:
        response = await call_next(request)
        status_code = response.status_code
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
    except Exception as exc:
        error_type = type(exc).__name__
        raise
    finally:
        get_telemetry().emit(
            "http.request.finish" if error_type is None else "http.request.error",
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            status_code=status_code,
            error_type=error_type,
            duration_ms=int((perf_counter() - started_at) * 1000),
        )
        reset_contextvars(**context_tokens)


def create_app() -> FastAPI:
    app = FastAPI(title="DraftWeaver API", version="0.1.0", lifespan=app_lifespan)
    app.middleware("http")(bind_request_context)
    app.include_router(router)
    app.add_api_route(
        "/health",
        health_check,
        methods=["GET"],
        tags=["system"],
        operation_id="health_check",
    )
    return app


app = create_app()
