from __future__ import annotations

import logging
import time
from typing import Callable, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from automize.config import Settings
from automize.core.bootstrap import seed_admin_user
from automize.core.enums import ErrorKind
from automize.core.errors import WatchtowerError
from automize.db import build_engine, build_session_factory
from automize.routers import alerts, auth, cron, pods, rules, stats
from automize.schemas.common import Fail

logger = logging.getLogger("automize.api")

_STATUS_KIND = {
    400: ErrorKind.VALIDATION,
    401: ErrorKind.UNAUTHORIZED,
    403: ErrorKind.FORBIDDEN,
    404: ErrorKind.NOT_FOUND,
    409: ErrorKind.CONFLICT,
    422: ErrorKind.VALIDATION,
}


def _fail(status_code: int, kind: ErrorKind, message: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=Fail(error_kind=kind, message=message).model_dump(mode="json"),
        headers=headers,
    )


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path", "header"))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts) or "Invalid request"


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(WatchtowerError)
    async def watchtower_error_handler(request: Request, exc: WatchtowerError):
        return _fail(exc.status_code, exc.kind, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        kind = _STATUS_KIND.get(exc.status_code)
        if kind is None:
            kind = ErrorKind.UPSTREAM if exc.status_code >= 500 else ErrorKind.VALIDATION
        status_code = 400 if exc.status_code == 422 else exc.status_code
        return _fail(status_code, kind, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return _fail(400, ErrorKind.VALIDATION, _validation_message(exc))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _fail(500, ErrorKind.UPSTREAM, "Internal server error")


def create_app(
    settings: Optional[Settings] = None,
    http_transport: Optional[httpx.BaseTransport] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> FastAPI:
    """
    App factory. uvicorn: `uvicorn automize.main:create_app --factory`
    """
    settings = settings or Settings()

    logging.basicConfig(
        level=getattr(logging, str(settings.LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="Automize Watchtower API",
        version="0.1.0",
        description="Rules, alerts and notifications for the Automize dashboard.",
    )

    engine = build_engine(settings)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.http_transport = http_transport
    app.state.sleep = sleep

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    @app.on_event("startup")
    def on_startup() -> None:
        if not settings.INITIAL_ADMIN_EMAIL or not settings.INITIAL_ADMIN_PASSWORD:
            return

        db = app.state.session_factory()
        try:
            seed_admin_user(
                db=db,
                email=settings.INITIAL_ADMIN_EMAIL,
                password=settings.INITIAL_ADMIN_PASSWORD,
                full_name=settings.INITIAL_ADMIN_FULL_NAME or "Admin",
            )
        finally:
            db.close()

    @app.on_event("shutdown")
    def on_shutdown() -> None:
        engine.dispose()

    @app.get("/health", tags=["system"])
    def health_check():
        return {"ok": True, "data": {"status": "ok", "service": "automize-watchtower"}}

    # Routers
    app.include_router(auth.router)
    app.include_router(rules.router)
    app.include_router(alerts.router)
    app.include_router(cron.router)
    app.include_router(stats.router)
    app.include_router(pods.router)

    return app
