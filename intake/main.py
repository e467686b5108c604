from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .database import init_db
from .errors import IntakeError

from .api.contacts import router as contacts_router
from .api.me import router as me_router
from .api.references import router as references_router
from .api.wizard import router as wizard_router

logger = logging.getLogger(__name__)


def create_app(*, create_tables: bool = True) -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        version=getattr(settings, "app_version", "0.1.x"),
    )

    # --- CORS ---
    allow_origins = getattr(settings, "cors_allow_origins", ["*"])
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Startup ---
    @app.on_event("startup")
    def _startup() -> None:
        # Creates tables for all registered SQLModel models (idempotent)
        if create_tables:
            init_db()

    # --- Error envelopes ---
    @app.exception_handler(IntakeError)
    async def intake_error_handler(request: Request, exc: IntakeError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    # --- Health / meta ---
    @app.get("/health", tags=["meta"])
    def health() -> Dict[str, Any]:
        return {"ok": True, "app": settings.app_name, "env": getattr(settings, "env", "local")}

    @app.get("/version", tags=["meta"])
    def version() -> Dict[str, Any]:
        return {"version": getattr(settings, "app_version", "0.1.x")}

    # --- API routers ---
    app.include_router(me_router)
    app.include_router(references_router)
    app.include_router(wizard_router)
    app.include_router(contacts_router)

    return app


app = create_app()


def run() -> None:
    logging.basicConfig(level=getattr(logging, str(settings.log_level).upper(), logging.INFO))
    import uvicorn

    # NOTE: init_db is handled by the FastAPI startup hook.
    uvicorn.run(
        "intake.main:app",
        host=getattr(settings, "host", "127.0.0.1"),
        port=int(getattr(settings, "port", 8000)),
        reload=bool(getattr(settings, "reload", False)),
    )
