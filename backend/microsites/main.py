from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from microsites.logging import setup_logging
from microsites.routes import tenants
from microsites.services.errors import PreconditionError
from microsites.services.registry import build_orchestrator
from microsites.settings import settings

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    setup_logging()
    # Provider clients are built once; a missing credential disables deploys, not the API.
    try:
        app.state.orchestrator = build_orchestrator(settings)
    except PreconditionError as exc:
        logger.error("orchestrator_unavailable", code=exc.code, error=str(exc))
        app.state.orchestrator = None
    yield


app = FastAPI(title="Microsites Deployment API", version="0.1.0", lifespan=lifespan)

# Error envelope
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    if isinstance(exc.detail, dict):
        if exc.detail.get("ok") is False:
            return JSONResponse(status_code=exc.status_code, content=exc.detail)
        if "code" in exc.detail and "message" in exc.detail:
            return JSONResponse(status_code=exc.status_code, content={"ok": False, "error": exc.detail})
    return JSONResponse(
        status_code=exc.status_code,
        content={"ok": False, "error": {"code": "HTTP_ERROR", "message": str(exc.detail)}},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={
            "ok": False,
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Validation failed.",
                "details": jsonable_errors(exc),
            },
        },
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    # Model validators attach the raised ValueError under ctx, which is not JSON serializable.
    errors = []
    for error in exc.errors():
        item = {key: value for key, value in error.items() if key != "ctx"}
        errors.append(item)
    return errors


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(tenants.router, prefix="/api/tenants", tags=["tenants"])

@app.get("/healthz")
def healthz() -> dict:
    return {"ok": True}

@app.get("/readyz")
def readyz(request: Request) -> dict:
    return {"ready": getattr(request.app.state, "orchestrator", None) is not None}
