"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse

from progress_engine.api import (
    admin_router,
    attempts_router,
    careers_router,
    health_router,
    students_router,
)
from progress_engine.catalog import CATALOG_VERSION
from progress_engine.config import settings
from progress_engine.core.errors import EngineError
from progress_engine.schemas.common import ErrorResponse
from progress_engine.services.service_clients import close_clients

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s  %(name)-25s  %(levelname)-8s  %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Learning progress engine starting (catalog %s)…", CATALOG_VERSION)
    yield
    close_clients()
    logger.info("✅ Learning progress engine shut down")


app = FastAPI(
    title="Learning Progress Engine API",
    description="Attempts, scoring, XP, career unlocks and grade progression",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Middleware ─────────────────────────────────────────────────────────────────

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.ALLOWED_HOSTS)

# ── Error envelope ────────────────────────────────────────────────────────────


@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError):
    if exc.retryable:
        logger.warning("%s %s → %s: %s", request.method, request.url.path, exc.error_code, exc.message)
    body = ErrorResponse(
        error_code=exc.error_code,
        message=exc.message,
        details=exc.details,
        retryable=exc.retryable,
    )
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    body = ErrorResponse(
        error_code="VALIDATION_ERROR",
        message="Request body or parameters are invalid",
        details={"errors": [{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()]},
    )
    return JSONResponse(status_code=422, content=body.model_dump())


# ── Routers ───────────────────────────────────────────────────────────────────

app.include_router(health_router, tags=["Health"])
app.include_router(attempts_router, prefix="/api/attempts", tags=["Attempts"])
app.include_router(students_router, prefix="/api/students", tags=["Students"])
app.include_router(careers_router, prefix="/api/careers", tags=["Careers"])
app.include_router(admin_router, prefix="/api/admin", tags=["Admin"])


@app.get("/")
async def root():
    return {
        "name": "Learning Progress Engine API",
        "version": "0.1.0",
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("progress_engine.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)
