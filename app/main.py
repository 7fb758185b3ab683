import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from commons import limiter
from configs.config import get_config
from logging_config import setup_logging
from scribevault.database.connection import DatabaseManager
from scribevault.dependencies import get_job_registry
from scribevault.errors import DeletionError, ScribeVaultError, TranscriptionStepError
from scribevault.routes.history_routes import router as history_router
from scribevault.routes.transcription_routes import router as transcription_router
from security import RequestIdMiddleware, SecurityHeadersMiddleware

# ── Logging ──────────────────────────────────────────────────────────────────
setup_logging()
logger = logging.getLogger(__name__)

cfg = get_config()


# ── Lifespan ─────────────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    os.makedirs(cfg.UPLOAD_DIR, exist_ok=True)
    os.makedirs(cfg.TRANSCRIPTS_DIR, exist_ok=True)
    db_manager = None
    try:
        db_manager = DatabaseManager()
        logger.info("Database manager initialized successfully")
    except PyMongoError as exc:
        logger.warning(
            "Failed to initialize database: %s. "
            "The application will continue with limited functionality.", exc,
        )
    yield
    get_job_registry().cancel_all()
    if db_manager is not None:
        db_manager.close()


# ── App Factory ──────────────────────────────────────────────────────────────
app = FastAPI(
    title="ScribeVault Transcription API",
    docs_url="/docs" if cfg.DOCS_ENABLED else None,
    redoc_url="/redoc" if cfg.DOCS_ENABLED else None,
    openapi_url="/openapi.json" if cfg.DOCS_ENABLED else None,
    lifespan=lifespan,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# ── Middleware Stack (order matters – outermost first) ───────────────────────

# 1. Request-ID tracking
app.add_middleware(RequestIdMiddleware)

# 2. Security response headers
app.add_middleware(SecurityHeadersMiddleware)

# 3. Trusted hosts
app.add_middleware(TrustedHostMiddleware, allowed_hosts=cfg.ALLOWED_HOSTS)

# 4. CORS – explicit methods & headers instead of wildcards
app.add_middleware(
    CORSMiddleware,
    allow_origins=cfg.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=cfg.CORS_METHODS,
    allow_headers=cfg.CORS_HEADERS,
)


# ── Error envelope ───────────────────────────────────────────────────────────
@app.exception_handler(ScribeVaultError)
async def scribevault_error_handler(request: Request, exc: ScribeVaultError):
    if isinstance(exc, TranscriptionStepError):
        content = exc.to_dict()
    else:
        content = {"success": False, "message": exc.message}
        if isinstance(exc, DeletionError):
            content["results"] = exc.results
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(content))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content=jsonable_encoder(
            {"success": False, "message": "Invalid request", "errors": exc.errors()}
        ),
    )


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(transcription_router)
app.include_router(history_router)


@app.get("/api/health")
def health() -> dict:
    return {"status": "ok"}
