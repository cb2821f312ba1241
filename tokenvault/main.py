# tokenvault/main.py
import asyncio
import logging
import os
from contextlib import asynccontextmanager, suppress

from dotenv import load_dotenv

# .env 로딩 (settings import 전에)
load_dotenv()

from fastapi import FastAPI, HTTPException, Request  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402
from fastapi.responses import JSONResponse  # noqa: E402
from sqlmodel import text  # noqa: E402

from tokenvault.core.config import get_settings  # noqa: E402
from tokenvault.core.errors import CredentialError, StoreError  # noqa: E402
from tokenvault.core.logging_config import setup_logging  # noqa: E402
from tokenvault.db.session import create_all_tables, get_engine  # noqa: E402
from tokenvault.middleware import request_context_middleware  # noqa: E402
from tokenvault.routers.auth import auth_router  # noqa: E402
from tokenvault.routers.user import user_router  # noqa: E402
from tokenvault.services.maintenance import purge_loop  # noqa: E402

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # weak or missing secrets abort startup here
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())
    if settings.auto_create_tables:
        create_all_tables()

    purge_task = asyncio.create_task(purge_loop(settings.session_purge_interval_seconds))
    try:
        yield
    finally:
        purge_task.cancel()
        with suppress(asyncio.CancelledError):
            await purge_task


app = FastAPI(
    title="tokenvault",
    version=os.getenv("APP_VERSION", "0.1.0"),
    lifespan=lifespan,
)

# CORS
_default_origins = "http://localhost:3000,http://localhost:5173"
origins = [
    o.strip()
    for o in os.getenv("CORS_ALLOW_ORIGINS", _default_origins).split(",")
    if o.strip()
]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["x-request-id"],
)

# request id context (added last so it wraps everything, CORS included)
app.middleware("http")(request_context_middleware)


@app.exception_handler(CredentialError)
async def credential_error_handler(request: Request, exc: CredentialError):
    # kind stays in the logs; clients only ever see a bare 401
    logger.warning("credential failure kind=%s path=%s", exc.kind, request.url.path)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": "Unauthorized"},
        headers={"WWW-Authenticate": "Bearer"},
    )


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    logger.error("store failure kind=%s path=%s: %s", exc.kind, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": "Service temporarily unavailable"},
        headers={"Retry-After": "1"},
    )


app.include_router(auth_router)
app.include_router(user_router)


@app.get("/health")
def health_app():
    return {"ok": True}


@app.get("/health/db")
def health_db():
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        return {"ok": True}
    except Exception:
        raise HTTPException(status_code=500, detail="Database connection failed")
