import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError

from chat_backend.core.config import settings
from chat_backend.core.exceptions import (
    AppException,
    app_exception_handler,
    validation_exception_handler,
    generic_exception_handler,
)
from chat_backend.db.init_db import create_tables, seed_initial_data
from chat_backend.db.session import SessionLocal, engine
from chat_backend.api.routes import auth, channels, gateway, health
from chat_backend.services.channels import SqlChannelDirectory
from chat_backend.services.gateway import ConnectionGateway
from chat_backend.services.membership import MembershipRegistry
from chat_backend.services.messages import SqlMessageLog

# Configure logging
log_level = logging.DEBUG if settings.ENV == "development" else logging.INFO
logging.basicConfig(
    level=log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

# Suppress verbose logging from third-party libraries
noisy_loggers = [
    "httpx",
    "httpcore",
    "passlib",
    "multipart",
    "python_multipart",
    "sqlalchemy.engine",
]
for logger_name in noisy_loggers:
    logging.getLogger(logger_name).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


def build_gateway() -> ConnectionGateway:
    """Gateway wired to the configured database."""
    channel_exists = None
    if settings.VALIDATE_CHANNEL_EXISTENCE:
        channel_exists = SqlChannelDirectory(SessionLocal).exists
    return ConnectionGateway(
        registry=MembershipRegistry(),
        message_log=SqlMessageLog(SessionLocal),
        global_room=settings.GLOBAL_ROOM,
        channel_exists=channel_exists,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_tables(engine)
    if settings.SEED_INITIAL_DATA:
        db = SessionLocal()
        try:
            seed_initial_data(db)
        except Exception:
            logger.exception("Error creating initial data")
        finally:
            db.close()

    app.state.gateway = build_gateway()
    logger.info(f"Starting {settings.PROJECT_NAME} in {settings.ENV} mode")
    try:
        yield
    finally:
        app.state.gateway.shutdown()


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Multi-channel chat backend with a real-time WebSocket gateway",
    version="0.1.0",
    docs_url="/api/docs" if settings.ENV == "development" else None,
    redoc_url="/api/redoc" if settings.ENV == "development" else None,
    lifespan=lifespan,
)

# Register exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Requested-With"],
)

# API router registration
app.include_router(auth.router, prefix=settings.API_PREFIX)
app.include_router(channels.router, prefix=settings.API_PREFIX)
app.include_router(health.router, prefix=settings.API_PREFIX)
app.include_router(gateway.router)


@app.get("/")
def read_root():
    """Root endpoint - basic API status."""
    return {
        "message": "Chat Backend API is running",
        "service": settings.PROJECT_NAME,
        "version": "0.1.0",
    }
