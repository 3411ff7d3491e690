"""
FastAPI application hosting the Ecobee controller.
"""

import os
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.database import AsyncSessionLocal, close_db, init_db
from app.runtime import EcobeeRuntime
from app.utils.logging import setup_logging, get_logger
from app.utils.settings_store import DatabaseSettingsStore
from app.routes import alerts, devices, ecobee_auth, health, settings


# Load environment variables
load_dotenv()

# Setup logging
setup_logging()
log = get_logger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: create the runtime over the database settings store and start polling.
    Shutdown: stop polling and close the database.
    """
    log.info("application_starting", version=VERSION)

    # Initialize database (optional - use Alembic in production)
    if os.getenv("INIT_DB", "false").lower() == "true":
        log.info("initializing_database")
        await init_db()

    if getattr(app.state, "runtime", None) is None:
        app.state.runtime = EcobeeRuntime(DatabaseSettingsStore(AsyncSessionLocal))

    poll = os.getenv("POLL_ENABLED", "true").lower() == "true"
    await app.state.runtime.start(poll=poll)
    log.info("application_ready", poll=poll, devices=len(app.state.runtime.controller.devices))

    yield

    log.info("application_shutting_down")
    await app.state.runtime.stop()
    await close_db()
    log.info("application_stopped")


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Convert Pydantic validation errors to clean, user-friendly messages.
    """
    error_messages = []
    for error in exc.errors():
        loc = error.get("loc", [])
        field = " -> ".join(str(l) for l in loc if l != "body")
        msg = error.get("msg", "Invalid value")
        error_messages.append(f"{field}: {msg}")

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "Validation failed",
            "details": error_messages
        }
    )


def create_app(runtime: Optional[EcobeeRuntime] = None) -> FastAPI:
    """
    Build the application.

    Args:
        runtime: Pre-built runtime (tests); created at startup when omitted
    """
    app = FastAPI(
        title="Ecobee Bridge",
        version=VERSION,
        description="Normalized thermostat control for Ecobee devices",
        lifespan=lifespan
    )
    app.state.runtime = runtime
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    app.include_router(ecobee_auth.router, tags=["Authentication"])
    app.include_router(settings.router, tags=["Settings"])
    app.include_router(devices.router, tags=["Devices"])
    app.include_router(alerts.router, tags=["Alerts"])
    app.include_router(health.router, tags=["Health"])

    @app.get("/healthz")
    async def healthz():
        """
        Health check endpoint.
        No authentication required.
        """
        return {"ok": True}

    @app.get("/")
    async def root():
        return {
            "ok": True,
            "name": "Ecobee Bridge",
            "version": VERSION,
            "status": "operational"
        }

    return app


app = create_app()
