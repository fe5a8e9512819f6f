"""hearth - Household assistant living in WhatsApp."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from src.core.config import constants, settings
from src.core.db_client import close_connection, init_db
from src.core.logging import configure_logfire, instrument_fastapi, instrument_pydantic_ai
from src.core.scheduler import start_scheduler, stop_scheduler
from src.interface.webhook import router as webhook_router


logger = logging.getLogger(__name__)


def validate_startup_configuration() -> None:
    """Validate all required credentials.

    The assistant cannot reply without the model key and the Twilio
    credentials, so startup fails fast with a clear error message.
    """
    logger.info("startup_validation_begin")

    try:
        settings.require_credential("openrouter_api_key", "OpenRouter API key")
        settings.require_credential("twilio_account_sid", "Twilio account SID")
        settings.require_credential("twilio_auth_token", "Twilio auth token")
        settings.require_credential("twilio_whatsapp_number", "Twilio WhatsApp number")

        logger.info("startup_validation_complete", extra={"stage": "credentials", "status": "ok"})

    except ValueError as e:
        logger.error("startup_validation_failed", extra={"error": str(e)})
        print(f"\n❌ Startup validation failed: {e}\n", file=sys.stderr)  # noqa: T201
        sys.exit(1)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager."""
    # Configure logging first so validation logs are captured
    configure_logfire()

    validate_startup_configuration()

    await init_db()
    logger.info("Database initialized")

    instrument_pydantic_ai()
    start_scheduler()
    yield
    # Shutdown
    stop_scheduler()
    await close_connection()


app = FastAPI(
    title="hearth",
    description="Household assistant living in WhatsApp",
    version="0.1.0",
    lifespan=lifespan,
)

# Instrument FastAPI with Logfire
instrument_fastapi(app)

# Register routers
app.include_router(webhook_router)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "healthy"}, status_code=constants.HTTP_OK)
