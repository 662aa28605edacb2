"""
FastAPI Application Entry Point
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.routes import api_router
from app.api.v1.endpoints import health
from app.core.config import get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan - startup and shutdown events.

    Startup:
    - Validates provider configuration
    - Builds the auto-call engine
    - Schedules the scheduler to start after a warm-up delay

    Shutdown:
    - Stops the scheduler and cancels outstanding outcome polls
    - Closes the calling provider client
    """
    # ========================
    # STARTUP
    # ========================
    logger.info("Starting Lead Auto-Dialer...")
    settings = get_settings()
    strict_validation = settings.environment == "production"

    try:
        from app.core.validation import validate_providers_on_startup
        validate_providers_on_startup(strict=strict_validation)
    except RuntimeError as e:
        if strict_validation:
            logger.error(f"Startup failed: {e}")
            raise
        logger.warning(f"Configuration warnings (non-fatal in {settings.environment}): {e}")

    app.state.auto_call = None
    auto_start_task = None
    try:
        from app.core.container import build_container
        app.state.auto_call = build_container(settings)
    except RuntimeError as e:
        if strict_validation:
            raise
        logger.warning(f"Auto-call engine not initialized: {e}")

    if app.state.auto_call is not None and settings.auto_call_enabled:
        auto_start_task = asyncio.create_task(
            app.state.auto_call.scheduler.auto_start(settings.auto_call_warmup_seconds)
        )
        logger.info(f"Auto-call scheduler will start in {settings.auto_call_warmup_seconds}s")

    logger.info("Lead Auto-Dialer started successfully")

    yield  # Application is running

    # ========================
    # SHUTDOWN
    # ========================
    logger.info("Shutting down Lead Auto-Dialer...")

    if auto_start_task is not None and not auto_start_task.done():
        auto_start_task.cancel()

    if app.state.auto_call is not None:
        try:
            await app.state.auto_call.shutdown()
        except Exception as e:
            logger.error(f"Error during shutdown: {e}")

    logger.info("Lead Auto-Dialer shutdown complete")


app = FastAPI(
    title="Lead Auto-Dialer",
    description="Automatic outbound calling of CRM leads through a voice-AI provider",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(api_router, prefix=get_settings().api_prefix)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
