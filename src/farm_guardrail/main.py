"""FastAPI application entry point for Farm Guardrail."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from farm_guardrail import __version__
from farm_guardrail.api.routes import get_controller, get_sweeper, router
from farm_guardrail.config import get_settings

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    settings = get_settings()
    logger.info(f"Starting Farm Guardrail v{__version__}")

    controller = get_controller()
    check = controller.check_connection()
    if check.valid:
        logger.info(f"Webhook actuator: {check.message}")
    else:
        logger.warning(f"Webhook actuator not usable: {check.message}")
    if controller.config.simulation_mode:
        logger.info("Simulation mode enabled - no webhook will be fired")

    sweeper = None
    if settings.sweeper_enabled:
        sweeper = get_sweeper()
        sweeper.start()
    else:
        logger.info("Expiry sweeper disabled (set SWEEPER_ENABLED=true to enable)")

    yield

    if sweeper is not None:
        await sweeper.stop()

    logger.info("Shutting down Farm Guardrail")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Farm Guardrail",
        description="Approval-gated webhook actuator for farm automations",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )

    # CORS middleware for the dashboard UI
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)

    return app


# Create app instance for uvicorn
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "farm_guardrail.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
