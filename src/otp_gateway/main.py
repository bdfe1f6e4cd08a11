"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from otp_gateway.api.router import router as otp_router
from otp_gateway.config import Settings, settings
from otp_gateway.core.manager import ChallengeManager
from otp_gateway.notifiers.dispatcher import NotifierDispatcher, build_dispatcher
from otp_gateway.store.base import ChallengeStore
from otp_gateway.store.factory import build_store

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)

logger = logging.getLogger(__name__)


def create_app(
    app_settings: Settings = settings,
    *,
    store: ChallengeStore | None = None,
    dispatcher: NotifierDispatcher | None = None,
) -> FastAPI:
    """Build the application; *store* and *dispatcher* override configuration."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup / shutdown lifecycle hook."""
        logger.info("Starting %s …", app_settings.app_name)
        challenge_store = store or build_store(app_settings)
        await challenge_store.initialize()
        app.state.settings = app_settings
        app.state.manager = ChallengeManager.from_settings(challenge_store, app_settings)
        app.state.dispatcher = dispatcher or build_dispatcher(app_settings)
        if app_settings.otp_echo_code:
            logger.warning("OTP_ECHO_CODE is enabled, codes are returned in API responses")
        logger.info("Challenge store %s ready", challenge_store.name)
        yield
        logger.info("Shutting down %s …", app_settings.app_name)
        await challenge_store.close()

    app = FastAPI(
        title=app_settings.app_name,
        description="One-time passcode issuance and verification over email and SMS",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.include_router(otp_router)

    @app.get("/health")
    async def health_check():
        """Simple liveness check."""
        return {
            "status": "healthy",
            "app": app_settings.app_name,
            "store": app.state.manager.store.name,
        }

    return app


app = create_app()
