import asyncio
import logging
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from offramp import __version__
from offramp.core.container import get_container
from offramp.infrastructure.database.session import dispose_engine, get_session_factory, init_db
from offramp.interfaces.http import create_api_router
from offramp.interfaces.http.routers import health as health_router
from offramp.modules.reconciliation.sweeps import SweepRunner

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    container = get_container()
    settings = container.settings
    if settings.environment in {"development", "test"}:
        await init_db()
    logger.info(
        "Off-ramp service started (%s) with providers: %s",
        settings.environment,
        ", ".join(name.value for name in container.providers.names()) or "none",
    )

    sweeps: asyncio.Task | None = None
    if settings.reconciliation.sweeps_enabled:
        runner = SweepRunner(get_session_factory(), container.providers, settings.reconciliation)
        sweeps = asyncio.create_task(runner.run_forever(), name="offramp-sweeps")

    yield

    if sweeps is not None:
        sweeps.cancel()
        with suppress(asyncio.CancelledError):
            await sweeps
    await container.shutdown()
    await dispose_engine()


def create_app() -> FastAPI:
    settings = get_container().settings
    logging.basicConfig(
        level=getattr(logging, settings.logging.level.upper(), logging.INFO),
        format=settings.logging.format,
    )

    app = FastAPI(
        title=settings.project_name,
        description="Stablecoin to mobile-money off-ramp settlement service",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(create_api_router(settings.api_prefix))
    app.include_router(health_router.router, tags=["health"])

    return app


app = create_app()
