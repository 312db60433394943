"""
main.py
-------
FastAPI application factory and entry point.

Application lifecycle:
  1. App is created by create_application().
  2. lifespan builds the engine, the StoreGateway and the reconciliation
     coordinator once, stores them on app.state, and starts the scheduler.
  3. Routers are registered with their URL prefixes.
  4. Exception handlers map the store error taxonomy to HTTP statuses.

Run with:
    uvicorn main:app --reload              # development
    uvicorn main:app --workers 1           # production; more workers means
                                           # one scheduler per worker
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from placas.api.routes import assets, auth, billing_periods, contracts, reconciliation, tenants
from placas.core.config import settings
from placas.core.exceptions import Conflict, NotFound, StoreError, StoreUnavailable
from placas.core.logging import configure_logging, get_logger
from placas.db.gateway import StoreGateway
from placas.db.session import build_session_factory, create_engine_from_settings
from placas.services.reconciliation import ReconciliationCoordinator
from placas.services.scheduler import ReconciliationScheduler

logger = get_logger(__name__)


def _lifespan(gateway: Optional[StoreGateway]):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator:
        """
        Startup:
          - Configure structured logging
          - Build the gateway (unless one was injected) and the coordinator
          - Start the cron scheduler when SCHEDULER_ENABLED

        Shutdown:
          - Stop the scheduler and ask a running reconciliation to wind down
          - Dispose the async engine (graceful connection pool drain)
        """
        configure_logging()
        logger.info(
            "Starting up",
            app=settings.APP_NAME,
            env=settings.APP_ENV,
            debug=settings.DEBUG,
        )

        engine = None
        if gateway is None:
            engine = create_engine_from_settings(settings)
            app.state.gateway = StoreGateway(build_session_factory(engine))
        else:
            app.state.gateway = gateway

        app.state.coordinator = ReconciliationCoordinator.from_gateway(
            app.state.gateway, settings
        )

        scheduler = None
        if settings.SCHEDULER_ENABLED:
            scheduler = ReconciliationScheduler(
                app.state.coordinator,
                reconcile_cron=settings.RECONCILE_CRON,
                backup_cron=settings.BACKUP_CRON,
                timezone=settings.SCHEDULER_TIMEZONE,
            )
            scheduler.start()

        yield

        if scheduler is not None:
            scheduler.shutdown()
        else:
            app.state.coordinator.request_stop()
        if engine is not None:
            logger.info("Shutting down, disposing DB engine")
            await engine.dispose()

    return lifespan


def create_application(gateway: Optional[StoreGateway] = None) -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Multi-tenant backend for outdoor advertising assets, rental "
            "contracts and billing periods, with scheduled status reconciliation."
        ),
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=_lifespan(gateway),
    )

    # ── CORS ─────────────────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Routers ───────────────────────────────────────────────────────────────
    app.include_router(auth.router)
    app.include_router(tenants.router)
    app.include_router(assets.router)
    app.include_router(contracts.router)
    app.include_router(billing_periods.router)
    app.include_router(reconciliation.router)

    # ── Exception Handlers ────────────────────────────────────────────────────

    @app.exception_handler(NotFound)
    async def not_found_handler(request: Request, exc: NotFound) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"detail": f"{exc.entity} not found"},
        )

    @app.exception_handler(Conflict)
    async def conflict_handler(request: Request, exc: Conflict) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"detail": str(exc)},
        )

    @app.exception_handler(StoreUnavailable)
    async def unavailable_handler(request: Request, exc: StoreUnavailable) -> JSONResponse:
        logger.error("Store unavailable", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "Database temporarily unavailable"},
        )

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
        logger.error("Store error", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )

    # ── Health Check ──────────────────────────────────────────────────────────

    @app.get("/health", tags=["Health"], summary="Service health check")
    async def health() -> dict:
        return {"status": "ok", "app": settings.APP_NAME, "env": settings.APP_ENV}

    return app


app = create_application()
