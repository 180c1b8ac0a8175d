"""
KUVote — REST API.

FastAPI server acting as the vote-submission and query collaborator of
the ledger. Main entry point for initialization and routing.
"""

import logging
from contextlib import asynccontextmanager
from typing import Callable

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from kuvote import __version__, config
from kuvote.exceptions import ChainIntegrityError, KuvoteError, PersistenceError
from kuvote.models import HealthResponse
from kuvote.routes import ledger as ledger_router
from kuvote.routes import votes as votes_router
from kuvote.service import LedgerService

logger = logging.getLogger("uvicorn.error")


def create_app(service_factory: Callable[[], LedgerService] | None = None) -> FastAPI:
    """
    Build the API app.

    Args:
        service_factory: Builds the ledger service at startup. Defaults to
            ``LedgerService.from_config``, so configuration is read when
            the app starts, not when it is created.
    """
    factory = service_factory or LedgerService.from_config

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Load the chain on startup, stop mining and close the store on shutdown."""
        service = factory()
        await service.open()
        app.state.service = service
        logger.info("KUVote ledger ready (%d blocks, degraded=%s)", len(service.ledger), service.degraded)
        try:
            yield
        finally:
            await service.close()

    app = FastAPI(
        title="KUVote — Vote Ledger API",
        description="Tamper-evident vote ledger: submit votes, tally, "
        "duplicate checks and integrity verification.",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )

    # ─── Exception Handlers ──────────────────────────────────────────

    @app.exception_handler(ChainIntegrityError)
    async def integrity_error_handler(request: Request, exc: ChainIntegrityError) -> JSONResponse:
        logger.error("Chain integrity error at block #%s: %s", exc.index, exc)
        return JSONResponse(status_code=409, content={"detail": "Chain corrupted", "index": exc.index})

    @app.exception_handler(PersistenceError)
    async def persistence_error_handler(request: Request, exc: PersistenceError) -> JSONResponse:
        logger.error("Persistence error: %s", exc)
        return JSONResponse(status_code=503, content={"detail": "Chain store unavailable"})

    @app.exception_handler(KuvoteError)
    async def kuvote_error_handler(request: Request, exc: KuvoteError) -> JSONResponse:
        logger.error("Unhandled ledger error: %s", exc, exc_info=True)
        return JSONResponse(status_code=500, content={"detail": "An unexpected ledger error occurred."})

    # ─── Routes ──────────────────────────────────────────────────────

    @app.get("/health", response_model=HealthResponse, tags=["health"])
    async def health_check(request: Request) -> HealthResponse:
        """Simple status check for load balancers."""
        service: LedgerService = request.app.state.service
        return HealthResponse(
            status="degraded" if service.degraded else "ok",
            version=__version__,
            blocks=len(service.ledger),
            degraded=service.degraded,
        )

    app.include_router(votes_router.router)
    app.include_router(ledger_router.router)

    return app
