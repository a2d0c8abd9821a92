"""FastAPI application factory for the ipn-ledger service."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ipn_ledger import __version__
from ipn_ledger.api import router
from ipn_ledger.ipn_client import IPNClient
from ipn_ledger.ledger_store import LedgerStore, StoreUnavailableError
from ipn_ledger.settings import Settings
from ipn_ledger.vaults import FileVault

logger = logging.getLogger(__name__)


async def store_unavailable_handler(
    request: Request,
    exc: StoreUnavailableError,
) -> JSONResponse:
    # A non-200 on the IPN route makes PayPal redeliver, which is the
    # recovery path for a notification that was not durably recorded.
    logger.error("StoreUnavailableError on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "detail": "Donation ledger is unavailable.",
            "error_type": exc.__class__.__name__,
        },
    )


def create_app(
    settings: Settings | None = None,
    *,
    store: LedgerStore | None = None,
    ipn_client: IPNClient | None = None,
) -> FastAPI:
    """Build the app. ``store``/``ipn_client`` override the configured ones."""
    settings = settings or Settings()
    config = settings.to_config()
    owns_client = ipn_client is None

    if store is None:
        store = LedgerStore(
            FileVault(config.ledger_path),
            commit_retries=config.commit_retries,
            commit_retry_delay=config.commit_retry_delay,
        )
    if ipn_client is None:
        ipn_client = IPNClient(sandbox=config.sandbox, timeout=config.verify_timeout_secs)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            await store.load()
            logger.info(
                "Donations server ready (%s IPN, currency %s, ledger %s).",
                "sandbox" if config.sandbox else "live",
                config.accepted_currency, config.ledger_path,
            )
            yield
        finally:
            if owns_client:
                await ipn_client.close()

    app = FastAPI(
        title="IPN Donation Ledger",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.store = store
    app.state.ipn_client = ipn_client

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET"],
        allow_headers=["*"],
    )
    app.add_exception_handler(StoreUnavailableError, store_unavailable_handler)
    app.include_router(router, prefix="/api", tags=["donations"])
    return app
