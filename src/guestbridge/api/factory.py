"""FastAPI application factory.

The entry point builds Settings and one Database handle and hangs them on
app.state; routes reach them through guestbridge.api.deps.  Tests pass
their own handles and factories instead.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Callable

from fastapi import FastAPI, Request, Response

from guestbridge.classification.anthropic_classifier import AnthropicClassifier, TextClassifier
from guestbridge.config import Settings
from guestbridge.domain.opera_sync import FetcherFactory
from guestbridge.infra.db import Database
from guestbridge.mail.gmail_fetcher import gmail_fetcher_factory
from guestbridge.observability.correlation import (
    CORRELATION_ID_HEADER,
    generate_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)

from .routers import public
from .routes import guest_import, opera_sync, vendor_import, vendor_normalization


def create_app(
    settings: Settings | None = None,
    *,
    db: Database | None = None,
    classifier_factory: Callable[[], TextClassifier] | None = None,
    fetcher_factory: FetcherFactory | None = None,
) -> FastAPI:
    """Create the FastAPI app.

    Args:
        settings: Explicit settings. If None, read from the environment.
        db: Database handle. If None, one is opened at startup and closed
            at shutdown.
        classifier_factory: Builds the vendor grouping classifier per call.
        fetcher_factory: Builds the mailbox fetcher per sync run.

    Returns:
        Configured FastAPI application.
    """
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.db is None
        if owned:
            app.state.db = Database(settings)
        try:
            yield
        finally:
            if owned:
                app.state.db.close()
                app.state.db = None

    app = FastAPI(
        title="Guestbridge",
        docs_url=None,
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.db = db
    app.state.classifier_factory = classifier_factory or (
        lambda: AnthropicClassifier.from_settings(settings)
    )
    app.state.fetcher_factory = fetcher_factory or gmail_fetcher_factory(settings)

    # Correlation ID middleware
    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        cid = request.headers.get(CORRELATION_ID_HEADER) or generate_correlation_id()
        token = set_correlation_id(cid)
        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = cid
            return response
        finally:
            reset_correlation_id(token)

    app.include_router(public.router)
    app.include_router(guest_import.router)
    app.include_router(vendor_import.router)
    app.include_router(opera_sync.router)
    app.include_router(vendor_normalization.router)

    return app
