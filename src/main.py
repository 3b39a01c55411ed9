"""Event digest FastAPI application entry point.

Builds the SQLite stores, the Perplexity and Resend providers, and the
services on top of them, then hangs them on ``app.state`` for the route
dependencies to pick up.

Also exposes ``build_components`` / ``initialize_stores`` so the CLI can
run the same wiring outside the web server.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import router as api_router
from src.config.limits import DiscoveryLimits
from src.config.loader import load_config
from src.config.settings import Settings
from src.pipeline.orchestrator import EventDiscoveryPipeline
from src.providers.ai_search.perplexity_provider import PerplexitySearchProvider
from src.providers.email.resend_provider import ResendEmailProvider
from src.providers.event.sqlite_event_store import SQLiteEventStore
from src.providers.event_source.sqlite_event_source_store import SQLiteEventSourceStore
from src.providers.exclusion.sqlite_exclusion_store import SQLiteExclusionStore
from src.providers.newsletter.sqlite_newsletter_store import SQLiteNewsletterStore
from src.providers.user.sqlite_user_store import SQLiteUserStore
from src.services.event_discovery import EventDiscoveryClient
from src.services.event_persistence import EventPersistenceService
from src.services.exclusion_service import ExclusionService
from src.services.newsletter_service import NewsletterService
from src.services.profile_service import ProfileService
from src.utils.logging import configure_logging, get_logger

APP_VERSION = "0.1.0"

settings = Settings()
config = load_config(settings=settings)

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Component wiring
# ---------------------------------------------------------------------------


def build_components(
    app_settings: Settings, app_config: dict[str, Any] | None = None
) -> dict[str, Any]:
    """Instantiate providers, stores and services from *app_settings*.

    The result is keyed by the attribute names the API dependencies read
    from ``app.state``.
    Stores still need :func:`initialize_stores` before first use.
    """
    app_config = app_config if app_config is not None else load_config(settings=app_settings)
    limits = DiscoveryLimits.from_config(app_config)
    discovery_cfg = app_config.get("discovery", {})
    newsletter_cfg = app_config.get("newsletter", {})

    # -- Shared resources --
    http_client = httpx.AsyncClient(timeout=30.0)

    # -- Providers --
    search_provider = PerplexitySearchProvider(settings=app_settings)
    email_provider = ResendEmailProvider(settings=app_settings, http_client=http_client)

    db_path = app_settings.database_path
    event_store = SQLiteEventStore(db_path=db_path)
    user_store = SQLiteUserStore(db_path=db_path)
    exclusion_store = SQLiteExclusionStore(db_path=db_path)
    source_store = SQLiteEventSourceStore(db_path=db_path)
    newsletter_store = SQLiteNewsletterStore(db_path=db_path)

    # -- Services --
    profile_service = ProfileService(
        user_store=user_store,
        source_store=source_store,
        search_provider=search_provider,
        profile_model=app_settings.profile_model,
    )
    exclusion_service = ExclusionService(exclusion_store=exclusion_store)
    discovery_client = EventDiscoveryClient(
        search_provider=search_provider,
        limits=limits,
        city_model=discovery_cfg.get("model", app_settings.discovery_model),
        source_model=discovery_cfg.get("source_model", app_settings.source_discovery_model),
    )
    persistence_service = EventPersistenceService(event_store=event_store, limits=limits)

    pipeline = EventDiscoveryPipeline(
        user_store=user_store,
        exclusion_store=exclusion_store,
        profile_service=profile_service,
        discovery_client=discovery_client,
        persistence_service=persistence_service,
        limits=limits,
        source_concurrency=int(
            discovery_cfg.get("source_concurrency", app_settings.source_discovery_concurrency)
        ),
    )
    newsletter_service = NewsletterService(
        user_store=user_store,
        newsletter_store=newsletter_store,
        email_provider=email_provider,
        pipeline=pipeline,
        frontend_url=app_settings.frontend_url,
        limit_per_user=int(
            newsletter_cfg.get("limit_per_user", app_settings.newsletter_limit_per_user)
        ),
    )

    provider_registry: dict[str, Any] = {
        "ai_search": search_provider.is_available(),
        "email": email_provider.is_available(),
        "database": True,
    }

    return {
        "http_client": http_client,
        "limits": limits,
        "event_store": event_store,
        "user_store": user_store,
        "exclusion_store": exclusion_store,
        "source_store": source_store,
        "newsletter_store": newsletter_store,
        "profile_service": profile_service,
        "exclusion_service": exclusion_service,
        "pipeline": pipeline,
        "newsletter_service": newsletter_service,
        "provider_registry": provider_registry,
        "weekly_batch_size": int(
            newsletter_cfg.get("batch_size", app_settings.weekly_batch_size)
        ),
        "weekly_batch_delay_seconds": float(
            newsletter_cfg.get("batch_delay_seconds", app_settings.weekly_batch_delay_seconds)
        ),
    }


async def initialize_stores(components: dict[str, Any]) -> None:
    """Create tables.  The event table goes first; newsletters reference it."""
    for key in ("event_store", "user_store", "exclusion_store", "source_store", "newsletter_store"):
        await components[key].initialize()


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Create the tables and publish components; close the HTTP client on exit."""
    components = build_components(settings, config)
    await initialize_stores(components)

    for key, value in components.items():
        setattr(application.state, key, value)

    _logger.info(
        "app_startup",
        version=APP_VERSION,
        environment=settings.app_env,
        database=settings.database_path,
        providers=components["provider_registry"],
    )

    yield

    await components["http_client"].aclose()
    _logger.info("app_shutdown")


def create_app(lifespan: Any = _lifespan) -> FastAPI:
    """Return the API application; tests pass their own *lifespan*."""
    application = FastAPI(
        title="Event Digest API",
        version=APP_VERSION,
        description=(
            "Discover upcoming local events that match a user's preferences, "
            "rank them, and deliver them as a weekly email newsletter."
        ),
        lifespan=lifespan,
    )

    # Logging is added last so it wraps error handling.
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application, allowed_origins=[settings.frontend_url])

    # -- API routes --
    application.include_router(api_router)

    return application


app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
