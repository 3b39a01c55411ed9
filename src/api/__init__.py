"""Event digest API layer: routes, schemas, and middleware."""

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import router
from src.api.schemas import (
    DiscoverResponse,
    ErrorResponse,
    GenerateNewsletterResponse,
    HealthResponse,
    NewsletterResponse,
    UserResponse,
)

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "router",
    "DiscoverResponse",
    "ErrorResponse",
    "GenerateNewsletterResponse",
    "HealthResponse",
    "NewsletterResponse",
    "UserResponse",
]
