"""Public interface definitions for all external collaborators.

Every external API and storage backend used by the event digest service is
accessed exclusively through the abstract base classes defined in this
package.  Concrete adapters implement these interfaces and are injected at
runtime.

ADAPTER PATTERN EXPLAINED (for junior developers):
    Instead of calling ``AsyncOpenAI(...).chat.completions.create(...)``
    inside the discovery service, the service calls
    ``search_provider.complete(...)`` where ``search_provider`` is any object
    implementing ``IAISearchProvider``.  Unit tests inject an ``AsyncMock``
    and exercise every pipeline stage without network access.

    The concrete providers live in ``src/providers/`` and are wired in
    ``src/main.py`` during application startup.

CONCRETE PROVIDER MAP:
    Interface                  →  Concrete implementations (in src/providers/)
    ─────────────────────────────────────────────────────────────────────
    IAISearchProvider          →  PerplexitySearchProvider
    IEventStore                →  SQLiteEventStore
    IExclusionStore            →  SQLiteExclusionStore
    IEventSourceStore          →  SQLiteEventSourceStore
    IUserStore                 →  SQLiteUserStore
    INewsletterStore           →  SQLiteNewsletterStore
    IEmailProvider             →  ResendEmailProvider
"""

from src.interfaces.ai_search_provider import IAISearchProvider
from src.interfaces.email_provider import IEmailProvider
from src.interfaces.event_source_store import IEventSourceStore
from src.interfaces.event_store import IEventStore
from src.interfaces.exclusion_store import IExclusionStore
from src.interfaces.newsletter_store import INewsletterStore
from src.interfaces.user_store import IUserStore

__all__ = [
    "IAISearchProvider",
    "IEmailProvider",
    "IEventSourceStore",
    "IEventStore",
    "IExclusionStore",
    "INewsletterStore",
    "IUserStore",
]
