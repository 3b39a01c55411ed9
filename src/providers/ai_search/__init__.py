"""AI search providers."""

from src.providers.ai_search.perplexity_provider import PerplexitySearchProvider

__all__ = ["PerplexitySearchProvider"]
