"""User-supplied event source persistence providers."""
