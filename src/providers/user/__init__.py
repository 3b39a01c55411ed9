"""User, preference and profile persistence providers."""
