"""Exclusion rule ("hate") persistence providers."""
