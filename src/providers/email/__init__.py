"""Outbound email delivery providers."""
