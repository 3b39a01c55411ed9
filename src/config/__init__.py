"""Configuration module - exports Settings, DiscoveryLimits, load_config, and a module-level singleton."""

from src.config.limits import DiscoveryLimits
from src.config.loader import load_config
from src.config.settings import Settings

settings = Settings()

__all__ = ["DiscoveryLimits", "Settings", "load_config", "settings"]
