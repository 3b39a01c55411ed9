"""Build the runtime configuration dictionary.

``config/config.yaml`` supplies the checked-in defaults, including the
discovery limits that ``DiscoveryLimits.from_config`` reads. Values from
``Settings`` (``.env`` and process environment) are merged over it, so a
deploy can change a model name or batch size without editing YAML.
"""

from pathlib import Path

import yaml

from src.config.settings import Settings


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Return the YAML file at *path* with *settings* values layered on top.

    A missing file is treated as empty. When *settings* is omitted a fresh
    ``Settings()`` is read from the environment.
    """
    yaml_config: dict = {}
    source = Path(path)
    if source.is_file():
        with source.open(encoding="utf-8") as fh:
            yaml_config = yaml.safe_load(fh) or {}

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "discovery": {
            "model": settings.discovery_model,
            "source_model": settings.source_discovery_model,
            "timeout_seconds": settings.discovery_timeout_seconds,
            "source_concurrency": settings.source_discovery_concurrency,
        },
        "newsletter": {
            "limit_per_user": settings.newsletter_limit_per_user,
            "batch_size": settings.weekly_batch_size,
            "batch_delay_seconds": settings.weekly_batch_delay_seconds,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Merge *overrides* into *base* in place; nested dicts merge key by key."""
    for key, value in overrides.items():
        current = base.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            _deep_merge(current, value)
            continue
        base[key] = value
