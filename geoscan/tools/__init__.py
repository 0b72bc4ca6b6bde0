"""Configuration helpers."""

from .config_loader import ConfigLoader, ServingConfig, get_config

__all__ = [
    "ConfigLoader",
    "ServingConfig",
    "get_config",
]
