"""
Configuration loader for serving profiles and environment variables.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from ..errors import ConfigurationError
from ..spatial.tiles import TIE_BREAK_POLICIES


class ServingConfig(BaseModel):
    """Validated serving profile."""

    model_path: Optional[str] = None
    layers: int = Field(0, ge=0, le=10)
    tie_break: str = "first"
    log_level: str = "INFO"
    tile_cache_size: int = Field(32, ge=1)
    tile_cache_ttl_sec: int = Field(3600, ge=1)
    max_workers: int = Field(1, ge=1)

    model_config = {"protected_namespaces": ()}

    @field_validator("tie_break")
    @classmethod
    def _validate_tie_break(cls, value: str) -> str:
        if value not in TIE_BREAK_POLICIES:
            raise ValueError(f"tie_break must be one of {', '.join(TIE_BREAK_POLICIES)}")
        return value

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level '{value}'")
        return level


class ConfigLoader:
    """Load and manage configuration from YAML files and environment."""

    CONFIG_DIR = Path(__file__).parent.parent.parent / "configs"
    DEFAULT_PROFILE = "default"

    @classmethod
    def load_profile(cls, profile_name: str = DEFAULT_PROFILE) -> Dict[str, Any]:
        """
        Load a serving profile.

        Args:
            profile_name: Name of the profile (file stem under ``configs/``)

        Returns:
            Dictionary with configuration values

        Raises:
            FileNotFoundError: If profile doesn't exist
        """
        profile_path = cls.CONFIG_DIR / f"{profile_name}.yaml"

        if not profile_path.exists():
            available = sorted(f.stem for f in cls.CONFIG_DIR.glob("*.yaml"))
            raise FileNotFoundError(
                f"Profile '{profile_name}' not found. Available profiles: {', '.join(available)}"
            )

        with open(profile_path, "r") as f:
            return yaml.safe_load(f) or {}

    @classmethod
    def get_profile_from_env(cls) -> Optional[str]:
        """Get profile name from GEOSCAN_PROFILE environment variable."""
        return os.getenv("GEOSCAN_PROFILE")

    @classmethod
    def load_default_or_env_profile(cls) -> Dict[str, Any]:
        """Load the profile named in the environment, or the default one."""
        profile = cls.get_profile_from_env() or cls.DEFAULT_PROFILE
        return cls.load_profile(profile)

    @classmethod
    def serving_config(cls, profile_name: Optional[str] = None) -> ServingConfig:
        """
        Validated serving configuration.

        ``GEOSCAN_MODEL_PATH`` overrides the profile's ``model_path``.

        Raises:
            ConfigurationError: If the profile holds invalid values
        """
        if profile_name:
            data = cls.load_profile(profile_name)
        else:
            data = cls.load_default_or_env_profile()

        model_path = os.getenv("GEOSCAN_MODEL_PATH")
        if model_path:
            data = {**data, "model_path": model_path}

        try:
            return ServingConfig(**data)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid serving profile: {exc}") from exc


def get_config() -> ServingConfig:
    """Convenience function to get current configuration."""
    return ConfigLoader.serving_config()
