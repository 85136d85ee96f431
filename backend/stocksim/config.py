"""
Configuration management for the simulator.

Handles loading, validating, and persisting application configuration.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from .models import AppConfig, ProviderOverride
from .providers.registry import DEFAULT_PROVIDER_CONFIGS

logger = logging.getLogger(__name__)


class ConfigManager:
    """
    Manages application configuration.

    Handles loading from disk, validation, and persistence.
    """

    DEFAULT_CONFIG_PATH = Path.home() / ".stocksim" / "config.json"

    def __init__(self, config_path: Path | None = None):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to config file (defaults to STOCKSIM_CONFIG_PATH,
                then ~/.stocksim/config.json)
        """
        self.config_path = config_path or self._env_config_path() or self.DEFAULT_CONFIG_PATH
        self._config: AppConfig | None = None

    @staticmethod
    def _env_config_path() -> Path | None:
        value = os.getenv("STOCKSIM_CONFIG_PATH", "").strip()
        if not value:
            return None
        return Path(os.path.expandvars(os.path.expanduser(value)))

    def get_config(self) -> AppConfig:
        """
        Get current configuration, loading from disk if needed.

        Returns:
            Current AppConfig
        """
        if self._config is None:
            self._config = self._load_config()
        return self._config

    def set_config(self, config: AppConfig) -> AppConfig:
        """
        Update configuration and persist to disk.

        Args:
            config: New configuration

        Returns:
            Updated configuration
        """
        self._config = config
        self._save_config(config)
        return config

    def update_provider_override(self, provider: str, override: ProviderOverride) -> AppConfig:
        config = self.get_config()
        overrides = dict(config.provider_overrides)
        overrides[provider] = override
        return self.set_config(config.model_copy(update={"provider_overrides": overrides}))

    def _load_config(self) -> AppConfig:
        """Load configuration from disk or return defaults."""
        if not self.config_path.exists():
            logger.info(f"Config file not found at {self.config_path}, using defaults")
            return self._default_config()

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            config = AppConfig(**data)
        except (OSError, ValueError, TypeError) as e:
            # ValidationError is a ValueError subclass.
            logger.error(f"Failed to load config from {self.config_path}: {e}")
            return self._default_config()

        errors = ConfigValidator.validate_app_config(config)
        if errors:
            logger.error(f"Invalid config at {self.config_path}: {'; '.join(errors)}")
            return self._default_config()
        return config

    def _save_config(self, config: AppConfig) -> None:
        """
        Save configuration to disk.

        Args:
            config: Configuration to save
        """
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, "w", encoding="utf-8") as f:
                json.dump(config.model_dump(), f, indent=2, ensure_ascii=False)
            logger.info(f"Saved config to {self.config_path}")
        except OSError as e:
            logger.error(f"Failed to save config to {self.config_path}: {e}")

    def _default_config(self) -> AppConfig:
        """Create default configuration."""
        return AppConfig()


class ConfigValidator:
    """
    Validates configuration values.

    Ensures configuration is within acceptable ranges and formats.
    """

    @staticmethod
    def validate_provider_override(name: str, override: ProviderOverride) -> list[str]:
        errors = []
        if name not in DEFAULT_PROVIDER_CONFIGS:
            errors.append(f"unknown provider: {name}")
        if (
            override.max_calls_per_minute is not None
            and override.max_calls_per_hour is not None
            and override.max_calls_per_minute > override.max_calls_per_hour
        ):
            errors.append("max_calls_per_minute cannot exceed max_calls_per_hour")
        return errors

    @staticmethod
    def validate_app_config(config: AppConfig) -> list[str]:
        """
        Validate complete application configuration.

        Args:
            config: Config to validate

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []

        if not config.provider_order:
            errors.append("provider_order cannot be empty")
        if len(set(config.provider_order)) != len(config.provider_order):
            errors.append("provider_order cannot contain duplicates")

        for name, override in config.provider_overrides.items():
            for error in ConfigValidator.validate_provider_override(name, override):
                errors.append(f"provider_overrides[{name}]: {error}")

        return errors


def create_config_manager(config_path: str | None = None) -> ConfigManager:
    """
    Factory function to create ConfigManager.

    Args:
        config_path: Optional path to config file

    Returns:
        ConfigManager instance
    """
    path = Path(config_path) if config_path else None
    return ConfigManager(config_path=path)


def load_config(config_path: str | None = None) -> AppConfig:
    return create_config_manager(config_path).get_config()
