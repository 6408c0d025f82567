# src/spillway/plugins/config_base.py
"""Base class for typed plugin configurations.

Plugins validate their ``options`` dict through a PluginConfig subclass:

    class JsonlPublisherConfig(PluginConfig):
        path: Path

    cfg = JsonlPublisherConfig.from_dict(config)
"""

from typing import Any, Self

from pydantic import BaseModel, ValidationError


class PluginConfigError(Exception):
    """Raised when plugin configuration is invalid."""


class PluginConfig(BaseModel):
    """Base class for typed plugin configurations.

    Unknown fields are rejected so a typo in a settings file fails at
    startup instead of being silently ignored.
    """

    model_config = {"extra": "forbid", "frozen": True}

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> Self:
        """Create config from dict with clear error on validation failure.

        Raises:
            PluginConfigError: If configuration is invalid.
        """
        if not isinstance(config, dict):
            raise PluginConfigError(f"Invalid configuration for {cls.__name__}: config must be a dict, got {type(config).__name__}.")
        try:
            return cls.model_validate(config)
        except (ValidationError, ValueError) as e:
            raise PluginConfigError(f"Invalid configuration for {cls.__name__}: {e}") from e
