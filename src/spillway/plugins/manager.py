# src/spillway/plugins/manager.py
"""Plugin manager for discovery, registration, and instantiation.

Uses pluggy for hook-based plugin registration.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import pluggy

from spillway.plugins.hookspecs import (
    PROJECT_NAME,
    SpillwayPublisherSpec,
    SpillwaySourceSpec,
    hookimpl,
)
from spillway.plugins.protocols import PublisherProtocol, RowSourceProtocol

if TYPE_CHECKING:
    from spillway.core.config import SpillwaySettings


class BuiltinSources:
    """Hook implementation registering the built-in row sources."""

    @hookimpl
    def spillway_get_sources(self) -> list[type[RowSourceProtocol]]:
        from spillway.plugins.sources import DuckDBRowSource, ParquetRowSource

        return [ParquetRowSource, DuckDBRowSource]


class BuiltinPublishers:
    """Hook implementation registering the built-in publishers."""

    @hookimpl
    def spillway_get_publishers(self) -> list[type[PublisherProtocol]]:
        from spillway.plugins.aws import SqsPublisher
        from spillway.plugins.publishers import JsonlPublisher, NullPublisher

        return [SqsPublisher, JsonlPublisher, NullPublisher]


@dataclass(frozen=True)
class PluginInstances:
    """The configured source and publisher for one run."""

    source: RowSourceProtocol
    publisher: PublisherProtocol


class PluginManager:
    """Manages plugin discovery, registration, and lookup.

    Usage:
        manager = PluginManager()
        manager.register_builtin_plugins()

        source_cls = manager.get_source_by_name("parquet")
        plugins = manager.instantiate_plugins(settings)
    """

    def __init__(self) -> None:
        self._pm = pluggy.PluginManager(PROJECT_NAME)

        self._pm.add_hookspecs(SpillwaySourceSpec)
        self._pm.add_hookspecs(SpillwayPublisherSpec)

        # Caches - map name to plugin class for duplicate detection
        self._sources: dict[str, type[RowSourceProtocol]] = {}
        self._publishers: dict[str, type[PublisherProtocol]] = {}

    def register_builtin_plugins(self) -> None:
        """Register the built-in sources and publishers.

        Call this once at startup.
        """
        self.register(BuiltinSources())
        self.register(BuiltinPublishers())

    def register(self, plugin: Any) -> None:
        """Register a plugin.

        Args:
            plugin: Plugin instance implementing hook methods

        Raises:
            ValueError: If a plugin name is already registered
        """
        self._pm.register(plugin)
        try:
            self._refresh_caches()
        except ValueError:
            self._pm.unregister(plugin)
            raise

    def _refresh_caches(self) -> None:
        """Refresh plugin caches from hooks.

        Raises:
            ValueError: If a plugin with the same name and type is already registered
        """
        new_sources: dict[str, type[RowSourceProtocol]] = {}
        new_publishers: dict[str, type[PublisherProtocol]] = {}

        for sources in self._pm.hook.spillway_get_sources():
            for cls in sources:
                name = cls.name
                if name in new_sources:
                    raise ValueError(f"Duplicate source plugin name: '{name}'. Already registered by {new_sources[name].__name__}")
                new_sources[name] = cls

        for publishers in self._pm.hook.spillway_get_publishers():
            for cls in publishers:
                name = cls.name
                if name in new_publishers:
                    raise ValueError(f"Duplicate publisher plugin name: '{name}'. Already registered by {new_publishers[name].__name__}")
                new_publishers[name] = cls

        # All validated, update caches
        self._sources = new_sources
        self._publishers = new_publishers

    # === Getters ===

    def get_sources(self) -> list[type[RowSourceProtocol]]:
        """Get all registered source plugins."""
        return list(self._sources.values())

    def get_publishers(self) -> list[type[PublisherProtocol]]:
        """Get all registered publisher plugins."""
        return list(self._publishers.values())

    # === Lookup by name ===

    def get_source_by_name(self, name: str) -> type[RowSourceProtocol] | None:
        """Get source plugin by name."""
        return self._sources.get(name)

    def get_publisher_by_name(self, name: str) -> type[PublisherProtocol] | None:
        """Get publisher plugin by name."""
        return self._publishers.get(name)

    # === Instantiation ===

    def instantiate_plugins(self, settings: SpillwaySettings) -> PluginInstances:
        """Build the source and publisher named in settings.

        Publishers that declare ``requires_aws`` receive the region, profile
        and SQS endpoint from the ``aws`` section unless their own options
        set them.

        Raises:
            ValueError: If a configured plugin name is not registered
            PluginConfigError: If a plugin rejects its options
        """
        source_cls = self.get_source_by_name(settings.source.plugin)
        if source_cls is None:
            raise ValueError(f"Unknown source plugin: '{settings.source.plugin}'. Available: {sorted(self._sources)}")
        publisher_cls = self.get_publisher_by_name(settings.publisher.plugin)
        if publisher_cls is None:
            raise ValueError(f"Unknown publisher plugin: '{settings.publisher.plugin}'. Available: {sorted(self._publishers)}")

        publisher_options = dict(settings.publisher.options)
        if publisher_cls.requires_aws:
            aws_defaults = {
                "region": settings.aws.region,
                "profile": settings.aws.profile,
                "endpoint_url": settings.aws.sqs_endpoint_override,
            }
            for key, value in aws_defaults.items():
                if value is not None:
                    publisher_options.setdefault(key, value)

        return PluginInstances(
            source=source_cls(dict(settings.source.options)),
            publisher=publisher_cls(publisher_options),
        )
