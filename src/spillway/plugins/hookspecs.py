# src/spillway/plugins/hookspecs.py
"""pluggy hook specifications for Spillway plugins.

Plugins implement these hooks to register themselves with the framework.
The plugin manager calls these hooks during discovery.

Usage (implementing a plugin):
    from spillway.plugins.hookspecs import hookimpl

    class MyPlugin:
        @hookimpl  # NOT @hookspec - that's for defining specs
        def spillway_get_publishers(self):
            return [MyPublisher]
"""

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from spillway.plugins.protocols import PublisherProtocol, RowSourceProtocol

PROJECT_NAME = "spillway"

hookspec = pluggy.HookspecMarker(PROJECT_NAME)

hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


class SpillwaySourceSpec:
    """Hook specifications for row source plugins."""

    @hookspec
    def spillway_get_sources(self) -> list[type["RowSourceProtocol"]]:  # type: ignore[empty-body]
        """Return row source plugin classes (not instances)."""


class SpillwayPublisherSpec:
    """Hook specifications for publisher plugins."""

    @hookspec
    def spillway_get_publishers(self) -> list[type["PublisherProtocol"]]:  # type: ignore[empty-body]
        """Return publisher plugin classes (not instances)."""
