"""Spillway plugin system: protocols, hook specs and the plugin manager.

Row sources read local columnar files; publishers send batches of records
to a downstream queue. Built-ins are registered with
PluginManager.register_builtin_plugins(); third-party plugins implement the
hooks in spillway.plugins.hookspecs.
"""

from spillway.plugins.config_base import PluginConfig, PluginConfigError
from spillway.plugins.hookspecs import hookimpl
from spillway.plugins.manager import PluginInstances, PluginManager
from spillway.plugins.protocols import PublisherProtocol, RowSourceHandle, RowSourceProtocol

__all__ = [
    "PluginConfig",
    "PluginConfigError",
    "PluginInstances",
    "PluginManager",
    "PublisherProtocol",
    "RowSourceHandle",
    "RowSourceProtocol",
    "hookimpl",
]
