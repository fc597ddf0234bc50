"""hotplug: lazy, extension-dispatched resource registry.

Roots are scanned for resources without loading them.  A resource is
loaded on ``plug_in`` by the handler registered for its type tag (its
file extension, or ``""`` for directories) and evicted with ``plug_out``.
"""
from hotplug.errors import ConfigurationError, HotplugError, ListingError, LoadError
from hotplug.fs import FileSystem, LocalFileSystem
from hotplug.handlers import (
    HandlerTable,
    JsonLoader,
    ModuleLoader,
    YamlLoader,
    load_module,
    passthrough,
)
from hotplug.registry import (
    NOT_LOADED,
    Entry,
    Registry,
    get_registry,
    reset_registry,
    start_registry,
)

__all__ = [
    "ConfigurationError",
    "Entry",
    "FileSystem",
    "HandlerTable",
    "HotplugError",
    "JsonLoader",
    "ListingError",
    "LoadError",
    "LocalFileSystem",
    "ModuleLoader",
    "NOT_LOADED",
    "Registry",
    "YamlLoader",
    "get_registry",
    "load_module",
    "passthrough",
    "reset_registry",
    "start_registry",
]
