"""Exception types raised by the registry.

A name that resolves to nothing is not an error: ``Registry.plug_in``
returns ``None`` for it.
"""
from __future__ import annotations


class HotplugError(Exception):
    """Base class for registry failures."""


class ConfigurationError(HotplugError, TypeError):
    """Raised when a supplied handler table is not a usable mapping."""


class ListingError(HotplugError, OSError):
    """Raised when a root directory cannot be listed during a scan."""

    def __init__(self, path: str, message: str = ""):
        self.path = path
        super().__init__(message or f"Cannot list directory: {path}")


class LoadError(HotplugError):
    """Raised when a handler fails to turn a resolved path into a value."""

    def __init__(self, name: str, path: str, type_tag: str, message: str = ""):
        self.name = name
        self.path = path
        self.type = type_tag
        super().__init__(
            message or f"Failed to load '{name}' from {path} (type={type_tag!r})"
        )
