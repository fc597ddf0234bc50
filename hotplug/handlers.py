"""Per-type loaders and the table that dispatches to them.

A loader turns a resolved path into a value.  It may be a plain callable
or a coroutine function; the registry awaits whatever comes back when it
is awaitable.  Tags are file extensions without the dot, lowercased, with
``""`` standing for directories and extension-less files.

Built-in loaders:
  - ``ModuleLoader``: imports Python source (``py`` and ``""``) off the
    event loop, via ``load_module``
  - ``JsonLoader``: parses JSON read through the filesystem provider
  - ``passthrough``: the fallback, returns the path unchanged
  - ``YamlLoader``: opt-in, register it for ``yaml``/``yml`` yourself
"""
from __future__ import annotations

import asyncio
import hashlib
import importlib.util
import json
import logging
import os
import re
import sys
from collections.abc import Callable, Iterator, Mapping, MutableMapping
from importlib.machinery import SourceFileLoader
from pathlib import Path
from typing import Any

import yaml

from hotplug.errors import ConfigurationError
from hotplug.fs import FileSystem

log = logging.getLogger(__name__)

Loader = Callable[[str], Any]

# Key under which a caller-supplied mapping may override the fallback loader.
FALLBACK_TAG = "final"

# Attribute a module sets to hand back something other than itself.
EXPORTS_ATTR = "EXPORTS"

_MODULE_PREFIX = "hotplug_module_"


def normalize_tag(tag: str) -> str:
    """``".JSON"`` -> ``"json"``; ``""`` stays ``""``."""
    return str(tag).strip().lstrip(".").lower()


# ---------------------------------------------------------------------------
# Built-in loaders
# ---------------------------------------------------------------------------

def _module_name_for(path: Path) -> str:
    stem = re.sub(r"\W", "_", path.stem or path.name) or "anon"
    digest = hashlib.sha1(str(path).encode("utf-8")).hexdigest()[:10]
    return f"{_MODULE_PREFIX}{stem}_{digest}"


class _FreshSourceLoader(SourceFileLoader):
    """Source loader that never reads or writes the bytecode cache.

    The cache keys on whole-second mtimes, so a module rewritten within
    the same second would otherwise come back stale.  When *source* is
    given it stands in for the file contents.
    """

    def __init__(self, fullname: str, path: str, source: bytes | None = None):
        super().__init__(fullname, path)
        self._source = source

    def get_data(self, path):
        if self._source is not None and path == self.path:
            return self._source
        return super().get_data(path)

    def get_code(self, fullname):
        source_path = self.get_filename(fullname)
        return self.source_to_code(self.get_data(source_path), source_path)


def load_module(path: str, source: bytes | None = None) -> Any:
    """Import the Python source at *path* and return its exports.

    Accepts a ``.py`` file, a package directory (``__init__.py``) or an
    extension-less source file.  The module is executed afresh on every
    call, replacing whatever an earlier call left in ``sys.modules``.
    Returns ``module.EXPORTS`` when the module defines it, otherwise the
    module object.

    Blocking: reads and runs the module on the calling thread.  The
    registry goes through ``ModuleLoader``, which moves it off the loop.
    """
    target = Path(path)
    module_name = _module_name_for(target)

    if target.is_dir():
        source_path = target / "__init__.py"
        if source is None and not source_path.is_file():
            raise ImportError(f"Directory has no __init__.py: {target}")
        spec = importlib.util.spec_from_file_location(
            module_name,
            str(source_path),
            loader=_FreshSourceLoader(module_name, str(source_path), source),
            submodule_search_locations=[str(target)],
        )
    else:
        spec = importlib.util.spec_from_file_location(
            module_name,
            str(target),
            loader=_FreshSourceLoader(module_name, str(target), source),
        )

    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot build a module spec for {target}")

    module = importlib.util.module_from_spec(spec)
    previous = sys.modules.get(module_name)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception:
        # Don't leave a half-initialized module behind
        if previous is not None:
            sys.modules[module_name] = previous
        else:
            sys.modules.pop(module_name, None)
        raise

    log.debug("Imported %s as %s", target, module_name)
    return getattr(module, EXPORTS_ATTR, module)


class ModuleLoader:
    """Reads module source through *fs*, then imports it on a worker thread."""

    def __init__(self, fs: FileSystem):
        self.fs = fs

    async def __call__(self, path: str) -> Any:
        source_path = path
        if await self.fs.is_directory(path):
            source_path = os.path.join(path, "__init__.py")
        source = await self.fs.read_file(source_path)
        return await asyncio.to_thread(load_module, path, source)

    def __repr__(self) -> str:
        return "<ModuleLoader>"


class JsonLoader:
    """Reads a file through *fs* and parses it as JSON."""

    def __init__(self, fs: FileSystem):
        self.fs = fs

    async def __call__(self, path: str) -> Any:
        raw = await self.fs.read_file(path)
        return json.loads(raw)

    def __repr__(self) -> str:
        return "<JsonLoader>"


class YamlLoader:
    """Reads a file through *fs* and parses it with ``yaml.safe_load``."""

    def __init__(self, fs: FileSystem):
        self.fs = fs

    async def __call__(self, path: str) -> Any:
        raw = await self.fs.read_file(path)
        return yaml.safe_load(raw)

    def __repr__(self) -> str:
        return "<YamlLoader>"


def passthrough(path: str) -> str:
    """Fallback loader: the resource is located but not interpretable."""
    return path


# ---------------------------------------------------------------------------
# Handler table
# ---------------------------------------------------------------------------

class HandlerTable(MutableMapping):
    """Mapping of type tag -> loader with an explicit fallback.

    Assigning to the ``"final"`` key replaces ``fallback`` instead of
    registering a tag, so mappings that carry their fallback under that
    key keep working.
    """

    def __init__(
        self,
        handlers: Mapping[str, Loader] | None = None,
        *,
        fallback: Loader = passthrough,
    ):
        self._handlers: dict[str, Loader] = {}
        self.fallback: Loader = fallback
        if handlers:
            self.update(handlers)

    def __getitem__(self, tag: str) -> Loader:
        return self._handlers[normalize_tag(tag)]

    def __setitem__(self, tag: str, loader: Loader) -> None:
        if not callable(loader):
            raise ConfigurationError(
                f"Handler for tag {tag!r} must be callable, "
                f"{type(loader).__name__} received"
            )
        key = normalize_tag(tag)
        if key == FALLBACK_TAG:
            self.fallback = loader
            return
        self._handlers[key] = loader

    def __delitem__(self, tag: str) -> None:
        del self._handlers[normalize_tag(tag)]

    def __iter__(self) -> Iterator[str]:
        return iter(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)

    def __contains__(self, tag: object) -> bool:
        return isinstance(tag, str) and normalize_tag(tag) in self._handlers

    def resolve(self, tag: str) -> Loader:
        """Loader for *tag*, or the fallback when none is registered."""
        return self._handlers.get(normalize_tag(tag), self.fallback)

    def fill_missing(self, defaults: Mapping[str, Loader]) -> None:
        """Add *defaults* for tags that have no loader yet."""
        for tag, loader in defaults.items():
            if tag not in self:
                self[tag] = loader

    def __repr__(self) -> str:
        tags = ", ".join(repr(t) for t in self._handlers)
        return f"<HandlerTable [{tags}] fallback={getattr(self.fallback, '__name__', self.fallback)!r}>"


def default_handlers(fs: FileSystem) -> HandlerTable:
    """The built-in table: module loader, JSON loader, passthrough fallback."""
    modules = ModuleLoader(fs)
    return HandlerTable({
        "py": modules,
        "": modules,
        "json": JsonLoader(fs),
    })


def build_handler_table(handlers: Any, fs: FileSystem) -> HandlerTable:
    """Merge caller *handlers* over the built-in defaults.

    Caller entries win on a tag collision; defaults only fill gaps.
    The caller's mapping itself is left untouched.
    """
    if handlers is None:
        return default_handlers(fs)
    if not isinstance(handlers, Mapping):
        raise ConfigurationError(
            f"handlers should be a mapping, {type(handlers).__name__} received"
        )

    table = HandlerTable(handlers)
    if isinstance(handlers, HandlerTable):
        table.fallback = handlers.fallback
    defaults = default_handlers(fs)
    overridden = sorted(tag for tag in defaults if tag in table)
    if overridden:
        log.debug("Caller handlers override built-ins for tags: %s", overridden)
    table.fill_missing(defaults)
    return table
