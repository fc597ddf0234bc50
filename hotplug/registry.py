"""Lazy resource registry: scan, plug in, plug out.

Provides:
  - ``Entry``: location, type tag and loaded value of one named resource
  - ``Registry``: the entry cache, search configuration and handler table
  - ``get_registry``: process-wide shared instance built from ``config``

A scan records where resources live without loading them.  ``plug_in``
resolves a name (from the cache, or by probing every root/tag pair) and
runs the loader for its type on every call.  ``plug_out`` drops loaded
values but keeps entries, so a later ``plug_in`` skips resolution.
"""
from __future__ import annotations

import inspect
import logging
import os
import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from hotplug import config
from hotplug.errors import ConfigurationError, ListingError, LoadError
from hotplug.fs import FileSystem, LocalFileSystem
from hotplug.handlers import HandlerTable, build_handler_table, normalize_tag

log = logging.getLogger(__name__)

# Options ``configure`` applies; anything else is ignored.
CONFIG_FIELDS = frozenset({"auto_dirs", "exts", "handlers"})


class _NotLoaded:
    """Marker for an entry whose value is not currently held."""

    _instance: _NotLoaded | None = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NOT_LOADED"


NOT_LOADED = _NotLoaded()


@dataclass(eq=False)
class Entry:
    """One known resource.  ``path`` and ``type`` are fixed at creation."""

    name: str
    path: str
    type: str
    value: Any = NOT_LOADED

    @property
    def loaded(self) -> bool:
        return self.value is not NOT_LOADED

    def get_info(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "type": self.type,
            "loaded": self.loaded,
        }

    def __repr__(self) -> str:
        state = "loaded" if self.loaded else "unloaded"
        return f"<Entry {self.name} ({self.type or 'dir'}) {state}>"


def merge_exts(extra: Iterable[str] | str | None) -> list[str]:
    """Built-in tags followed by *extra*, deduplicated in first-seen order."""
    if extra is None:
        extra = []
    elif isinstance(extra, str):
        extra = [extra]
    merged: list[str] = []
    seen: set[str] = set()
    for tag in (*config.DEFAULT_EXTS, *extra):
        key = normalize_tag(tag)
        if key in seen:
            continue
        merged.append(key)
        seen.add(key)
    return merged


def _as_dir_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (str, os.PathLike)):
        return [os.fspath(value)]
    return [os.fspath(item) for item in value]


class Registry:
    """Entry cache plus the configuration used to fill it.

    Reads of the cache are safe from any thread; inserts and value swaps
    happen under ``_lock``.  Concurrent ``plug_in`` calls for an unknown
    name may each check the roots, but only the first match is committed.
    """

    def __init__(
        self,
        options: Mapping[str, Any] | None = None,
        *,
        fs: FileSystem | None = None,
        **kwargs: Any,
    ):
        self.fs: FileSystem = fs if fs is not None else LocalFileSystem()
        self.auto_dirs: list[str] = []
        self.exts: list[str] = merge_exts(None)
        self.handlers: HandlerTable = build_handler_table(None, self.fs)
        self.scanned = False
        self._entries: dict[str, Entry] = {}
        self._lock = threading.RLock()
        self.configure(options, **kwargs)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def configure(self, options: Mapping[str, Any] | None = None, **kwargs: Any) -> None:
        """Apply ``auto_dirs``, ``exts`` and ``handlers``.

        ``exts`` is always unioned with the built-in tags.  ``handlers``
        must be a mapping of tag -> loader; caller loaders take precedence
        over the built-ins, which only fill missing tags.
        """
        if options is not None and not isinstance(options, Mapping):
            raise ConfigurationError(
                f"options should be a mapping, {type(options).__name__} received"
            )
        merged = dict(options or {})
        merged.update(kwargs)

        ignored = sorted(key for key in merged if key not in CONFIG_FIELDS)
        if ignored:
            log.debug("Ignoring unknown registry options: %s", ", ".join(ignored))

        # Build the table before touching state so a bad mapping changes nothing.
        handlers = None
        if "handlers" in merged:
            handlers = build_handler_table(merged["handlers"], self.fs)

        with self._lock:
            if "auto_dirs" in merged:
                self.auto_dirs = _as_dir_list(merged["auto_dirs"])
            if "exts" in merged:
                self.exts = merge_exts(merged["exts"])
            if handlers is not None:
                self.handlers = handlers

    # ------------------------------------------------------------------
    # Scan
    # ------------------------------------------------------------------

    async def scan(self) -> int:
        """Record every immediate child of every root directory.

        Later roots overwrite earlier ones on a name clash, and an
        overwritten entry starts out unloaded.  A root that cannot be
        listed raises ``ListingError``; entries from earlier roots stay.
        Returns the number of entries written.
        """
        written = 0
        for root in list(self.auto_dirs):
            try:
                children = await self.fs.list_directory(root)
            except OSError as exc:
                raise ListingError(root, f"Cannot list directory {root}: {exc}") from exc

            for child in children:
                path = os.path.abspath(os.path.join(root, child))
                if await self.fs.is_directory(path):
                    name, type_tag = child, ""
                else:
                    name, ext = os.path.splitext(child)
                    type_tag = normalize_tag(ext)

                with self._lock:
                    self._entries[name] = Entry(name=name, path=path, type=type_tag)
                written += 1
                log.debug("Scanned %s -> %s (type=%r)", name, path, type_tag)

        self.scanned = True
        log.info("Scanned %d root(s): %d entries written", len(self.auto_dirs), written)
        return written

    # ------------------------------------------------------------------
    # Plug in / plug out
    # ------------------------------------------------------------------

    async def plug_in(self, name: str) -> Any:
        """Resolve *name* and load it with the handler for its type.

        Returns ``None`` when nothing under any root matches.  The handler
        runs on every call; the stored value is only replaced once it
        succeeds.  Handler failures raise ``LoadError``.
        """
        entry = self.get_entry(name)
        if entry is None:
            entry = await self._resolve(name)
        if entry is None:
            log.debug("Plug-in miss: %s", name)
            return None

        loader = self.handlers.resolve(entry.type)
        try:
            value = loader(entry.path)
            if inspect.isawaitable(value):
                value = await value
        except LoadError:
            raise
        except Exception as exc:
            raise LoadError(
                entry.name,
                entry.path,
                entry.type,
                f"Failed to load '{entry.name}' from {entry.path}: {exc}",
            ) from exc

        with self._lock:
            entry.value = value
        log.debug("Plugged in %s (type=%r)", entry.name, entry.type)
        return value

    def plug_out(self, name: str | None = None) -> bool | None:
        """Drop loaded values while keeping location metadata.

        With *name*: ``True`` if the entry exists (its value is cleared),
        ``False`` otherwise.  Without: clear every entry, return ``None``.
        """
        with self._lock:
            if name is not None:
                entry = self._entries.get(name)
                if entry is None:
                    return False
                entry.value = NOT_LOADED
                log.debug("Plugged out %s", name)
                return True

            for entry in self._entries.values():
                entry.value = NOT_LOADED
            count = len(self._entries)
        log.debug("Plugged out all %d entries", count)
        return None

    async def _resolve(self, name: str) -> Entry | None:
        for root in list(self.auto_dirs):
            base = os.path.abspath(os.path.join(root, name))
            for tag in list(self.exts):
                candidate = base if tag == "" else f"{base}.{tag}"
                if not await self.fs.path_exists(candidate):
                    continue
                # First committed entry wins; a racing caller adopts it.
                with self._lock:
                    entry = self._entries.setdefault(
                        name, Entry(name=name, path=candidate, type=tag)
                    )
                log.debug("Resolved %s -> %s", name, entry.path)
                return entry
        return None

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_entry(self, name: str) -> Entry | None:
        with self._lock:
            return self._entries.get(name)

    def is_loaded(self, name: str) -> bool:
        entry = self.get_entry(name)
        return entry is not None and entry.loaded

    def list_entries(self) -> list[dict[str, Any]]:
        """Return info for all entries, sorted by name."""
        with self._lock:
            entries = sorted(self._entries.values(), key=lambda e: e.name)
        return [e.get_info() for e in entries]

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __repr__(self) -> str:
        with self._lock:
            count = len(self._entries)
        return f"<Registry [{count} entries, {len(self.auto_dirs)} roots]>"


# ---------------------------------------------------------------------------
# Shared instance
# ---------------------------------------------------------------------------

_shared: Registry | None = None
_shared_lock = threading.Lock()


def get_registry(options: Mapping[str, Any] | None = None, **kwargs: Any) -> Registry:
    """Return the process-wide registry, creating it from ``config`` once.

    Options passed on later calls are applied to the existing instance.
    """
    global _shared
    with _shared_lock:
        if _shared is None:
            _shared = Registry({"auto_dirs": config.AUTO_DIRS, "exts": config.EXTS})
            log.info("Shared registry created: %r", _shared)
        if options or kwargs:
            _shared.configure(options, **kwargs)
        return _shared


async def start_registry(options: Mapping[str, Any] | None = None, **kwargs: Any) -> Registry:
    """``get_registry`` plus the initial scan when ``SCAN_ON_START`` is set."""
    registry = get_registry(options, **kwargs)
    if config.SCAN_ON_START and not registry.scanned:
        await registry.scan()
    return registry


def reset_registry() -> None:
    """Forget the shared instance (tests, host restarts)."""
    global _shared
    with _shared_lock:
        _shared = None
