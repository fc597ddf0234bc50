"""Filesystem primitives consumed by the registry.

All operations are coroutines so a registry never blocks the event loop;
``LocalFileSystem`` pushes the blocking calls onto a worker thread.
Access problems surface as ``OSError``.
"""
from __future__ import annotations

import asyncio
import os
from abc import ABC, abstractmethod
from pathlib import Path


class FileSystem(ABC):
    """Interface the registry uses to touch storage."""

    @abstractmethod
    async def list_directory(self, path: str) -> list[str]:
        ...

    @abstractmethod
    async def is_directory(self, path: str) -> bool:
        ...

    @abstractmethod
    async def path_exists(self, path: str) -> bool:
        ...

    @abstractmethod
    async def read_file(self, path: str) -> bytes:
        ...


class LocalFileSystem(FileSystem):
    """``FileSystem`` backed by the local disk."""

    async def list_directory(self, path: str) -> list[str]:
        # Sorted so scans are deterministic across platforms.
        names = await asyncio.to_thread(os.listdir, path)
        return sorted(names)

    async def is_directory(self, path: str) -> bool:
        return await asyncio.to_thread(os.path.isdir, path)

    async def path_exists(self, path: str) -> bool:
        # lexists: a dangling symlink is still a located resource
        return await asyncio.to_thread(os.path.lexists, path)

    async def read_file(self, path: str) -> bytes:
        return await asyncio.to_thread(Path(path).read_bytes)
