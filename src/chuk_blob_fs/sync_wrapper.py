"""
Synchronous wrapper for AsyncStorageFileSystem

Provides a blocking interface for scripts and the CLI
"""

import asyncio
import concurrent.futures
from collections.abc import Coroutine
from typing import Any, TypeVar

from chuk_blob_fs.backends.base import RootResolver
from chuk_blob_fs.cancellation import CancellationToken
from chuk_blob_fs.config import StorageFSConfig
from chuk_blob_fs.events import ChangeListener, Subscription
from chuk_blob_fs.fs_manager import AsyncStorageFileSystem, PathLike
from chuk_blob_fs.models import DeleteResult, FileStat, FileType

T = TypeVar("T")


class SyncStorageFileSystem:
    """Synchronous wrapper around AsyncStorageFileSystem"""

    def __init__(self, resolver: RootResolver, config: StorageFSConfig | None = None):
        """Initialize sync wrapper with an async filesystem"""
        self._async_fs = AsyncStorageFileSystem(resolver, config=config)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._initialized = False

    def _run_async(self, coro: Coroutine[Any, Any, T]) -> T:
        """Run an async coroutine synchronously on the wrapper's own loop"""
        if self._loop is None or self._loop.is_closed():
            self._loop = asyncio.new_event_loop()

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            result = self._loop.run_until_complete(coro)
        else:
            # Called from async code, run the private loop in a worker thread
            with concurrent.futures.ThreadPoolExecutor(max_workers=1) as executor:
                future = executor.submit(self._loop.run_until_complete, coro)
                result = future.result()

        # Timers do not run between calls, so deliver buffered events now
        self._async_fs.events.flush()
        return result

    def _ensure_initialized(self) -> None:
        """Ensure the filesystem is initialized"""
        if not self._initialized:
            self._run_async(self._async_fs.initialize())
            self._initialized = True

    @property
    def async_fs(self) -> AsyncStorageFileSystem:
        """Access to the underlying async filesystem"""
        return self._async_fs

    def stat(self, path: PathLike) -> FileStat:
        self._ensure_initialized()
        return self._run_async(self._async_fs.stat(path))

    def read_directory(
        self, path: PathLike, cancellation: CancellationToken | None = None
    ) -> list[tuple[str, FileType]]:
        self._ensure_initialized()
        return self._run_async(self._async_fs.read_directory(path, cancellation))

    def create_directory(self, path: PathLike) -> None:
        self._ensure_initialized()
        self._run_async(self._async_fs.create_directory(path))

    def read_file(
        self, path: PathLike, cancellation: CancellationToken | None = None
    ) -> bytes:
        self._ensure_initialized()
        return self._run_async(self._async_fs.read_file(path, cancellation))

    def write_file(
        self,
        path: PathLike,
        data: bytes | str,
        create: bool = True,
        overwrite: bool = True,
    ) -> None:
        self._ensure_initialized()
        self._run_async(
            self._async_fs.write_file(path, data, create=create, overwrite=overwrite)
        )

    def delete(
        self,
        path: PathLike,
        recursive: bool = False,
        cancellation: CancellationToken | None = None,
    ) -> DeleteResult:
        self._ensure_initialized()
        return self._run_async(
            self._async_fs.delete(path, recursive=recursive, cancellation=cancellation)
        )

    def rename(self, old_path: PathLike, new_path: PathLike, overwrite: bool = False) -> None:
        self._ensure_initialized()
        self._run_async(self._async_fs.rename(old_path, new_path, overwrite=overwrite))

    def watch(
        self, path: PathLike, recursive: bool = False, excludes: list[str] | None = None
    ) -> Subscription:
        return self._async_fs.watch(path, recursive=recursive, excludes=excludes)

    def on_did_change_file(self, listener: ChangeListener) -> Subscription:
        return self._async_fs.on_did_change_file(listener)

    def refresh(self) -> None:
        self._async_fs.refresh()

    def get_stats(self) -> dict[str, Any]:
        return self._async_fs.get_stats()

    def close(self) -> None:
        """Close the filesystem and the private event loop"""
        if self._initialized:
            self._run_async(self._async_fs.close())
            self._initialized = False
        if self._loop is not None and not self._loop.is_closed():
            self._loop.close()
        self._loop = None

    def __enter__(self):
        self._ensure_initialized()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
