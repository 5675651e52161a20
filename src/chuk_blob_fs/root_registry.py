"""
chuk_blob_fs/root_registry.py - Cache of resolved container/share handles
"""

import asyncio
import logging
import threading

from chuk_blob_fs.backends.base import RootHandle, RootResolver
from chuk_blob_fs.path_codec import VirtualPath

logger = logging.getLogger(__name__)


class RootRegistry:
    """
    Memoizes root path -> RootHandle for the lifetime of a bridge.

    Resolution is delegated to a RootResolver; entries are only dropped by
    clear() or close().
    """

    def __init__(self, resolver: RootResolver) -> None:
        self.resolver = resolver
        self._handles: dict[str, RootHandle] = {}
        # Guards _handles and _resolving; never held across an await
        self._lock = threading.Lock()
        self._resolving: dict[str, asyncio.Lock] = {}
        self.stats = {"hits": 0, "misses": 0}

    def _cached(self, root_path: str) -> RootHandle | None:
        with self._lock:
            handle = self._handles.get(root_path)
        if handle is not None:
            self.stats["hits"] += 1
        return handle

    async def get_or_resolve(self, vpath: VirtualPath) -> RootHandle:
        """
        Return the cached handle for ``vpath``'s root, resolving it once.

        Concurrent lookups of the same root wait for a single resolution;
        lookups of other roots are not blocked by it.

        Raises:
            NotFoundError: If the resolver cannot locate the root
        """
        root_path = vpath.root_path
        handle = self._cached(root_path)
        if handle is not None:
            return handle

        with self._lock:
            resolving = self._resolving.setdefault(root_path, asyncio.Lock())

        async with resolving:
            handle = self._cached(root_path)
            if handle is not None:
                return handle

            self.stats["misses"] += 1
            handle = await self.resolve(vpath)
            with self._lock:
                self._handles[root_path] = handle
            return handle

    async def resolve(self, vpath: VirtualPath) -> RootHandle:
        """Resolve a root without touching the cache."""
        logger.debug(f"Resolving root {vpath.root_path}")
        return await self.resolver.resolve_root(vpath)

    def get_cached(self, root_path: str) -> RootHandle | None:
        with self._lock:
            return self._handles.get(root_path)

    def clear(self) -> None:
        """Drop all cached handles (used on a forced refresh)."""
        with self._lock:
            self._handles.clear()
        logger.debug("Cleared root handle cache")

    async def close(self) -> None:
        """Close and drop every cached handle, then the resolver."""
        with self._lock:
            handles = list(self._handles.values())
            self._handles.clear()
        for handle in handles:
            await handle.close()
        await self.resolver.close()

    def __len__(self) -> int:
        with self._lock:
            return len(self._handles)
