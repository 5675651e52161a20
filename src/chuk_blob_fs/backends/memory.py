"""
chuk_blob_fs/backends/memory.py - In-memory blob container and file share

Behave like their remote counterparts (delimiter folding, pagination with
continuation tokens, Azure-style error codes) without any network access.
"""

import asyncio
import logging
import posixpath

from chuk_blob_fs.backends.base import (
    BlobContainerHandle,
    FileShareHandle,
    RootHandle,
    RootResolver,
)
from chuk_blob_fs.exceptions import BackendError, NotFoundError
from chuk_blob_fs.models import EntryKind, ListingEntry, ListingPage
from chuk_blob_fs.path_codec import VirtualPath

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 5000


def _paginate(
    entries: list[ListingEntry], continuation_token: str | None, page_size: int | None
) -> ListingPage:
    offset = int(continuation_token) if continuation_token else 0
    size = page_size or DEFAULT_PAGE_SIZE
    chunk = entries[offset : offset + size]
    next_offset = offset + size
    return ListingPage(
        entries=chunk,
        continuation_token=str(next_offset) if next_offset < len(entries) else None,
    )


class InMemoryBlobContainer(BlobContainerHandle):
    """A blob container kept in a dict of key -> bytes."""

    def __init__(
        self,
        root_path: str,
        name: str | None = None,
        objects: dict[str, bytes] | None = None,
        latency: float = 0.0,
    ) -> None:
        super().__init__(root_path, name or posixpath.basename(root_path))
        self.objects: dict[str, bytes] = dict(objects or {})
        self.content_types: dict[str, str | None] = {}
        self.latency = latency
        self.stats = {"lists": 0, "gets": 0, "puts": 0, "deletes": 0}

    async def _remote_call(self, operation: str) -> None:
        self.stats[operation] += 1
        await asyncio.sleep(self.latency)

    async def list_page(
        self,
        prefix: str,
        delimiter: str = "/",
        continuation_token: str | None = None,
        page_size: int | None = None,
    ) -> ListingPage:
        await self._remote_call("lists")

        seen_prefixes: set[str] = set()
        entries: list[ListingEntry] = []
        for key in sorted(self.objects):
            if not key.startswith(prefix):
                continue
            rest = key[len(prefix) :]
            if delimiter and delimiter in rest:
                name = rest.split(delimiter, 1)[0]
                if name and name not in seen_prefixes:
                    seen_prefixes.add(name)
                    entries.append(
                        ListingEntry(
                            name=name,
                            path=f"{prefix}{name}",
                            kind=EntryKind.DIRECTORY,
                        )
                    )
            elif rest:
                entries.append(
                    ListingEntry(
                        name=rest,
                        path=key,
                        kind=EntryKind.FILE,
                        size=len(self.objects[key]),
                    )
                )

        return _paginate(entries, continuation_token, page_size)

    async def get(self, path: str) -> bytes:
        await self._remote_call("gets")
        try:
            return self.objects[path]
        except KeyError:
            raise BackendError(
                f"The specified blob does not exist: {path}",
                status_code=404,
                error_code="BlobNotFound",
            )

    async def put(
        self, path: str, data: bytes, content_type: str | None = None
    ) -> None:
        await self._remote_call("puts")
        self.objects[path] = bytes(data)
        self.content_types[path] = content_type

    async def delete(self, path: str) -> None:
        await self._remote_call("deletes")
        if path not in self.objects:
            raise BackendError(
                f"The specified blob does not exist: {path}",
                status_code=404,
                error_code="BlobNotFound",
            )
        del self.objects[path]
        self.content_types.pop(path, None)

    async def exists(self, path: str) -> bool:
        await self._remote_call("gets")
        return path in self.objects


class InMemoryFileShare(FileShareHandle):
    """A file share with real directories, kept in memory."""

    def __init__(
        self,
        root_path: str,
        name: str | None = None,
        files: dict[str, bytes] | None = None,
        directories: list[str] | None = None,
        latency: float = 0.0,
    ) -> None:
        super().__init__(root_path, name or posixpath.basename(root_path))
        self.directories: set[str] = {""}
        self.files: dict[str, bytes] = {}
        self.latency = latency
        self.stats = {"lists": 0, "gets": 0, "puts": 0, "deletes": 0, "mkdirs": 0}

        for directory in directories or []:
            self._add_directory_tree(directory.strip("/"))
        for path, data in (files or {}).items():
            path = path.strip("/")
            self._add_directory_tree(posixpath.dirname(path))
            self.files[path] = bytes(data)

    def _add_directory_tree(self, directory: str) -> None:
        while directory and directory not in self.directories:
            self.directories.add(directory)
            directory = posixpath.dirname(directory)

    async def _remote_call(self, operation: str) -> None:
        self.stats[operation] += 1
        await asyncio.sleep(self.latency)

    def _require_parent(self, path: str) -> None:
        parent = posixpath.dirname(path)
        if parent not in self.directories:
            raise BackendError(
                f"The specified parent path does not exist: {parent}",
                status_code=404,
                error_code="ParentNotFound",
            )

    async def list_directory_page(
        self,
        directory: str,
        continuation_token: str | None = None,
        page_size: int | None = None,
    ) -> ListingPage:
        await self._remote_call("lists")
        directory = directory.strip("/")
        if directory not in self.directories:
            raise BackendError(
                f"The specified resource does not exist: {directory}",
                status_code=404,
                error_code="ResourceNotFound",
            )

        entries = [
            ListingEntry(name=posixpath.basename(d), path=d, kind=EntryKind.DIRECTORY)
            for d in sorted(self.directories)
            if d and posixpath.dirname(d) == directory
        ]
        entries.extend(
            ListingEntry(
                name=posixpath.basename(f),
                path=f,
                kind=EntryKind.FILE,
                size=len(self.files[f]),
            )
            for f in sorted(self.files)
            if posixpath.dirname(f) == directory
        )
        return _paginate(entries, continuation_token, page_size)

    async def get(self, path: str) -> bytes:
        await self._remote_call("gets")
        try:
            return self.files[path]
        except KeyError:
            raise BackendError(
                f"The specified resource does not exist: {path}",
                status_code=404,
                error_code="ResourceNotFound",
            )

    async def put(
        self, path: str, data: bytes, content_type: str | None = None
    ) -> None:
        await self._remote_call("puts")
        self._require_parent(path)
        if path in self.directories:
            raise BackendError(
                f"The specified resource type does not match: {path}",
                status_code=409,
                error_code="ResourceTypeMismatch",
            )
        self.files[path] = bytes(data)

    async def delete(self, path: str) -> None:
        await self._remote_call("deletes")
        if path not in self.files:
            raise BackendError(
                f"The specified resource does not exist: {path}",
                status_code=404,
                error_code="ResourceNotFound",
            )
        del self.files[path]

    async def exists(self, path: str) -> bool:
        await self._remote_call("gets")
        return path in self.files

    async def create_directory(self, path: str) -> None:
        await self._remote_call("mkdirs")
        path = path.strip("/")
        self._require_parent(path)
        if path in self.directories or path in self.files:
            raise BackendError(
                f"The specified resource already exists: {path}",
                status_code=409,
                error_code="ResourceAlreadyExists",
            )
        self.directories.add(path)

    async def delete_directory(self, path: str) -> None:
        await self._remote_call("deletes")
        path = path.strip("/")
        if not path or path not in self.directories:
            raise BackendError(
                f"The specified resource does not exist: {path}",
                status_code=404,
                error_code="ResourceNotFound",
            )
        has_children = any(posixpath.dirname(d) == path for d in self.directories if d)
        has_files = any(posixpath.dirname(f) == path for f in self.files)
        if has_children or has_files:
            raise BackendError(
                f"The specified directory is not empty: {path}",
                status_code=409,
                error_code="DirectoryNotEmpty",
            )
        self.directories.discard(path)


class InMemoryRootResolver(RootResolver):
    """Resolves root paths against a fixed set of in-memory handles."""

    def __init__(self, *handles: RootHandle) -> None:
        self.handles: dict[str, RootHandle] = {}
        self.resolve_count = 0
        for handle in handles:
            self.add(handle)

    def add(self, handle: RootHandle) -> None:
        self.handles[handle.root_path] = handle

    async def resolve_root(self, vpath: VirtualPath) -> RootHandle:
        self.resolve_count += 1
        handle = self.handles.get(vpath.root_path)
        if handle is None or handle.kind != vpath.kind:
            raise NotFoundError(f"No such container or share: {vpath.root_path}")
        logger.debug(f"Resolved root {vpath.root_path}")
        return handle
