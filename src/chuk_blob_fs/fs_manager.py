"""
chuk_blob_fs/fs_manager.py - Async filesystem bridge over blob containers and file shares
"""

import asyncio
import logging
import mimetypes
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from chuk_blob_fs.backends.base import FileShareHandle, RootHandle, RootResolver
from chuk_blob_fs.cancellation import CancellationToken, check_cancelled
from chuk_blob_fs.config import StorageFSConfig
from chuk_blob_fs.entities import DirectoryEntity, EntityKind, RootEntity
from chuk_blob_fs.events import ChangeEmitter, ChangeListener, Subscription
from chuk_blob_fs.exceptions import (
    AlreadyExistsError,
    BackendError,
    EntryNotAFileError,
    MalformedPathError,
    NoPermissionsError,
    NotFoundError,
    UnsupportedOperationError,
    classify_backend_error,
)
from chuk_blob_fs.lister import PaginatedLister
from chuk_blob_fs.models import (
    DeleteFailure,
    DeleteResult,
    FileChangeEvent,
    FileChangeType,
    FileStat,
    FileType,
)
from chuk_blob_fs.path_codec import (
    RootKind,
    VirtualPath,
    ancestors,
    decode,
    join,
    parent,
    validate_name,
    with_file_path,
)
from chuk_blob_fs.resolver import EntityResolver
from chuk_blob_fs.root_registry import RootRegistry
from chuk_blob_fs.virtual_dirs import VirtualDirectoryRegistry

logger = logging.getLogger(__name__)

PathLike = str | VirtualPath


class AsyncStorageFileSystem:
    """
    Hierarchical filesystem view over blob containers and file shares.

    Every operation takes a virtual path of the form
    ``/<account>/Blob Containers/<container>/...`` or
    ``/<account>/File Shares/<share>/...``. Roots are resolved once through
    the RootResolver and cached; directories created in a blob container are
    tracked as pending until an object is written below them.
    """

    def __init__(
        self,
        resolver: RootResolver,
        config: StorageFSConfig | None = None,
    ):
        """
        Initialize the bridge

        Args:
            resolver: Materializes handles for container/share root paths
            config: Listing, delete and notification tunables
        """
        self.config = config or StorageFSConfig()

        # Components
        self.roots = RootRegistry(resolver)
        self.virtual_dirs = VirtualDirectoryRegistry()
        self.lister = PaginatedLister(
            page_size=self.config.page_size, drain=self.config.drain_listings
        )
        self.entities = EntityResolver(self.lister, self.virtual_dirs)
        self.events = ChangeEmitter(delay=self.config.event_delay)

        # State
        self._initialized = False
        self._closed = False

        # Statistics
        self.stats = {
            "operations": 0,
            "errors": 0,
            "bytes_read": 0,
            "bytes_written": 0,
            "files_created": 0,
            "files_deleted": 0,
        }

    async def initialize(self) -> None:
        """Mark the bridge ready for use"""
        if self._initialized:
            return

        self._initialized = True
        self._closed = False
        logger.info(
            f"Initialized AsyncStorageFileSystem (page_size={self.config.page_size}, "
            f"drain_listings={self.config.drain_listings})"
        )

    async def close(self) -> None:
        """Flush pending events and release cached root handles"""
        if self._closed:
            return

        self.events.flush()
        await self.roots.close()

        self._closed = True
        self._initialized = False
        logger.info("Closed AsyncStorageFileSystem")

    async def __aenter__(self):
        """Async context manager entry"""
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        await self.close()
        return False

    # Helpers

    @contextmanager
    def _track(self, operation: str, path: Any) -> Iterator[None]:
        logger.debug(f"{operation} {path}")
        try:
            yield
        except Exception:
            self.stats["errors"] += 1
            raise
        self.stats["operations"] += 1

    async def _locate(self, path: PathLike) -> tuple[VirtualPath, RootHandle]:
        vpath = path if isinstance(path, VirtualPath) else decode(path)
        root = await self.roots.get_or_resolve(vpath)
        return vpath, root

    def _fire(self, change: FileChangeType, vpath: VirtualPath) -> None:
        self.events.fire_soon(FileChangeEvent(type=change, path=vpath.full_path))

    # Queries

    async def stat(self, path: PathLike) -> FileStat:
        """Report whether ``path`` is a file or a directory"""
        with self._track("stat", path):
            vpath, root = await self._locate(path)
            entity = await self.entities.resolve(root, vpath)
            if entity.kind == EntityKind.LEAF:
                return FileStat(type=FileType.FILE)
            return FileStat(type=FileType.DIRECTORY)

    async def read_directory(
        self, path: PathLike, cancellation: CancellationToken | None = None
    ) -> list[tuple[str, FileType]]:
        """
        List a root or directory.

        Remote sub-directories and files are merged with pending directories
        registered directly under ``path``. A pending directory that now has
        a real entry of the same name is left out and forgotten.

        Raises:
            NotFoundError: If ``path`` does not exist
            EntryNotADirectoryError: If ``path`` names a file
        """
        with self._track("read_directory", path):
            vpath, root = await self._locate(path)
            entity = await self.entities.resolve_directory(
                root, vpath, cancellation=cancellation
            )
            entries = await self.lister.list_children(
                root, entity.dir_path, cancellation=cancellation
            )

            results: list[tuple[str, FileType]] = []
            real_names: set[str] = set()
            for entry in entries:
                real_names.add(entry.name)
                results.append(
                    (entry.name, FileType.DIRECTORY if entry.is_dir else FileType.FILE)
                )

            for name in sorted(self.virtual_dirs.children_directly_under(vpath.full_path)):
                if name in real_names:
                    self.virtual_dirs.remove(join(vpath, name).full_path)
                    continue
                results.append((name, FileType.DIRECTORY))

            return results

    # Directory operations

    async def create_directory(self, path: PathLike) -> None:
        """
        Create a directory.

        In a blob container nothing is written remotely; the directory and
        any missing directories above it become pending until a file is
        written below them. In a file share the directory is created
        remotely under its (existing) parent.

        Raises:
            AlreadyExistsError: If the path already exists or is pending
            EntryNotADirectoryError: If an ancestor is a file
            NotFoundError: If the parent of a share directory does not exist
        """
        with self._track("create_directory", path):
            vpath, root = await self._locate(path)
            if vpath.is_root:
                raise AlreadyExistsError(f"File exists: {vpath.full_path}")
            validate_name(vpath.base_name, vpath.kind, is_directory=True)

            if vpath.kind == RootKind.BLOB_CONTAINERS:
                entity, missing = await self.entities.resolve_existing(root, vpath)
                if not missing:
                    raise AlreadyExistsError(f"File exists: {vpath.full_path}")
                for name in missing[:-1]:
                    validate_name(name, vpath.kind, is_directory=True)

                current = with_file_path(vpath, entity.dir_path)
                for name in missing[:-1]:
                    current = join(current, name)
                    if not self.virtual_dirs.has(current.full_path):
                        self.virtual_dirs.add(current.full_path)
                        self._fire(FileChangeType.CREATED, current)
                self.virtual_dirs.add(vpath.full_path)
            else:
                await self.entities.resolve_directory(root, parent(vpath))
                try:
                    await root.create_directory(vpath.file_path)
                except BackendError as e:
                    raise classify_backend_error(e, vpath.full_path) from e

            self._fire(FileChangeType.CREATED, vpath)

    # File operations

    async def read_file(
        self, path: PathLike, cancellation: CancellationToken | None = None
    ) -> bytes:
        """
        Download a file.

        Raises:
            NotFoundError: If ``path`` is missing or names a directory
        """
        with self._track("read_file", path):
            vpath, root = await self._locate(path)
            leaf = await self.entities.resolve_leaf(root, vpath, cancellation=cancellation)
            self._check_read_size(vpath, leaf.size_hint)

            try:
                data = await root.get(leaf.path)
            except BackendError as e:
                raise classify_backend_error(e, vpath.full_path) from e

            self._check_read_size(vpath, len(data))
            self.stats["bytes_read"] += len(data)
            return data

    def _check_read_size(self, vpath: VirtualPath, size: int) -> None:
        limit = self.config.max_read_bytes
        if limit is not None and size > limit:
            raise UnsupportedOperationError(
                f"File too large to read: {vpath.full_path} ({size} > {limit} bytes)"
            )

    async def write_file(
        self,
        path: PathLike,
        data: bytes | str,
        create: bool = True,
        overwrite: bool = True,
    ) -> None:
        """
        Create or replace a file.

        Args:
            path: Virtual path of the file
            data: Content; text is encoded as UTF-8
            create: Allow creating a missing file
            overwrite: Allow replacing an existing file

        Raises:
            NoPermissionsError: If neither flag is set, or the file exists
                and ``overwrite`` is not set
            NotFoundError: If the file (or its parent) is missing and
                ``create`` is not set
            EntryNotAFileError: If ``path`` names a directory
            MalformedPathError: If the name is not allowed
        """
        with self._track("write_file", path):
            if not create and not overwrite:
                raise NoPermissionsError(
                    f"Permission denied: {path} (neither create nor overwrite is set)"
                )
            if isinstance(path, str) and path.endswith("/"):
                raise MalformedPathError(
                    "File/blob names with a trailing '/' are not allowed."
                )
            if isinstance(data, str):
                data = data.encode("utf-8")

            vpath, root = await self._locate(path)
            if vpath.is_root:
                raise EntryNotAFileError(f"Is a directory: {vpath.full_path}")

            entity = await self.entities.resolve(root, vpath, terminate_early=True)
            exists = entity.file_path == vpath.file_path

            if exists:
                if entity.kind != EntityKind.LEAF:
                    raise EntryNotAFileError(f"Is a directory: {vpath.full_path}")
                if not overwrite:
                    raise NoPermissionsError(
                        f"Permission denied: {vpath.full_path} exists and overwrite is not set"
                    )
            else:
                if not create:
                    raise NotFoundError(f"No such file or directory: {vpath.full_path}")
                validate_name(vpath.base_name, vpath.kind, is_directory=False)

            content_type, _ = mimetypes.guess_type(vpath.base_name)
            try:
                await root.put(vpath.file_path, data, content_type=content_type)
            except BackendError as e:
                raise classify_backend_error(e, vpath.full_path) from e

            self.stats["bytes_written"] += len(data)
            if exists:
                self._fire(FileChangeType.CHANGED, vpath)
                return

            # The new object gives every pending ancestor real backing
            for ancestor in ancestors(vpath):
                self.virtual_dirs.remove(ancestor.full_path)
            self.stats["files_created"] += 1
            self._fire(FileChangeType.CREATED, vpath)

    async def delete(
        self,
        path: PathLike,
        recursive: bool = False,
        cancellation: CancellationToken | None = None,
    ) -> DeleteResult:
        """
        Delete a file, or a directory and everything below it.

        A recursive delete is best effort: children that fail are collected
        in the returned DeleteResult and the walk continues.

        Raises:
            UnsupportedOperationError: For containers/shares, and for
                directories when ``recursive`` is not set
            NotFoundError: If ``path`` does not exist
            OperationCancelledError: If ``cancellation`` is triggered
        """
        with self._track("delete", path):
            vpath, root = await self._locate(path)
            if vpath.is_root:
                raise UnsupportedOperationError(
                    f"Deleting containers or shares is not supported: {vpath.full_path}"
                )

            entity = await self.entities.resolve(root, vpath, cancellation=cancellation)
            result = DeleteResult(path=vpath.full_path)

            if entity.kind == EntityKind.LEAF:
                try:
                    await root.delete(entity.path)
                except BackendError as e:
                    raise classify_backend_error(e, vpath.full_path) from e
                result.deleted.append(vpath.full_path)
                self.stats["files_deleted"] += 1
                self._fire(FileChangeType.DELETED, vpath)
                return result

            if not recursive:
                raise UnsupportedOperationError(
                    "Storage does not support nonrecursive deletion of folders."
                )

            if not entity.virtual:
                await self._delete_tree(root, vpath, entity, result, cancellation)
            self.virtual_dirs.remove_descendants_of(vpath.full_path)

            if result.errors:
                logger.warning(
                    f"Deleted {vpath.full_path} with {len(result.errors)} failures"
                )
            self._fire(FileChangeType.DELETED, vpath)
            return result

    async def _delete_tree(
        self,
        root: RootHandle,
        vpath: VirtualPath,
        entity: RootEntity | DirectoryEntity,
        result: DeleteResult,
        cancellation: CancellationToken | None,
    ) -> None:
        """Walk a directory with an explicit stack, deleting files as it goes."""
        is_share = isinstance(root, FileShareHandle)
        stack = [entity.dir_path]
        visited: list[str] = []

        while stack:
            prefix = stack.pop()
            check_cancelled(cancellation, f"Deleting {vpath.full_path}")
            visited.append(prefix)

            files: list[str] = []
            try:
                async for page in self.lister.pages(
                    root, prefix, cancellation=cancellation
                ):
                    stack.extend(f"{prefix}{entry.name}/" for entry in page.directories)
                    files.extend(entry.path for entry in page.files)
            except (BackendError, NotFoundError) as e:
                self._record_failure(result, with_file_path(vpath, prefix), e)
                continue

            await self._delete_files(root, vpath, files, result, cancellation)

        if not is_share:
            return

        # Share directories must be empty before they can be removed
        for prefix in reversed(visited):
            check_cancelled(cancellation, f"Deleting {vpath.full_path}")
            directory = with_file_path(vpath, prefix)
            try:
                await root.delete_directory(directory.file_path)
            except BackendError as e:
                self._record_failure(result, directory, e)
                continue
            result.deleted.append(directory.full_path)

    async def _delete_files(
        self,
        root: RootHandle,
        vpath: VirtualPath,
        files: list[str],
        result: DeleteResult,
        cancellation: CancellationToken | None,
    ) -> None:
        batch_size = self.config.delete_concurrency
        for start in range(0, len(files), batch_size):
            check_cancelled(cancellation, f"Deleting {vpath.full_path}")
            batch = files[start : start + batch_size]
            outcomes = await asyncio.gather(
                *(root.delete(file) for file in batch), return_exceptions=True
            )
            for file, outcome in zip(batch, outcomes):
                child = with_file_path(vpath, file)
                if isinstance(outcome, Exception):
                    self._record_failure(result, child, outcome)
                elif isinstance(outcome, BaseException):
                    raise outcome
                else:
                    result.deleted.append(child.full_path)
                    self.stats["files_deleted"] += 1

    def _record_failure(
        self, result: DeleteResult, vpath: VirtualPath, error: Exception
    ) -> None:
        error = classify_backend_error(error, vpath.full_path)
        logger.warning(f"Failed to delete {vpath.full_path}: {error}")
        result.errors.append(DeleteFailure(path=vpath.full_path, error=str(error)))

    async def rename(
        self, old_path: PathLike, new_path: PathLike, overwrite: bool = False
    ) -> None:
        """Moving and renaming are not supported by either storage model"""
        with self._track("rename", old_path):
            old = old_path if isinstance(old_path, VirtualPath) else decode(old_path)
            new = new_path if isinstance(new_path, VirtualPath) else decode(new_path)
            if old.base_name == new.base_name:
                raise UnsupportedOperationError("Moving folders or files is not supported.")
            raise UnsupportedOperationError("Renaming folders or files is not supported.")

    # Change notification

    def watch(
        self,
        path: PathLike,
        recursive: bool = False,
        excludes: list[str] | None = None,
    ) -> Subscription:
        """Return an inert subscription; remote changes are not observed"""
        logger.debug(f"watch {path} (recursive={recursive})")
        return Subscription()

    def on_did_change_file(self, listener: ChangeListener) -> Subscription:
        """Register ``listener`` for batches of changes made through this bridge"""
        return self.events.subscribe(listener)

    # Maintenance

    def refresh(self) -> None:
        """Forget cached root handles so the next call resolves them again"""
        self.roots.clear()
        logger.info("Refreshed root handle cache")

    def get_stats(self) -> dict[str, Any]:
        """Get filesystem statistics"""
        return {
            "filesystem_stats": self.stats.copy(),
            "lister_stats": self.lister.stats.copy(),
            "root_cache": {**self.roots.stats, "size": len(self.roots)},
            "pending_directories": len(self.virtual_dirs),
        }
