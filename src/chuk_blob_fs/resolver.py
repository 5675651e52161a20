"""
chuk_blob_fs/resolver.py - Hierarchical lookup over listings

Turns a VirtualPath into an entity by listing one level at a time, the same
way a path is resolved against a provider that only knows parent/child
relations: start at the root, find the child named by the next segment,
descend, repeat.
"""

import logging

from chuk_blob_fs.backends.base import RootHandle
from chuk_blob_fs.cancellation import CancellationToken, check_cancelled
from chuk_blob_fs.entities import (
    DirectoryEntity,
    Entity,
    EntityKind,
    LeafEntity,
    RootEntity,
)
from chuk_blob_fs.exceptions import EntryNotADirectoryError, NotFoundError
from chuk_blob_fs.lister import PaginatedLister
from chuk_blob_fs.models import ListingEntry
from chuk_blob_fs.path_codec import VirtualPath, with_file_path
from chuk_blob_fs.virtual_dirs import VirtualDirectoryRegistry

logger = logging.getLogger(__name__)


def _find(entries: list[ListingEntry], name: str, is_dir: bool) -> ListingEntry | None:
    for entry in entries:
        if entry.name == name and entry.is_dir == is_dir:
            return entry
    return None


class EntityResolver:
    """Resolves virtual paths to root, directory or leaf entities."""

    def __init__(
        self, lister: PaginatedLister, virtual_dirs: VirtualDirectoryRegistry
    ) -> None:
        self.lister = lister
        self.virtual_dirs = virtual_dirs

    async def resolve_existing(
        self,
        root: RootHandle,
        vpath: VirtualPath,
        cancellation: CancellationToken | None = None,
    ) -> tuple[Entity, list[str]]:
        """
        Walk ``vpath`` as far as it exists.

        At each level a real sub-directory wins over a leaf with the same
        name, and a leaf wins over a pending directory. A leaf only matches
        the final segment.

        Returns:
            The deepest existing entity and the segments below it that are
            missing (empty when the whole path exists)

        Raises:
            EntryNotADirectoryError: If a non-final segment names a leaf
        """
        current: RootEntity | DirectoryEntity = RootEntity(root=root)
        segments = vpath.segments

        for index, segment in enumerate(segments):
            check_cancelled(cancellation, f"Resolving {vpath.full_path}")
            is_final = index == len(segments) - 1
            parent_path = current.dir_path

            entries = await self.lister.list_children(
                root, parent_path, cancellation=cancellation
            )

            if _find(entries, segment, is_dir=True) is not None:
                current = DirectoryEntity(root=root, parent_path=parent_path, name=segment)
                continue

            leaf = _find(entries, segment, is_dir=False)
            if leaf is not None:
                if is_final:
                    return LeafEntity(root=root, path=leaf.path, size_hint=leaf.size), []
                raise EntryNotADirectoryError(
                    f"Not a directory: {with_file_path(vpath, leaf.path).full_path}"
                )

            pending = with_file_path(vpath, f"{parent_path}{segment}")
            if self.virtual_dirs.has(pending.full_path):
                current = DirectoryEntity(
                    root=root, parent_path=parent_path, name=segment, virtual=True
                )
                continue

            return current, list(segments[index:])

        return current, []

    async def resolve(
        self,
        root: RootHandle,
        vpath: VirtualPath,
        terminate_early: bool = False,
        cancellation: CancellationToken | None = None,
    ) -> Entity:
        """
        Resolve ``vpath`` inside ``root``.

        Args:
            root: Handle of the container or share
            vpath: Path to resolve
            terminate_early: Return the parent entity instead of raising when
                only the final segment is missing
            cancellation: Checked before each listing

        Raises:
            NotFoundError: If a segment cannot be found
            EntryNotADirectoryError: If a non-final segment names a leaf
        """
        entity, missing = await self.resolve_existing(root, vpath, cancellation)
        if not missing:
            return entity

        if terminate_early and len(missing) == 1:
            logger.debug(f"{vpath.full_path} not found, stopping at '{entity.file_path}'")
            return entity

        raise NotFoundError(f"No such file or directory: {vpath.full_path}")

    async def resolve_directory(
        self,
        root: RootHandle,
        vpath: VirtualPath,
        cancellation: CancellationToken | None = None,
    ) -> RootEntity | DirectoryEntity:
        """Resolve a path that must name a root or a directory."""
        entity = await self.resolve(root, vpath, cancellation=cancellation)
        if entity.kind == EntityKind.LEAF:
            raise EntryNotADirectoryError(f"Not a directory: {vpath.full_path}")
        return entity

    async def resolve_leaf(
        self,
        root: RootHandle,
        vpath: VirtualPath,
        cancellation: CancellationToken | None = None,
    ) -> LeafEntity:
        """Resolve a path that must name a leaf; directories count as missing."""
        entity = await self.resolve(root, vpath, cancellation=cancellation)
        if entity.kind != EntityKind.LEAF:
            raise NotFoundError(f"No such file: {vpath.full_path}")
        return entity
