"""
Abstract remote primitives used by the filesystem bridge.

A RootHandle wraps one blob container or one file share. Implementations
raise BackendError (with the remote status/error code) for failed calls; the
bridge classifies those into filesystem errors.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from chuk_blob_fs.models import ListingPage
from chuk_blob_fs.path_codec import RootKind

if TYPE_CHECKING:
    from chuk_blob_fs.path_codec import VirtualPath


class RootHandle(ABC):
    """A container or share plus the operations that can be run against it."""

    kind: RootKind

    def __init__(self, root_path: str, name: str) -> None:
        """
        Initialize the handle.

        Args:
            root_path: Virtual path identifying the root
            name: Container or share name
        """
        self.root_path = root_path
        self.name = name

    @abstractmethod
    async def get(self, path: str) -> bytes:
        """Download the object at ``path``."""

    @abstractmethod
    async def put(
        self, path: str, data: bytes, content_type: str | None = None
    ) -> None:
        """Create or replace the object at ``path``."""

    @abstractmethod
    async def delete(self, path: str) -> None:
        """Delete the object at ``path``."""

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """Check whether an object exists at ``path``."""

    async def close(self) -> None:
        """Release any client resources."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.root_path!r})"


class BlobContainerHandle(RootHandle):
    """Flat namespace: keys only, directories are delimiter-folded prefixes."""

    kind = RootKind.BLOB_CONTAINERS

    @abstractmethod
    async def list_page(
        self,
        prefix: str,
        delimiter: str = "/",
        continuation_token: str | None = None,
        page_size: int | None = None,
    ) -> ListingPage:
        """
        List one page of objects and sub-prefixes directly under ``prefix``.

        Entry names are relative to ``prefix``; sub-prefixes are returned as
        directory entries without their trailing delimiter.
        """


class FileShareHandle(RootHandle):
    """Shallow hierarchy: the backend understands real directories."""

    kind = RootKind.FILE_SHARES

    @abstractmethod
    async def list_directory_page(
        self,
        directory: str,
        continuation_token: str | None = None,
        page_size: int | None = None,
    ) -> ListingPage:
        """List one page of files and subdirectories of ``directory``."""

    @abstractmethod
    async def create_directory(self, path: str) -> None:
        """Create the directory ``path``; its parent must exist."""

    @abstractmethod
    async def delete_directory(self, path: str) -> None:
        """Delete the empty directory ``path``."""


class RootResolver(ABC):
    """Identity collaborator that materializes handles for root paths."""

    @abstractmethod
    async def resolve_root(self, vpath: "VirtualPath") -> RootHandle:
        """
        Return a handle for the container/share that ``vpath`` lives in.

        Raises:
            NotFoundError: If the container or share cannot be located
        """

    async def close(self) -> None:
        """Release any clients the resolver created."""
