"""Remote storage backends for chuk_blob_fs."""

from chuk_blob_fs.backends.base import (
    BlobContainerHandle,
    FileShareHandle,
    RootHandle,
    RootResolver,
)
from chuk_blob_fs.backends.memory import (
    InMemoryBlobContainer,
    InMemoryFileShare,
    InMemoryRootResolver,
)

__all__ = [
    "RootHandle",
    "BlobContainerHandle",
    "FileShareHandle",
    "RootResolver",
    "InMemoryBlobContainer",
    "InMemoryFileShare",
    "InMemoryRootResolver",
]
