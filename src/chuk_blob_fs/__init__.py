"""
chuk_blob_fs - A hierarchical filesystem view over Azure blob containers and file shares
"""

# Import core components (async native)
# Import utilities
from chuk_blob_fs import exceptions, path_codec
from chuk_blob_fs.backends import (
    BlobContainerHandle,
    FileShareHandle,
    InMemoryBlobContainer,
    InMemoryFileShare,
    InMemoryRootResolver,
    RootHandle,
    RootResolver,
)
from chuk_blob_fs.cancellation import CancellationToken
from chuk_blob_fs.config import StorageFSConfig
from chuk_blob_fs.entities import DirectoryEntity, EntityKind, LeafEntity, RootEntity
from chuk_blob_fs.events import Subscription
from chuk_blob_fs.fs_manager import AsyncStorageFileSystem
from chuk_blob_fs.lister import PaginatedLister
from chuk_blob_fs.models import (
    DeleteResult,
    FileChangeEvent,
    FileChangeType,
    FileStat,
    FileType,
)
from chuk_blob_fs.path_codec import RootKind, VirtualPath, decode, encode
from chuk_blob_fs.resolver import EntityResolver
from chuk_blob_fs.root_registry import RootRegistry
from chuk_blob_fs.sync_wrapper import SyncStorageFileSystem
from chuk_blob_fs.virtual_dirs import VirtualDirectoryRegistry

# Export main classes
__all__ = [
    # Core async components
    "AsyncStorageFileSystem",
    "SyncStorageFileSystem",
    "StorageFSConfig",
    "CancellationToken",
    "Subscription",
    # Paths
    "VirtualPath",
    "RootKind",
    "decode",
    "encode",
    # Internals exposed for composition
    "PaginatedLister",
    "VirtualDirectoryRegistry",
    "EntityResolver",
    "RootRegistry",
    "RootEntity",
    "DirectoryEntity",
    "LeafEntity",
    "EntityKind",
    # Models
    "FileStat",
    "FileType",
    "FileChangeEvent",
    "FileChangeType",
    "DeleteResult",
    # Backends
    "RootHandle",
    "BlobContainerHandle",
    "FileShareHandle",
    "RootResolver",
    "InMemoryBlobContainer",
    "InMemoryFileShare",
    "InMemoryRootResolver",
    # Utilities
    "path_codec",
    "exceptions",
]
