"""
chuk_blob_fs/entities.py - Resolved entities

An entity is the result of a lookup: the root itself, a directory (inferred
from a prefix, a real share directory, or a pending virtual directory) or a
leaf object. Entities are views constructed fresh on every lookup.
"""

from dataclasses import dataclass, field
from enum import Enum

from chuk_blob_fs.backends.base import RootHandle

SEPARATOR = "/"


class EntityKind(str, Enum):
    ROOT = "root"
    DIRECTORY = "directory"
    LEAF = "leaf"


@dataclass(frozen=True)
class RootEntity:
    """A blob container or file share."""

    root: RootHandle
    kind: EntityKind = field(default=EntityKind.ROOT, init=False)

    @property
    def file_path(self) -> str:
        return ""

    @property
    def dir_path(self) -> str:
        return ""


@dataclass(frozen=True)
class DirectoryEntity:
    """A directory below the root; ``virtual`` when it has no remote backing."""

    root: RootHandle
    parent_path: str
    name: str
    virtual: bool = False
    kind: EntityKind = field(default=EntityKind.DIRECTORY, init=False)

    @property
    def file_path(self) -> str:
        return f"{self.parent_path}{self.name}"

    @property
    def dir_path(self) -> str:
        return f"{self.file_path}{SEPARATOR}"


@dataclass(frozen=True)
class LeafEntity:
    """A blob or a share file."""

    root: RootHandle
    path: str
    size_hint: int = 0
    kind: EntityKind = field(default=EntityKind.LEAF, init=False)

    @property
    def file_path(self) -> str:
        return self.path

    @property
    def name(self) -> str:
        return self.path.rsplit(SEPARATOR, 1)[-1]


Entity = RootEntity | DirectoryEntity | LeafEntity
