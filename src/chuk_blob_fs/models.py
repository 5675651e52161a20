"""Pydantic models shared by the listing layer and the filesystem bridge."""

from enum import Enum, IntEnum

from pydantic import BaseModel, ConfigDict, Field


class EntryKind(str, Enum):
    """Kind of entry returned by a remote listing."""

    FILE = "file"
    DIRECTORY = "directory"


class FileType(IntEnum):
    """File type reported by stat and read_directory."""

    UNKNOWN = 0
    FILE = 1
    DIRECTORY = 2


class FileChangeType(IntEnum):
    """Kind of change carried by a FileChangeEvent."""

    CHANGED = 1
    CREATED = 2
    DELETED = 3


class ListingEntry(BaseModel):
    """One child returned by a remote listing call."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Base name of the child")
    path: str = Field(..., description="Full path of the child inside the root")
    kind: EntryKind = Field(..., description="File or directory")
    size: int = Field(default=0, ge=0, description="Size in bytes (files only)")

    @property
    def is_dir(self) -> bool:
        return self.kind == EntryKind.DIRECTORY


class ListingPage(BaseModel):
    """A single page of a paginated listing."""

    model_config = ConfigDict(frozen=True)

    entries: list[ListingEntry] = Field(default_factory=list)
    continuation_token: str | None = Field(
        default=None, description="Opaque cursor for the next page"
    )

    @property
    def exhausted(self) -> bool:
        return not self.continuation_token

    @property
    def files(self) -> list[ListingEntry]:
        return [entry for entry in self.entries if not entry.is_dir]

    @property
    def directories(self) -> list[ListingEntry]:
        return [entry for entry in self.entries if entry.is_dir]


class FileStat(BaseModel):
    """Result of stat. Times and size are not tracked and stay 0."""

    model_config = ConfigDict(frozen=True)

    type: FileType
    size: int = 0
    ctime: int = 0
    mtime: int = 0


class FileChangeEvent(BaseModel):
    """A change emitted to on_did_change_file listeners."""

    model_config = ConfigDict(frozen=True)

    type: FileChangeType
    path: str


class DeleteFailure(BaseModel):
    """A child that could not be deleted during a recursive delete."""

    model_config = ConfigDict(frozen=True)

    path: str
    error: str


class DeleteResult(BaseModel):
    """Outcome of delete; failures are collected rather than raised."""

    path: str
    deleted: list[str] = Field(default_factory=list)
    errors: list[DeleteFailure] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors
