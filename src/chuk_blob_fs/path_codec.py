"""
chuk_blob_fs/path_codec.py - Virtual path decoding and encoding

A virtual path addresses an entry inside a blob container or a file share:

    /<account>/Blob Containers/<container>/<path inside the container>
    /<account>/File Shares/<share>/<path inside the share>

Anything may precede the root marker (an account name, or a full resource id
such as ``/subscriptions/.../storageAccounts/<account>``).
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from chuk_blob_fs.exceptions import MalformedPathError

SEPARATOR = "/"

BLOB_DIRECTORY_INVALID_CHAR = "\\"
SHARE_INVALID_CHARS = ('"', "/", "\\", ":", "|", "<", ">", "?", "*")
SHARE_NAME_MAX_LENGTH = 255


class RootKind(str, Enum):
    """Kind of storage root, named after its marker segment in a path."""

    BLOB_CONTAINERS = "Blob Containers"
    FILE_SHARES = "File Shares"


class VirtualPath(BaseModel):
    """A decoded virtual path."""

    model_config = ConfigDict(frozen=True)

    kind: RootKind = Field(..., description="Container or share discriminator")
    account_name: str = Field(default="", description="Segment before the marker")
    root_path: str = Field(..., description="Path identifying the container/share")
    root_name: str = Field(..., description="Container or share name")
    file_path: str = Field(default="", description="Path inside the root")
    dir_path: str = Field(default="", description="file_path with a trailing '/'")
    parent_dir_path: str = Field(
        default="", description="Parent of file_path, with a trailing '/'"
    )
    base_name: str = Field(default="", description="Last segment of file_path")

    @property
    def is_root(self) -> bool:
        return self.file_path == ""

    @property
    def segments(self) -> list[str]:
        return self.file_path.split(SEPARATOR) if self.file_path else []

    @property
    def full_path(self) -> str:
        return encode(self)

    def __str__(self) -> str:
        return self.full_path


def _build(kind: RootKind, prefix: str, root_name: str, parts: list[str]) -> VirtualPath:
    file_path = SEPARATOR.join(parts)
    return VirtualPath(
        kind=kind,
        account_name=prefix.rsplit(SEPARATOR, 1)[-1],
        root_path=f"{prefix}{SEPARATOR}{kind.value}{SEPARATOR}{root_name}",
        root_name=root_name,
        file_path=file_path,
        dir_path=f"{file_path}{SEPARATOR}" if file_path else "",
        parent_dir_path=(
            SEPARATOR.join(parts[:-1]) + SEPARATOR if len(parts) > 1 else ""
        ),
        base_name=parts[-1] if parts else "",
    )


def detect_kind(raw_path: str) -> RootKind:
    """Find which root marker a raw path carries; the first one wins."""
    path = _absolute(raw_path)
    found = []
    for kind in RootKind:
        index = path.find(f"{SEPARATOR}{kind.value}{SEPARATOR}")
        if index >= 0:
            found.append((index, kind))
    if not found:
        raise MalformedPathError(
            f"Invalid path. Cannot view or modify {raw_path!r}: "
            f"expected a '{RootKind.BLOB_CONTAINERS.value}' or "
            f"'{RootKind.FILE_SHARES.value}' segment."
        )
    return min(found, key=lambda item: item[0])[1]


def _absolute(raw_path: str) -> str:
    return raw_path if raw_path.startswith(SEPARATOR) else SEPARATOR + raw_path


def decode(raw_path: str, kind: RootKind | str | None = None) -> VirtualPath:
    """
    Decode a raw virtual path.

    Args:
        raw_path: Path of the form ``.../<marker>/<rootName>/<rest>``
        kind: Expected root kind; detected from the path when omitted

    Returns:
        The decoded VirtualPath

    Raises:
        MalformedPathError: If the path does not have the expected shape
    """
    if not raw_path:
        raise MalformedPathError("Invalid path. Path is empty.")

    kind = detect_kind(raw_path) if kind is None else RootKind(kind)
    path = _absolute(raw_path)

    marker = f"{SEPARATOR}{kind.value}{SEPARATOR}"
    index = path.find(marker)
    if index < 0:
        raise MalformedPathError(
            f"Invalid path. {raw_path!r} does not contain '{kind.value}'."
        )

    prefix = path[:index]
    rest = [part for part in path[index + len(marker) :].split(SEPARATOR) if part]
    if not rest:
        raise MalformedPathError(
            f"Invalid path. {raw_path!r} does not name a {kind.value[:-1].lower()}."
        )

    return _build(kind, prefix, rest[0], rest[1:])


def encode(vpath: VirtualPath) -> str:
    """Build the raw path for a decoded VirtualPath (inverse of decode)."""
    if vpath.file_path:
        return f"{vpath.root_path}{SEPARATOR}{vpath.file_path}"
    return vpath.root_path


def with_file_path(vpath: VirtualPath, file_path: str) -> VirtualPath:
    """Return a path in the same root pointing at ``file_path``."""
    prefix = vpath.root_path[: -len(f"{SEPARATOR}{vpath.kind.value}{SEPARATOR}{vpath.root_name}")]
    parts = [part for part in file_path.split(SEPARATOR) if part]
    return _build(vpath.kind, prefix, vpath.root_name, parts)


def join(vpath: VirtualPath, name: str) -> VirtualPath:
    """Return the path of child ``name`` under ``vpath``."""
    return with_file_path(vpath, f"{vpath.dir_path}{name}")


def parent(vpath: VirtualPath) -> VirtualPath:
    """Return the parent path; the root is its own parent."""
    return with_file_path(vpath, vpath.parent_dir_path)


def ancestors(vpath: VirtualPath) -> list[VirtualPath]:
    """Return every proper ancestor of ``vpath`` below the root, nearest first."""
    result = []
    current = vpath
    while not current.is_root:
        current = parent(current)
        if current.is_root:
            break
        result.append(current)
    return result


def validate_name(name: str, kind: RootKind, is_directory: bool) -> None:
    """
    Validate the name of a new file or directory.

    Raises:
        MalformedPathError: If the name is not allowed for the root kind
    """
    label = "Directory name" if is_directory else "Filename"

    if kind == RootKind.BLOB_CONTAINERS:
        if not name:
            raise MalformedPathError(f"{label} cannot be empty")
        if is_directory and BLOB_DIRECTORY_INVALID_CHAR in name:
            raise MalformedPathError(
                f"{label} cannot contain '{BLOB_DIRECTORY_INVALID_CHAR}'"
            )
        return

    if not name:
        raise MalformedPathError(f"{label} cannot be empty")
    if len(name) > SHARE_NAME_MAX_LENGTH:
        raise MalformedPathError(
            f"{label} must contain between 1 and {SHARE_NAME_MAX_LENGTH} characters"
        )
    if any(char in name for char in SHARE_INVALID_CHARS):
        raise MalformedPathError(
            f"{label} cannot contain the following characters: "
            f"{', '.join(SHARE_INVALID_CHARS)}"
        )
