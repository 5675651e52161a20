"""
Comprehensive pytest test suite for the async storage filesystem bridge
"""

import asyncio
import logging
from unittest.mock import AsyncMock, patch

import pytest

from chuk_blob_fs.backends.memory import (
    InMemoryBlobContainer,
    InMemoryFileShare,
    InMemoryRootResolver,
)
from chuk_blob_fs.cancellation import CancellationToken
from chuk_blob_fs.config import StorageFSConfig
from chuk_blob_fs.events import Subscription
from chuk_blob_fs.exceptions import (
    AlreadyExistsError,
    BackendError,
    EntryNotADirectoryError,
    EntryNotAFileError,
    MalformedPathError,
    NoPermissionsError,
    NotFoundError,
    OperationCancelledError,
    UnsupportedOperationError,
)
from chuk_blob_fs.fs_manager import AsyncStorageFileSystem
from chuk_blob_fs.models import FileChangeType, FileType
from chuk_blob_fs.path_codec import decode

BLOB = "/acct/Blob Containers/c1"
SHARE = "/acct/File Shares/s1"


class FlakyContainer(InMemoryBlobContainer):
    """Container that refuses to delete selected keys"""

    def __init__(self, *args, fail_on=(), **kwargs):
        super().__init__(*args, **kwargs)
        self.fail_on = set(fail_on)

    async def delete(self, path):
        if path in self.fail_on:
            await self._remote_call("deletes")
            raise BackendError("lease is held", status_code=412, error_code="LeaseIdMissing")
        await super().delete(path)


@pytest.fixture
def container():
    return InMemoryBlobContainer(
        BLOB,
        objects={
            "a/1.txt": b"one",
            "a/b/2.txt": b"two",
            "top.txt": b"top",
        },
    )


@pytest.fixture
def share():
    return InMemoryFileShare(
        SHARE,
        files={"docs/readme.md": b"# hi", "docs/sub/x.txt": b"x"},
    )


@pytest.fixture
def resolver(container, share):
    return InMemoryRootResolver(container, share)


@pytest.fixture
async def fs(resolver):
    """Create a bridge over an in-memory container and share"""
    bridge = AsyncStorageFileSystem(resolver, config=StorageFSConfig(event_delay=0))
    await bridge.initialize()
    yield bridge
    await bridge.close()


def names(listing):
    return sorted(listing)


class TestLifecycle:
    """Test initialization, close and stats"""

    @pytest.mark.asyncio
    async def test_context_manager(self, resolver):
        async with AsyncStorageFileSystem(resolver) as bridge:
            assert bridge._initialized
            assert not bridge._closed

        assert bridge._closed

    @pytest.mark.asyncio
    async def test_default_config(self, resolver):
        bridge = AsyncStorageFileSystem(resolver)

        assert bridge.config.page_size == 1000
        assert bridge.lister.page_size == 1000
        assert bridge.lister.drain is False

    @pytest.mark.asyncio
    async def test_stats(self, fs):
        await fs.stat(f"{BLOB}/top.txt")
        with pytest.raises(NotFoundError):
            await fs.stat(f"{BLOB}/nope")

        stats = fs.get_stats()
        assert stats["filesystem_stats"]["operations"] == 1
        assert stats["filesystem_stats"]["errors"] == 1
        assert stats["root_cache"]["size"] == 1
        assert stats["pending_directories"] == 0

    @pytest.mark.asyncio
    async def test_refresh_clears_root_cache(self, fs, resolver):
        await fs.stat(BLOB)
        fs.refresh()
        await fs.stat(BLOB)

        assert resolver.resolve_count == 2

    @pytest.mark.asyncio
    async def test_unknown_root(self, fs):
        with pytest.raises(NotFoundError):
            await fs.read_directory("/acct/Blob Containers/missing")

    @pytest.mark.asyncio
    async def test_malformed_path(self, fs):
        with pytest.raises(MalformedPathError):
            await fs.stat("/acct/Queues/q1")


class TestStat:
    """Test stat"""

    @pytest.mark.asyncio
    async def test_stat_types(self, fs):
        assert (await fs.stat(BLOB)).type == FileType.DIRECTORY
        assert (await fs.stat(f"{BLOB}/a")).type == FileType.DIRECTORY
        assert (await fs.stat(f"{SHARE}/docs/sub")).type == FileType.DIRECTORY

        stat = await fs.stat(f"{BLOB}/top.txt")
        assert stat.type == FileType.FILE
        assert (stat.size, stat.ctime, stat.mtime) == (0, 0, 0)

    @pytest.mark.asyncio
    async def test_stat_missing(self, fs):
        with pytest.raises(FileNotFoundError):
            await fs.stat(f"{BLOB}/a/missing.txt")

    @pytest.mark.asyncio
    async def test_stat_accepts_virtual_path(self, fs):
        stat = await fs.stat(decode(f"{BLOB}/a/1.txt"))
        assert stat.type == FileType.FILE


class TestReadDirectory:
    """Test directory enumeration"""

    @pytest.mark.asyncio
    async def test_root(self, fs):
        listing = await fs.read_directory(BLOB)
        assert names(listing) == [("a", FileType.DIRECTORY), ("top.txt", FileType.FILE)]

    @pytest.mark.asyncio
    async def test_subdirectory(self, fs):
        listing = await fs.read_directory(f"{BLOB}/a")
        assert names(listing) == [("1.txt", FileType.FILE), ("b", FileType.DIRECTORY)]

    @pytest.mark.asyncio
    async def test_share(self, fs):
        assert await fs.read_directory(SHARE) == [("docs", FileType.DIRECTORY)]
        assert names(await fs.read_directory(f"{SHARE}/docs")) == [
            ("readme.md", FileType.FILE),
            ("sub", FileType.DIRECTORY),
        ]

    @pytest.mark.asyncio
    async def test_file_is_not_a_directory(self, fs):
        with pytest.raises(EntryNotADirectoryError):
            await fs.read_directory(f"{BLOB}/top.txt")

    @pytest.mark.asyncio
    async def test_shadowed_pending_entry_is_suppressed_and_purged(self, fs):
        fs.virtual_dirs.add(f"{BLOB}/a")

        listing = await fs.read_directory(BLOB)

        assert [name for name, _ in listing].count("a") == 1
        assert not fs.virtual_dirs.has(f"{BLOB}/a")

    @pytest.mark.asyncio
    async def test_first_page_only_by_default(self, resolver, container):
        for i in range(5):
            container.objects[f"many/f{i}.txt"] = b"x"

        async with AsyncStorageFileSystem(resolver, StorageFSConfig(page_size=2)) as bridge:
            assert len(await bridge.read_directory(f"{BLOB}/many")) == 2

    @pytest.mark.asyncio
    async def test_drain_listings(self, resolver, container):
        for i in range(5):
            container.objects[f"many/f{i}.txt"] = b"x"

        config = StorageFSConfig(page_size=2, drain_listings=True)
        async with AsyncStorageFileSystem(resolver, config) as bridge:
            assert len(await bridge.read_directory(f"{BLOB}/many")) == 5


class TestCreateDirectory:
    """Test directory creation"""

    @pytest.mark.asyncio
    async def test_blob_directory_is_pending(self, fs, container):
        await fs.create_directory(f"{BLOB}/newdir")

        assert fs.virtual_dirs.has(f"{BLOB}/newdir")
        assert ("newdir", FileType.DIRECTORY) in await fs.read_directory(BLOB)
        assert (await fs.stat(f"{BLOB}/newdir")).type == FileType.DIRECTORY
        assert container.stats["puts"] == 0
        assert "newdir" not in container.objects

    @pytest.mark.asyncio
    async def test_nested_pending_directories(self, fs):
        await fs.create_directory(f"{BLOB}/n1")
        await fs.create_directory(f"{BLOB}/n1/n2")

        assert await fs.read_directory(f"{BLOB}/n1") == [("n2", FileType.DIRECTORY)]
        assert await fs.read_directory(f"{BLOB}/n1/n2") == []

    @pytest.mark.asyncio
    async def test_already_pending(self, fs):
        await fs.create_directory(f"{BLOB}/newdir")

        with pytest.raises(AlreadyExistsError):
            await fs.create_directory(f"{BLOB}/newdir")

    @pytest.mark.asyncio
    async def test_already_real(self, fs):
        with pytest.raises(AlreadyExistsError):
            await fs.create_directory(f"{BLOB}/a")
        with pytest.raises(FileExistsError):
            await fs.create_directory(f"{BLOB}/top.txt")

    @pytest.mark.asyncio
    async def test_root_exists(self, fs):
        with pytest.raises(AlreadyExistsError):
            await fs.create_directory(BLOB)

    @pytest.mark.asyncio
    async def test_missing_intermediate_directories_become_pending(self, fs, container):
        await fs.create_directory(f"{BLOB}/a/x/y/z")

        assert fs.virtual_dirs.snapshot() == {
            f"{BLOB}/a/x",
            f"{BLOB}/a/x/y",
            f"{BLOB}/a/x/y/z",
        }
        assert ("x", FileType.DIRECTORY) in await fs.read_directory(f"{BLOB}/a")
        assert await fs.read_directory(f"{BLOB}/a/x/y") == [("z", FileType.DIRECTORY)]
        assert container.stats["puts"] == 0

    @pytest.mark.asyncio
    async def test_missing_directories_in_empty_container(self, fs):
        await fs.create_directory(f"{BLOB}/p/q")

        assert fs.virtual_dirs.has(f"{BLOB}/p")
        assert fs.virtual_dirs.has(f"{BLOB}/p/q")

    @pytest.mark.asyncio
    async def test_file_on_the_way(self, fs):
        with pytest.raises(EntryNotADirectoryError):
            await fs.create_directory(f"{BLOB}/top.txt/x/y")
        assert len(fs.virtual_dirs) == 0

    @pytest.mark.asyncio
    async def test_blob_directory_name_validation(self, fs):
        with pytest.raises(MalformedPathError):
            await fs.create_directory(f"{BLOB}/bad\\name")

    @pytest.mark.asyncio
    async def test_share_directory_is_remote(self, fs, share):
        await fs.create_directory(f"{SHARE}/docs/new")

        assert "docs/new" in share.directories
        assert len(fs.virtual_dirs) == 0
        assert ("new", FileType.DIRECTORY) in await fs.read_directory(f"{SHARE}/docs")

    @pytest.mark.asyncio
    async def test_share_directory_conflict(self, fs):
        with pytest.raises(AlreadyExistsError):
            await fs.create_directory(f"{SHARE}/docs")

    @pytest.mark.asyncio
    async def test_share_missing_parent(self, fs):
        with pytest.raises(NotFoundError):
            await fs.create_directory(f"{SHARE}/nope/child")

    @pytest.mark.asyncio
    async def test_share_name_validation(self, fs, share):
        with pytest.raises(MalformedPathError):
            await fs.create_directory(f"{SHARE}/bad:name")
        assert share.stats["mkdirs"] == 0

    @pytest.mark.asyncio
    async def test_concurrent_listing_during_create(self, fs):
        results = await asyncio.gather(
            fs.create_directory(f"{BLOB}/racing"),
            fs.read_directory(BLOB),
            fs.read_directory(BLOB),
        )

        for listing in results[1:]:
            assert ("a", FileType.DIRECTORY) in listing
        assert ("racing", FileType.DIRECTORY) in await fs.read_directory(BLOB)


class TestReadFile:
    """Test reading files"""

    @pytest.mark.asyncio
    async def test_read(self, fs):
        assert await fs.read_file(f"{BLOB}/a/b/2.txt") == b"two"
        assert await fs.read_file(f"{SHARE}/docs/readme.md") == b"# hi"
        assert fs.stats["bytes_read"] == 7

    @pytest.mark.asyncio
    async def test_directory_is_not_found(self, fs):
        with pytest.raises(NotFoundError):
            await fs.read_file(f"{BLOB}/a")

    @pytest.mark.asyncio
    async def test_missing(self, fs):
        with pytest.raises(NotFoundError):
            await fs.read_file(f"{BLOB}/missing.txt")

    @pytest.mark.asyncio
    async def test_remote_not_found_is_classified(self, fs, container):
        error = BackendError("gone", status_code=404, error_code="BlobNotFound")
        with patch.object(container, "get", AsyncMock(side_effect=error)):
            with pytest.raises(NotFoundError) as exc_info:
                await fs.read_file(f"{BLOB}/top.txt")

        assert exc_info.value.__cause__ is error

    @pytest.mark.asyncio
    async def test_other_backend_errors_propagate(self, fs, container):
        error = BackendError("throttled", status_code=503, error_code="ServerBusy")
        with patch.object(container, "get", AsyncMock(side_effect=error)):
            with pytest.raises(BackendError):
                await fs.read_file(f"{BLOB}/top.txt")

    @pytest.mark.asyncio
    async def test_max_read_bytes(self, resolver):
        config = StorageFSConfig(max_read_bytes=2)
        async with AsyncStorageFileSystem(resolver, config) as bridge:
            with pytest.raises(UnsupportedOperationError, match="too large"):
                await bridge.read_file(f"{BLOB}/top.txt")


class TestWriteFile:
    """Test writing files"""

    @pytest.mark.asyncio
    async def test_create(self, fs, container):
        await fs.write_file(f"{BLOB}/a/new.json", b"{}", create=True, overwrite=False)

        assert container.objects["a/new.json"] == b"{}"
        assert container.content_types["a/new.json"] == "application/json"
        assert fs.stats["files_created"] == 1
        assert fs.stats["bytes_written"] == 2

    @pytest.mark.asyncio
    async def test_text_is_encoded(self, fs, container):
        await fs.write_file(f"{BLOB}/hello.txt", "héllo")
        assert container.objects["hello.txt"] == "héllo".encode()

    @pytest.mark.asyncio
    async def test_overwrite(self, fs, container):
        await fs.write_file(f"{BLOB}/top.txt", b"new", create=False, overwrite=True)

        assert container.objects["top.txt"] == b"new"
        assert fs.stats["files_created"] == 0

    @pytest.mark.asyncio
    async def test_existing_without_overwrite(self, fs, container):
        with pytest.raises(NoPermissionsError):
            await fs.write_file(f"{BLOB}/top.txt", b"new", create=True, overwrite=False)
        assert container.objects["top.txt"] == b"top"

    @pytest.mark.asyncio
    async def test_missing_without_create(self, fs):
        with pytest.raises(NotFoundError):
            await fs.write_file(f"{BLOB}/a/new.txt", b"x", create=False, overwrite=True)

    @pytest.mark.asyncio
    async def test_neither_flag(self, fs):
        with pytest.raises(PermissionError):
            await fs.write_file(f"{BLOB}/a/new.txt", b"x", create=False, overwrite=False)

    @pytest.mark.asyncio
    async def test_trailing_separator(self, fs, container):
        with pytest.raises(MalformedPathError, match="trailing"):
            await fs.write_file(f"{BLOB}/a/new/", b"x")
        assert container.stats["puts"] == 0

    @pytest.mark.asyncio
    async def test_directory_target(self, fs):
        with pytest.raises(EntryNotAFileError):
            await fs.write_file(f"{BLOB}/a", b"x")
        with pytest.raises(IsADirectoryError):
            await fs.write_file(BLOB, b"x")

    @pytest.mark.asyncio
    async def test_missing_parent(self, fs):
        with pytest.raises(NotFoundError):
            await fs.write_file(f"{BLOB}/nope/new.txt", b"x")

    @pytest.mark.asyncio
    async def test_write_under_pending_directory(self, fs, container):
        await fs.create_directory(f"{BLOB}/newdir")

        await fs.write_file(f"{BLOB}/newdir/f.txt", b"data", create=True)

        listing = await fs.read_directory(BLOB)
        assert [name for name, _ in listing].count("newdir") == 1
        assert ("newdir", FileType.DIRECTORY) in listing
        assert not fs.virtual_dirs.has(f"{BLOB}/newdir")
        assert container.objects["newdir/f.txt"] == b"data"

    @pytest.mark.asyncio
    async def test_write_clears_every_pending_ancestor(self, fs):
        await fs.create_directory(f"{BLOB}/n1")
        await fs.create_directory(f"{BLOB}/n1/n2")
        await fs.create_directory(f"{BLOB}/n1/other")

        await fs.write_file(f"{BLOB}/n1/n2/f.txt", b"x")

        assert fs.virtual_dirs.snapshot() == frozenset({f"{BLOB}/n1/other"})
        assert names(await fs.read_directory(f"{BLOB}/n1")) == [
            ("n2", FileType.DIRECTORY),
            ("other", FileType.DIRECTORY),
        ]

    @pytest.mark.asyncio
    async def test_share_write(self, fs, share):
        await fs.write_file(f"{SHARE}/docs/sub/new.txt", b"new")
        assert share.files["docs/sub/new.txt"] == b"new"

    @pytest.mark.asyncio
    async def test_share_name_validation(self, fs):
        with pytest.raises(MalformedPathError):
            await fs.write_file(f"{SHARE}/docs/what?.txt", b"x")


class TestDelete:
    """Test deletion"""

    @pytest.mark.asyncio
    async def test_delete_leaf(self, fs, container):
        result = await fs.delete(f"{BLOB}/top.txt")

        assert result.ok
        assert result.deleted == [f"{BLOB}/top.txt"]
        assert "top.txt" not in container.objects
        assert fs.stats["files_deleted"] == 1

    @pytest.mark.asyncio
    async def test_delete_missing(self, fs):
        with pytest.raises(NotFoundError):
            await fs.delete(f"{BLOB}/missing.txt")

    @pytest.mark.asyncio
    async def test_roots_cannot_be_deleted(self, fs):
        with pytest.raises(UnsupportedOperationError):
            await fs.delete(BLOB, recursive=True)
        with pytest.raises(UnsupportedOperationError):
            await fs.delete(SHARE, recursive=True)

    @pytest.mark.asyncio
    async def test_directory_requires_recursive(self, fs, container):
        with pytest.raises(UnsupportedOperationError):
            await fs.delete(f"{BLOB}/a", recursive=False)
        assert "a/1.txt" in container.objects
        assert container.stats["deletes"] == 0

    @pytest.mark.asyncio
    async def test_recursive_blob_delete(self, fs, container):
        result = await fs.delete(f"{BLOB}/a", recursive=True)

        assert result.ok
        assert sorted(result.deleted) == [f"{BLOB}/a/1.txt", f"{BLOB}/a/b/2.txt"]
        assert set(container.objects) == {"top.txt"}
        with pytest.raises(NotFoundError):
            await fs.stat(f"{BLOB}/a")

    @pytest.mark.asyncio
    async def test_partial_failure_is_collected(self, caplog):
        container = FlakyContainer(
            BLOB,
            objects={"a/1.txt": b"1", "a/b/2.txt": b"2", "a/b/3.txt": b"3"},
            fail_on={"a/b/2.txt"},
        )
        caplog.set_level(logging.WARNING, logger="chuk_blob_fs.fs_manager")

        async with AsyncStorageFileSystem(InMemoryRootResolver(container)) as bridge:
            result = await bridge.delete(f"{BLOB}/a", recursive=True)

        assert not result.ok
        assert [failure.path for failure in result.errors] == [f"{BLOB}/a/b/2.txt"]
        assert "lease is held" in result.errors[0].error
        assert set(container.objects) == {"a/b/2.txt"}
        assert "Failed to delete" in caplog.text

    @pytest.mark.asyncio
    async def test_delete_concurrency_batches(self, resolver, container):
        for i in range(12):
            container.objects[f"bulk/f{i:02}.txt"] = b"x"

        config = StorageFSConfig(delete_concurrency=5)
        async with AsyncStorageFileSystem(resolver, config) as bridge:
            result = await bridge.delete(f"{BLOB}/bulk", recursive=True)

        assert len(result.deleted) == 12
        assert not any(key.startswith("bulk/") for key in container.objects)

    @pytest.mark.asyncio
    async def test_delete_pending_directory(self, fs, container):
        await fs.create_directory(f"{BLOB}/p")
        await fs.create_directory(f"{BLOB}/p/q")

        result = await fs.delete(f"{BLOB}/p", recursive=True)

        assert result.ok
        assert len(fs.virtual_dirs) == 0
        assert container.stats["deletes"] == 0

    @pytest.mark.asyncio
    async def test_delete_real_directory_drops_pending_children(self, fs):
        await fs.create_directory(f"{BLOB}/a/pending")

        await fs.delete(f"{BLOB}/a", recursive=True)

        assert len(fs.virtual_dirs) == 0

    @pytest.mark.asyncio
    async def test_recursive_share_delete(self, fs, share):
        result = await fs.delete(f"{SHARE}/docs", recursive=True)

        assert result.ok
        assert share.files == {}
        assert share.directories == {""}
        assert result.deleted[-2:] == [f"{SHARE}/docs/sub", f"{SHARE}/docs"]

    @pytest.mark.asyncio
    async def test_cancelled_before_start(self, fs, container):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(OperationCancelledError):
            await fs.delete(f"{BLOB}/a", recursive=True, cancellation=token)
        assert container.stats["deletes"] == 0

    @pytest.mark.asyncio
    async def test_cancelled_mid_walk(self, resolver, container):
        for i in range(5):
            container.objects[f"big/f{i}.txt"] = b"x"
        token = CancellationToken()
        original_delete = container.delete

        async def delete_then_cancel(path):
            await original_delete(path)
            token.cancel()

        config = StorageFSConfig(delete_concurrency=1)
        async with AsyncStorageFileSystem(resolver, config) as bridge:
            with patch.object(container, "delete", side_effect=delete_then_cancel):
                with pytest.raises(OperationCancelledError):
                    await bridge.delete(f"{BLOB}/big", recursive=True, cancellation=token)

        remaining = [key for key in container.objects if key.startswith("big/")]
        assert len(remaining) == 4


class TestRename:
    """Test rename"""

    @pytest.mark.asyncio
    async def test_move(self, fs):
        with pytest.raises(UnsupportedOperationError, match="Moving folders or files"):
            await fs.rename(f"{BLOB}/top.txt", f"{BLOB}/a/top.txt")

    @pytest.mark.asyncio
    async def test_rename(self, fs):
        with pytest.raises(UnsupportedOperationError, match="Renaming folders or files"):
            await fs.rename(f"{BLOB}/top.txt", f"{BLOB}/renamed.txt", overwrite=True)


class TestChangeNotification:
    """Test watch and on_did_change_file"""

    @pytest.mark.asyncio
    async def test_watch_is_inert(self, fs):
        subscription = fs.watch(BLOB, recursive=True, excludes=["**/tmp"])
        assert isinstance(subscription, Subscription)

        await fs.write_file(f"{BLOB}/watched.txt", b"x")
        subscription.cancel()
        subscription.dispose()

        assert subscription.cancelled

    @pytest.mark.asyncio
    async def test_events(self, fs):
        batches = []
        fs.on_did_change_file(batches.append)

        await fs.create_directory(f"{BLOB}/d")
        await fs.write_file(f"{BLOB}/d/f.txt", b"x")
        await fs.write_file(f"{BLOB}/d/f.txt", b"y")
        await fs.delete(f"{BLOB}/d/f.txt")
        await asyncio.sleep(0.05)

        events = [(e.type, e.path) for batch in batches for e in batch]
        assert events == [
            (FileChangeType.CREATED, f"{BLOB}/d"),
            (FileChangeType.CREATED, f"{BLOB}/d/f.txt"),
            (FileChangeType.CHANGED, f"{BLOB}/d/f.txt"),
            (FileChangeType.DELETED, f"{BLOB}/d/f.txt"),
        ]

    @pytest.mark.asyncio
    async def test_failed_operations_emit_nothing(self, fs):
        batches = []
        fs.on_did_change_file(batches.append)

        with pytest.raises(AlreadyExistsError):
            await fs.create_directory(f"{BLOB}/a")
        await asyncio.sleep(0.05)

        assert batches == []

    @pytest.mark.asyncio
    async def test_unsubscribe(self, fs):
        batches = []
        subscription = fs.on_did_change_file(batches.append)
        subscription.cancel()

        await fs.write_file(f"{BLOB}/new.txt", b"x")
        await asyncio.sleep(0.05)

        assert batches == []
