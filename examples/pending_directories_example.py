"""
Example demonstrating the filesystem bridge over an in-memory blob container
and file share

This example shows:
1. Listing a flat blob namespace as directories
2. Pending (virtual) directories in a blob container
3. Real directories in a file share
4. Recursive delete with collected failures
5. Change notifications
"""

import asyncio

from chuk_blob_fs import (
    AsyncStorageFileSystem,
    InMemoryBlobContainer,
    InMemoryFileShare,
    InMemoryRootResolver,
    StorageFSConfig,
    exceptions,
)

BLOB = "/demo/Blob Containers/photos"
SHARE = "/demo/File Shares/team"


async def main():
    print("=" * 60)
    print("Blob container and file share bridge example")
    print("=" * 60)

    container = InMemoryBlobContainer(
        BLOB,
        objects={
            "2023/beach.jpg": b"\xff\xd8\xff",
            "2023/summer/pool.jpg": b"\xff\xd8\xff",
            "index.html": b"<html></html>",
        },
    )
    share = InMemoryFileShare(SHARE, files={"notes/todo.md": b"- write docs"})

    config = StorageFSConfig(page_size=100)
    async with AsyncStorageFileSystem(InMemoryRootResolver(container, share), config) as fs:
        fs.on_did_change_file(
            lambda events: print(f"  [events] {[(e.type.name, e.path) for e in events]}")
        )

        # 1. Listing
        print("\n1. Listing a container")
        print("-" * 60)
        for name, file_type in await fs.read_directory(BLOB):
            print(f"  {file_type.name:<9} {name}")

        # 2. Pending directories
        print("\n2. Pending directories")
        print("-" * 60)
        await fs.create_directory(f"{BLOB}/2024")
        print(f"  pending: {sorted(fs.virtual_dirs.snapshot())}")
        await fs.write_file(f"{BLOB}/2024/new.jpg", b"\xff\xd8\xff")
        print(f"  pending after write: {sorted(fs.virtual_dirs.snapshot())}")

        # 3. File share directories
        print("\n3. File share directories")
        print("-" * 60)
        await fs.create_directory(f"{SHARE}/notes/archive")
        print(f"  {await fs.read_directory(f'{SHARE}/notes')}")

        # 4. Errors and recursive delete
        print("\n4. Delete")
        print("-" * 60)
        try:
            await fs.delete(f"{BLOB}/2023")
        except exceptions.UnsupportedOperationError as e:
            print(f"  non-recursive: {e}")

        result = await fs.delete(f"{BLOB}/2023", recursive=True)
        print(f"  deleted {len(result.deleted)} objects, ok={result.ok}")

        try:
            await fs.rename(f"{BLOB}/index.html", f"{BLOB}/home.html")
        except exceptions.UnsupportedOperationError as e:
            print(f"  rename: {e}")

        # Let buffered events flush
        await asyncio.sleep(0.01)

        print("\n5. Statistics")
        print("-" * 60)
        print(f"  {fs.get_stats()}")


if __name__ == "__main__":
    asyncio.run(main())
