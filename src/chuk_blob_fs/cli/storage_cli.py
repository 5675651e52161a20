#!/usr/bin/env python3
"""
CLI tool for browsing Azure blob containers and file shares as a filesystem.

Paths take the form ``/<account>/Blob Containers/<container>/...`` or
``/<account>/File Shares/<share>/...``.

Examples:
    # List a container using a connection string
    chuk-blob-fs --account myacct --connection-string "$CONN" \\
        ls "/myacct/Blob Containers/data"

    # Upload a local file
    chuk-blob-fs --account myacct --account-key "$KEY" \\
        put ./report.csv "/myacct/File Shares/reports/2024/report.csv"

    # Recursively delete a directory
    chuk-blob-fs --account myacct --connection-string "$CONN" \\
        rm -r "/myacct/Blob Containers/data/tmp"
"""

import argparse
import logging
import os
import sys
from pathlib import Path

from azure.core.credentials import AzureSasCredential

from chuk_blob_fs.backends.azure import AzureAccountConfig, AzureRootResolver
from chuk_blob_fs.config import StorageFSConfig
from chuk_blob_fs.exceptions import StorageFSError
from chuk_blob_fs.models import FileType
from chuk_blob_fs.sync_wrapper import SyncStorageFileSystem

logger = logging.getLogger(__name__)


def setup_logging(debug: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def create_fs(args: argparse.Namespace) -> SyncStorageFileSystem:
    """
    Create a filesystem bound to the account given on the command line.

    Args:
        args: Parsed command-line arguments

    Returns:
        Configured SyncStorageFileSystem
    """
    connection_string = args.connection_string or os.getenv(
        "AZURE_STORAGE_CONNECTION_STRING"
    )
    if args.sas_token:
        credential = AzureSasCredential(args.sas_token)
    else:
        credential = args.account_key or os.getenv("AZURE_STORAGE_KEY")

    account = AzureAccountConfig(
        account_name=args.account,
        connection_string=connection_string,
        credential=credential,
        blob_account_url=args.blob_url,
        file_account_url=args.file_url,
    )

    config = StorageFSConfig.from_env()
    if args.drain:
        config = config.model_copy(update={"drain_listings": True})

    return SyncStorageFileSystem(AzureRootResolver([account]), config=config)


def run_command(fs: SyncStorageFileSystem, args: argparse.Namespace) -> int:
    """Dispatch a parsed subcommand."""
    command = args.command

    if command == "stat":
        stat = fs.stat(args.path)
        print(stat.type.name.lower())

    elif command == "ls":
        for name, file_type in fs.read_directory(args.path):
            suffix = "/" if file_type == FileType.DIRECTORY else ""
            print(f"{name}{suffix}")

    elif command == "cat":
        sys.stdout.buffer.write(fs.read_file(args.path))
        sys.stdout.flush()

    elif command == "put":
        data = Path(args.source).read_bytes()
        fs.write_file(args.path, data, create=True, overwrite=not args.no_overwrite)

    elif command == "mkdir":
        fs.create_directory(args.path)

    elif command == "rm":
        result = fs.delete(args.path, recursive=args.recursive)
        for failure in result.errors:
            print(f"failed: {failure.path}: {failure.error}", file=sys.stderr)
        if not result.ok:
            return 1

    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Browse Azure blob containers and file shares as a filesystem",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    # Account
    parser.add_argument(
        "--account",
        type=str,
        required=True,
        help="Storage account name (the path segment before the root marker)",
    )

    parser.add_argument(
        "--connection-string",
        type=str,
        help="Storage connection string (default: $AZURE_STORAGE_CONNECTION_STRING)",
    )

    parser.add_argument(
        "--account-key",
        type=str,
        help="Account key (default: $AZURE_STORAGE_KEY)",
    )

    parser.add_argument(
        "--sas-token",
        type=str,
        help="SAS token",
    )

    parser.add_argument("--blob-url", type=str, help="Override the blob endpoint")
    parser.add_argument("--file-url", type=str, help="Override the file endpoint")

    # Behaviour
    parser.add_argument(
        "--drain",
        action="store_true",
        help="Follow continuation tokens when listing large directories",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, help_text in [
        ("stat", "Show whether a path is a file or a directory"),
        ("ls", "List a container, share or directory"),
        ("cat", "Write a file to stdout"),
        ("mkdir", "Create a directory"),
    ]:
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("path", help="Virtual path")

    put = subparsers.add_parser("put", help="Upload a local file")
    put.add_argument("source", help="Local file to upload")
    put.add_argument("path", help="Destination virtual path")
    put.add_argument(
        "--no-overwrite",
        action="store_true",
        help="Fail if the destination already exists",
    )

    rm = subparsers.add_parser("rm", help="Delete a file or directory")
    rm.add_argument("path", help="Virtual path")
    rm.add_argument(
        "-r",
        "--recursive",
        action="store_true",
        help="Delete directories and their contents",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Setup logging
    setup_logging(args.debug)

    try:
        fs = create_fs(args)
    except ValueError as e:
        logger.error(f"Error: {e}")
        return 2

    try:
        with fs:
            return run_command(fs, args)

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130

    except StorageFSError as e:
        print(f"{args.command}: {e}", file=sys.stderr)
        return 1

    except Exception as e:
        logger.error(f"Error: {e}", exc_info=args.debug)
        return 1


if __name__ == "__main__":
    sys.exit(main())
