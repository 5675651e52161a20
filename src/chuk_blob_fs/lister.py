"""
chuk_blob_fs/lister.py - Paginated enumeration over both storage models

Blob containers are listed with a prefix and a delimiter so deeper keys fold
into one directory entry per sub-prefix. File shares are listed one real
directory at a time. Either way the remote call is repeated with the last
continuation token until the backend stops returning one.
"""

import logging
from collections.abc import AsyncIterator

from chuk_blob_fs.backends.base import BlobContainerHandle, FileShareHandle, RootHandle
from chuk_blob_fs.cancellation import CancellationToken, check_cancelled
from chuk_blob_fs.exceptions import BackendError, classify_backend_error
from chuk_blob_fs.models import ListingEntry, ListingPage

logger = logging.getLogger(__name__)

DELIMITER = "/"


class PaginatedLister:
    """Turns the remote list primitive into restartable page iteration."""

    def __init__(self, page_size: int = 1000, drain: bool = False) -> None:
        """
        Args:
            page_size: Entries requested per remote call
            drain: Follow continuation tokens in list_children instead of
                returning the first page only
        """
        self.page_size = page_size
        self.drain = drain
        self.stats = {"pages": 0}

    async def fetch_page(
        self,
        root: RootHandle,
        prefix: str,
        delimiter: str = DELIMITER,
        continuation_token: str | None = None,
    ) -> ListingPage:
        """
        Fetch one page of direct children of ``prefix``.

        ``prefix`` is the in-root directory path with a trailing delimiter,
        or "" for the root. Missing containers/shares/directories raise
        NotFoundError; other backend errors propagate unchanged.
        """
        try:
            if isinstance(root, BlobContainerHandle):
                page = await root.list_page(
                    prefix,
                    delimiter=delimiter,
                    continuation_token=continuation_token,
                    page_size=self.page_size,
                )
            elif isinstance(root, FileShareHandle):
                page = await root.list_directory_page(
                    prefix.rstrip(delimiter),
                    continuation_token=continuation_token,
                    page_size=self.page_size,
                )
            else:
                raise TypeError(f"Unsupported root handle {type(root).__name__}")
        except BackendError as e:
            if e.is_not_found:
                raise classify_backend_error(e, f"{root.root_path}/{prefix}") from e
            raise

        self.stats["pages"] += 1
        return page

    async def pages(
        self,
        root: RootHandle,
        prefix: str,
        delimiter: str = DELIMITER,
        cancellation: CancellationToken | None = None,
    ) -> AsyncIterator[ListingPage]:
        """
        Iterate every page under ``prefix``.

        Each call starts a fresh enumeration from the first page.
        """
        token: str | None = None
        while True:
            check_cancelled(cancellation, f"Listing {root.root_path}/{prefix}")
            page = await self.fetch_page(root, prefix, delimiter, token)
            yield page
            token = page.continuation_token
            if not token:
                return

    async def list_children(
        self,
        root: RootHandle,
        prefix: str,
        cancellation: CancellationToken | None = None,
    ) -> list[ListingEntry]:
        """
        Return the children of one directory.

        Only the first page is used unless the lister was created with
        ``drain=True``.
        """
        if not self.drain:
            check_cancelled(cancellation, f"Listing {root.root_path}/{prefix}")
            page = await self.fetch_page(root, prefix)
            if page.continuation_token:
                logger.debug(
                    f"Listing of {root.root_path}/{prefix} truncated to "
                    f"{len(page.entries)} entries"
                )
            return list(page.entries)

        entries: list[ListingEntry] = []
        async for page in self.pages(root, prefix, cancellation=cancellation):
            entries.extend(page.entries)
        return entries
