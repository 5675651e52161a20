"""
chuk_blob_fs/backends/azure.py - Azure Storage backed roots

Blob containers go through ``azure.storage.blob.aio`` and file shares through
``azure.storage.fileshare.aio``. SDK ``HttpResponseError``s are translated
into BackendError carrying the HTTP status and the storage error code.
"""

import logging
from collections.abc import AsyncIterator
from typing import Any

from azure.core.exceptions import HttpResponseError, ResourceNotFoundError
from azure.storage.blob import ContentSettings as BlobContentSettings
from azure.storage.blob.aio import BlobServiceClient, ContainerClient
from azure.storage.fileshare import ContentSettings as FileContentSettings
from azure.storage.fileshare.aio import ShareClient, ShareServiceClient
from pydantic import BaseModel, ConfigDict, Field, model_validator

from chuk_blob_fs.backends.base import (
    BlobContainerHandle,
    FileShareHandle,
    RootHandle,
    RootResolver,
)
from chuk_blob_fs.exceptions import BackendError, NotFoundError
from chuk_blob_fs.models import EntryKind, ListingEntry, ListingPage
from chuk_blob_fs.path_codec import RootKind, VirtualPath

logger = logging.getLogger(__name__)


class AzureAccountConfig(BaseModel):
    """Connection settings for one storage account."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    account_name: str = Field(..., description="Segment preceding the root marker")
    connection_string: str | None = Field(
        default=None, description="Storage connection string"
    )
    credential: Any = Field(
        default=None, description="Account key, AzureSasCredential or TokenCredential"
    )
    blob_account_url: str | None = Field(default=None, description="Blob endpoint")
    file_account_url: str | None = Field(default=None, description="File endpoint")

    @model_validator(mode="after")
    def _require_auth(self) -> "AzureAccountConfig":
        if not self.connection_string and self.credential is None:
            raise ValueError(
                "Either connection_string or credential is required "
                f"for account {self.account_name!r}"
            )
        return self

    def blob_url(self) -> str:
        return self.blob_account_url or f"https://{self.account_name}.blob.core.windows.net"

    def file_url(self) -> str:
        return self.file_account_url or f"https://{self.account_name}.file.core.windows.net"


def to_backend_error(error: HttpResponseError) -> BackendError:
    """Translate an Azure SDK error into a BackendError."""
    code = getattr(error, "error_code", None)
    code = getattr(code, "value", code)
    return BackendError(
        str(error.message or error),
        status_code=error.status_code,
        error_code=str(code) if code else None,
    )


async def _first_page(pages: Any) -> tuple[list[Any], str | None]:
    """Read one page from an AsyncItemPaged.by_page() iterator."""
    try:
        page: AsyncIterator[Any] = await pages.__anext__()
    except StopAsyncIteration:
        return [], None
    items = [item async for item in page]
    return items, pages.continuation_token or None


class AzureBlobContainer(BlobContainerHandle):
    """A blob container accessed through an async ContainerClient."""

    def __init__(self, root_path: str, client: ContainerClient) -> None:
        super().__init__(root_path, client.container_name)
        self.client = client

    async def list_page(
        self,
        prefix: str,
        delimiter: str = "/",
        continuation_token: str | None = None,
        page_size: int | None = None,
    ) -> ListingPage:
        try:
            pages = self.client.walk_blobs(
                name_starts_with=prefix or None,
                delimiter=delimiter,
                results_per_page=page_size,
            ).by_page(continuation_token=continuation_token)
            items, token = await _first_page(pages)
        except HttpResponseError as e:
            raise to_backend_error(e) from e

        entries = []
        for item in items:
            name = item.name[len(prefix) :]
            if not name.rstrip(delimiter):
                # Marker blob for the listed folder itself
                continue
            # walk_blobs yields prefixes as aio BlobPrefix pagers, named with
            # the trailing delimiter
            if item.name.endswith(delimiter):
                entries.append(
                    ListingEntry(
                        name=name.rstrip(delimiter),
                        path=item.name.rstrip(delimiter),
                        kind=EntryKind.DIRECTORY,
                    )
                )
            else:
                entries.append(
                    ListingEntry(
                        name=name,
                        path=item.name,
                        kind=EntryKind.FILE,
                        size=item.size or 0,
                    )
                )
        return ListingPage(entries=entries, continuation_token=token)

    async def get(self, path: str) -> bytes:
        try:
            stream = await self.client.get_blob_client(path).download_blob()
            return await stream.readall()
        except HttpResponseError as e:
            raise to_backend_error(e) from e

    async def put(
        self, path: str, data: bytes, content_type: str | None = None
    ) -> None:
        settings = BlobContentSettings(content_type=content_type) if content_type else None
        try:
            await self.client.get_blob_client(path).upload_blob(
                data, overwrite=True, content_settings=settings
            )
        except HttpResponseError as e:
            raise to_backend_error(e) from e

    async def delete(self, path: str) -> None:
        try:
            await self.client.delete_blob(path)
        except HttpResponseError as e:
            raise to_backend_error(e) from e

    async def exists(self, path: str) -> bool:
        try:
            return await self.client.get_blob_client(path).exists()
        except HttpResponseError as e:
            raise to_backend_error(e) from e

    async def close(self) -> None:
        await self.client.close()


class AzureFileShare(FileShareHandle):
    """A file share accessed through an async ShareClient."""

    def __init__(self, root_path: str, client: ShareClient) -> None:
        super().__init__(root_path, client.share_name)
        self.client = client

    async def list_directory_page(
        self,
        directory: str,
        continuation_token: str | None = None,
        page_size: int | None = None,
    ) -> ListingPage:
        directory = directory.strip("/")
        try:
            pages = (
                self.client.get_directory_client(directory or None)
                .list_directories_and_files(results_per_page=page_size)
                .by_page(continuation_token=continuation_token)
            )
            items, token = await _first_page(pages)
        except HttpResponseError as e:
            raise to_backend_error(e) from e

        entries = []
        for item in items:
            path = f"{directory}/{item.name}" if directory else item.name
            if item.is_directory:
                entries.append(
                    ListingEntry(name=item.name, path=path, kind=EntryKind.DIRECTORY)
                )
            else:
                entries.append(
                    ListingEntry(
                        name=item.name,
                        path=path,
                        kind=EntryKind.FILE,
                        size=getattr(item, "size", 0) or 0,
                    )
                )
        return ListingPage(entries=entries, continuation_token=token)

    async def get(self, path: str) -> bytes:
        try:
            stream = await self.client.get_file_client(path).download_file()
            return await stream.readall()
        except HttpResponseError as e:
            raise to_backend_error(e) from e

    async def put(
        self, path: str, data: bytes, content_type: str | None = None
    ) -> None:
        settings = FileContentSettings(content_type=content_type) if content_type else None
        try:
            await self.client.get_file_client(path).upload_file(
                data, content_settings=settings
            )
        except HttpResponseError as e:
            raise to_backend_error(e) from e

    async def delete(self, path: str) -> None:
        try:
            await self.client.get_file_client(path).delete_file()
        except HttpResponseError as e:
            raise to_backend_error(e) from e

    async def exists(self, path: str) -> bool:
        try:
            return await self.client.get_file_client(path).exists()
        except HttpResponseError as e:
            raise to_backend_error(e) from e

    async def create_directory(self, path: str) -> None:
        try:
            await self.client.create_directory(path.strip("/"))
        except HttpResponseError as e:
            raise to_backend_error(e) from e

    async def delete_directory(self, path: str) -> None:
        try:
            await self.client.delete_directory(path.strip("/"))
        except HttpResponseError as e:
            raise to_backend_error(e) from e

    async def close(self) -> None:
        await self.client.close()


class AzureRootResolver(RootResolver):
    """
    Resolves root paths to Azure containers and shares.

    The account is picked by ``VirtualPath.account_name``; service clients
    are created lazily, once per account and storage kind.
    """

    def __init__(self, accounts: list[AzureAccountConfig]) -> None:
        self.accounts = {account.account_name: account for account in accounts}
        self._blob_services: dict[str, BlobServiceClient] = {}
        self._share_services: dict[str, ShareServiceClient] = {}

    def _account(self, vpath: VirtualPath) -> AzureAccountConfig:
        account = self.accounts.get(vpath.account_name)
        if account is None:
            raise NotFoundError(f"No storage account configured for {vpath.root_path}")
        return account

    def _blob_service(self, account: AzureAccountConfig) -> BlobServiceClient:
        service = self._blob_services.get(account.account_name)
        if service is None:
            if account.connection_string:
                service = BlobServiceClient.from_connection_string(
                    account.connection_string
                )
            else:
                service = BlobServiceClient(
                    account_url=account.blob_url(), credential=account.credential
                )
            self._blob_services[account.account_name] = service
        return service

    def _share_service(self, account: AzureAccountConfig) -> ShareServiceClient:
        service = self._share_services.get(account.account_name)
        if service is None:
            if account.connection_string:
                service = ShareServiceClient.from_connection_string(
                    account.connection_string
                )
            else:
                service = ShareServiceClient(
                    account_url=account.file_url(), credential=account.credential
                )
            self._share_services[account.account_name] = service
        return service

    async def resolve_root(self, vpath: VirtualPath) -> RootHandle:
        account = self._account(vpath)

        try:
            if vpath.kind == RootKind.BLOB_CONTAINERS:
                container = self._blob_service(account).get_container_client(
                    vpath.root_name
                )
                if not await container.exists():
                    raise NotFoundError(f"No such container: {vpath.root_path}")
                logger.debug(f"Resolved container {vpath.root_path}")
                return AzureBlobContainer(vpath.root_path, container)

            share = self._share_service(account).get_share_client(vpath.root_name)
            await share.get_share_properties()
            logger.debug(f"Resolved share {vpath.root_path}")
            return AzureFileShare(vpath.root_path, share)
        except ResourceNotFoundError as e:
            raise NotFoundError(f"No such container or share: {vpath.root_path}") from e
        except HttpResponseError as e:
            raise to_backend_error(e) from e

    async def close(self) -> None:
        for service in [*self._blob_services.values(), *self._share_services.values()]:
            await service.close()
        self._blob_services.clear()
        self._share_services.clear()
