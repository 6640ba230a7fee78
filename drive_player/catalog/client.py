"""
Remote catalog client for drive-player.

Thin HTTP client over the Microsoft Graph drive endpoints. It lists the
children of a folder and resolves the short-lived download URL of a file.
Every request carries a bearer token fetched from the credential provider
immediately before the request is sent, so a token refreshed by another
thread is always picked up.

Endpoints:
    GET {base}/me/drive/items/{id}/children?$select=id,name,folder,file,webUrl
    GET {base}/me/drive/items/{id}?$select=id,@microsoft.graph.downloadUrl

    The root folder is addressed with the literal id "root".

Failure mapping:
    requests.RequestException, HTTP 5xx -> NetworkError
    HTTP 401 / 403                       -> AuthError
    HTTP 404                             -> NotFoundError
    Non-JSON body or wrong shape         -> DecodeError

    Nothing is retried here. Callers decide whether to retry.

Usage:
    client = CatalogClient(credentials=provider)

    for item in sort_for_display(client.list_children()):
        print(item.name)

    url = client.get_download_locator(track.id)
"""

from pathlib import Path
from typing import Any

import requests

from drive_player.catalog.auth import CredentialProvider
from drive_player.catalog.models import CatalogItem, CatalogPage
from drive_player.core.exceptions import (
    AuthError,
    DecodeError,
    NetworkError,
    NotFoundError,
)
from drive_player.core.logger import get_logger

logger = get_logger(__name__)


GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"

ROOT_FOLDER_ID = "root"

LISTING_FIELDS = "id,name,folder,file,webUrl"
DOWNLOAD_URL_FIELD = "@microsoft.graph.downloadUrl"
NEXT_LINK_FIELD = "@odata.nextLink"

DEFAULT_TIMEOUT = 30

# 1 MiB per write while streaming a download to disk
DOWNLOAD_CHUNK_SIZE = 1024 * 1024


class CatalogClient:
    """
    Client for listing folders and resolving download URLs.

    Attributes:
        base_url: API root, without trailing slash.
        page_size: Optional $top sent with listings. None lets the server pick.
        timeout: Seconds passed to every request.

    Thread Safety:
        Safe to share between the sync worker threads. requests.Session
        is used for connection pooling only; no per-request state is kept
        on the client.
    """

    def __init__(
        self,
        credentials: CredentialProvider,
        session: requests.Session | None = None,
        base_url: str = GRAPH_BASE_URL,
        page_size: int | None = None,
        timeout: float | None = None
    ) -> None:
        self._credentials = credentials
        self._session = session or requests.Session()
        self.base_url = base_url.rstrip("/")
        self.page_size = page_size
        self.timeout = timeout or DEFAULT_TIMEOUT

    # =========================================================================
    # Listing
    # =========================================================================

    def list_children(
        self,
        folder_id: str | None = None,
        credentials: CredentialProvider | None = None
    ) -> list[CatalogItem]:
        """
        List the direct children of a folder (first page only).

        Args:
            folder_id: Folder to list. None (or "root") means the drive root.
            credentials: Optional provider overriding the one given at
                         construction, for this call only.

        Returns:
            Items in server order. Use sort_for_display() for browsing order.

        Raises:
            NetworkError, AuthError, NotFoundError, DecodeError
        """
        return list(self.list_children_page(folder_id, credentials=credentials).items)

    def list_children_page(
        self,
        folder_id: str | None = None,
        next_link: str | None = None,
        credentials: CredentialProvider | None = None
    ) -> CatalogPage:
        """
        Fetch one page of a folder listing.

        Args:
            folder_id: Folder to list. Ignored when next_link is given.
            next_link: The next_link of a previous page, to continue a listing.
            credentials: Optional per-call credential provider.

        Returns:
            CatalogPage with the decoded items and the link to the next page.
        """
        if next_link:
            payload = self._get_json(next_link, credentials=credentials)
        else:
            params: dict[str, Any] = {"$select": LISTING_FIELDS}
            if self.page_size:
                params["$top"] = self.page_size
            payload = self._get_json(
                self._item_url(folder_id) + "/children",
                params=params,
                credentials=credentials
            )

        values = payload.get("value")
        if not isinstance(values, list):
            raise DecodeError(
                "Folder listing has no 'value' array",
                details={"folder_id": folder_id or ROOT_FOLDER_ID}
            )

        items = tuple(CatalogItem.from_graph_api(entry) for entry in values)
        link = payload.get(NEXT_LINK_FIELD)
        return CatalogPage(items=items, next_link=link if isinstance(link, str) and link else None)

    def list_all_children(
        self,
        folder_id: str | None = None,
        credentials: CredentialProvider | None = None
    ) -> list[CatalogItem]:
        """
        List every child of a folder, following next links until the last page.

        Raises:
            The same errors as list_children_page(). Items from pages fetched
            before a failure are discarded.
        """
        page = self.list_children_page(folder_id, credentials=credentials)
        items = list(page.items)
        pages = 1

        while page.next_link:
            page = self.list_children_page(
                folder_id, next_link=page.next_link, credentials=credentials
            )
            items.extend(page.items)
            pages += 1

        if pages > 1:
            logger.debug(
                f"Listed {len(items)} items in {pages} pages "
                f"(folder {folder_id or ROOT_FOLDER_ID})"
            )
        return items

    # =========================================================================
    # Download
    # =========================================================================

    def get_download_locator(
        self,
        item_id: str,
        credentials: CredentialProvider | None = None
    ) -> str:
        """
        Resolve the pre-authenticated download URL of a file.

        The URL expires after a short time; resolve it right before use.

        Raises:
            NotFoundError: If the item does not exist or has no download URL
                           (folders, for instance).
            NetworkError, AuthError, DecodeError
        """
        payload = self._get_json(
            self._item_url(item_id),
            params={"$select": f"id,{DOWNLOAD_URL_FIELD}"},
            credentials=credentials
        )

        locator = payload.get(DOWNLOAD_URL_FIELD)
        if not isinstance(locator, str) or not locator:
            raise NotFoundError(
                "Item has no download URL",
                details={"item_id": item_id}
            )
        return locator

    def download_to(self, locator: str, destination: Path) -> Path:
        """
        Stream the content behind a download URL into a local file.

        The URL is pre-authenticated, so no bearer token is sent. A partial
        file left by a failed transfer is removed.

        Args:
            locator: URL returned by get_download_locator().
            destination: File to write. Its parent directory must exist.

        Returns:
            destination
        """
        try:
            with self._session.get(locator, stream=True, timeout=self.timeout) as response:
                self._raise_for_status(response, locator)
                with open(destination, "wb") as f:
                    for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                        if chunk:
                            f.write(chunk)
        except requests.RequestException as e:
            destination.unlink(missing_ok=True)
            raise NetworkError(
                f"Download failed: {e}",
                details={"destination": str(destination), "original_error": str(e)}
            ) from e
        except OSError:
            destination.unlink(missing_ok=True)
            raise

        return destination

    # =========================================================================
    # HTTP helpers
    # =========================================================================

    def _item_url(self, item_id: str | None) -> str:
        return f"{self.base_url}/me/drive/items/{item_id or ROOT_FOLDER_ID}"

    def _get_json(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        credentials: CredentialProvider | None = None
    ) -> dict[str, Any]:
        provider = credentials or self._credentials
        token = provider.get_access_token()

        try:
            response = self._session.get(
                url,
                params=params,
                headers={
                    "Authorization": f"Bearer {token}",
                    "Accept": "application/json",
                },
                timeout=self.timeout
            )
        except requests.RequestException as e:
            raise NetworkError(
                f"Request failed: {e}",
                details={"url": url, "original_error": str(e)}
            ) from e

        self._raise_for_status(response, url)

        try:
            payload = response.json()
        except ValueError as e:
            raise DecodeError(
                "Response is not valid JSON",
                details={"url": url, "http_status": response.status_code}
            ) from e

        if not isinstance(payload, dict):
            raise DecodeError(
                "Response is not a JSON object",
                details={"url": url, "type": type(payload).__name__}
            )
        return payload

    @staticmethod
    def _raise_for_status(response: requests.Response, url: str) -> None:
        status = response.status_code
        if status < 400:
            return

        details = {"url": url, "http_status": status}
        if status in (401, 403):
            raise AuthError(f"Access denied (HTTP {status})", details=details)
        if status == 404:
            raise NotFoundError("Item not found", details=details)
        if status >= 500:
            raise NetworkError(f"Server error (HTTP {status})", details=details)
        raise DecodeError(f"Unexpected response (HTTP {status})", details=details)
