"""Async client for the reMarkable USB web interface."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .config import config
from .exceptions import NetworkError, ParseError
from .models import Document

logger = logging.getLogger(__name__)


class RemarkableClient:
    """Client for the document endpoints served by the tablet.

    The underlying ``httpx.AsyncClient`` carries no per-request state and is
    reused for every call of a run. Use it as an async context manager so the
    connection pool is released at the end::

        async with RemarkableClient() as client:
            docs = await client.list_documents("")
    """

    def __init__(
        self,
        host: str | None = None,
        listing_timeout: float | None = None,
        probe_timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            host: Base URL of the device (uses config if not provided)
            listing_timeout: Timeout in seconds for listing requests
            probe_timeout: Timeout in seconds for the liveness probe
            transport: Optional httpx transport (mainly for tests)
        """
        self.host = (host or config.host).rstrip("/")
        self.listing_timeout = listing_timeout or config.listing_timeout
        self.probe_timeout = probe_timeout or config.probe_timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            # Downloads are not bounded; listing and probe pass their own timeout
            self._client = httpx.AsyncClient(
                base_url=self.host,
                timeout=httpx.Timeout(None),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> RemarkableClient:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _get(self, endpoint: str, timeout: float | None) -> httpx.Response:
        """Issue a GET request and translate transport failures.

        Raises:
            NetworkError: On connection errors, timeouts and non-2xx statuses
        """
        client = self._get_client()
        try:
            response = await client.get(endpoint, timeout=timeout)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise NetworkError(
                f"Request to {endpoint} failed with status "
                f"{e.response.status_code}"
            ) from e
        except httpx.RequestError as e:
            raise NetworkError(f"Network error on {endpoint}: {e}") from e
        return response

    async def is_up(self) -> bool:
        """Probe the device root path, True if it answers with HTTP 200."""
        client = self._get_client()
        try:
            response = await client.get("/", timeout=self.probe_timeout)
        except httpx.RequestError as e:
            logger.debug(f"Liveness probe on {self.host} failed: {e}")
            return False
        return response.status_code == 200

    async def list_documents(self, collection_id: str = "") -> list[Document]:
        """List the direct children of a collection.

        Args:
            collection_id: Collection identifier, empty string for the root

        Returns:
            Records directly contained in the collection

        Raises:
            NetworkError: If the request fails
            ParseError: If the body is not a JSON array of records
        """
        endpoint = f"/documents/{collection_id}"
        response = await self._get(endpoint, timeout=self.listing_timeout)

        try:
            data = response.json()
        except ValueError as e:
            raise ParseError(f"Invalid JSON returned by {endpoint}") from e

        if not isinstance(data, list):
            raise ParseError(
                f"Expected a list of documents from {endpoint}, "
                f"got {type(data).__name__}"
            )

        return [Document.from_dict(item) for item in data]

    async def download_document(self, doc_id: str) -> bytes:
        """Retrieve the rendered content of a document.

        Raises:
            NetworkError: If the request or the body transfer fails
        """
        endpoint = f"/download/{doc_id}/placeholder"
        client = self._get_client()
        try:
            response = await client.get(endpoint)
            response.raise_for_status()
            return response.content
        except httpx.HTTPStatusError as e:
            raise NetworkError(
                f"Download of {doc_id} failed with status {e.response.status_code}"
            ) from e
        except httpx.RequestError as e:
            raise NetworkError(f"Network error during download of {doc_id}: {e}") from e
