"""Recursive reconstruction of the device document hierarchy."""

import logging
import time

from ..api import RemarkableClient
from ..models import Document, FolderNode, Hierarchy

logger = logging.getLogger(__name__)

ROOT_NAME = "root"


class HierarchyFetcher:
    """Builds a Hierarchy by walking the device collections."""

    def __init__(self, client: RemarkableClient):
        """Initialize the fetcher.

        Args:
            client: Client used for the listing requests
        """
        self.client = client

    async def fetch(
        self, collection_id: str = "", display_name: str = ROOT_NAME
    ) -> Hierarchy:
        """Fetch a collection and everything below it.

        Sub-collections are listed one at a time. Any failure propagates
        and no partial hierarchy is returned.

        Args:
            collection_id: Collection to start from, empty for the device root
            display_name: Name given to the resulting root folder

        Returns:
            Hierarchy rooted at ``collection_id``

        Raises:
            NetworkError: If a listing request fails at any depth
            ParseError: If a listing cannot be decoded at any depth
        """
        start = time.time()
        hierarchy = await self._fetch_collection(collection_id, display_name)
        logger.debug(
            "Fetched %d records in %.2fs",
            len(hierarchy.documents),
            time.time() - start,
        )
        return hierarchy

    async def _fetch_collection(self, collection_id: str, name: str) -> Hierarchy:
        listing = await self.client.list_documents(collection_id)
        logger.debug(
            "Listed %d entries in '%s' (%s)", len(listing), name, collection_id
        )

        documents: list[Document] = []
        children: list[FolderNode] = []

        for entry in listing:
            if not entry.is_collection:
                continue
            sub_hierarchy = await self._fetch_collection(entry.id, entry.visible_name)
            children.append(sub_hierarchy.root)
            documents.extend(sub_hierarchy.documents)

        node = FolderNode(
            name=name,
            id=collection_id,
            file_ids={entry.id for entry in listing if entry.is_document},
            children=children,
        )
        documents.extend(listing)

        return Hierarchy(documents=documents, root=node)
