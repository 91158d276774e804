"""Shared fixtures for pyrmbackup tests."""

from typing import Optional

import pytest

from pyrmbackup.exceptions import NetworkError
from pyrmbackup.models import Document


def make_record(
    doc_id: str,
    name: str,
    doc_type: str = "DocumentType",
    parent: str = "",
    modified: str = "2024-01-01T00:00:00Z",
) -> dict:
    """Build a record as returned by the /documents endpoint."""
    return {
        "Bookmarked": False,
        "CurrentPage": 0,
        "ID": doc_id,
        "ModifiedClient": modified,
        "Parent": parent,
        "Type": doc_type,
        "VissibleName": name,
        "fileType": "pdf",
    }


class FakeRemarkableClient:
    """In-memory stand-in for RemarkableClient."""

    def __init__(
        self,
        listings: dict[str, list[dict]],
        contents: Optional[dict[str, bytes]] = None,
        failing_downloads: Optional[set[str]] = None,
        failing_listings: Optional[set[str]] = None,
        up: bool = True,
    ):
        self.listings = listings
        self.contents = contents or {}
        self.failing_downloads = failing_downloads or set()
        self.failing_listings = failing_listings or set()
        self.up = up
        self.listed: list[str] = []
        self.downloaded: list[str] = []
        self.closed = False

    async def __aenter__(self) -> "FakeRemarkableClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.closed = True

    async def is_up(self) -> bool:
        return self.up

    async def list_documents(self, collection_id: str = "") -> list[Document]:
        self.listed.append(collection_id)
        if collection_id in self.failing_listings:
            raise NetworkError(f"listing {collection_id} timed out")
        return [Document.from_dict(r) for r in self.listings.get(collection_id, [])]

    async def download_document(self, doc_id: str) -> bytes:
        self.downloaded.append(doc_id)
        if doc_id in self.failing_downloads:
            raise NetworkError(f"download {doc_id} failed")
        return self.contents.get(doc_id, f"content of {doc_id}".encode())


@pytest.fixture
def record():
    """Factory for device records."""
    return make_record


@pytest.fixture
def fake_client_class():
    """The FakeRemarkableClient class."""
    return FakeRemarkableClient


@pytest.fixture
def library_listings():
    """A small library: two root documents, a folder with a nested folder.

    root
    ├── Essay            (a1)
    ├── Notes.pdf        (a2)
    ├── trash-thing      (u1, Unknown)
    └── Work/            (c1)
        ├── Report       (b1)
        └── Archive/     (c2)
            └── Old      (d1)
    """
    return {
        "": [
            make_record("a1", "Essay"),
            make_record("a2", "Notes.pdf"),
            make_record("c1", "Work", doc_type="CollectionType"),
            make_record("u1", "trash-thing", doc_type="SomethingElse"),
        ],
        "c1": [
            make_record("b1", "Report", parent="c1"),
            make_record("c2", "Archive", doc_type="CollectionType", parent="c1"),
        ],
        "c2": [make_record("d1", "Old", parent="c2")],
    }


@pytest.fixture
def fake_client(library_listings):
    """Fake client serving the small library."""
    return FakeRemarkableClient(library_listings)
