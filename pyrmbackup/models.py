"""Data models for documents stored on the device."""

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from .exceptions import ParseError


class DocType(str, Enum):
    """Kind of entry in the device document store."""

    COLLECTION = "CollectionType"
    """Folder-like grouping node"""

    DOCUMENT = "DocumentType"
    """Leaf content item, maps to one downloadable file"""

    UNKNOWN = "Unknown"
    """Anything else the device reports"""

    @classmethod
    def from_value(cls, value: Any) -> "DocType":
        """Map a raw ``Type`` value to a DocType, defaulting to UNKNOWN."""
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class Document:
    """A single record returned by the ``/documents/{id}`` listing."""

    id: str
    """Unique document identifier"""

    visible_name: str
    """Name shown on the device"""

    doc_type: DocType
    """Collection, document or unknown"""

    parent: str = ""
    """Identifier of the containing collection (empty for root)"""

    modified_client: str = ""
    """ISO-8601 modification timestamp, not guaranteed to be parseable"""

    bookmarked: bool = False
    current_page: Optional[int] = None

    raw: dict[str, Any] = field(
        default_factory=dict, compare=False, hash=False, repr=False
    )
    """Full record as sent by the device"""

    @property
    def is_collection(self) -> bool:
        return self.doc_type == DocType.COLLECTION

    @property
    def is_document(self) -> bool:
        return self.doc_type == DocType.DOCUMENT

    @classmethod
    def from_dict(cls, data: Any) -> "Document":
        """Create a Document from a device JSON record.

        Raises:
            ParseError: If the record is not an object or has no ``ID``
        """
        if not isinstance(data, dict):
            raise ParseError(f"Expected a document object, got {type(data).__name__}")

        doc_id = data.get("ID")
        if not isinstance(doc_id, str) or not doc_id:
            raise ParseError(f"Document record without a valid ID: {data!r}")

        # The device spells it "VissibleName"
        name = data.get("VissibleName", data.get("VisibleName", ""))
        current_page = data.get("CurrentPage")

        return cls(
            id=doc_id,
            visible_name=str(name or ""),
            doc_type=DocType.from_value(data.get("Type")),
            parent=str(data.get("Parent") or ""),
            modified_client=str(data.get("ModifiedClient") or ""),
            bookmarked=bool(data.get("Bookmarked", False)),
            current_page=current_page if isinstance(current_page, int) else None,
            raw=dict(data),
        )


@dataclass
class FolderNode:
    """A collection on the device and everything it directly contains."""

    name: str
    """Directory name used for the local mirror"""

    id: str = ""
    """Collection identifier (empty for the synthetic root)"""

    file_ids: set[str] = field(default_factory=set)
    """Identifiers of documents directly contained in this collection"""

    children: list["FolderNode"] = field(default_factory=list)
    """Sub-collections, in listing order"""

    def walk(self) -> Iterator["FolderNode"]:
        """Yield this node and all descendants, depth first."""
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass
class Hierarchy:
    """Flat list of every record plus the folder tree built from it.

    Read-only once built: lookups by id go through an index made at creation.
    """

    documents: list[Document]
    """All records (collections, documents and unknown) at every depth"""

    root: FolderNode
    """Root of the folder tree"""

    _by_id: dict[str, Document] = field(
        init=False, repr=False, compare=False, default_factory=dict
    )

    def __post_init__(self) -> None:
        for doc in self.documents:
            self._by_id.setdefault(doc.id, doc)

    def iter_documents(self) -> Iterator[Document]:
        """Yield only downloadable documents."""
        return (doc for doc in self.documents if doc.is_document)

    def get(self, doc_id: str) -> Optional[Document]:
        """Return the record with the given id, if any."""
        return self._by_id.get(doc_id)


@dataclass(frozen=True)
class DownloadPlanEntry:
    """A document selected for download."""

    id: str
    filename: str
    """Local filename, always carrying the required extension"""


@dataclass(frozen=True)
class FetchedFile:
    """Content retrieved for a planned document."""

    id: str
    filename: str
    content: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.content)
