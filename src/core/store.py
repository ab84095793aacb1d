"""
Document store interface.

The verifier never owns documents: capabilities referenced by id, target
documents and identity key documents are all looked up through a
DocumentStore supplied by the caller.

Usage:
    store = InMemoryDocumentStore()
    store.add({"id": "urn:cap:root", ...})
    doc = await store.fetch("urn:cap:root")
"""

import logging
from collections import Counter
from typing import Any, Iterable, Optional

from .errors import DocumentNotFound

logger = logging.getLogger(__name__)


class DocumentStore:
    """
    Abstract interface for document lookup.

    Implementations can use:
    - In-memory (for testing and fully embedded chains)
    - A database of issued capabilities
    - A resolver that fetches documents remotely

    fetch() is pure lookup: it must not modify the returned document and
    raises DocumentNotFound when the id is unknown.
    """

    async def fetch(self, document_id: str) -> dict[str, Any]:
        """Return the document with the given id."""
        raise NotImplementedError


class InMemoryDocumentStore(DocumentStore):
    """In-memory document store for testing and development."""

    def __init__(self, documents: Optional[Iterable[dict[str, Any]]] = None):
        self._documents: dict[str, dict[str, Any]] = {}
        self.fetch_counts: Counter[str] = Counter()
        for document in documents or ():
            self.add(document)

    def add(self, document: dict[str, Any]) -> None:
        """Add or replace a document, keyed by its id."""
        if not isinstance(document, dict):
            raise ValueError("Document must be an object")
        document_id = document.get("id", document.get("@id"))
        if not isinstance(document_id, str):
            raise ValueError("Document must have a string id")
        self._documents[document_id] = document

    def remove(self, document_id: str) -> bool:
        """Remove a document. Returns True if it was present."""
        return self._documents.pop(document_id, None) is not None

    async def fetch(self, document_id: str) -> dict[str, Any]:
        self.fetch_counts[document_id] += 1
        try:
            document = self._documents[document_id]
        except KeyError:
            raise DocumentNotFound(document_id) from None
        logger.debug(f"Fetched document {document_id}")
        return document

    def __contains__(self, document_id: str) -> bool:
        return document_id in self._documents

    def __len__(self) -> int:
        return len(self._documents)
