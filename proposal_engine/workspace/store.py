"""In-process document snapshot registry."""

import copy
import logging
import threading
from typing import Callable, Optional

from .models import Document
from .sections import apply_structure

logger = logging.getLogger(__name__)

PersistHook = Callable[[dict], None]


class DocumentStore:
    """
    Keeps the latest saved snapshot of each Document.

    Callers always get a private copy from load(), and save() stores a deep
    copy, so a half-updated working document is never visible to readers.
    The optional on_persist hook receives the plain-dict snapshot after every
    save and is where a host wires its own storage.
    """

    def __init__(self, on_persist: Optional[PersistHook] = None):
        self._documents: dict[str, Document] = {}
        self._lock = threading.Lock()
        self._on_persist = on_persist

    def create(
        self,
        structure: list[str],
        context: dict | None = None,
        document_id: str | None = None,
    ) -> Document:
        document = Document(context=dict(context or {}))
        if document_id:
            document.id = document_id
        apply_structure(document, structure)
        self.save(document)
        logger.info("Created document %s with %d sections", document.id, len(document.structure))
        return self.load(document.id)

    def load(self, document_id: str) -> Optional[Document]:
        with self._lock:
            document = self._documents.get(document_id)
            return copy.deepcopy(document) if document is not None else None

    def save(self, document: Document) -> Document:
        snapshot = copy.deepcopy(document)
        with self._lock:
            self._documents[snapshot.id] = snapshot
        if self._on_persist is not None:
            self._on_persist(snapshot.to_dict())
        return document

    def import_snapshot(self, data: dict) -> Document:
        """Load a plain-dict snapshot (including older untagged ones) into the store."""
        document = Document.from_dict(data)
        apply_structure(document, document.structure or list(document.sections))
        self.save(document)
        return self.load(document.id)

    def delete(self, document_id: str) -> bool:
        with self._lock:
            return self._documents.pop(document_id, None) is not None

    def list_ids(self) -> list[str]:
        with self._lock:
            return list(self._documents)
