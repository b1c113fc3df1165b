"""
Record sources: the opaque persistence collaborator behind the gateway.

A record source is synchronous and dumb (get, filtered query, append).
All domain rules (soft deletes, primary precedence, demographic matching)
live in `data_access` so every backend behaves the same.
"""

from __future__ import annotations

import copy
import json
import logging
import operator
import threading
import uuid
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol

from .firebase_client import (
    FirestoreFilter,
    query_collection,
    read_doc,
    write_doc,
)

logger = logging.getLogger(__name__)

PATIENTS = "patients"
INSURANCE_POLICIES = "insurance_policies"
AUDIT_LOGS = "mcp_access_audit_logs"

_OPERATORS = {
    "==": operator.eq,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


def _matches(value: Any, f: FirestoreFilter) -> bool:
    if f.op == "==":
        return value == f.value
    # Range filters only match values of the same kind, as in Firestore.
    if not isinstance(value, type(f.value)):
        return False
    try:
        return _OPERATORS[f.op](value, f.value)
    except TypeError:
        return False


class RecordSource(Protocol):
    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]: ...

    def query(
        self,
        collection: str,
        filters: Iterable[FirestoreFilter] = (),
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]: ...

    def append(self, collection: str, data: Dict[str, Any]) -> str: ...


class FirestoreRecordSource:
    """Firestore-backed source; `init_firebase()` must have been called."""

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        return read_doc(collection=collection, doc_id=doc_id)

    def query(
        self,
        collection: str,
        filters: Iterable[FirestoreFilter] = (),
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        return query_collection(collection=collection, filters=list(filters), limit=limit)

    def append(self, collection: str, data: Dict[str, Any]) -> str:
        return write_doc(collection=collection, doc_id=None, data=data)


class InMemoryRecordSource:
    """
    Dict-backed source for local development and tests.

    Supports equality and range filters; range filters skip values of a
    different type, as Firestore does.
    """

    def __init__(self, collections: Optional[Dict[str, List[Dict[str, Any]]]] = None) -> None:
        self._lock = threading.Lock()
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        for name, docs in (collections or {}).items():
            for doc in docs:
                self.put(name, doc)

    @classmethod
    def from_seed_file(cls, path: str) -> "InMemoryRecordSource":
        """Load `{"patients": [...], "insurance_policies": [...]}` from JSON."""
        with Path(path).open("r", encoding="utf-8") as fh:
            data = json.load(fh)
        logger.info("Loaded seed data from %s", path)
        return cls({name: list(docs) for name, docs in data.items()})

    def put(self, collection: str, doc: Dict[str, Any]) -> str:
        doc_id = str(doc.get("id") or uuid.uuid4())
        with self._lock:
            self._collections.setdefault(collection, {})[doc_id] = {**doc, "id": doc_id}
        return doc_id

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            doc = self._collections.get(collection, {}).get(doc_id)
            return copy.deepcopy(doc) if doc is not None else None

    def query(
        self,
        collection: str,
        filters: Iterable[FirestoreFilter] = (),
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        filters = list(filters)
        for f in filters:
            if f.op not in _OPERATORS:
                raise ValueError(f"Unsupported filter operator '{f.op}'")
        with self._lock:
            docs = [
                copy.deepcopy(doc)
                for doc in self._collections.get(collection, {}).values()
                if all(_matches(doc.get(f.field), f) for f in filters)
            ]
        return docs[:limit] if limit is not None else docs

    def append(self, collection: str, data: Dict[str, Any]) -> str:
        return self.put(collection, {**data, "id": None})

    def all(self, collection: str) -> List[Dict[str, Any]]:
        return self.query(collection)
