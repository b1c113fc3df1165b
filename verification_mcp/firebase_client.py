from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

import firebase_admin
from firebase_admin import credentials, firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from .config import Settings


_FIREBASE_APP: Optional[firebase_admin.App] = None


@dataclass(frozen=True)
class FirestoreFilter:
    field: str
    op: str
    value: Any


def init_firebase(settings: Settings) -> None:
    """
    Initialize the Firebase Admin SDK once per process.

    Uses either:
    - Explicit service account JSON via `firebase_credentials_file`, or
    - Application Default Credentials (ADC) if not provided.
    """
    global _FIREBASE_APP

    if _FIREBASE_APP is not None:
        return

    if settings.firebase_credentials_file:
        cred = credentials.Certificate(settings.firebase_credentials_file)
    else:
        cred = credentials.ApplicationDefault()

    options: Dict[str, Any] = {}
    if settings.firebase_project_id:
        options["projectId"] = settings.firebase_project_id
    _FIREBASE_APP = firebase_admin.initialize_app(cred, options)


def get_firestore_client() -> firestore.Client:
    if _FIREBASE_APP is None:
        raise RuntimeError("Firebase app not initialized. Call init_firebase() first.")
    return firestore.client(app=_FIREBASE_APP)


def write_doc(
    collection: str,
    doc_id: Optional[str],
    data: Dict[str, Any],
) -> str:
    """
    Write a document to Firestore.

    If `doc_id` is None, an auto ID is generated.
    """
    db = get_firestore_client()
    col_ref = db.collection(collection)
    doc_ref = col_ref.document(doc_id) if doc_id else col_ref.document()
    doc_ref.set(data)
    return doc_ref.id


def read_doc(
    collection: str,
    doc_id: str,
) -> Optional[Dict[str, Any]]:
    """Read one document; the document id is merged in under `id`."""
    db = get_firestore_client()
    snap = db.collection(collection).document(doc_id).get()
    if not snap.exists:
        return None
    return {**(snap.to_dict() or {}), "id": snap.id}


def query_collection(
    collection: str,
    filters: Optional[Iterable[FirestoreFilter]] = None,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    db = get_firestore_client()
    query: firestore.Query = db.collection(collection)

    if filters:
        for f in filters:
            query = query.where(filter=FieldFilter(f.field, f.op, f.value))

    if limit is not None:
        query = query.limit(limit)

    return [{**(d.to_dict() or {}), "id": d.id} for d in query.stream()]
