"""
Read-only data access for Patient and InsurancePolicy.

Record sources are synchronous; every call is pushed to a worker thread so
the request pipeline only suspends here and in the audit write.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from functools import partial
from typing import Any, Callable, Dict, List, Optional, TypeVar

import anyio

from .firebase_client import FirestoreFilter
from .models import InsurancePolicy, Patient, policy_sort_key, to_calendar_date
from .store import INSURANCE_POLICIES, PATIENTS, RecordSource

logger = logging.getLogger(__name__)

T = TypeVar("T")

SEARCH_LIMIT = 20
# Candidates fetched per DOB representation before name filtering.
SEARCH_SCAN_LIMIT = 500


def _normalize_name(value: Optional[str]) -> str:
    return " ".join((value or "").split()).casefold()


def _zip5(value: Optional[str]) -> str:
    return "".join(ch for ch in (value or "") if ch.isdigit())[:5]


def _dob_day_filters(dob: date) -> List[List[FirestoreFilter]]:
    """
    Range filters covering one calendar day in each stored DOB shape.

    ISO strings (`1980-05-01` or `1980-05-01T00:00:00.000Z`) sort inside the
    string range; Firestore timestamps fall inside the UTC day range.
    """
    next_day = dob + timedelta(days=1)
    start = datetime.combine(dob, time.min, tzinfo=timezone.utc)
    end = datetime.combine(next_day, time.min, tzinfo=timezone.utc)
    return [
        [
            FirestoreFilter("dateOfBirth", ">=", dob.isoformat()),
            FirestoreFilter("dateOfBirth", "<", next_day.isoformat()),
        ],
        [
            FirestoreFilter("dateOfBirth", ">=", start),
            FirestoreFilter("dateOfBirth", "<", end),
        ],
    ]


@dataclass(frozen=True)
class PatientMatch:
    patient: Patient
    zip_matched: bool


class DataAccess:
    """Facade over a `RecordSource`; applies soft deletes and ordering rules."""

    def __init__(self, source: RecordSource) -> None:
        self._source = source

    async def _run(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        return await anyio.to_thread.run_sync(partial(fn, *args, **kwargs))

    async def get_patient(self, patient_id: str) -> Optional[Patient]:
        doc = await self._run(self._source.get, PATIENTS, patient_id)
        if doc is None:
            return None
        patient = Patient.model_validate(doc)
        return None if patient.deleted_at else patient

    async def get_policy(self, policy_id: str) -> Optional[InsurancePolicy]:
        doc = await self._run(self._source.get, INSURANCE_POLICIES, policy_id)
        if doc is None:
            return None
        policy = InsurancePolicy.model_validate(doc)
        return None if policy.deleted_at else policy

    async def list_policies(self, patient_id: str) -> List[InsurancePolicy]:
        docs = await self._run(
            self._source.query,
            INSURANCE_POLICIES,
            [FirestoreFilter("patientId", "==", patient_id)],
        )
        policies = [InsurancePolicy.model_validate(doc) for doc in docs]
        return sorted((p for p in policies if not p.deleted_at), key=policy_sort_key)

    async def get_primary_policy(self, patient_id: str) -> Optional[InsurancePolicy]:
        policies = await self.list_policies(patient_id)
        return policies[0] if policies else None

    async def search_patients(
        self,
        first_name: str,
        last_name: str,
        dob: date,
        zip_code: Optional[str] = None,
        limit: int = SEARCH_LIMIT,
    ) -> List[PatientMatch]:
        """
        Identity resolution by demographics.

        First name, last name and calendar DOB must all match (names compared
        case-insensitively with whitespace collapsed). A ZIP, when supplied,
        narrows the result further; it can never widen it.
        """
        docs: Dict[str, Dict[str, Any]] = {}
        for filters in _dob_day_filters(dob):
            batch = await self._run(self._source.query, PATIENTS, filters, SEARCH_SCAN_LIMIT)
            if len(batch) >= SEARCH_SCAN_LIMIT:
                logger.warning(
                    "Demographic search scan hit the %d candidate cap for one DOB; "
                    "matches beyond it are not considered",
                    SEARCH_SCAN_LIMIT,
                )
            for doc in batch:
                docs.setdefault(doc["id"], doc)

        want_first = _normalize_name(first_name)
        want_last = _normalize_name(last_name)
        want_zip = _zip5(zip_code)

        matches: List[PatientMatch] = []
        for doc in docs.values():
            patient = Patient.model_validate(doc)
            if patient.deleted_at or to_calendar_date(patient.date_of_birth) != dob:
                continue
            first, last = patient.name_parts()
            if _normalize_name(first) != want_first or _normalize_name(last) != want_last:
                continue
            if want_zip and _zip5(patient.postal_code) != want_zip:
                continue
            matches.append(PatientMatch(patient=patient, zip_matched=bool(want_zip)))

        matches.sort(key=lambda m: m.patient.id)
        if len(matches) > limit:
            logger.info("Demographic search truncated from %d to %d matches", len(matches), limit)
        return matches[:limit]
