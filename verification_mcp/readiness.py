"""
Deterministic readiness for insurance verification (no clearinghouse calls).

A policy is READY when nothing in `missing_fields` blocks an eligibility
check. Warnings are advisory and never change the status. Every rule runs on
every call so a caller learns about all gaps in a single round trip.
"""

from __future__ import annotations

import re
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict

from .models import InsurancePolicy, Patient, to_calendar_date

REQUIRED = "required"
REQUIRED_SUBSCRIBER = "required when subscriber is not the patient"
RECOMMENDED = "recommended"
RECOMMENDED_FOR_ROUTING = "recommended-for-routing"
INVALID_FORMAT = "should be 5-digit ZIP or ZIP+4"

ZIP_RE = re.compile(r"^\d{5}(-\d{4})?$")
BCBS_MARKERS = ("BCBS", "BLUECROSS", "BLUESHIELD", "ANTHEM")

ReadinessStatus = Literal["READY", "NEEDS_INFO"]


class FieldIssue(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: str
    reason: str


class ReadinessResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: ReadinessStatus
    missing_fields: List[FieldIssue]
    warnings: List[FieldIssue]


def _blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def is_bcbs_payer(payer_name: Optional[str]) -> bool:
    normalized = re.sub(r"[^A-Z]", "", (payer_name or "").upper())
    return any(marker in normalized for marker in BCBS_MARKERS)


def compute_readiness(policy: InsurancePolicy, patient: Patient) -> ReadinessResult:
    missing: List[FieldIssue] = []
    warnings: List[FieldIssue] = []

    if _blank(policy.payer_name_raw):
        missing.append(FieldIssue(field="payerNameRaw", reason=REQUIRED))
    if _blank(policy.member_id):
        missing.append(FieldIssue(field="memberId", reason=REQUIRED))

    # Patient identity: insurance may be complete while the chart is not.
    first_name, last_name = patient.name_parts()
    if not first_name:
        missing.append(FieldIssue(field="patient.firstName", reason=REQUIRED))
    if not last_name:
        missing.append(FieldIssue(field="patient.lastName", reason=REQUIRED))
    if to_calendar_date(patient.date_of_birth) is None:
        missing.append(FieldIssue(field="patient.dateOfBirth", reason=REQUIRED))

    if not policy.subscriber_is_patient:
        if _blank(policy.subscriber_first_name):
            missing.append(FieldIssue(field="subscriberFirstName", reason=REQUIRED_SUBSCRIBER))
        if _blank(policy.subscriber_last_name):
            missing.append(FieldIssue(field="subscriberLastName", reason=REQUIRED_SUBSCRIBER))
        if to_calendar_date(policy.subscriber_dob) is None:
            missing.append(FieldIssue(field="subscriberDob", reason=REQUIRED_SUBSCRIBER))
        if _blank(policy.relationship_to_patient):
            missing.append(FieldIssue(field="relationshipToPatient", reason=REQUIRED_SUBSCRIBER))

    if is_bcbs_payer(policy.payer_name_raw) and _blank(policy.bcbs_alpha_prefix):
        warnings.append(FieldIssue(field="bcbsAlphaPrefix", reason=RECOMMENDED_FOR_ROUTING))

    if _blank(patient.postal_code):
        warnings.append(FieldIssue(field="patient.postalCode", reason=RECOMMENDED))
    elif not ZIP_RE.match(patient.postal_code.strip()):
        warnings.append(FieldIssue(field="patient.postalCode", reason=INVALID_FORMAT))
    if _blank(patient.address_line1):
        warnings.append(FieldIssue(field="patient.addressLine1", reason=RECOMMENDED))
    if _blank(patient.city):
        warnings.append(FieldIssue(field="patient.city", reason=RECOMMENDED))
    if _blank(patient.state):
        warnings.append(FieldIssue(field="patient.state", reason=RECOMMENDED))

    status: ReadinessStatus = "READY" if not missing else "NEEDS_INFO"
    return ReadinessResult(status=status, missing_fields=missing, warnings=warnings)
