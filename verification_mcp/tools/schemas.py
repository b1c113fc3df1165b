"""
Input and output models for the verification tools.

Inputs are validated (and leniently coerced) before a handler runs. Output
models document the success shape for `/tools` introspection; handlers dump
them with `exclude_none` so omitted fields never appear in the response or in
the audited field paths.
"""

from __future__ import annotations

from datetime import date
from typing import Annotated, Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator

from ..models import to_calendar_date
from ..readiness import FieldIssue, ReadinessResult, ReadinessStatus

RecordId = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
NameText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class _Input(BaseModel):
    model_config = ConfigDict(extra="ignore")


class _Output(BaseModel):
    pass


# --- inputs -----------------------------------------------------------------


class GetPatientIdentityInput(_Input):
    patient_id: RecordId = Field(description="Patient id")
    include_address: bool = Field(default=False, description="Include address fields")


class ListInsurancePoliciesInput(_Input):
    patient_id: RecordId


class GetInsurancePolicyDetailsInput(_Input):
    policy_id: RecordId
    include_rx: bool = False
    include_card_refs: bool = Field(
        default=False,
        description="Include card image references (never image bytes)",
    )


class GetVerificationBundleInput(_Input):
    patient_id: RecordId
    policy_id: Optional[RecordId] = Field(
        default=None,
        description="Optional; if omitted, the primary policy is used",
    )
    include_address: bool = False
    include_rx: bool = False
    strict_minimum_necessary: bool = Field(
        default=True,
        description="Drop every optional field the readiness verdict does not need",
    )


class SearchPatientByDemographicsInput(_Input):
    first_name: NameText
    last_name: NameText
    dob: date = Field(description="Date of birth, YYYY-MM-DD")
    zip: Optional[str] = Field(default=None, description="Optional ZIP narrowing filter")

    @field_validator("dob", mode="before")
    @classmethod
    def _calendar_dob(cls, value: Any) -> date:
        parsed = to_calendar_date(value)
        if parsed is None:
            raise ValueError("dob must be a calendar date (YYYY-MM-DD)")
        return parsed

    @field_validator("zip")
    @classmethod
    def _blank_zip(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        return value.strip()


# --- outputs ----------------------------------------------------------------


class AddressOut(_Output):
    line1: Optional[str] = None
    line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    zip_masked: Optional[str] = None


class PatientIdentityOutput(_Output):
    patient_id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    date_of_birth: Optional[date] = None
    phone: Optional[str] = None
    phone_masked: Optional[str] = None
    email: Optional[str] = None
    address: Optional[AddressOut] = None


class Completeness(_Output):
    status: ReadinessStatus
    missing_fields: List[FieldIssue]


class PolicySummary(_Output):
    policy_id: str
    payer_name_raw: Optional[str] = None
    is_primary: bool
    plan_type: Optional[str] = None
    member_id_masked: Optional[str] = None
    completeness: Completeness


class ListInsurancePoliciesOutput(_Output):
    policies: List[PolicySummary]


class SubscriberOut(_Output):
    subscriber_is_patient: bool
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    dob: Optional[date] = None
    relationship_to_patient: Optional[str] = None


class BcbsOut(_Output):
    alpha_prefix: Optional[str] = None
    state_plan: Optional[str] = None


class RxOut(_Output):
    rx_bin: Optional[str] = None
    rx_pcn: Optional[str] = None
    rx_group: Optional[str] = None


class CardRefsOut(_Output):
    front_ref: Optional[str] = None
    back_ref: Optional[str] = None


class PolicyDetailsOutput(_Output):
    policy_id: str
    patient_id: str
    payer_name_raw: Optional[str] = None
    plan_name: Optional[str] = None
    plan_type: Optional[str] = None
    is_primary: bool
    member_id: Optional[str] = None
    member_id_masked: Optional[str] = None
    group_number: Optional[str] = None
    group_number_masked: Optional[str] = None
    subscriber: SubscriberOut
    bcbs: Optional[BcbsOut] = None
    rx: Optional[RxOut] = None
    card_refs: Optional[CardRefsOut] = None


class BundlePatientOut(_Output):
    patient_id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    dob: Optional[date] = None
    phone: Optional[str] = None
    phone_masked: Optional[str] = None
    address: Optional[AddressOut] = None


class BundleInsuranceOut(_Output):
    policy_id: str
    payer_name_raw: Optional[str] = None
    member_id: Optional[str] = None
    member_id_masked: Optional[str] = None
    group_number: Optional[str] = None
    group_number_masked: Optional[str] = None
    plan_name: Optional[str] = None
    plan_type: Optional[str] = None
    is_primary: bool


class VerificationBundleOutput(_Output):
    patient: BundlePatientOut
    insurance: BundleInsuranceOut
    subscriber: SubscriberOut
    bcbs: Optional[BcbsOut] = None
    rx: Optional[RxOut] = None
    readiness: ReadinessResult


class MatchDisplay(_Output):
    name_masked: str
    zip_masked: Optional[str] = None


class PatientMatchOut(_Output):
    patient_id: str
    confidence: float
    display: MatchDisplay


class SearchPatientByDemographicsOutput(_Output):
    matches: List[PatientMatchOut]
