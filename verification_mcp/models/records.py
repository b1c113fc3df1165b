from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Optional, Tuple

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel


def to_calendar_date(value: Any) -> Optional[date]:
    """
    Reduce a date-like value to a calendar date.

    Accepts `date`, `datetime` and ISO strings (`YYYY-MM-DD` or a full
    timestamp). Time of day and timezone are dropped, never converted, so a
    DOB stored as midnight UTC stays on the same calendar day everywhere.
    Unparseable input yields None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if len(text) < 10:
            return None
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return None
    return None


class _Record(BaseModel):
    # Stored documents use camelCase keys; snake_case is accepted too.
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


class Patient(_Record):
    id: str
    practice_id: Optional[str] = None
    name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    date_of_birth: Optional[date] = None
    primary_phone: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    deleted_at: Optional[datetime] = None

    @field_validator("date_of_birth", mode="before")
    @classmethod
    def _calendar_dob(cls, value: Any) -> Optional[date]:
        return to_calendar_date(value)

    def name_parts(self) -> Tuple[str, str]:
        """
        Resolve (first, last), falling back to the legacy full `name` column.

        A single-word legacy name is used for both parts.
        """
        first = (self.first_name or "").strip()
        last = (self.last_name or "").strip()
        full = (self.name or "").split()
        if full:
            fallback_first = full[0]
            fallback_last = " ".join(full[1:]) if len(full) > 1 else full[0]
            first = first or fallback_first
            last = last or fallback_last
        return first, last

    def contact_phone(self) -> Optional[str]:
        return self.primary_phone or self.phone or None


class InsurancePolicy(_Record):
    id: str
    patient_id: str
    payer_name_raw: Optional[str] = None
    plan_name: Optional[str] = None
    plan_type: Optional[str] = None
    member_id: Optional[str] = None
    group_number: Optional[str] = None
    is_primary: bool = False
    subscriber_is_patient: bool = True
    subscriber_first_name: Optional[str] = None
    subscriber_last_name: Optional[str] = None
    subscriber_dob: Optional[date] = None
    relationship_to_patient: Optional[str] = None
    bcbs_alpha_prefix: Optional[str] = None
    bcbs_state_plan: Optional[str] = None
    rx_bin: Optional[str] = None
    rx_pcn: Optional[str] = None
    rx_group: Optional[str] = None
    card_front_ref: Optional[str] = None
    card_back_ref: Optional[str] = None
    created_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    @field_validator("subscriber_dob", mode="before")
    @classmethod
    def _calendar_subscriber_dob(cls, value: Any) -> Optional[date]:
        return to_calendar_date(value)

    @field_validator("created_at")
    @classmethod
    def _aware_created_at(cls, value: Optional[datetime]) -> Optional[datetime]:
        # Naive timestamps are stored as UTC.
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_validator("is_primary", "subscriber_is_patient", mode="before")
    @classmethod
    def _null_flag(cls, value: Any, info) -> Any:
        if value is None:
            return info.field_name == "subscriber_is_patient"
        return value


def policy_sort_key(policy: InsurancePolicy) -> Tuple[int, float, str]:
    """
    Ordering used for primary selection and for policy listings.

    An explicit `is_primary` flag wins; otherwise the most recently created
    policy comes first. The id breaks remaining ties so the order is total.
    """
    created = policy.created_at.timestamp() if policy.created_at else float("-inf")
    return (0 if policy.is_primary else 1, -created, policy.id)
