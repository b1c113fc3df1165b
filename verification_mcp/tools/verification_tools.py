from __future__ import annotations

from typing import Any, Dict, Optional

from mcp import types
from pydantic import BaseModel

from ..data_access import DataAccess
from ..errors import not_found
from ..masking import mask_last4, mask_zip
from ..models import ActorContext, InsurancePolicy, Patient
from ..readiness import compute_readiness, is_bcbs_payer
from . import ToolRegistry, ToolResult
from .schemas import (
    AddressOut,
    BcbsOut,
    BundleInsuranceOut,
    BundlePatientOut,
    CardRefsOut,
    Completeness,
    GetInsurancePolicyDetailsInput,
    GetPatientIdentityInput,
    GetVerificationBundleInput,
    ListInsurancePoliciesInput,
    ListInsurancePoliciesOutput,
    MatchDisplay,
    PatientIdentityOutput,
    PatientMatchOut,
    PolicyDetailsOutput,
    PolicySummary,
    RxOut,
    SearchPatientByDemographicsInput,
    SearchPatientByDemographicsOutput,
    SubscriberOut,
    VerificationBundleOutput,
)

CONFIDENCE_WITH_ZIP = 0.95
CONFIDENCE_WITHOUT_ZIP = 0.8


def _dump(model: BaseModel) -> Dict[str, Any]:
    return model.model_dump(mode="json", exclude_none=True)


def _masked(value: Optional[str]) -> Optional[str]:
    return mask_last4(value) or None


def _member_fields(policy: InsurancePolicy, ctx: ActorContext) -> Dict[str, Optional[str]]:
    # Key names follow what is disclosed, so audit paths show raw vs masked.
    if ctx.allow_unmasked:
        return {"member_id": policy.member_id, "group_number": policy.group_number}
    return {
        "member_id_masked": _masked(policy.member_id),
        "group_number_masked": _masked(policy.group_number),
    }


def _phone_fields(patient: Patient, ctx: ActorContext) -> Dict[str, Optional[str]]:
    if ctx.allow_unmasked:
        return {"phone": patient.contact_phone()}
    return {"phone_masked": _masked(patient.contact_phone())}


def _address(patient: Patient, ctx: ActorContext, street: bool = True) -> AddressOut:
    """Street lines and the exact ZIP only leave when unmasking is authorized."""
    if ctx.allow_unmasked:
        return AddressOut(
            line1=patient.address_line1 if street else None,
            line2=patient.address_line2 if street else None,
            city=patient.city,
            state=patient.state,
            zip=patient.postal_code,
        )
    return AddressOut(
        city=patient.city,
        state=patient.state,
        zip_masked=mask_zip(patient.postal_code) or None,
    )


def _subscriber(policy: InsurancePolicy, details: bool = True) -> SubscriberOut:
    if not details:
        return SubscriberOut(subscriber_is_patient=policy.subscriber_is_patient)
    return SubscriberOut(
        subscriber_is_patient=policy.subscriber_is_patient,
        first_name=policy.subscriber_first_name,
        last_name=policy.subscriber_last_name,
        dob=policy.subscriber_dob,
        relationship_to_patient=policy.relationship_to_patient,
    )


def _bcbs(policy: InsurancePolicy) -> BcbsOut:
    return BcbsOut(alpha_prefix=policy.bcbs_alpha_prefix, state_plan=policy.bcbs_state_plan)


def _rx(policy: InsurancePolicy) -> RxOut:
    return RxOut(rx_bin=policy.rx_bin, rx_pcn=policy.rx_pcn, rx_group=policy.rx_group)


def verification_tools(data: DataAccess) -> Dict[str, Any]:
    """
    Factory to produce handlers bound to a data access facade.
    """

    async def get_patient_identity(
        params: GetPatientIdentityInput, ctx: ActorContext
    ) -> ToolResult:
        patient = await data.get_patient(params.patient_id)
        if patient is None:
            return ToolResult(output=not_found("Patient not found"), patient_id=params.patient_id)

        first_name, last_name = patient.name_parts()
        output = PatientIdentityOutput(
            patient_id=patient.id,
            first_name=first_name or None,
            last_name=last_name or None,
            date_of_birth=patient.date_of_birth,
            email=patient.email if ctx.allow_unmasked else None,
            address=_address(patient, ctx) if params.include_address else None,
            **_phone_fields(patient, ctx),
        )
        return ToolResult(output=_dump(output), patient_id=patient.id)

    async def list_insurance_policies(
        params: ListInsurancePoliciesInput, ctx: ActorContext
    ) -> ToolResult:
        patient = await data.get_patient(params.patient_id)
        if patient is None:
            return ToolResult(output=not_found("Patient not found"), patient_id=params.patient_id)

        summaries = []
        for policy in await data.list_policies(patient.id):
            readiness = compute_readiness(policy, patient)
            summaries.append(
                PolicySummary(
                    policy_id=policy.id,
                    payer_name_raw=policy.payer_name_raw,
                    is_primary=policy.is_primary,
                    plan_type=policy.plan_type,
                    # Summaries are always masked; details honour unmasking.
                    member_id_masked=_masked(policy.member_id),
                    completeness=Completeness(
                        status=readiness.status,
                        missing_fields=readiness.missing_fields,
                    ),
                )
            )
        output = ListInsurancePoliciesOutput(policies=summaries)
        return ToolResult(output=_dump(output), patient_id=patient.id)

    async def get_insurance_policy_details(
        params: GetInsurancePolicyDetailsInput, ctx: ActorContext
    ) -> ToolResult:
        policy = await data.get_policy(params.policy_id)
        if policy is None:
            return ToolResult(output=not_found("Policy not found"), policy_id=params.policy_id)

        output = PolicyDetailsOutput(
            policy_id=policy.id,
            patient_id=policy.patient_id,
            payer_name_raw=policy.payer_name_raw,
            plan_name=policy.plan_name,
            plan_type=policy.plan_type,
            is_primary=policy.is_primary,
            subscriber=_subscriber(policy),
            bcbs=_bcbs(policy),
            rx=_rx(policy) if params.include_rx else None,
            # References only; image bytes are never read here.
            card_refs=(
                CardRefsOut(front_ref=policy.card_front_ref, back_ref=policy.card_back_ref)
                if params.include_card_refs
                else None
            ),
            **_member_fields(policy, ctx),
        )
        return ToolResult(output=_dump(output), patient_id=policy.patient_id, policy_id=policy.id)

    async def get_verification_bundle(
        params: GetVerificationBundleInput, ctx: ActorContext
    ) -> ToolResult:
        patient = await data.get_patient(params.patient_id)
        if patient is None:
            return ToolResult(output=not_found("Patient not found"), patient_id=params.patient_id)

        if params.policy_id:
            policy = await data.get_policy(params.policy_id)
            if policy is not None and policy.patient_id != patient.id:
                policy = None
        else:
            policy = await data.get_primary_policy(patient.id)
        if policy is None:
            return ToolResult(
                output=not_found("No insurance policy found for patient"),
                patient_id=patient.id,
                policy_id=params.policy_id,
            )

        strict = params.strict_minimum_necessary
        readiness = compute_readiness(policy, patient)
        first_name, last_name = patient.name_parts()

        patient_out = BundlePatientOut(
            patient_id=patient.id,
            first_name=first_name or None,
            last_name=last_name or None,
            dob=patient.date_of_birth,
            address=_address(patient, ctx, street=not strict) if params.include_address else None,
            **({} if strict else _phone_fields(patient, ctx)),
        )
        insurance_out = BundleInsuranceOut(
            policy_id=policy.id,
            payer_name_raw=policy.payer_name_raw,
            plan_name=None if strict else policy.plan_name,
            plan_type=None if strict else policy.plan_type,
            is_primary=policy.is_primary,
            **_member_fields(policy, ctx),
        )
        include_bcbs = not strict or is_bcbs_payer(policy.payer_name_raw)
        output = VerificationBundleOutput(
            patient=patient_out,
            insurance=insurance_out,
            # Subscriber details only matter when the subscriber is someone else.
            subscriber=_subscriber(policy, details=not (strict and policy.subscriber_is_patient)),
            bcbs=_bcbs(policy) if include_bcbs else None,
            # Readiness never depends on rx, so strict mode always drops it.
            rx=_rx(policy) if params.include_rx and not strict else None,
            readiness=readiness,
        )
        return ToolResult(output=_dump(output), patient_id=patient.id, policy_id=policy.id)

    async def search_patient_by_demographics(
        params: SearchPatientByDemographicsInput, ctx: ActorContext
    ) -> ToolResult:
        found = await data.search_patients(
            first_name=params.first_name,
            last_name=params.last_name,
            dob=params.dob,
            zip_code=params.zip,
        )
        matches = []
        for match in found:
            first_name, last_name = match.patient.name_parts()
            matches.append(
                PatientMatchOut(
                    patient_id=match.patient.id,
                    confidence=CONFIDENCE_WITH_ZIP if match.zip_matched else CONFIDENCE_WITHOUT_ZIP,
                    display=MatchDisplay(
                        name_masked=f"{first_name} {last_name[:1]}.".strip(),
                        zip_masked=mask_zip(match.patient.postal_code) or None,
                    ),
                )
            )
        output = SearchPatientByDemographicsOutput(matches=matches)
        return ToolResult(output=_dump(output))

    return {
        "get_patient_identity": {
            "input_model": GetPatientIdentityInput,
            "output_model": PatientIdentityOutput,
            "handler": get_patient_identity,
            "description": (
                "Get patient identity and optionally address. "
                "Minimum necessary for verification; never returns insurance data."
            ),
        },
        "list_insurance_policies": {
            "input_model": ListInsurancePoliciesInput,
            "output_model": ListInsurancePoliciesOutput,
            "handler": list_insurance_policies,
            "description": (
                "List insurance policies for a patient, primary first. Returns payer, "
                "primary flag, masked member ID and completeness."
            ),
        },
        "get_insurance_policy_details": {
            "input_model": GetInsurancePolicyDetailsInput,
            "output_model": PolicyDetailsOutput,
            "handler": get_insurance_policy_details,
            "description": (
                "Get full policy details: payer, member/group (masked by default), "
                "subscriber, BCBS routing, optional Rx and card references."
            ),
        },
        "get_verification_bundle": {
            "input_model": GetVerificationBundleInput,
            "output_model": VerificationBundleOutput,
            "handler": get_verification_bundle,
            "description": (
                "Get the minimal verification bundle for a patient and policy (or the "
                "primary policy) with a readiness verdict, in one call."
            ),
        },
        "search_patient_by_demographics": {
            "input_model": SearchPatientByDemographicsInput,
            "output_model": SearchPatientByDemographicsOutput,
            "handler": search_patient_by_demographics,
            "description": (
                "Resolve a patient by first name, last name and date of birth (all "
                "required), optionally narrowed by ZIP. Returns masked candidates."
            ),
        },
    }


def register_tools(registry: ToolRegistry, data: DataAccess) -> None:
    tool_defs = verification_tools(data)
    for name, meta in tool_defs.items():
        registry.add_tool(
            types.Tool(
                name=name,
                description=meta["description"],
                inputSchema=meta["input_model"].model_json_schema(),
            ),
            meta["input_model"],
            meta["output_model"].model_json_schema(),
            meta["handler"],
        )
