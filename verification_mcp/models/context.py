from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


ActorType = Literal["agent", "user", "system"]
ACTOR_TYPES = ("agent", "user", "system")

REQUIRED_PURPOSE = "insurance_verification"


class ActorContext(BaseModel):
    """
    Authorized caller identity, produced by the auth gate once per request.

    Every handler receives this object and decides per field whether to
    disclose a raw value or its masked form based on `allow_unmasked`.
    """

    model_config = ConfigDict(frozen=True)

    request_id: str = Field(
        description="Caller supplied UUID, echoed in responses and audit rows.",
    )
    actor_id: str = Field(
        description="Calling principal (agent, user or system instance).",
    )
    actor_type: ActorType
    purpose: str = Field(
        default=REQUIRED_PURPOSE,
        description="Purpose binding; always the required purpose once authorized.",
    )
    allow_unmasked: bool = Field(
        default=False,
        description="Whether handlers may return raw member/group ids and contact data.",
    )
