from __future__ import annotations

import re
from typing import Mapping, Optional

from .config import Settings
from .errors import BAD_REQUEST, UNAUTHORIZED, AuthError
from .models import ACTOR_TYPES, REQUIRED_PURPOSE, ActorContext

UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

HEADER_API_KEY = "x-api-key"
HEADER_ACTOR_ID = "x-actor-id"
HEADER_ACTOR_TYPE = "x-actor-type"
HEADER_PURPOSE = "x-purpose"
HEADER_REQUEST_ID = "x-request-id"
HEADER_ALLOW_UNMASKED = "x-allow-unmasked"


def authenticate_headers(headers: Mapping[str, str], settings: Settings) -> ActorContext:
    """
    Validate request headers into an authorized `ActorContext`.

    Checks run in a fixed order and the first failure wins:
    API key, actor id, actor type, purpose, request id. Raises `AuthError`
    (401 for credentials, 400 for everything else). Pure; no I/O.
    """
    normalized = {str(k).lower(): v for k, v in headers.items()}

    def header(name: str) -> Optional[str]:
        value = normalized.get(name)
        return value if isinstance(value, str) else None

    api_key = header(HEADER_API_KEY)
    if not api_key or api_key not in settings.api_key_list:
        raise AuthError(UNAUTHORIZED, "Invalid or missing API key", status_code=401)

    actor_id = (header(HEADER_ACTOR_ID) or "").strip()
    if not actor_id:
        raise AuthError(BAD_REQUEST, "Missing X-Actor-Id", status_code=400)

    actor_type = header(HEADER_ACTOR_TYPE)
    if actor_type not in ACTOR_TYPES:
        raise AuthError(
            BAD_REQUEST,
            "X-Actor-Type must be agent, user, or system",
            status_code=400,
        )

    # Exact match on purpose: no case folding, no separator normalization.
    if header(HEADER_PURPOSE) != REQUIRED_PURPOSE:
        raise AuthError(
            BAD_REQUEST,
            f'X-Purpose must be "{REQUIRED_PURPOSE}"',
            status_code=400,
        )

    request_id = header(HEADER_REQUEST_ID)
    if not request_id or not UUID_RE.fullmatch(request_id):
        raise AuthError(BAD_REQUEST, "X-Request-Id must be a valid UUID", status_code=400)

    wants_unmasked = header(HEADER_ALLOW_UNMASKED) == "true"
    allow_unmasked = wants_unmasked and (actor_type != "agent" or settings.allow_agent_unmasked)

    return ActorContext(
        request_id=request_id,
        actor_id=actor_id,
        actor_type=actor_type,
        purpose=REQUIRED_PURPOSE,
        allow_unmasked=allow_unmasked,
    )
