"""
Shared fixtures: an in-memory record store seeded with a small practice,
plus a dispatcher and HTTP client wired to it.
"""

import uuid
from typing import Any, Dict, List

import pytest
from fastapi.testclient import TestClient

from verification_mcp.config import Settings
from verification_mcp.http_server import create_http_app
from verification_mcp.main import create_dispatcher
from verification_mcp.models import ActorContext
from verification_mcp.store import AUDIT_LOGS, InMemoryRecordSource

API_KEY = "test-key"
RAW_MEMBER_ID = "ABC123456789"
RAW_GROUP_NUMBER = "GRP998877"


def seed_collections() -> Dict[str, List[Dict[str, Any]]]:
    return {
        "patients": [
            {
                "id": "p1",
                "firstName": "Jane",
                "lastName": "Smith",
                "dateOfBirth": "1980-05-01",
                "primaryPhone": "415-555-0142",
                "email": "jane.smith@example.com",
                "addressLine1": "100 Main St",
                "addressLine2": "Apt 4",
                "city": "San Francisco",
                "state": "CA",
                "postalCode": "94110",
            },
            {
                "id": "p2",
                "firstName": "John",
                "lastName": "Doe",
                "dateOfBirth": "2012-11-20",
                "phone": "212-555-0199",
                "addressLine1": "5 Broadway",
                "city": "New York",
                "state": "NY",
                "postalCode": "10004",
            },
            {
                "id": "p3",
                "firstName": "Jane",
                "lastName": "Smith",
                "dateOfBirth": "1980-05-01",
                "postalCode": "94110",
                "deletedAt": "2024-01-01T00:00:00Z",
            },
            {
                "id": "p4",
                "name": "Maria  de la Cruz",
                "dateOfBirth": "1975-02-14",
                "postalCode": "60614-1234",
            },
            {
                "id": "p5",
                "firstName": "Ana",
                "lastName": "Lopez",
                "dateOfBirth": "1990-07-07",
            },
        ],
        "insurance_policies": [
            {
                "id": "pol1",
                "patientId": "p1",
                "payerNameRaw": "Aetna",
                "planName": "Aetna Choice POS II",
                "planType": "PPO",
                "memberId": RAW_MEMBER_ID,
                "groupNumber": RAW_GROUP_NUMBER,
                "isPrimary": True,
                "subscriberIsPatient": True,
                "rxBin": "610014",
                "rxPcn": "AETNA",
                "rxGroup": "RX7788",
                "cardFrontRef": "cards/pol1/front.jpg",
                "cardBackRef": "cards/pol1/back.jpg",
                "createdAt": "2023-01-10T12:00:00Z",
            },
            {
                "id": "pol2",
                "patientId": "p1",
                "payerNameRaw": "Blue Cross Blue Shield of Illinois",
                "memberId": "XOF55512345",
                "isPrimary": False,
                "subscriberIsPatient": True,
                "createdAt": "2024-03-01T09:00:00Z",
            },
            {
                "id": "pol-deleted",
                "patientId": "p1",
                "payerNameRaw": "Cigna",
                "memberId": "CIG000111",
                "isPrimary": True,
                "createdAt": "2024-06-01T09:00:00Z",
                "deletedAt": "2024-07-01T09:00:00Z",
            },
            {
                "id": "pol3",
                "patientId": "p2",
                "payerNameRaw": "UnitedHealthcare",
                "memberId": "UHC987654321",
                "isPrimary": True,
                "subscriberIsPatient": False,
                "subscriberFirstName": "Mary",
                "subscriberLastName": "Doe",
                "relationshipToPatient": "mother",
                "rxBin": "004336",
                "createdAt": "2023-05-05T00:00:00Z",
            },
            {
                "id": "pol5-old",
                "patientId": "p5",
                "payerNameRaw": "Humana",
                "memberId": "H11112222",
                "createdAt": "2022-01-01T00:00:00Z",
            },
            {
                "id": "pol5-new",
                "patientId": "p5",
                "payerNameRaw": "Kaiser",
                "memberId": "K33334444",
                "createdAt": "2024-01-01T00:00:00Z",
            },
        ],
    }


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        api_keys=f"{API_KEY}, second-key",
        allow_agent_unmasked=False,
        cors_origins="http://localhost:3000",
        store_backend="memory",
    )


@pytest.fixture
def source() -> InMemoryRecordSource:
    return InMemoryRecordSource(seed_collections())


@pytest.fixture
def dispatcher(settings, source):
    return create_dispatcher(settings, source=source)


@pytest.fixture
def client(settings, dispatcher):
    return TestClient(create_http_app(settings, dispatcher=dispatcher))


@pytest.fixture
def audit_rows(source):
    def _rows() -> List[Dict[str, Any]]:
        return source.all(AUDIT_LOGS)

    return _rows


def make_headers(**overrides: str) -> Dict[str, str]:
    headers = {
        "X-API-Key": API_KEY,
        "X-Actor-Id": "voice-agent-1",
        "X-Actor-Type": "agent",
        "X-Purpose": "insurance_verification",
        "X-Request-Id": str(uuid.uuid4()),
    }
    headers.update(overrides)
    return {k: v for k, v in headers.items() if v is not None}


def make_ctx(allow_unmasked: bool = False, actor_type: str = "agent") -> ActorContext:
    return ActorContext(
        request_id=str(uuid.uuid4()),
        actor_id="voice-agent-1",
        actor_type=actor_type,
        allow_unmasked=allow_unmasked,
    )
