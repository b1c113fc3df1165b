import logging
from datetime import date, datetime

import pytest

from verification_mcp.audit import AuditLogEntry, AuditRecorder, collect_field_paths
from verification_mcp.store import AUDIT_LOGS, InMemoryRecordSource


class ExplodingSource(InMemoryRecordSource):
    def append(self, collection, data):
        raise ConnectionError("firestore unavailable")


def _entry(**overrides):
    data = dict(
        request_id="8a6e0804-2bd0-4672-b79d-d97027f9071a",
        actor_id="voice-agent-1",
        actor_type="agent",
        purpose="insurance_verification",
        patient_id="p1",
        policy_id=None,
        tool_name="get_patient_identity",
        fields_returned=["patient_id", "first_name"],
    )
    data.update(overrides)
    return AuditLogEntry(**data)


def test_collect_field_paths_nested_structures():
    output = {
        "patient": {"first_name": "Jane", "address": {"city": "SF"}},
        "insurance": {"member_id_masked": "*********6789"},
        "policies": [{"policy_id": "a"}, {"policy_id": "b"}],
        "tags": ["x", None],
        "empty": [],
        "nothing": None,
    }

    assert collect_field_paths(output) == [
        "patient.first_name",
        "patient.address.city",
        "insurance.member_id_masked",
        "policies[0].policy_id",
        "policies[1].policy_id",
        "tags[0]",
        "tags[1]",
        "nothing",
    ]


def test_collect_field_paths_dates_are_leaves():
    output = {"dob": date(1980, 5, 1), "seen": datetime(2024, 1, 1, 8, 0)}

    assert collect_field_paths(output) == ["dob", "seen"]


@pytest.mark.parametrize("value", [None, "raw-value", 42])
def test_collect_field_paths_root_scalars_produce_nothing(value):
    assert collect_field_paths(value) == []


def test_collect_field_paths_never_contains_values():
    output = {"member_id": "ABC123456789", "rows": [{"group": "GRP998877"}]}

    paths = collect_field_paths(output, prefix="insurance")

    assert paths == ["insurance.member_id", "insurance.rows[0].group"]
    assert not any("ABC123456789" in p or "GRP998877" in p for p in paths)


@pytest.mark.anyio
async def test_write_appends_camel_case_row():
    source = InMemoryRecordSource()

    await AuditRecorder(source).write(_entry())

    rows = source.all(AUDIT_LOGS)
    assert len(rows) == 1
    row = rows[0]
    assert row["requestId"] == "8a6e0804-2bd0-4672-b79d-d97027f9071a"
    assert row["actorType"] == "agent"
    assert row["patientId"] == "p1"
    assert row["policyId"] is None
    assert row["toolName"] == "get_patient_identity"
    assert row["fieldsReturnedJson"] == ["patient_id", "first_name"]
    assert "createdAt" in row


@pytest.mark.anyio
async def test_write_failure_is_logged_and_swallowed(caplog):
    recorder = AuditRecorder(ExplodingSource())

    with caplog.at_level(logging.ERROR, logger="verification_mcp.audit"):
        await recorder.write(_entry())

    assert "MCP audit write failed" in caplog.text
