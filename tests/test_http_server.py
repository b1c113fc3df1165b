"""
End-to-end tests over the FastAPI app with an in-memory store.
"""

import pytest

from conftest import RAW_MEMBER_ID, make_headers


def test_health_needs_no_auth(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"ok": True}


def test_tools_lists_five_schemas(client):
    response = client.get("/tools", headers=make_headers())

    assert response.status_code == 200
    tools = response.json()["tools"]
    assert len(tools) == 5
    for tool in tools:
        assert set(tool) == {"name", "description", "input_schema", "output_schema"}
    identity = next(t for t in tools if t["name"] == "get_patient_identity")
    assert identity["input_schema"]["required"] == ["patient_id"]


def test_tools_requires_auth(client):
    response = client.get("/tools")

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "UNAUTHORIZED"


def test_routes_also_served_under_mcp_prefix(client):
    assert client.get("/mcp/health").json() == {"ok": True}
    response = client.post(
        "/mcp/call",
        headers=make_headers(),
        json={"tool": "get_patient_identity", "input": {"patient_id": "p1"}},
    )
    assert response.status_code == 200


def test_identity_call_echoes_request_id(client, audit_rows):
    headers = make_headers()

    response = client.post(
        "/call",
        headers=headers,
        json={"tool": "get_patient_identity", "input": {"patient_id": "p1", "include_address": False}},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["meta"]["request_id"] == headers["X-Request-Id"]
    assert isinstance(body["meta"]["latency_ms"], int)
    assert "error" not in body
    assert body["output"]["first_name"] == "Jane"
    assert "address" not in body["output"]
    assert not any("member" in key for key in body["output"])
    rows = audit_rows()
    assert len(rows) == 1
    assert rows[0]["requestId"] == headers["X-Request-Id"]


def test_policy_details_masked_without_unmask_authorization(client):
    response = client.post(
        "/call",
        headers=make_headers(**{"X-Allow-Unmasked": "true"}),
        json={"tool": "get_insurance_policy_details", "input": {"policy_id": "pol1"}},
    )

    assert response.status_code == 200
    output = response.json()["output"]
    assert output["member_id_masked"] == "*********6789"
    assert RAW_MEMBER_ID not in response.text


def test_policy_details_unmasked_for_user_actor(client):
    response = client.post(
        "/call",
        headers=make_headers(**{"X-Actor-Type": "user", "X-Allow-Unmasked": "true"}),
        json={"tool": "get_insurance_policy_details", "input": {"policy_id": "pol1"}},
    )

    assert response.json()["output"]["member_id"] == RAW_MEMBER_ID


def test_bundle_reports_missing_subscriber_dob(client):
    response = client.post(
        "/call",
        headers=make_headers(),
        json={"tool": "get_verification_bundle", "input": {"patient_id": "p2"}},
    )

    assert response.status_code == 200
    readiness = response.json()["output"]["readiness"]
    assert readiness["status"] == "NEEDS_INFO"
    assert "subscriberDob" in [m["field"] for m in readiness["missing_fields"]]


def test_wrong_purpose_rejected_before_any_tool_runs(client, audit_rows):
    response = client.post(
        "/call",
        headers=make_headers(**{"X-Purpose": "wrong_purpose"}),
        json={"tool": "get_patient_identity", "input": {"patient_id": "p1"}},
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "BAD_REQUEST"
    assert "insurance_verification" in response.json()["error"]["message"]
    assert audit_rows() == []


def test_unknown_tool(client, audit_rows):
    response = client.post(
        "/call",
        headers=make_headers(),
        json={"tool": "delete_patient", "input": {"patient_id": "p1"}},
    )

    assert response.status_code == 400
    body = response.json()
    assert body["error"]["code"] == "UNKNOWN_TOOL"
    assert body["output"] == {}
    assert "request_id" in body["meta"]
    assert audit_rows() == []


def test_validation_error_carries_details(client):
    response = client.post(
        "/call",
        headers=make_headers(),
        json={"tool": "get_insurance_policy_details", "input": {"policy_id": ""}},
    )

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert error["details"][0]["field"] == "policy_id"


def test_missing_input_defaults_to_empty_object(client):
    response = client.post("/call", headers=make_headers(), json={"tool": "list_insurance_policies"})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"content": b"{not json", "headers": {"Content-Type": "application/json"}},
        {"json": ["get_patient_identity"]},
        {"json": {"input": {"patient_id": "p1"}}},
        {"json": {"tool": 42}},
    ],
)
def test_malformed_body_is_bad_request(client, kwargs):
    headers = {**make_headers(), **kwargs.pop("headers", {})}

    response = client.post("/call", headers=headers, **kwargs)

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "BAD_REQUEST"


def test_auth_runs_before_body_parsing(client):
    response = client.post(
        "/call",
        headers={"Content-Type": "application/json"},
        content=b"{not json",
    )

    assert response.status_code == 401


def test_unmatched_route_is_json_404(client):
    response = client.get("/patients/p1", headers=make_headers())

    assert response.status_code == 404
    assert response.json() == {"error": {"code": "NOT_FOUND", "message": "Not found"}}


def test_cors_preflight_allows_configured_origin(client):
    response = client.options(
        "/call",
        headers={
            "Origin": "http://localhost:3000",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "X-API-Key",
        },
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "http://localhost:3000"
