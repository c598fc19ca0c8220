"""Contract tests for the organizations API and the shared envelope."""

from __future__ import annotations

from datetime import datetime
import uuid

from fastapi.testclient import TestClient

API_PREFIX = "/api/v1"


def _assert_timestamp(value: str) -> None:
    assert value.endswith("Z")
    datetime.fromisoformat(value.replace("Z", "+00:00"))


def _assert_success_envelope(payload: dict) -> None:
    assert payload["success"] is True
    assert isinstance(payload["message"], str) and payload["message"]
    _assert_timestamp(payload["timestamp"])
    assert isinstance(payload["request_id"], str) and payload["request_id"]
    assert "error_code" not in payload
    assert "errors" not in payload
    assert "debug" not in payload


def _assert_error_envelope(payload: dict, error_code: str) -> None:
    assert payload["success"] is False
    assert payload["error_code"] == error_code
    assert isinstance(payload["message"], str) and payload["message"]
    _assert_timestamp(payload["timestamp"])
    assert "data" not in payload
    assert isinstance(payload["debug"]["trace_id"], str)


def _assert_organization_contract(payload: dict) -> None:
    for field in ("id", "name", "slug", "email", "is_active", "created_at", "updated_at"):
        assert field in payload

    uuid.UUID(payload["id"])
    assert isinstance(payload["name"], str)
    assert isinstance(payload["is_active"], bool)


def _create_organization(test_client: TestClient, name: str = "Acme Corp") -> dict:
    response = test_client.post(f"{API_PREFIX}/organizations", json={"name": name, "email": "ops@acme.test"})
    assert response.status_code == 201
    payload = response.json()
    _assert_success_envelope(payload)
    _assert_organization_contract(payload["data"])
    return payload["data"]


def test_health_returns_success_envelope(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    payload = response.json()
    _assert_success_envelope(payload)
    assert payload["data"] == {"status": "ok"}
    assert response.headers["X-Request-ID"] == payload["request_id"]


def test_organizations_crud_contract(client: TestClient) -> None:
    created = _create_organization(client)
    assert created["slug"] == "acme-corp"
    assert created["is_active"] is True

    fetched = client.get(f"{API_PREFIX}/organizations/{created['id']}")
    assert fetched.status_code == 200
    _assert_success_envelope(fetched.json())
    assert fetched.json()["data"]["id"] == created["id"]

    updated = client.patch(f"{API_PREFIX}/organizations/{created['id']}", json={"name": "Acme Holdings"})
    assert updated.status_code == 200
    _assert_success_envelope(updated.json())
    assert updated.json()["data"]["name"] == "Acme Holdings"
    assert updated.json()["data"]["slug"] == "acme-holdings"

    deleted = client.delete(f"{API_PREFIX}/organizations/{created['id']}")
    assert deleted.status_code == 200
    _assert_success_envelope(deleted.json())
    assert "data" not in deleted.json()

    after_delete = client.get(f"{API_PREFIX}/organizations/{created['id']}")
    assert after_delete.json()["data"]["is_active"] is False


def test_unknown_organization_returns_not_found_envelope(client: TestClient) -> None:
    response = client.get(f"{API_PREFIX}/organizations/abc-123")

    assert response.status_code == 404
    payload = response.json()
    _assert_error_envelope(payload, "RESOURCE_NOT_FOUND")
    assert payload["message"] == "Organization with identifier 'abc-123' not found"


def test_missing_uuid_returns_not_found_envelope(client: TestClient) -> None:
    missing = str(uuid.uuid4())

    response = client.delete(f"{API_PREFIX}/organizations/{missing}")

    assert response.status_code == 404
    assert response.json()["message"] == f"Organization with identifier '{missing}' not found"


def test_duplicate_organization_name_is_a_conflict(client: TestClient) -> None:
    _create_organization(client, name="Globex")

    response = client.post(f"{API_PREFIX}/organizations", json={"name": "Globex"})

    assert response.status_code == 409
    payload = response.json()
    _assert_error_envelope(payload, "RESOURCE_CONFLICT")
    assert payload["errors"] == {"name": ["The name has already been taken."]}


def test_names_colliding_on_slug_report_a_slug_conflict(client: TestClient) -> None:
    _create_organization(client, name="Acme Inc")

    response = client.post(f"{API_PREFIX}/organizations", json={"name": "acme-inc"})

    assert response.status_code == 409
    payload = response.json()
    _assert_error_envelope(payload, "RESOURCE_CONFLICT")
    assert payload["message"] == "Organization slug must be unique"
    assert payload["errors"] == {"slug": ["The slug has already been taken."]}


def test_renaming_onto_an_existing_name_is_a_conflict(client: TestClient) -> None:
    _create_organization(client, name="Globex")
    other = _create_organization(client, name="Initech")

    taken_name = client.patch(f"{API_PREFIX}/organizations/{other['id']}", json={"name": "Globex"})
    taken_slug = client.patch(f"{API_PREFIX}/organizations/{other['id']}", json={"name": "globex"})
    own_name = client.patch(f"{API_PREFIX}/organizations/{other['id']}", json={"name": "Initech"})

    assert taken_name.status_code == 409
    assert taken_name.json()["errors"] == {"name": ["The name has already been taken."]}
    assert taken_slug.status_code == 409
    assert taken_slug.json()["errors"] == {"slug": ["The slug has already been taken."]}
    assert own_name.status_code == 200


def test_invalid_payloads_return_validation_envelope(client: TestClient) -> None:
    missing_name = client.post(f"{API_PREFIX}/organizations", json={"email": "x@example.com"})
    blank_name = client.post(f"{API_PREFIX}/organizations", json={"name": "   "})

    assert missing_name.status_code == 422
    _assert_error_envelope(missing_name.json(), "VALIDATION_ERROR")
    assert "name" in missing_name.json()["errors"]

    assert blank_name.status_code == 422
    _assert_error_envelope(blank_name.json(), "VALIDATION_ERROR")
    assert blank_name.json()["errors"] == {"name": ["The name must contain at least one letter or digit."]}


def test_list_organizations_is_paginated(client: TestClient) -> None:
    names = {"Initech", "Umbrella", "Hooli"}
    for name in names:
        _create_organization(client, name=name)

    first = client.get(f"{API_PREFIX}/organizations", params={"per_page": 2})
    second = client.get(f"{API_PREFIX}/organizations", params={"per_page": 2, "page": 2})

    assert first.status_code == 200
    first_payload = first.json()
    _assert_success_envelope(first_payload)
    assert len(first_payload["data"]) == 2
    pagination = first_payload["pagination"]
    assert pagination["current_page"] == 1
    assert pagination["per_page"] == 2
    assert pagination["total"] == 3
    assert pagination["last_page"] == 2
    assert pagination["from"] == 1
    assert pagination["to"] == 2
    assert pagination["has_more_pages"] is True
    assert pagination["links"]["prev"] is None
    assert pagination["links"]["next"].endswith("/api/v1/organizations?per_page=2&page=2")

    second_payload = second.json()
    assert len(second_payload["data"]) == 1
    assert second_payload["pagination"]["from"] == 3
    assert second_payload["pagination"]["to"] == 3
    assert second_payload["pagination"]["has_more_pages"] is False
    assert second_payload["pagination"]["links"]["next"] is None

    listed = {item["name"] for item in first_payload["data"] + second_payload["data"]}
    assert listed == names


def test_list_organizations_filters_by_active_state(client: TestClient) -> None:
    active = _create_organization(client, name="Active Co")
    disabled = _create_organization(client, name="Dormant Co")
    client.delete(f"{API_PREFIX}/organizations/{disabled['id']}")

    response = client.get(f"{API_PREFIX}/organizations", params={"is_active": "true"})

    payload = response.json()
    assert [item["id"] for item in payload["data"]] == [active["id"]]
    assert payload["pagination"]["total"] == 1
    assert "is_active=true" in payload["pagination"]["links"]["first"]


def test_invalid_pagination_query_is_a_validation_error(client: TestClient) -> None:
    response = client.get(f"{API_PREFIX}/organizations", params={"per_page": 0})

    assert response.status_code == 422
    _assert_error_envelope(response.json(), "VALIDATION_ERROR")
    assert "per_page" in response.json()["errors"]


def test_request_id_header_is_echoed(client: TestClient) -> None:
    response = client.get(f"{API_PREFIX}/organizations", headers={"X-Request-ID": "req_contract"})

    assert response.json()["request_id"] == "req_contract"
    assert response.headers["X-Request-ID"] == "req_contract"
