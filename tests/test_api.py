"""
HTTP API tests (FastAPI TestClient, fresh in-memory database per test,
request clock pinned to 2024-02-01).
"""
import uuid

PROJECT_ID = "33333333-3333-3333-3333-333333333333"


def _create_record(client, revision="Rev-01"):
    response = client.post(
        "/api/v1/document-records",
        json={"project_id": PROJECT_ID, "document_name": "Nozzle Orientation", "revision": revision},
    )
    assert response.status_code == 201
    return response.json()["data"]


def _submit(client, record_id, **body):
    return client.post(f"/api/v1/document-records/{record_id}/revision-events/submit", json=body)


def _receive(client, record_id, **body):
    return client.post(f"/api/v1/document-records/{record_id}/revision-events/receive", json=body)


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_create_and_get_record(client):
    record = _create_record(client)
    response = client.get(f"/api/v1/document-records/{record['id']}")
    assert response.status_code == 200
    assert response.json()["data"]["revision"] == "Rev-01"


def test_unknown_record_is_404(client):
    response = client.get(f"/api/v1/document-records/{uuid.uuid4()}/revision-history")
    assert response.status_code == 404
    assert "not found" in response.json()["detail"]


def test_invalid_body_is_422(client):
    response = client.post(
        "/api/v1/document-records",
        json={"project_id": PROJECT_ID, "document_name": "", "revision": "Rev-01"},
    )
    assert response.status_code == 422


def test_invalid_actor_email_is_422(client):
    record = _create_record(client)
    response = _submit(client, record["id"], actor={"email": "not-an-email"})
    assert response.status_code == 422


def test_submit_defaults_to_request_time(client):
    record = _create_record(client)
    response = _submit(
        client, record["id"],
        estimated_return_date="2024-02-10",
        notes="Issued for approval",
        actor={"full_name": "Site QA", "email": "qa@acme-engineering.com"},
    )
    assert response.status_code == 201
    event = response.json()["data"]
    assert event["event_type"] == "submitted"
    assert event["event_timestamp"] == "2024-02-01T00:00:00+00:00"
    assert event["estimated_return_timestamp"] == "2024-02-10T00:00:00+00:00"
    assert event["revision_label"] == "Rev-01"
    assert event["actor"]["display_name"] == "Site QA"


def test_revision_history_round_trip(client):
    record = _create_record(client)
    rid = record["id"]
    _submit(client, rid, event_timestamp="2024-01-01T00:00:00Z", estimated_return_date="2024-01-15")
    _receive(client, rid, event_timestamp="2024-01-10T00:00:00Z")
    _submit(client, rid, event_timestamp="2024-01-20T00:00:00Z", revision_label="Rev-02")

    response = client.get(f"/api/v1/document-records/{rid}/revision-history", params={"now": "2024-01-25T00:00:00Z"})
    assert response.status_code == 200
    data = response.json()["data"]

    assert data["statistics"] == {
        "days_with_client": 14,
        "days_worked": 10,
        "submission_count": 2,
        "receipt_count": 1,
        "pending_with_client": True,
        "last_submission_at": "2024-01-20T00:00:00+00:00",
    }
    assert data["cycles"][0]["estimate"] == {"delta_days": 5, "is_before_estimate": True}
    assert data["last_event"]["revision_label"] == "Rev-02"
    assert [e["event_type_label"] for e in data["entries"]] == ["Submitted", "Received", "Submitted"]


def test_revision_history_uses_request_clock_by_default(client):
    rid = _create_record(client)["id"]
    _submit(client, rid, event_timestamp="2024-01-01T00:00:00Z")
    data = client.get(f"/api/v1/document-records/{rid}/revision-history").json()["data"]
    assert data["evaluated_at"] == "2024-02-01T00:00:00+00:00"
    assert data["statistics"]["days_with_client"] == 31


def test_receive_ignores_estimate_field(client):
    rid = _create_record(client)["id"]
    _submit(client, rid, event_timestamp="2024-01-01T00:00:00Z")
    response = _receive(client, rid, estimated_return_date="2024-01-20")
    assert response.status_code == 201
    assert response.json()["data"]["estimated_return_timestamp"] is None


def test_events_listed_newest_first(client):
    rid = _create_record(client)["id"]
    _submit(client, rid, event_timestamp="2024-01-01T00:00:00Z")
    _receive(client, rid, event_timestamp="2024-01-10T00:00:00Z")
    data = client.get(f"/api/v1/document-records/{rid}/revision-events").json()["data"]
    assert [e["event_type"] for e in data] == ["received", "submitted"]


def test_update_revision(client):
    rid = _create_record(client)["id"]
    response = client.patch(f"/api/v1/document-records/{rid}/revision", json={"revision": "Rev-04"})
    assert response.status_code == 200
    assert response.json()["data"]["revision"] == "Rev-04"


def test_project_register(client):
    rid = _create_record(client)["id"]
    _submit(client, rid, event_timestamp="2024-01-20T00:00:00Z")
    response = client.get(f"/api/v1/projects/{PROJECT_ID}/document-records")
    assert response.status_code == 200
    (row,) = response.json()["data"]
    assert row["status"] == {
        "label": "With Client",
        "days_since_last_event": 12,
        "days_since_last_submission": 12,
        "days_with_client": 12,
    }
    assert row["last_event"]["event_type_label"] == "Submitted"


def test_project_register_as_of(client):
    rid = _create_record(client)["id"]
    _submit(client, rid, event_timestamp="2024-01-20T00:00:00Z")
    response = client.get(
        f"/api/v1/projects/{PROJECT_ID}/document-records",
        params={"now": "2024-01-25T00:00:00Z"},
    )
    (row,) = response.json()["data"]
    assert row["status"]["days_with_client"] == 5
    assert row["last_event"]["days_since_last_event"] == 5


def test_naive_timestamps_read_as_utc(client):
    rid = _create_record(client)["id"]
    event = _submit(client, rid, event_timestamp="2024-01-01T00:00:00").json()["data"]
    assert event["event_timestamp"] == "2024-01-01T00:00:00+00:00"

    data = client.get(
        f"/api/v1/document-records/{rid}/revision-history",
        params={"now": "2024-01-11T00:00:00"},
    ).json()["data"]
    assert data["evaluated_at"] == "2024-01-11T00:00:00+00:00"
    assert data["statistics"]["days_with_client"] == 10
