from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from conftest import auth_headers, future_slot


def _meeting_body(room, start, hours=1, **extra) -> dict:
    body = {
        "title": "Design review",
        "start_time": start.isoformat() + "Z",
        "end_time": (start + timedelta(hours=hours)).isoformat() + "Z",
        "room_id": room.room_id,
    }
    body.update(extra)
    return body


@pytest.fixture
def created_meeting(client: TestClient, employee_user, room) -> dict:
    response = client.post(
        "/api/meetings",
        json=_meeting_body(room, future_slot(hour=10)),
        headers=auth_headers(employee_user),
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_create_meeting(created_meeting, employee_user, room):
    assert created_meeting["status"] == "scheduled"
    assert created_meeting["organizer_id"] == employee_user.user_id
    assert created_meeting["organizer"]["user_id"] == employee_user.user_id
    assert created_meeting["room"]["room_id"] == room.room_id
    assert created_meeting["meeting_id"].startswith("MTG")


def test_create_requires_authentication(client, room):
    response = client.post("/api/meetings", json=_meeting_body(room, future_slot()))
    assert response.status_code == 401


def test_double_booking_returns_conflict(client, manager_user, room, created_meeting):
    start = future_slot(hour=10, minute=30)
    response = client.post(
        "/api/meetings", json=_meeting_body(room, start), headers=auth_headers(manager_user)
    )
    assert response.status_code == 409
    assert response.json()["kind"] == "scheduling_conflict"


def test_invalid_window_is_unprocessable(client, employee_user, room):
    start = future_slot()
    response = client.post(
        "/api/meetings", json=_meeting_body(room, start, hours=0), headers=auth_headers(employee_user)
    )
    assert response.status_code == 422
    assert response.json()["kind"] == "validation_failed"


def test_missing_fields_are_unprocessable(client, employee_user):
    response = client.post("/api/meetings", json={"title": "x"}, headers=auth_headers(employee_user))
    assert response.status_code == 422
    assert isinstance(response.json()["detail"], list)


def test_non_owner_cannot_update(client, other_employee, created_meeting):
    response = client.put(
        f"/api/meetings/{created_meeting['meeting_id']}",
        json={"title": "Hijacked"},
        headers=auth_headers(other_employee),
    )
    assert response.status_code == 403
    assert response.json()["kind"] == "forbidden"


def test_manager_can_update(client, manager_user, created_meeting):
    response = client.put(
        f"/api/meetings/{created_meeting['meeting_id']}",
        json={"description": "Agenda attached"},
        headers=auth_headers(manager_user),
    )
    assert response.status_code == 200
    body = response.json()
    assert body["description"] == "Agenda attached"
    assert body["title"] == created_meeting["title"]


def test_delete_cancels(client, employee_user, created_meeting):
    meeting_id = created_meeting["meeting_id"]
    response = client.delete(f"/api/meetings/{meeting_id}", headers=auth_headers(employee_user))
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    fetched = client.get(f"/api/meetings/{meeting_id}", headers=auth_headers(employee_user))
    assert fetched.json()["status"] == "cancelled"


def test_transitions_via_api(client, employee_user, created_meeting):
    meeting_id = created_meeting["meeting_id"]
    headers = auth_headers(employee_user)
    assert client.post(f"/api/meetings/{meeting_id}/start", headers=headers).json()["status"] == "in_progress"
    assert client.post(f"/api/meetings/{meeting_id}/complete", headers=headers).json()["status"] == "completed"
    response = client.post(f"/api/meetings/{meeting_id}/cancel", headers=headers)
    assert response.status_code == 409
    assert response.json()["kind"] == "invalid_state"


def test_attendee_endpoints(client, employee_user, other_employee, created_meeting):
    meeting_id = created_meeting["meeting_id"]
    headers = auth_headers(employee_user)
    added = client.post(
        f"/api/meetings/{meeting_id}/attendees", json={"user_id": other_employee.user_id}, headers=headers
    )
    assert added.status_code == 200
    roster = client.get(f"/api/meetings/{meeting_id}/attendees", headers=headers).json()
    assert [a["user_id"] for a in roster] == [other_employee.user_id]

    removed = client.delete(f"/api/meetings/{meeting_id}/attendees/{other_employee.user_id}", headers=headers)
    assert removed.json()["attendees"] == []


def test_list_meetings_pagination_shape(client, employee_user, room):
    headers = auth_headers(employee_user)
    for hour in (8, 10, 12):
        client.post("/api/meetings", json=_meeting_body(room, future_slot(hour=hour)), headers=headers)

    response = client.get("/api/meetings", params={"page": 1, "limit": 2}, headers=headers)
    assert response.status_code == 200
    body = response.json()
    assert len(body["items"]) == 2
    assert body["pagination"] == {"page": 1, "limit": 2, "total": 3, "total_pages": 2}

    clamped = client.get("/api/meetings", params={"page": 0, "limit": 1000}, headers=headers).json()
    assert clamped["pagination"]["page"] == 1
    assert clamped["pagination"]["limit"] == 100


def test_slot_availability(client, employee_user, room, created_meeting):
    response = client.get(
        "/api/meetings/availability",
        params={
            "room_id": room.room_id,
            "start_time": created_meeting["start_time"],
            "end_time": created_meeting["end_time"],
        },
        headers=auth_headers(employee_user),
    )
    assert response.status_code == 200
    body = response.json()
    assert body["available"] is False
    assert [c["meeting_id"] for c in body["conflicts"]] == [created_meeting["meeting_id"]]


def test_filter_by_status(client, employee_user, created_meeting):
    response = client.get(
        "/api/meetings/filter", params={"status": "scheduled"}, headers=auth_headers(employee_user)
    )
    assert response.status_code == 200
    assert response.json()["pagination"]["total"] == 1


def test_update_status_field(client, employee_user, created_meeting):
    response = client.put(
        f"/api/meetings/{created_meeting['meeting_id']}",
        json={"status": "in_progress"},
        headers=auth_headers(employee_user),
    )
    assert response.status_code == 200, response.text
    assert response.json()["status"] == "in_progress"

    bogus = client.put(
        f"/api/meetings/{created_meeting['meeting_id']}",
        json={"status": "postponed"},
        headers=auth_headers(employee_user),
    )
    assert bogus.status_code == 422
