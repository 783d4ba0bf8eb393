"""
HTTP-level tests through FastAPI's TestClient
"""
import json

import pytest

from virtual_room.utils.logging import REQUEST_ID_HEADER

SESSIONS = "/api/virtual-room/sessions"
PARTICIPANTS = "/api/virtual-room/participants"


@pytest.fixture
def room(make_room, staff, client, auth_headers):
    """Two-student assignment with an open session created through the API"""
    assignment, students = make_room(size=2)
    response = client.post(SESSIONS, json={"assignment_id": str(assignment.id)}, headers=auth_headers(staff))
    assert response.status_code == 200
    return response.json()["session"]["id"], assignment, students


def _join(client, auth_headers, assignment, student):
    response = client.post(
        f"{PARTICIPANTS}/join",
        json={"assignment_id": str(assignment.id)},
        headers=auth_headers(student),
    )
    assert response.status_code == 200
    return response.json()["participant_id"]


# =============================================================================
# users
# =============================================================================

class TestUsers:
    """Tests for the account endpoints"""

    def test_signup_login_and_me(self, client):
        signup = client.post("/api/users/signup", json={
            "name": "Dana",
            "email": "dana@example.com",
            "password": "Secret123!",
        })
        assert signup.status_code == 200

        login = client.post("/api/users/login", data={"username": "dana@example.com", "password": "Secret123!"})
        assert login.status_code == 200
        token = login.json()["access_token"]

        me = client.get("/api/users/me", headers={"Authorization": f"Bearer {token}"})
        assert me.json()["role"] == "STUDENT"
        assert "password" not in me.json()

    def test_logout_invalidates_tokens(self, client, make_user, auth_headers):
        user = make_user()
        headers = auth_headers(user)

        assert client.post("/api/users/logout", headers=headers).status_code == 200
        assert client.get("/api/users/me", headers=headers).status_code == 401

    def test_requires_authentication(self, client):
        assert client.post(SESSIONS, json={"assignment_id": "x"}).status_code == 401


# =============================================================================
# sessions
# =============================================================================

class TestSessionRoutes:
    """Tests for the staff session endpoints"""

    def test_students_cannot_open_rooms(self, client, make_room, auth_headers):
        assignment, students = make_room()
        response = client.post(SESSIONS, json={"assignment_id": str(assignment.id)}, headers=auth_headers(students[0]))
        assert response.status_code == 403

    def test_soft_start_returns_structured_error(self, client, room, staff, auth_headers):
        session_id, assignment, students = room
        _join(client, auth_headers, assignment, students[0])

        response = client.post(f"{SESSIONS}/{session_id}/start", json={}, headers=auth_headers(staff))

        assert response.status_code == 409
        assert response.json()["detail"] == {
            "code": "NOT_ALL_CONNECTED",
            "message": response.json()["detail"]["message"],
            "connected_count": 1,
            "total_invited": 2,
        }

    def test_forced_start_then_end(self, client, room, staff, auth_headers):
        session_id, assignment, students = room
        _join(client, auth_headers, assignment, students[0])

        started = client.post(f"{SESSIONS}/{session_id}/start", json={"force_start": True}, headers=auth_headers(staff))
        assert started.status_code == 200
        assert started.json()["participants_started"] == 1

        state = client.get(f"{SESSIONS}/{session_id}", headers=auth_headers(staff)).json()
        assert state["session"]["status"] == "STARTED"
        assert 0 < state["time_remaining"] <= 3600

        ended = client.post(f"{SESSIONS}/{session_id}/end", headers=auth_headers(staff))
        assert ended.json()["session"]["status"] == "COMPLETED"

    def test_unknown_session_is_404(self, client, staff, auth_headers):
        response = client.get(f"{SESSIONS}/5f5f5f5f5f5f5f5f5f5f5f5f", headers=auth_headers(staff))
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "NOT_FOUND"

    def test_stream_sends_initial_snapshot(self, client, room, staff, auth_headers):
        """A finished session gets its snapshot once and the stream closes"""
        session_id, _, _ = room
        client.post(f"{SESSIONS}/{session_id}/cancel", headers=auth_headers(staff))

        response = client.get(f"{SESSIONS}/{session_id}/stream", headers=auth_headers(staff))

        assert response.headers["content-type"].startswith("text/event-stream")
        lines = response.text.strip().split("\n")
        assert lines[0] == "event: init"
        payload = json.loads(lines[1][len("data: "):])
        assert payload["session"]["status"] == "CANCELLED"


# =============================================================================
# participants
# =============================================================================

class TestParticipantRoutes:
    """Tests for the student-facing endpoints"""

    def test_join_heartbeat_ready(self, client, room, auth_headers):
        _, assignment, students = room
        participant_id = _join(client, auth_headers, assignment, students[0])
        headers = auth_headers(students[0])

        beat = client.post(f"{PARTICIPANTS}/{participant_id}/heartbeat", json={"answered_count": 2}, headers=headers)
        ready = client.post(f"{PARTICIPANTS}/{participant_id}/ready", headers=headers)
        status = client.get(f"{PARTICIPANTS}/status", params={"assignment_id": str(assignment.id)}, headers=headers)

        assert beat.json()["connected_count"] == 1
        assert ready.json()["success"] is True
        assert status.json()["participant_id"] == participant_id

    def test_staff_cannot_join(self, client, room, staff, auth_headers):
        _, assignment, _ = room
        response = client.post(
            f"{PARTICIPANTS}/join",
            json={"assignment_id": str(assignment.id)},
            headers=auth_headers(staff),
        )
        assert response.status_code == 403

    def test_messages_are_rate_limited(self, client, room, staff, auth_headers):
        _, assignment, students = room
        participant_id = _join(client, auth_headers, assignment, students[0])
        url = f"{PARTICIPANTS}/{participant_id}/messages"

        first = client.post(url, json={"message": "Hello"}, headers=auth_headers(staff))
        second = client.post(url, json={"message": "Hello again"}, headers=auth_headers(staff))

        assert first.status_code == 200
        assert second.status_code == 429

    def test_message_length_is_validated(self, client, room, staff, auth_headers):
        _, assignment, students = room
        participant_id = _join(client, auth_headers, assignment, students[0])

        response = client.post(
            f"{PARTICIPANTS}/{participant_id}/messages",
            json={"message": "x" * 1001},
            headers=auth_headers(staff),
        )
        assert response.status_code == 422

    def test_beacon_disconnect_accepts_plain_text(self, client, room, staff, auth_headers):
        session_id, assignment, students = room
        participant_id = _join(client, auth_headers, assignment, students[0])

        response = client.post(
            f"{PARTICIPANTS}/disconnect",
            content=json.dumps({"participant_id": participant_id}),
            headers={"Content-Type": "text/plain"},
        )

        assert response.status_code == 200
        state = client.get(f"{SESSIONS}/{session_id}", headers=auth_headers(staff)).json()
        assert state["participants"][0]["is_connected"] is False

    def test_beacon_rejects_garbage(self, client):
        response = client.post(f"{PARTICIPANTS}/disconnect", content="not json")
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "INVALID_INPUT"

    def test_cheating_event_and_kick(self, client, room, staff, auth_headers):
        session_id, assignment, students = room
        participant_id = _join(client, auth_headers, assignment, students[0])

        logged = client.post(
            f"{PARTICIPANTS}/{participant_id}/cheating-events",
            json={"event_type": "COPY_ATTEMPT", "metadata": {"length": 120}},
            headers=auth_headers(students[0]),
        )
        kicked = client.post(
            f"{PARTICIPANTS}/{participant_id}/kick",
            json={"reason": "Copying"},
            headers=auth_headers(staff),
        )
        rejoin = client.post(
            f"{PARTICIPANTS}/join",
            json={"assignment_id": str(assignment.id)},
            headers=auth_headers(students[0]),
        )

        assert logged.status_code == 200
        assert kicked.status_code == 200
        assert rejoin.status_code == 403
        assert rejoin.json()["detail"]["code"] == "KICKED"


class TestRequestId:
    """Tests for the correlation id middleware"""

    def test_echoes_incoming_id(self, client):
        response = client.get("/", headers={REQUEST_ID_HEADER: "abc123"})
        assert response.headers[REQUEST_ID_HEADER] == "abc123"

    def test_generates_id_when_missing(self, client):
        response = client.get("/")
        assert len(response.headers[REQUEST_ID_HEADER]) == 32
