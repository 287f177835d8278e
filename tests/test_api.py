"""
REST API tests through FastAPI's TestClient.

Covers status codes and payload shapes: auth (401), rooms (403/404),
the send endpoint (403 reason, 502 restored_text) and participant profiles.
"""

from conftest import auth_headers, guest_headers

ALICE = auth_headers("alice", "Alice")
BOB = auth_headers("bob", "Bob")
CARL = auth_headers("carl", "Carl")


def _create_room(client, headers=ALICE, name="Check-in", is_public=True) -> dict:
    response = client.post("/rooms", json={"name": name, "is_public": is_public}, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()


def _set_style(client, headers, style) -> None:
    response = client.patch("/participants/me", json={"communication_style": style}, headers=headers)
    assert response.status_code == 200, response.text


class TestAuthentication:
    def test_missing_credentials_is_401(self, client) -> None:
        assert client.get("/rooms").status_code == 401

    def test_bad_token_is_401(self, client) -> None:
        response = client.get("/rooms", headers={"Authorization": "Bearer nope"})

        assert response.status_code == 401

    def test_session_reports_signed_in_user(self, client) -> None:
        body = client.get("/auth/session", headers=ALICE).json()

        assert body["authenticated"] is True
        assert body["user"]["id"] == "alice"

    def test_session_reports_guest(self, client) -> None:
        body = client.get("/auth/session", headers=guest_headers()).json()

        assert body["authenticated"] is False
        assert body["user"]["is_guest"] is True

    def test_session_without_credentials(self, client) -> None:
        assert client.get("/auth/session").json() == {"authenticated": False, "user": None}


class TestRooms:
    def test_create_and_list(self, client) -> None:
        room = _create_room(client)

        assert room["owner_id"] == "alice"
        assert room["participants"] == ["alice"]
        assert [r["id"] for r in client.get("/rooms", headers=ALICE).json()] == [room["id"]]
        assert client.get("/rooms", headers=BOB).json() == []

    def test_guest_cannot_create_room(self, client) -> None:
        response = client.post("/rooms", json={"name": "Nope"}, headers=guest_headers())

        assert response.status_code == 403

    def test_blank_name_is_400(self, client) -> None:
        response = client.post("/rooms", json={"name": "  "}, headers=ALICE)

        assert response.status_code == 400

    def test_room_view_includes_participant_details(self, client) -> None:
        _set_style(client, ALICE, "Autistic")
        room = _create_room(client)

        view = client.get(f"/rooms/{room['id']}", headers=ALICE).json()

        assert view["participant_details"]["alice"]["communication_style"] == "Autistic"
        assert view["participant_details"]["alice"]["display_name"] == "Alice"

    def test_unknown_room_is_404(self, client) -> None:
        assert client.get("/rooms/missing", headers=ALICE).status_code == 404

    def test_private_room_hidden_from_non_members(self, client) -> None:
        room = _create_room(client, is_public=False)

        assert client.get(f"/rooms/{room['id']}", headers=BOB).status_code == 403
        assert client.get(f"/rooms/{room['id']}/messages", headers=guest_headers()).status_code == 403

    def test_only_owner_deletes(self, client) -> None:
        room = _create_room(client)

        assert client.delete(f"/rooms/{room['id']}", headers=BOB).status_code == 403
        assert client.delete(f"/rooms/{room['id']}", headers=ALICE).json()["status"] == "deleted"
        assert client.get(f"/rooms/{room['id']}", headers=ALICE).status_code == 404


class TestSendMessage:
    def test_each_viewer_sees_their_variant(self, client) -> None:
        _set_style(client, BOB, "Autistic")
        room = _create_room(client)
        client.post(f"/rooms/{room['id']}/messages", json={"text": "hi"}, headers=BOB)

        response = client.post(
            f"/rooms/{room['id']}/messages", json={"text": "Could you maybe tidy up?"}, headers=ALICE
        )

        assert response.status_code == 200
        assert response.json()["text"] == "Could you maybe tidy up?"
        [_, for_bob] = client.get(f"/rooms/{room['id']}/messages", headers=BOB).json()
        assert for_bob["text"] == "[rewritten] Could you maybe tidy up?"
        assert for_bob["is_translated"] is True

    def test_first_send_joins_public_room(self, client, app_state) -> None:
        room = _create_room(client)

        response = client.post(f"/rooms/{room['id']}/messages", json={"text": "hello"}, headers=CARL)

        assert response.status_code == 200
        assert app_state.room_manager.get_room(room["id"]).participants == ["alice", "carl"]

    def test_guest_limit_is_403_with_reason(self, client, app_state) -> None:
        room = _create_room(client)
        url = f"/rooms/{room['id']}/messages"
        headers = guest_headers("visitor")

        for i in range(5):
            assert client.post(url, json={"text": f"message {i}"}, headers=headers).status_code == 200

        response = client.post(url, json={"text": "one more"}, headers=headers)

        assert response.status_code == 403
        assert response.json()["detail"] == {"reason": "guest limit reached"}
        assert len(app_state.message_store.list_messages(room["id"])) == 5

    def test_guest_in_private_room_is_403_with_reason(self, client) -> None:
        room = _create_room(client, is_public=False)

        response = client.post(
            f"/rooms/{room['id']}/messages", json={"text": "let me in"}, headers=guest_headers()
        )

        assert response.status_code == 403
        assert response.json()["detail"] == {"reason": "private room, sign-in required"}

    def test_signed_in_non_member_of_private_room_is_403(self, client, app_state) -> None:
        room = _create_room(client, is_public=False)

        response = client.post(f"/rooms/{room['id']}/messages", json={"text": "let me in"}, headers=CARL)

        assert response.status_code == 403
        assert response.json()["detail"] == {"reason": "private room, members only"}
        assert app_state.room_manager.get_room(room["id"]).participants == ["alice"]

    def test_generation_failure_is_502_with_restored_text(self, client, fake_generation, app_state) -> None:
        _set_style(client, BOB, "Autistic")
        room = _create_room(client)
        client.post(f"/rooms/{room['id']}/messages", json={"text": "hi"}, headers=BOB)
        fake_generation.fail_on = "direct, literal"

        response = client.post(
            f"/rooms/{room['id']}/messages", json={"text": "Please be on time."}, headers=ALICE
        )

        assert response.status_code == 502
        assert response.json()["detail"]["restored_text"] == "Please be on time."
        assert [m.original_message for m in app_state.message_store.list_messages(room["id"])] == ["hi"]

    def test_blank_text_is_400(self, client) -> None:
        room = _create_room(client)

        response = client.post(f"/rooms/{room['id']}/messages", json={"text": " "}, headers=ALICE)

        assert response.status_code == 400

    def test_unknown_room_is_404(self, client) -> None:
        response = client.post("/rooms/missing/messages", json={"text": "hello"}, headers=ALICE)

        assert response.status_code == 404


class TestParticipants:
    def test_new_participant_defaults_to_neurotypical(self, client) -> None:
        body = client.get("/participants/me", headers=ALICE).json()

        assert body["id"] == "alice"
        assert body["communication_style"] == "Neurotypical"

    def test_update_style_and_name(self, client) -> None:
        response = client.patch(
            "/participants/me",
            json={"communication_style": "Autistic", "display_name": "Alice L."},
            headers=ALICE,
        )

        assert response.status_code == 200
        assert response.json()["communication_style"] == "Autistic"
        assert client.get("/participants/me", headers=ALICE).json()["display_name"] == "Alice L."

    def test_invalid_style_is_422(self, client) -> None:
        response = client.patch("/participants/me", json={"communication_style": "Loud"}, headers=ALICE)

        assert response.status_code == 422

    def test_guest_has_no_profile(self, client) -> None:
        assert client.get("/participants/me", headers=guest_headers()).status_code == 403


class TestOperationalEndpoints:
    def test_health(self, client) -> None:
        _create_room(client)

        body = client.get("/health").json()

        assert body["status"] == "healthy"
        assert body["rooms"] == 1
        assert body["relay"] == "memory"

    def test_metrics_count_sends(self, client) -> None:
        room = _create_room(client)
        client.post(f"/rooms/{room['id']}/messages", json={"text": "hello"}, headers=guest_headers())

        body = client.get("/metrics").json()

        assert body["total_messages"] == 1
        assert body["guest_messages"] == 1
        assert body["guest_message_limit"] == 5
