"""WebSocket protocol tests: live room feeds, sends and per-viewer rendering."""

import pytest
from starlette.websockets import WebSocketDisconnect

from conftest import auth_headers, guest_headers, make_token


def _receive_types(ws, *wanted, limit=10) -> dict:
    """Read frames until one of each wanted type has arrived (latest wins)."""
    seen = {}
    for _ in range(limit):
        frame = ws.receive_json()
        seen[frame["type"]] = frame
        if all(t in seen for t in wanted):
            return seen
    raise AssertionError(f"never received {wanted}, got {list(seen)}")


def _create_room(client, is_public=True) -> str:
    response = client.post("/rooms", json={"name": "Live", "is_public": is_public}, headers=auth_headers("alice"))
    return response.json()["id"]


class TestConnection:
    def test_missing_credentials_closes_socket(self, client) -> None:
        with pytest.raises(WebSocketDisconnect) as excinfo:
            with client.websocket_connect("/ws") as ws:
                ws.receive_json()

        assert excinfo.value.code == 4401

    def test_invalid_json_and_unknown_action(self, client) -> None:
        with client.websocket_connect("/ws?guest_id=session-1") as ws:
            ws.send_text("{not json")
            assert ws.receive_json() == {"type": "error", "message": "Invalid JSON"}

            ws.send_json({"action": "dance"})
            assert ws.receive_json() == {"type": "error", "message": "Unknown action: dance"}


class TestRoomFeeds:
    def test_join_pushes_room_and_messages(self, client) -> None:
        room_id = _create_room(client)
        client.post(f"/rooms/{room_id}/messages", json={"text": "earlier"}, headers=auth_headers("alice"))

        with client.websocket_connect("/ws?guest_id=session-1") as ws:
            ws.send_json({"action": "join", "room_id": room_id})
            frames = _receive_types(ws, "room_snapshot", "messages_snapshot")

        assert frames["room_snapshot"]["room"]["id"] == room_id
        assert frames["room_snapshot"]["room"]["participant_details"]["alice"]["communication_style"] == "Neurotypical"
        assert [m["text"] for m in frames["messages_snapshot"]["messages"]] == ["earlier"]

    def test_guest_send_is_pushed_back_to_the_feed(self, client) -> None:
        room_id = _create_room(client)

        with client.websocket_connect("/ws?guest_id=session-1") as ws:
            ws.send_json({"action": "join", "room_id": room_id})
            _receive_types(ws, "room_snapshot", "messages_snapshot")

            ws.send_json({"action": "send", "room_id": room_id, "text": "hi from a guest"})
            frames = _receive_types(ws, "message_sent", "messages_snapshot")

        assert frames["message_sent"]["message"]["sender_id"] == "guest-session-1"
        assert frames["message_sent"]["message"]["sender_is_guest"] is True
        assert [m["text"] for m in frames["messages_snapshot"]["messages"]] == ["hi from a guest"]

    def test_snapshots_are_rendered_for_the_viewer(self, client) -> None:
        room_id = _create_room(client)
        bob = auth_headers("bob")
        client.patch("/participants/me", json={"communication_style": "Autistic"}, headers=bob)
        client.post(f"/rooms/{room_id}/messages", json={"text": "joining"}, headers=bob)
        client.post(f"/rooms/{room_id}/messages", json={"text": "Could you tidy up?"}, headers=auth_headers("alice"))

        with client.websocket_connect(f"/ws?token={make_token('bob')}") as ws:
            ws.send_json({"action": "join", "room_id": room_id})
            frames = _receive_types(ws, "messages_snapshot")

        [own, incoming] = frames["messages_snapshot"]["messages"]
        assert own["text"] == "joining"
        assert incoming["text"] == "[rewritten] Could you tidy up?"
        assert incoming["is_translated"] is True

    def test_guest_cannot_follow_private_room(self, client) -> None:
        room_id = _create_room(client, is_public=False)

        with client.websocket_connect("/ws?guest_id=session-1") as ws:
            ws.send_json({"action": "join", "room_id": room_id})
            frame = ws.receive_json()

        assert frame == {"type": "error", "message": "This room is private"}

    def test_leave_confirms(self, client, app_state) -> None:
        room_id = _create_room(client)

        with client.websocket_connect("/ws?guest_id=session-1") as ws:
            ws.send_json({"action": "join", "room_id": room_id})
            _receive_types(ws, "room_snapshot", "messages_snapshot")
            ws.send_json({"action": "leave", "room_id": room_id})
            frame = _receive_types(ws, "room_left")["room_left"]

            assert frame["room_id"] == room_id
            assert app_state.connection_manager.active_feeds() == 0


class TestSendOverSocket:
    def test_guest_limit_reports_reason_and_restores_text(self, client) -> None:
        room_id = _create_room(client)
        for i in range(5):
            client.post(f"/rooms/{room_id}/messages", json={"text": str(i)}, headers=guest_headers())

        with client.websocket_connect("/ws?guest_id=session-1") as ws:
            ws.send_json({"action": "send", "room_id": room_id, "text": "one more"})
            frame = ws.receive_json()

        assert frame["type"] == "send_failed"
        assert frame["reason"] == "guest limit reached"
        assert frame["restored_text"] == "one more"

    def test_generation_failure_restores_text(self, client, fake_generation) -> None:
        room_id = _create_room(client)
        bob = auth_headers("bob")
        client.patch("/participants/me", json={"communication_style": "Autistic"}, headers=bob)
        client.post(f"/rooms/{room_id}/messages", json={"text": "joining"}, headers=bob)
        fake_generation.fail_on = "direct, literal"

        with client.websocket_connect(f"/ws?token={make_token('alice')}") as ws:
            ws.send_json({"action": "send", "room_id": room_id, "text": "Please be on time."})
            frame = ws.receive_json()

        assert frame["type"] == "send_failed"
        assert frame["restored_text"] == "Please be on time."

    def test_set_style(self, client, app_state) -> None:
        with client.websocket_connect(f"/ws?token={make_token('alice')}") as ws:
            ws.send_json({"action": "set_style", "communication_style": "Autistic"})
            frame = ws.receive_json()

        assert frame["type"] == "style_updated"
        assert frame["participant"]["communication_style"] == "Autistic"
        assert app_state.registry.get("alice").communication_style.value == "Autistic"

    def test_guest_cannot_set_style(self, client) -> None:
        with client.websocket_connect("/ws?guest_id=session-1") as ws:
            ws.send_json({"action": "set_style", "communication_style": "Autistic"})
            frame = ws.receive_json()

        assert frame == {"type": "error", "message": "Guests have no profile"}
