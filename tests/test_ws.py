import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from pageflow.core.config import settings
from pageflow.main import create_app
from tests.conftest import Member, add_block


def join(ws, page_id):
    ws.send_json({"type": "join-page", "data": {"pageId": page_id}})


def assert_nothing_pending(ws):
    """The next frame after a ping is its pong, so nothing else was queued"""
    ws.send_json({"type": "ping"})
    assert ws.receive_json()["type"] == "pong"


def test_bad_token_is_rejected(client):
    with pytest.raises(WebSocketDisconnect) as excinfo:
        with client.websocket_connect("/ws?token=garbage"):
            pass

    assert excinfo.value.code == 1008


def test_missing_token_is_rejected(client):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/ws"):
            pass


def test_bearer_header_is_accepted(client, alice):
    with client.websocket_connect("/ws", headers={"Authorization": f"Bearer {alice.token}"}) as ws:
        assert ws.receive_json()["type"] == "connected"


def test_concurrent_edits_reach_peers(client, alice, bob, page):
    page_id = page["uuid"]
    block = add_block(client, alice, page_id, content={"text": "draft"})
    with client.websocket_connect(f"/ws?token={alice.token}") as ws_a, \
            client.websocket_connect(f"/ws?token={bob.token}") as ws_b:
        assert ws_a.receive_json()["data"]["user"]["id"] == alice.id
        assert ws_b.receive_json()["data"]["user"]["id"] == bob.id
        join(ws_a, page_id)
        assert ws_a.receive_json()["type"] == "joined-page"
        join(ws_b, page_id)
        joined = ws_b.receive_json()
        assert joined["type"] == "joined-page"
        assert {user["username"] for user in joined["data"]["participants"]} == {"alice", "bob"}
        assert ws_a.receive_json()["type"] == "user-joined-page"

        # alice persists first, then tells the room
        client.patch(f"/blocks/{block['uuid']}", json={"content": {"text": "Hello"}}, headers=alice.headers)
        ws_a.send_json({"type": "block-update", "data": {
            "pageId": page_id, "blockId": block["uuid"], "content": {"text": "Hello"}, "type": "text",
        }})

        update = ws_b.receive_json()
        assert update["type"] == "block-updated"
        assert update["data"]["content"] == {"text": "Hello"}
        assert update["data"]["user"]["username"] == "alice"
        assert_nothing_pending(ws_a)

        # bob overwrites, the later write wins on the server
        client.patch(f"/blocks/{block['uuid']}", json={"content": {"text": "Hello!"}}, headers=bob.headers)
        ws_b.send_json({"type": "block-update", "data": {
            "pageId": page_id, "blockId": block["uuid"], "content": {"text": "Hello!"},
        }})
        assert ws_a.receive_json()["data"]["content"] == {"text": "Hello!"}
        tree = client.get(f"/pages/{page_id}/blocks", headers=alice.headers).json()
        assert tree[0]["content"] == {"text": "Hello!"}


def test_typing_presence_and_late_joiner(client, make_member, alice, bob, page):
    page_id = page["uuid"]
    with client.websocket_connect(f"/ws?token={alice.token}") as ws_a, \
            client.websocket_connect(f"/ws?token={bob.token}") as ws_b:
        ws_a.receive_json(), ws_b.receive_json()
        join(ws_a, page_id)
        ws_a.receive_json()
        join(ws_b, page_id)
        ws_b.receive_json(), ws_a.receive_json()

        ws_a.send_json({"type": "typing-start", "data": {"pageId": page_id, "blockId": "b1"}})
        typing = ws_b.receive_json()
        assert typing["type"] == "user-typing"
        assert typing["data"]["isTyping"] is True

        ws_a.send_json({"type": "typing-stop", "data": page_id})
        assert ws_b.receive_json()["data"]["isTyping"] is False

        ws_b.send_json({"type": "cursor-move", "data": {"pageId": page_id, "cursor": {"offset": 4}}})
        cursor = ws_a.receive_json()
        assert cursor["type"] == "cursor-moved"
        assert cursor["data"]["cursor"] == {"offset": 4}

        carol = make_member("carol")
        with client.websocket_connect(f"/ws?token={carol.token}") as ws_c:
            ws_c.receive_json()
            join(ws_c, page_id)
            joined = ws_c.receive_json()
            presence = {entry["user"]["username"]: entry for entry in joined["data"]["presence"]}
            assert presence["bob"]["cursor"] == {"offset": 4}
            assert presence["alice"]["isTyping"] is False


def test_idempotent_rejoin_and_dropped_events(client, make_member, alice, bob, page):
    page_id = page["uuid"]
    outsider = make_member("carol")
    with client.websocket_connect(f"/ws?token={alice.token}") as ws_a, \
            client.websocket_connect(f"/ws?token={bob.token}") as ws_b, \
            client.websocket_connect(f"/ws?token={outsider.token}") as ws_c:
        for ws in (ws_a, ws_b, ws_c):
            ws.receive_json()
        join(ws_a, page_id)
        ws_a.receive_json()
        join(ws_b, page_id)
        ws_b.receive_json(), ws_a.receive_json()

        join(ws_b, page_id)
        assert ws_b.receive_json()["type"] == "joined-page"
        assert_nothing_pending(ws_a)

        ws_c.send_json({"type": "block-delete", "data": {"pageId": page_id, "blockId": "x"}})
        ws_c.send_text("this is not json")
        ws_c.send_json({"type": "no-such-event", "data": {}})
        assert_nothing_pending(ws_c)
        assert_nothing_pending(ws_a)

        ws_b.send_json({"type": "block-delete", "data": {"pageId": page_id, "blockId": "x"}})
        assert ws_a.receive_json()["type"] == "block-deleted"
        assert_nothing_pending(ws_a)


def test_disconnect_cleans_up(client, alice, bob, page):
    page_id = page["uuid"]
    with client.websocket_connect(f"/ws?token={alice.token}") as ws_a:
        ws_a.receive_json()
        join(ws_a, page_id)
        ws_a.receive_json()

        with client.websocket_connect(f"/ws?token={bob.token}") as ws_b:
            ws_b.receive_json()
            join(ws_b, page_id)
            ws_b.receive_json()
            ws_a.receive_json()
            assert client.get("/health").json()["sessions"] == 2

        left = ws_a.receive_json()
        assert left["type"] == "user-left-page"
        assert left["data"]["user"]["username"] == "bob"
        assert client.get("/health").json()["sessions"] == 1

        with client.websocket_connect(f"/ws?token={bob.token}") as ws_b:
            ws_b.receive_json()
            ws_a.send_json({"type": "block-delete", "data": {"pageId": page_id, "blockId": "x"}})
            assert_nothing_pending(ws_b)


def test_mention_notifies_over_user_room(client, alice, bob, page):
    with client.websocket_connect(f"/ws?token={bob.token}") as ws_b:
        ws_b.receive_json()

        response = client.post(
            f"/pages/{page['uuid']}/comments",
            json={"content": "@bob can you check this?"},
            headers=alice.headers,
        )
        assert response.status_code == 201

        notification = ws_b.receive_json()
        assert notification["type"] == "notification"
        assert notification["data"]["type"] == "comment_mention"
        assert notification["data"]["data"]["commentId"] == response.json()["uuid"]


def test_page_creation_notifies_workspace(client, alice, bob):
    workspace_id = "3f2b8a1e-1c55-4a6e-9d36-0c6f2f4f8b10"
    with client.websocket_connect(f"/ws?token={bob.token}") as ws_b:
        ws_b.receive_json()
        ws_b.send_json({"type": "join-workspace", "data": {"workspaceId": workspace_id}})
        assert_nothing_pending(ws_b)

        client.post("/pages", json={"title": "Launch", "workspace_id": workspace_id}, headers=alice.headers)

        notification = ws_b.receive_json()
        assert notification["type"] == "workspace-notification"
        assert notification["data"]["data"]["title"] == "Launch"


def test_binary_frame_is_dropped_without_closing(client, alice):
    with client.websocket_connect(f"/ws?token={alice.token}") as ws:
        assert ws.receive_json()["type"] == "connected"

        ws.send_bytes(b"\x00garbage")

        assert_nothing_pending(ws)
        assert client.get("/health").json()["sessions"] == 1


def test_sharing_notifies_page_room(client, make_member, alice, bob, page):
    carol = make_member("carol")
    with client.websocket_connect(f"/ws?token={bob.token}") as ws_b:
        ws_b.receive_json()
        join(ws_b, page["uuid"])
        ws_b.receive_json()

        response = client.post(
            f"/pages/{page['uuid']}/collaborators",
            json={"user_id": carol.id, "role": "viewer"},
            headers=alice.headers,
        )
        assert response.status_code == 201

        notification = ws_b.receive_json()
        assert notification["type"] == "page-notification"
        assert notification["data"]["type"] == "collaborator_added"
        assert notification["data"]["data"]["userId"] == carol.id


def test_silent_session_is_dropped(tmp_path):
    app = create_app(settings.model_copy(update={
        "database_url": f"sqlite+aiosqlite:///{tmp_path}/heartbeat.db",
        "auto_create_tables": True,
        "ws_heartbeat_timeout": 0.2,
    }))
    with TestClient(app) as client:
        member = Member(client, "dora")
        with client.websocket_connect(f"/ws?token={member.token}") as ws:
            assert ws.receive_json()["type"] == "connected"
            with pytest.raises(WebSocketDisconnect) as excinfo:
                ws.receive_json()
            assert excinfo.value.code == 1001
        assert client.get("/health").json()["sessions"] == 0
