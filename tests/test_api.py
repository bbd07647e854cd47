"""
End-to-end tests over HTTP and the chat WebSocket using FastAPI's TestClient.
"""

import os
import tempfile
import unittest

from fastapi.testclient import TestClient

from app.core.dependencies import get_upload_service
from app.service.upload_service import UploadService
from main import app

WS_URL = "/api/v1/chat/ws"


def receive_until(ws, event):
    """Read frames until one with the given event arrives; return its payload."""
    while True:
        frame = ws.receive_json()
        if frame["event"] == event:
            return frame["payload"]


def open_session(client, name):
    """Connect, read the greeting, register. Returns (socket context, connection id)."""
    ctx = client.websocket_connect(WS_URL)
    ws = ctx.__enter__()
    connection_id = receive_until(ws, "connected")["connectionId"]
    receive_until(ws, "existingGroups")
    receive_until(ws, "configChanged")
    ws.send_json({"event": "register", "payload": name})
    receive_until(ws, "updateUsers")
    return ctx, ws, connection_id


class TestHttp(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        app.dependency_overrides[get_upload_service] = lambda: UploadService(upload_dir=self.tmp.name, use_s3=False)
        self.client = TestClient(app)
        self.client.__enter__()

    def tearDown(self):
        self.client.__exit__(None, None, None)
        app.dependency_overrides.clear()
        self.tmp.cleanup()

    def test_health(self):
        self.assertEqual(self.client.get("/health").json(), {"status": "ok"})

    def test_upload_stores_file_and_returns_url(self):
        resp = self.client.post("/api/v1/uploads", files={"file": ("notes.txt", b"hello", "text/plain")})
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["filename"], "notes.txt")
        self.assertTrue(body["fileUrl"].startswith("/uploads/"))
        self.assertTrue(body["fileUrl"].endswith("-notes.txt"))
        stored = os.path.join(self.tmp.name, body["fileUrl"].rsplit("/", 1)[-1])
        with open(stored, "rb") as f:
            self.assertEqual(f.read(), b"hello")

    def test_upload_strips_path_components(self):
        resp = self.client.post("/api/v1/uploads", files={"file": ("../../etc/passwd", b"x", "text/plain")})
        self.assertEqual(resp.status_code, 200)
        self.assertNotIn("..", resp.json()["fileUrl"])
        self.assertEqual(os.listdir(self.tmp.name)[0].split("-", 1)[1], "passwd")

    def test_upload_without_file(self):
        resp = self.client.post("/api/v1/uploads", data={"note": "no file"})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json(), {"error": "No file uploaded"})

    def test_chat_toggle(self):
        self.assertEqual(self.client.get("/api/v1/admin/chat-toggle").json(), {"disabled": False})
        resp = self.client.post("/api/v1/admin/chat-toggle", json={"disabled": True})
        self.assertEqual(resp.json(), {"disabled": True})
        self.assertEqual(self.client.get("/api/v1/admin/chat-toggle").json(), {"disabled": True})


class TestChatSocket(unittest.TestCase):

    def setUp(self):
        self.client = TestClient(app)
        self.client.__enter__()
        self.sessions = []

    def tearDown(self):
        for ctx in reversed(self.sessions):
            ctx.__exit__(None, None, None)
        self.client.__exit__(None, None, None)

    def join(self, name):
        ctx, ws, cid = open_session(self.client, name)
        self.sessions.append(ctx)
        return ws, cid

    def test_general_then_private_message(self):
        alice, alice_id = self.join("Alice")
        bob, bob_id = self.join("Bob")
        receive_until(alice, "updateUsers")

        alice.send_json({"event": "sendMessage", "payload": {"id": 1, "to": "general", "message": "hi"}})
        for ws in (alice, bob):
            payload = receive_until(ws, "receiveGeneralMessage")
            self.assertEqual(payload["from"], "Alice")
            self.assertEqual(payload["message"], "hi")

        alice.send_json({"event": "sendMessage", "payload": {"id": 2, "to": bob_id, "message": "hey"}})
        received = receive_until(bob, "receivePrivateMessage")
        self.assertEqual((received["from"], received["to"]), ("Alice", bob_id))
        echo = receive_until(alice, "privateMessageSent")
        self.assertEqual(echo["to"], bob_id)

    def test_closed_group_accept_flow(self):
        host, host_id = self.join("Alice")
        guest, guest_id = self.join("Carol")
        receive_until(host, "updateUsers")

        host.send_json({"event": "createGroup", "payload": {"groupName": "Team", "open": False}})
        group = receive_until(host, "groupCreated")
        self.assertEqual(receive_until(guest, "groupCreated")["id"], group["id"])

        guest.send_json({"event": "requestJoinGroup", "payload": {"groupId": group["id"]}})
        request = receive_until(host, "joinGroupRequest")
        self.assertEqual(request["requesterId"], guest_id)

        host.send_json({"event": "acceptJoinGroup", "payload": {"groupId": group["id"], "requesterId": guest_id}})
        joined = receive_until(guest, "joinedGroup")
        self.assertEqual(sorted(joined["members"]), sorted([host_id, guest_id]))
        self.assertIn(guest_id, receive_until(host, "groupUpdated")["members"])

    def test_host_leaving_deletes_group(self):
        host, _ = self.join("Alice")
        guest, _ = self.join("Bob")
        host.send_json({"event": "createGroup", "payload": {"groupName": "Daily", "open": True}})
        group = receive_until(guest, "groupCreated")

        self.sessions.pop(0).__exit__(None, None, None)
        self.assertEqual(receive_until(guest, "groupDeleted"), {"groupId": group["id"]})

    def test_bad_frames_do_not_close_the_socket(self):
        alice, _ = self.join("Alice")
        alice.send_text("not json")
        alice.send_json({"payload": {}})
        alice.send_json({"event": "sendMessage", "payload": {"to": "general"}})
        alice.send_json({"event": "sendMessage", "payload": {"id": "ok", "to": "general", "message": "still here"}})
        self.assertEqual(receive_until(alice, "receiveGeneralMessage")["id"], "ok")

    def test_admin_toggle_reaches_sockets(self):
        alice, _ = self.join("Alice")
        self.client.post("/api/v1/admin/chat-toggle", json={"disabled": True})
        self.assertFalse(receive_until(alice, "configChanged")["chatEnabled"])


if __name__ == "__main__":
    unittest.main()
