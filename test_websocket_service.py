import json

import pytest

from studymatch.services.websocket_service import ConnectionManager, ChatNotifier

pytestmark = pytest.mark.asyncio


class FakeSocket:
    def __init__(self, broken=False):
        self.accepted = False
        self.sent = []
        self.broken = broken

    async def accept(self):
        self.accepted = True

    async def send_text(self, text):
        if self.broken:
            raise RuntimeError("socket closed")
        self.sent.append(json.loads(text))


async def test_connect_confirms_and_tracks_devices():
    manager = ConnectionManager()
    phone, tablet = FakeSocket(), FakeSocket()

    await manager.connect(phone, "alice")
    await manager.connect(tablet, "alice")

    assert phone.accepted and phone.sent[0]["type"] == "connection_confirmed"
    assert manager.get_connection_stats()["total_connections"] == 2

    manager.disconnect(phone)
    manager.disconnect(tablet)
    assert not manager.is_connected("alice")


async def test_new_message_reaches_all_participants():
    manager = ConnectionManager()
    alice, bob = FakeSocket(), FakeSocket()
    await manager.connect(alice, "alice")
    await manager.connect(bob, "bob")

    await ChatNotifier(manager).new_message("c1", ["alice", "bob", "offline"], {"text": "hi"})

    assert alice.sent[-1]["type"] == "new_message"
    assert bob.sent[-1]["data"] == {"text": "hi"}


async def test_broken_socket_is_dropped():
    manager = ConnectionManager()
    socket = FakeSocket()
    await manager.connect(socket, "alice")
    socket.broken = True

    sent = await manager.send_personal_message("alice", {"type": "ping"})

    assert sent == 0
    assert not manager.is_connected("alice")
