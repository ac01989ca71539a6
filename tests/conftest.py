"""
Test configuration and fixtures for the signaling broker tests.
"""
import json

import pytest

from broker.signaling import SignalingBroker


class FakeSocket:
    """Stands in for a websocket: records every frame written to it"""

    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    async def send_str(self, data):
        if self.fail:
            raise ConnectionResetError("Cannot write to closing transport")
        self.sent.append(data)

    def messages(self):
        return [json.loads(raw) for raw in self.sent]

    def types(self):
        return [m["type"] for m in self.messages()]

    def clear(self):
        self.sent.clear()


@pytest.fixture
def broker():
    return SignalingBroker()


@pytest.fixture
def connect(broker):
    """Register a client backed by a FakeSocket, returning (client, socket)"""
    async def _connect(fail=False):
        ws = FakeSocket(fail=fail)
        client = await broker.register(ws)
        await broker.greet(client)
        return client, ws
    return _connect
