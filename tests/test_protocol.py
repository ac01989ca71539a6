"""
Envelope encoding and decoding.
"""
import json

import pytest

from broker import protocol
from broker.protocol import ProtocolError


def test_encode_omits_empty_fields():
    assert json.loads(protocol.encode("connected")) == {"type": "connected"}
    assert json.loads(protocol.encode("call_ended", room_id="", data=None)) == {"type": "call_ended"}


def test_encode_matched_envelope():
    raw = protocol.encode(protocol.MATCHED, room_id="room_1", data=protocol.ROLE_CALLER)
    assert json.loads(raw) == {"type": "matched", "room_id": "room_1", "data": "caller"}


def test_encode_rejects_unknown_fields():
    with pytest.raises(TypeError):
        protocol.encode("waiting", sdp="x")


@pytest.mark.parametrize("raw", ["", "{oops", "[]", '"sdp"', "{}", '{"type": 5}',
    '{"type": "sdp", "x": NaN}', '{"type": "sdp", "x": Infinity}', '{"type": "sdp", "x": 1e400}'])
def test_decode_rejects_malformed(raw):
    with pytest.raises(ProtocolError):
        protocol.decode(raw)


def test_decode_keeps_extra_fields():
    msg = protocol.decode('{"type": "candidate", "candidate": {"sdpMid": "0"}, "n": 1}')
    assert msg == {"type": "candidate", "candidate": {"sdpMid": "0"}, "n": 1}
    assert json.loads(protocol.encode_relay(msg)) == msg


def test_username_of():
    assert protocol.username_of({"type": "join_waiting", "username": "ann"}) == "ann"
    assert protocol.username_of({"type": "join_waiting", "Username": "bob"}) == "bob"
    assert protocol.username_of({"type": "join_waiting", "username": 3}) is None
    assert protocol.username_of({"type": "join_waiting"}) is None


def test_relay_types():
    assert protocol.RELAY_TYPES == {"sdp", "candidate"}


def test_encode_relay_refuses_non_finite_floats():
    with pytest.raises(ValueError):
        protocol.encode_relay({"type": "sdp", "x": float("nan")})
    with pytest.raises(ValueError):
        protocol.encode_relay({"type": "sdp", "x": float("-inf")})
