"""
Wire format for the signaling websocket

Every frame is a JSON object with a required string `type`. Broker envelopes
carry the optional `username`, `room_id` and `data` fields; relayed frames
(`sdp`, `candidate`) are passed through with whatever extra fields they hold.
"""
import json
import math
from typing import Any, Dict, Optional

# Client -> broker
JOIN_WAITING = "join_waiting"
LEAVE_WAITING = "leave_waiting"
SDP = "sdp"
CANDIDATE = "candidate"
END_CALL = "end_call"

# Broker -> client
CONNECTED = "connected"
WAITING = "waiting"
MATCHED = "matched"
CALL_ENDED = "call_ended"

RELAY_TYPES = frozenset({SDP, CANDIDATE})

ROLE_CALLER = "caller"
ROLE_ANSWERER = "answerer"

ENVELOPE_FIELDS = ("username", "room_id", "data")


class ProtocolError(ValueError):
    """Raised when an inbound frame is not a well-formed envelope"""


def _reject_constant(name: str):
    raise ProtocolError(f"non-standard JSON constant: {name}")


def _parse_float(literal: str) -> float:
    value = float(literal)
    if math.isinf(value):
        raise ProtocolError(f"number out of range: {literal}")
    return value


def decode(raw: str) -> Dict[str, Any]:
    """Parse one inbound text frame into a message dict"""
    try:
        msg = json.loads(raw, parse_constant=_reject_constant, parse_float=_parse_float)
    except ProtocolError:
        raise
    except (TypeError, ValueError) as e:
        raise ProtocolError(f"invalid JSON: {e}") from e

    if not isinstance(msg, dict):
        raise ProtocolError("message is not a JSON object")
    if not isinstance(msg.get("type"), str):
        raise ProtocolError("missing or non-string 'type'")
    return msg


def encode(msg_type: str, **fields: str) -> str:
    """Serialize a broker envelope, omitting empty fields"""
    unknown = set(fields) - set(ENVELOPE_FIELDS)
    if unknown:
        raise TypeError(f"unknown envelope fields: {sorted(unknown)}")

    envelope = {"type": msg_type}
    for name in ENVELOPE_FIELDS:
        value = fields.get(name)
        if value:
            envelope[name] = value
    return json.dumps(envelope)


def encode_relay(msg: Dict[str, Any]) -> str:
    """Re-serialize a relayed message as-is

    Raises ValueError if the message holds NaN or infinite floats.
    """
    return json.dumps(msg, allow_nan=False)


def username_of(msg: Dict[str, Any]) -> Optional[str]:
    """Display name carried by a join_waiting frame, or None if absent"""
    # Older clients send the capitalised key.
    value = msg.get("username", msg.get("Username"))
    return value if isinstance(value, str) else None
