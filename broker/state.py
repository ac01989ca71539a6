"""
In-memory state for connected clients, the waiting queue and active rooms

Clients and rooms are kept in flat tables keyed by id; the queue and rooms
refer to clients by id only, so teardown is a matter of clearing fields.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class Client:
    client_id: str
    ws: Any  # transport handle with `async send_str(str)`
    username: str = ""
    room_id: Optional[str] = None

    @property
    def matched(self) -> bool:
        return self.room_id is not None

    @property
    def label(self) -> str:
        return self.username or self.client_id


@dataclass
class Room:
    room_id: str
    caller: str
    answerer: str

    @property
    def members(self) -> tuple:
        return (self.caller, self.answerer)

    def partner_of(self, client_id: str) -> Optional[str]:
        if client_id == self.caller:
            return self.answerer
        if client_id == self.answerer:
            return self.caller
        return None


@dataclass
class BrokerState:
    # client_id -> Client
    clients: Dict[str, Client] = field(default_factory=dict)

    # client ids in arrival order
    waiting: List[str] = field(default_factory=list)

    # room_id -> Room
    rooms: Dict[str, Room] = field(default_factory=dict)
