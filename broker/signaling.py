"""
Matchmaking and relay core

One lock guards the client table, the waiting queue and the room table.
Operations collect outbound frames into an outbox while holding it and
write them only after it is released, so a stalled peer never blocks
unrelated clients.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

from . import protocol
from .protocol import ProtocolError
from .state import BrokerState, Client, Room
from .utils import generate_client_id, generate_room_id

logger = logging.getLogger("signal_broker")

Outbox = List[Tuple[Any, str]]


class SignalingBroker:
    """Pairs waiting clients into rooms and relays negotiation frames"""

    def __init__(self, state: Optional[BrokerState] = None) -> None:
        self.state = state or BrokerState()
        self._lock = asyncio.Lock()

    # ============================================================
    # CONNECTION REGISTRY
    # ============================================================

    async def register(self, ws) -> Client:
        """Create a client for a freshly accepted connection"""
        async with self._lock:
            client_id = generate_client_id()
            while client_id in self.state.clients:
                client_id = generate_client_id()
            client = Client(client_id=client_id, ws=ws)
            self.state.clients[client_id] = client
            total = len(self.state.clients)

        logger.info("New user connected (%s). Total clients: %d", client_id, total)
        return client

    async def greet(self, client: Client) -> None:
        await self._send(client.ws, protocol.encode(protocol.CONNECTED))

    def lookup(self, client_id: str) -> Optional[Client]:
        return self.state.clients.get(client_id)

    async def unregister(self, client_id: str) -> None:
        async with self._lock:
            self._unregister(client_id)

    def _unregister(self, client_id: str) -> Optional[Client]:
        return self.state.clients.pop(client_id, None)

    # ============================================================
    # WAITING QUEUE & MATCHER
    # ============================================================

    async def join_waiting(self, client: Client, username: Optional[str] = None) -> None:
        outbox: Outbox = []
        async with self._lock:
            if client.client_id not in self.state.clients:
                return
            if username is not None:
                client.username = username
            self._join_waiting(client, outbox)
        await self._flush(outbox)

    def _join_waiting(self, client: Client, outbox: Outbox) -> None:
        waiting = self.state.waiting
        if client.client_id in waiting:
            return
        if client.matched:
            logger.info("User %s is already in room %s, not queueing", client.label, client.room_id)
            return

        waiting.append(client.client_id)
        logger.info("User %s joined waiting room. Waiting users: %d", client.label, len(waiting))
        outbox.append((client.ws, protocol.encode(
            protocol.WAITING,
            data=f"Waiting for another user... ({len(waiting)} users waiting)",
        )))
        self._match_waiting(outbox)

    async def leave_waiting(self, client: Client) -> None:
        async with self._lock:
            self._leave_waiting(client)

    def _leave_waiting(self, client: Client) -> None:
        waiting = self.state.waiting
        if client.client_id not in waiting:
            return
        waiting.remove(client.client_id)
        logger.info("User %s left waiting room. Waiting users: %d", client.label, len(waiting))

    def _match_waiting(self, outbox: Outbox) -> None:
        """Pair the two oldest waiting clients until fewer than two remain"""
        waiting = self.state.waiting
        while len(waiting) >= 2:
            caller_id, answerer_id = waiting[0], waiting[1]
            del waiting[:2]

            caller = self.state.clients[caller_id]
            answerer = self.state.clients[answerer_id]
            room_id = self._create_room(caller, answerer)

            outbox.append((caller.ws, protocol.encode(
                protocol.MATCHED, room_id=room_id, data=protocol.ROLE_CALLER)))
            outbox.append((answerer.ws, protocol.encode(
                protocol.MATCHED, room_id=room_id, data=protocol.ROLE_ANSWERER)))
            logger.info("Matched users %s and %s in room %s", caller.label, answerer.label, room_id)

    # ============================================================
    # ROOMS & RELAY
    # ============================================================

    async def create_room(self, caller: Client, answerer: Client) -> str:
        async with self._lock:
            return self._create_room(caller, answerer)

    def _create_room(self, caller: Client, answerer: Client) -> str:
        if caller.client_id == answerer.client_id:
            raise ValueError("a room needs two distinct clients")
        if caller.matched or answerer.matched:
            raise ValueError("client is already in a room")

        room_id = generate_room_id(self.state.rooms)
        self.state.rooms[room_id] = Room(room_id, caller.client_id, answerer.client_id)
        caller.room_id = room_id
        answerer.room_id = room_id
        return room_id

    def _partner(self, client: Client) -> Optional[Client]:
        if client.room_id is None:
            return None
        room = self.state.rooms.get(client.room_id)
        if room is None:
            return None
        partner_id = room.partner_of(client.client_id)
        return self.state.clients.get(partner_id) if partner_id else None

    async def relay(self, sender: Client, msg: Dict[str, Any]) -> bool:
        """Forward a negotiation frame to the sender's room partner

        Returns False when the frame was dropped, either because the sender has
        no room or because it cannot be re-encoded as strict JSON.
        """
        try:
            text = protocol.encode_relay(msg)
        except ValueError as e:
            logger.warning("Dropping %s from %s: %s", msg.get("type"), sender.label, e)
            return False

        async with self._lock:
            partner = self._partner(sender)
            target = partner.ws if partner else None

        if target is None:
            logger.debug("Dropping %s from %s: not in a room", msg.get("type"), sender.label)
            return False

        await self._send(target, text)
        return True

    # ============================================================
    # TEARDOWN
    # ============================================================

    async def end_call(self, client: Client) -> None:
        outbox: Outbox = []
        async with self._lock:
            self._end_call(client, outbox)
        await self._flush(outbox)

    def _end_call(self, client: Client, outbox: Outbox) -> None:
        room_id = client.room_id
        if room_id is None:
            return
        room = self.state.rooms.pop(room_id, None)
        client.room_id = None
        if room is None:
            return

        for member_id in room.members:
            member = self.state.clients.get(member_id)
            if member is None or member is client:
                continue
            member.room_id = None
            outbox.append((member.ws, protocol.encode(protocol.CALL_ENDED)))

        logger.info("Call ended for user %s (room %s)", client.label, room_id)

    async def disconnect(self, client_id: str) -> None:
        """Purge a departing client from the queue, its room and the registry"""
        outbox: Outbox = []
        async with self._lock:
            client = self.state.clients.get(client_id)
            if client is None:
                return
            self._leave_waiting(client)
            self._end_call(client, outbox)
            self._unregister(client_id)
            total = len(self.state.clients)

        logger.info("User %s disconnected. Total clients: %d", client.label, total)
        await self._flush(outbox)

    # ============================================================
    # DISPATCH
    # ============================================================

    async def handle_text(self, client: Client, raw: str) -> None:
        """Decode one inbound text frame and route it"""
        try:
            msg = protocol.decode(raw)
        except ProtocolError as e:
            logger.warning("Error parsing message from %s: %s", client.label, e)
            return
        await self.dispatch(client, msg)

    async def dispatch(self, client: Client, msg: Dict[str, Any]) -> None:
        msg_type = msg["type"]
        logger.debug("Received message from %s: %s", client.label, msg_type)

        if msg_type == protocol.JOIN_WAITING:
            await self.join_waiting(client, protocol.username_of(msg))
        elif msg_type == protocol.LEAVE_WAITING:
            await self.leave_waiting(client)
        elif msg_type in protocol.RELAY_TYPES:
            await self.relay(client, msg)
        elif msg_type == protocol.END_CALL:
            await self.end_call(client)
        else:
            logger.warning("Unknown message type from %s: %s", client.label, msg_type)

    def stats(self) -> Dict[str, int]:
        return {
            "clients": len(self.state.clients),
            "waiting": len(self.state.waiting),
            "rooms": len(self.state.rooms),
        }

    # ============================================================
    # OUTBOUND
    # ============================================================

    async def _flush(self, outbox: Outbox) -> None:
        for ws, text in outbox:
            await self._send(ws, text)

    async def _send(self, ws, text: str) -> None:
        try:
            await ws.send_str(text)
        except Exception as e:
            logger.warning("Error sending message: %s", e)
