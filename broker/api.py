"""
HTTP/WebSocket handlers for the signaling broker
"""
import logging
from aiohttp import web

from .signaling import SignalingBroker

logger = logging.getLogger("signal_broker")

BROKER_KEY = web.AppKey("broker", SignalingBroker)
MAX_MSG_SIZE_KEY = web.AppKey("max_msg_size", int)

# ============================================================
# WEBSOCKET SIGNALING
# ============================================================

async def ws_signaling(request: web.Request) -> web.WebSocketResponse:
    """WebSocket endpoint: one session per connected peer"""
    broker: SignalingBroker = request.app[BROKER_KEY]
    ws = web.WebSocketResponse(max_msg_size=request.app.get(MAX_MSG_SIZE_KEY, 65536))
    await ws.prepare(request)

    client = await broker.register(ws)

    try:
        await broker.greet(client)
        async for msg in ws:
            if msg.type == web.WSMsgType.TEXT:
                try:
                    await broker.handle_text(client, msg.data)
                except Exception:
                    logger.exception("Error handling message from %s", client.label)
            elif msg.type == web.WSMsgType.BINARY:
                logger.debug("Ignoring binary frame from %s", client.label)
            elif msg.type == web.WSMsgType.ERROR:
                logger.warning("WebSocket error from %s: %s", client.label, ws.exception())
                break
    finally:
        await broker.disconnect(client.client_id)

    return ws

# ============================================================
# HEALTH
# ============================================================

async def api_health(request: web.Request) -> web.Response:
    """Registry sizes for load balancers and dashboards"""
    broker: SignalingBroker = request.app[BROKER_KEY]
    return web.json_response({"status": "ok", **broker.stats()})
