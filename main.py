#!/usr/bin/env python3
"""
Signal Broker - Entry Point
Pairs anonymous WebSocket peers and relays their WebRTC negotiation
"""
import logging
import socket
import os
from typing import Optional
from aiohttp import web

from broker.api import ws_signaling, api_health, BROKER_KEY, MAX_MSG_SIZE_KEY
from broker.signaling import SignalingBroker

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger("signal_broker")

MAX_MSG_SIZE = int(os.environ.get("BROKER_MAX_MSG_SIZE", 64 * 1024))


def create_app(broker: Optional[SignalingBroker] = None) -> web.Application:
    """Create and configure the aiohttp application"""
    app = web.Application()
    app[BROKER_KEY] = broker or SignalingBroker()
    app[MAX_MSG_SIZE_KEY] = MAX_MSG_SIZE

    # Signaling socket, any origin
    app.router.add_get("/ws", ws_signaling)

    app.router.add_get("/health", api_health)

    logger.info("Signal broker ready")
    return app

def get_local_ip():
    """Get local LAN IP address"""
    try:
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        s.connect(("8.8.8.8", 80))
        ip = s.getsockname()[0]
        s.close()
        return ip
    except Exception:
        return "localhost"

def main():
    app = create_app()
    port = int(os.environ.get("PORT", 8080))
    host = os.environ.get("SERVER_HOST", "0.0.0.0")
    local_ip = get_local_ip()

    logger.info(f"Starting server on {host}:{port}")
    logger.info(f"Signaling socket at: ws://{local_ip}:{port}/ws")

    web.run_app(app, host=host, port=port)

if __name__ == "__main__":
    main()
