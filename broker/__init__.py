"""
Signaling broker: pairs anonymous websocket clients and relays WebRTC negotiation
"""
