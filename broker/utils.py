"""
Utility functions for ID generation
"""
import random
import string
from typing import Container


def generate_client_id(length: int = 9) -> str:
    """Generate a random client ID"""
    alphabet = string.ascii_lowercase + string.digits
    return "client_" + "".join(random.choice(alphabet) for _ in range(length))


def generate_room_id(taken: Container[str] = (), length: int = 8) -> str:
    """Generate a random room ID (hex) not present in `taken`"""
    while True:
        room_id = "room_" + "".join(random.choice("abcdef0123456789") for _ in range(length))
        if room_id not in taken:
            return room_id
