"""Single-room TCP broadcast relay built on non-blocking sockets."""

from chat_relay.registry import ConnectionRegistry
from chat_relay.server import RelayServer

__all__ = ["ConnectionRegistry", "RelayServer"]
__version__ = "1.0.0"
