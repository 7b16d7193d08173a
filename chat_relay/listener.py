import logging
import socket

from chat_relay.connection import ConnectionHandler
from chat_relay.loop import EventTarget
from chat_relay.nonblocking import make_nonblocking, would_block

logger = logging.getLogger(__name__)


def create_listening_socket(host: str, port: int, backlog: int) -> socket.socket:
    """Bind a non-blocking IPv4 TCP listener. Errors propagate to the caller."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
        sock.listen(backlog)
        make_nonblocking(sock)
    except OSError:
        sock.close()
        raise
    return sock


class Listener(EventTarget):
    """Accepts one pending connection per readiness event."""

    def __init__(self, sock: socket.socket, handler: ConnectionHandler, stats: dict | None = None) -> None:
        self.sock = sock
        self.handler = handler
        self.stats = stats if stats is not None else {}

    def on_readable(self) -> None:
        try:
            client, addr = self.sock.accept()
        except OSError as e:
            if would_block(e):
                return
            logger.error(f"Accept error: {e}")
            return

        try:
            conn = self.handler.open(client, addr)
        except (OSError, ValueError, KeyError) as e:
            logger.error(f"Could not register connection from {addr}: {e}")
            return
        self.stats['accepted'] = self.stats.get('accepted', 0) + 1
        logger.info(f"Accepted connection from {conn.peer}")

    def __repr__(self) -> str:
        return f"<Listener fd={self.sock.fileno()}>"
