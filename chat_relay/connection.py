from __future__ import annotations

import logging
import socket
from typing import TYPE_CHECKING

from chat_relay.loop import EventLoop, EventTarget
from chat_relay.nonblocking import make_nonblocking, would_block
from chat_relay.registry import ConnectionRegistry

if TYPE_CHECKING:
    from chat_relay.broadcast import Broadcaster

logger = logging.getLogger(__name__)


class Connection(EventTarget):
    """One accepted peer. Owned by the registry while it is live."""

    def __init__(self, sock: socket.socket, address, handler: ConnectionHandler) -> None:
        self.sock = sock
        self.address = address
        # captured up front, sock.fileno() turns into -1 after close()
        self.fd = sock.fileno()
        self.closed = False
        self._handler = handler

    @property
    def peer(self) -> str:
        if isinstance(self.address, tuple) and len(self.address) >= 2:
            return f"{self.address[0]}:{self.address[1]}"
        return str(self.address)

    def on_readable(self) -> None:
        self._handler.on_readable(self)

    def __repr__(self) -> str:
        state = 'closed' if self.closed else 'open'
        return f"<Connection fd={self.fd} peer={self.peer} {state}>"


class ConnectionHandler:
    """Reads from ready connections, relays each chunk, tears down dead peers."""

    def __init__(self, registry: ConnectionRegistry, loop: EventLoop, broadcaster: Broadcaster,
                 buffer_size: int = 8192, stats: dict | None = None) -> None:
        self.registry = registry
        self.loop = loop
        self.broadcaster = broadcaster
        self.buffer_size = buffer_size
        self.stats = stats if stats is not None else {}

    def open(self, sock: socket.socket, address) -> Connection:
        """Register a freshly accepted socket and start watching it."""
        make_nonblocking(sock)
        conn = Connection(sock, address, self)
        try:
            self.registry.add(conn)
            self.loop.watch(sock, conn)
        except (OSError, ValueError, KeyError):
            self.registry.remove(conn)
            conn.closed = True
            sock.close()
            raise
        return conn

    def on_readable(self, conn: Connection) -> None:
        while not conn.closed:
            try:
                data = conn.sock.recv(self.buffer_size)
            except OSError as e:
                if would_block(e):
                    return
                logger.warning(f"Read error from {conn.peer}: {e}")
                self.teardown(conn)
                return

            if not data:
                self.teardown(conn)
                return

            self.stats['bytes_received'] = self.stats.get('bytes_received', 0) + len(data)
            self.broadcaster.broadcast(conn, data)

    def teardown(self, conn: Connection) -> bool:
        """Stop watching, unregister and close. Runs once per connection."""
        if conn.closed:
            return False
        conn.closed = True
        if self.loop.is_watching(conn.sock):
            self.loop.unwatch(conn.sock)
        self.registry.remove(conn)
        try:
            conn.sock.close()
        except OSError as e:
            logger.debug(f"Close failed for {conn.peer}: {e}")
        self.stats['closed'] = self.stats.get('closed', 0) + 1
        logger.info(f"Disconnected {conn.peer}")
        return True
