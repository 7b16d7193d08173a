from __future__ import annotations

from typing import TYPE_CHECKING, Iterator

if TYPE_CHECKING:
    from chat_relay.connection import Connection


class ConnectionRegistry:
    """Insertion-ordered set of live connections, keyed by socket descriptor.

    Iteration walks a snapshot taken when it starts, so connections may be
    added or removed from inside the loop body. Entries removed after the
    snapshot are skipped; entries added after it are not visited.
    """

    def __init__(self) -> None:
        self._connections: dict[int, Connection] = {}

    def add(self, conn: Connection) -> None:
        if conn.fd in self._connections:
            raise ValueError(f"Connection fd={conn.fd} is already registered")
        self._connections[conn.fd] = conn

    def remove(self, conn: Connection) -> bool:
        """Drop the connection; False if it was not registered."""
        if self._connections.get(conn.fd) is not conn:
            return False
        del self._connections[conn.fd]
        return True

    def __contains__(self, conn: object) -> bool:
        fd = getattr(conn, 'fd', None)
        return fd is not None and self._connections.get(fd) is conn

    def __len__(self) -> int:
        return len(self._connections)

    def __iter__(self) -> Iterator[Connection]:
        for conn in list(self._connections.values()):
            if conn in self:
                yield conn
