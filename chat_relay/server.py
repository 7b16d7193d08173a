import logging
import threading
import time

from chat_relay.broadcast import Broadcaster
from chat_relay.config import Settings
from chat_relay.connection import ConnectionHandler
from chat_relay.listener import Listener, create_listening_socket
from chat_relay.loop import EventLoop
from chat_relay.registry import ConnectionRegistry

logger = logging.getLogger(__name__)


class RelayServer:
    """Wires the registry, listener, handler and fanout around one event loop."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or Settings()
        self.stats = {
            'accepted': 0,
            'closed': 0,
            'bytes_received': 0,
            'bytes_relayed': 0,
            'write_failures': 0,
            'start_time': None,
        }
        self.registry = ConnectionRegistry()
        self.loop = EventLoop()
        self.broadcaster = Broadcaster(
            self.registry,
            policy=self.settings.write_failure_policy,
            stats=self.stats,
        )
        self.handler = ConnectionHandler(
            self.registry,
            self.loop,
            self.broadcaster,
            buffer_size=self.settings.buffer_size,
            stats=self.stats,
        )
        self.broadcaster.on_drop = self.handler.teardown
        self.listener: Listener | None = None
        self.ready = threading.Event()

    @property
    def address(self):
        if self.listener is None:
            return None
        return self.listener.sock.getsockname()

    def bind(self):
        """Create the listening socket; startup errors propagate as OSError."""
        sock = create_listening_socket(self.settings.host, self.settings.port, self.settings.backlog)
        self.listener = Listener(sock, self.handler, stats=self.stats)
        host, port = self.address
        logger.info(f"Relay listening on {host or '0.0.0.0'}:{port}")
        return host, port

    def serve_forever(self) -> None:
        if self.listener is None:
            self.bind()
        self.loop.watch(self.listener.sock, self.listener)
        self.stats['start_time'] = time.time()
        self.ready.set()
        try:
            self.loop.run()
        finally:
            self.shutdown()

    def stop(self) -> None:
        """Ask the loop to return. Safe from signal handlers and other threads."""
        self.loop.stop()

    def shutdown(self) -> None:
        """Close the listener and every live connection."""
        self.ready.clear()
        if self.listener is not None:
            if self.loop.is_watching(self.listener.sock):
                self.loop.unwatch(self.listener.sock)
            self.listener.sock.close()
            self.listener = None
        remaining = list(self.registry)
        for conn in remaining:
            self.handler.teardown(conn)
        self.loop.close()
        logger.info(f"Relay stopped, closed {len(remaining)} connection(s)")

    def uptime(self) -> float:
        if self.stats['start_time'] is None:
            return 0.0
        return time.time() - self.stats['start_time']
