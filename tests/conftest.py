import socket
import threading
import time

import pytest

from chat_relay.broadcast import Broadcaster
from chat_relay.config import Settings
from chat_relay.connection import ConnectionHandler
from chat_relay.loop import EventLoop
from chat_relay.registry import ConnectionRegistry
from chat_relay.server import RelayServer


class Relay:
    """Registry, loop, fanout and handler wired together without a listener."""

    def __init__(self, buffer_size=8192, policy='ignore'):
        self.stats = {}
        self.registry = ConnectionRegistry()
        self.loop = EventLoop()
        self.broadcaster = Broadcaster(self.registry, policy=policy, stats=self.stats)
        self.handler = ConnectionHandler(self.registry, self.loop, self.broadcaster,
                                         buffer_size=buffer_size, stats=self.stats)
        self.broadcaster.on_drop = self.handler.teardown
        self._clients = []
        self._port = 40000

    def peer(self):
        """Returns (server-side Connection, client-side socket)."""
        server_side, client_side = socket.socketpair()
        client_side.settimeout(1.0)
        self._port += 1
        conn = self.handler.open(server_side, ('127.0.0.1', self._port))
        self._clients.append(client_side)
        return conn, client_side

    def close(self):
        for conn in list(self.registry):
            self.handler.teardown(conn)
        for c in self._clients:
            c.close()
        self.loop.close()


@pytest.fixture
def relay():
    r = Relay()
    yield r
    r.close()


@pytest.fixture
def small_buffer_relay():
    r = Relay(buffer_size=16)
    yield r
    r.close()


def recv_exactly(sock, n, timeout=2.0):
    sock.settimeout(timeout)
    chunks = []
    remaining = n
    while remaining:
        chunk = sock.recv(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b''.join(chunks)


def assert_silent(sock, timeout=0.2):
    sock.settimeout(timeout)
    with pytest.raises(socket.timeout):
        data = sock.recv(1024)
        pytest.fail(f"unexpected data: {data!r}")


def wait_for(predicate, timeout=2.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def running_server():
    servers = []

    def _start(**overrides):
        settings = Settings(host='127.0.0.1', port=0, **overrides)
        server = RelayServer(settings)
        server.bind()
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        assert server.ready.wait(2.0)
        servers.append((server, thread))
        return server

    yield _start

    for server, thread in servers:
        server.stop()
        thread.join(timeout=2.0)
