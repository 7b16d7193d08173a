import abc
import logging
import selectors
import socket

from chat_relay.nonblocking import would_block

logger = logging.getLogger(__name__)


class EventTarget(abc.ABC):
    """Anything the event loop can dispatch read readiness to."""

    @abc.abstractmethod
    def on_readable(self) -> None:
        ...


class EventLoop:
    """Level-triggered readiness loop over the platform's default selector.

    Every callback runs on the thread that called run(), one at a time.
    stop() is the only method safe to call from other threads.
    """

    def __init__(self, selector: selectors.BaseSelector | None = None) -> None:
        self._selector = selector or selectors.DefaultSelector()
        self._stopping = False
        self._closed = False
        # socketpair used to wake select() from stop()
        self._wake_r, self._wake_w = socket.socketpair()
        self._wake_r.setblocking(False)
        self._wake_w.setblocking(False)
        self._selector.register(self._wake_r, selectors.EVENT_READ, None)

    def watch(self, sock: socket.socket, target: EventTarget, events: int = selectors.EVENT_READ) -> None:
        self._selector.register(sock, events, target)

    def unwatch(self, sock: socket.socket) -> None:
        self._selector.unregister(sock)

    def is_watching(self, sock: socket.socket) -> bool:
        try:
            self._selector.get_key(sock)
        except (KeyError, ValueError):
            return False
        return True

    def run_once(self, timeout: float | None = None) -> int:
        """Wait for readiness once and dispatch; returns the number of callbacks run."""
        dispatched = 0
        for key, _mask in self._selector.select(timeout):
            target = key.data
            if target is None:
                self._drain_wakeup()
                continue
            # an earlier callback in this batch may have unwatched it
            if not self.is_watching(key.fileobj):
                continue
            try:
                target.on_readable()
            except Exception:
                logger.exception(f"Unhandled error in callback for {target!r}")
            dispatched += 1
        return dispatched

    def run(self) -> None:
        """Dispatch readiness callbacks until stop() is called."""
        try:
            while not self._stopping:
                self.run_once()
        finally:
            self._stopping = False

    def stop(self) -> None:
        self._stopping = True
        try:
            self._wake_w.send(b'\0')
        except OSError as e:
            # a full wakeup pipe already guarantees a pending wakeup
            if not would_block(e):
                logger.debug(f"Wakeup write failed: {e}")

    def _drain_wakeup(self) -> None:
        while True:
            try:
                if not self._wake_r.recv(512):
                    return
            except OSError as e:
                if would_block(e):
                    return
                raise

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._selector.unregister(self._wake_r)
        self._wake_r.close()
        self._wake_w.close()
        self._selector.close()
