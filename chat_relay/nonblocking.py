import errno
import socket

WOULD_BLOCK_ERRNOS = frozenset({errno.EAGAIN, errno.EWOULDBLOCK})


def would_block(exc: BaseException) -> bool:
    """True when a non-blocking socket call failed only because it would have blocked."""
    if isinstance(exc, BlockingIOError):
        return True
    return isinstance(exc, OSError) and exc.errno in WOULD_BLOCK_ERRNOS


def make_nonblocking(sock: socket.socket) -> socket.socket:
    sock.setblocking(False)
    return sock
