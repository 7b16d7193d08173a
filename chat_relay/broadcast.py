from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from chat_relay.config import POLICY_DROP, POLICY_IGNORE, WRITE_FAILURE_POLICIES
from chat_relay.nonblocking import would_block
from chat_relay.registry import ConnectionRegistry

if TYPE_CHECKING:
    from chat_relay.connection import Connection

logger = logging.getLogger(__name__)


class Broadcaster:
    """Best-effort fanout of one chunk to every live peer except its sender.

    Each target gets a single non-blocking send(). Whatever the kernel does
    not take right away is dropped for that target; there is no outbound
    queue. With the "drop" policy a hard write error tears the target down
    through on_drop, with "ignore" it is only logged.
    """

    def __init__(self, registry: ConnectionRegistry, policy: str = POLICY_IGNORE,
                 on_drop: Callable[[Connection], object] | None = None,
                 stats: dict | None = None) -> None:
        if policy not in WRITE_FAILURE_POLICIES:
            raise ValueError(f"Unknown write failure policy: {policy!r}")
        self.registry = registry
        self.policy = policy
        self.on_drop = on_drop
        self.stats = stats if stats is not None else {}

    def broadcast(self, source: Connection, data: bytes) -> int:
        """Send data to every other connection; returns how many got all of it."""
        delivered = 0
        for target in self.registry:
            if target is source or target.closed:
                continue
            if self._send(target, data):
                delivered += 1
        return delivered

    def _send(self, target: Connection, data: bytes) -> bool:
        try:
            sent = target.sock.send(data)
        except OSError as e:
            self._count('write_failures')
            if would_block(e):
                logger.warning(f"Send buffer full for {target.peer}, dropped {len(data)} bytes")
                return False
            logger.warning(f"Write error to {target.peer}: {e}")
            if self.policy == POLICY_DROP and self.on_drop is not None:
                self.on_drop(target)
            return False

        self._count('bytes_relayed', sent)
        if sent < len(data):
            self._count('write_failures')
            logger.warning(f"Short write to {target.peer}, dropped {len(data) - sent} of {len(data)} bytes")
            return False
        return True

    def _count(self, key: str, n: int = 1) -> None:
        self.stats[key] = self.stats.get(key, 0) + n
