import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Sequence, Tuple
from urllib.parse import urlsplit

from src.config.constants import DEFAULT_CLUSTER_HOST, DEFAULT_REDIS_PORT
from src.core.store.interface import StoreConnection
from src.core.topology.retry import connect_with_retry

logger = logging.getLogger(__name__)


def _parse_port(raw: str) -> int:
    try:
        port = int(raw)
    except (TypeError, ValueError):
        return DEFAULT_REDIS_PORT
    return port if port > 0 else DEFAULT_REDIS_PORT


def parse_cluster_node(node_url: str) -> Tuple[str, int]:
    """
    Parse a cluster node given as a URL or as host:port.

    Examples:
        redis://10.0.0.1:7000 -> ("10.0.0.1", 7000)
        node-a:7001           -> ("node-a", 7001)
        :7002                 -> ("localhost", 7002)
    """
    try:
        parts = urlsplit(node_url)
        if not parts.scheme or not parts.hostname:
            raise ValueError(f"not a URL: {node_url}")
        return parts.hostname, parts.port or DEFAULT_REDIS_PORT
    except ValueError:
        host, _, port = node_url.partition(":")
        return host or DEFAULT_CLUSTER_HOST, _parse_port(port)


class Topology(ABC):
    """
    Shape of the store connections held by the process.

    Every variant hands out a StoreConnection through acquire(), so the
    executor dispatches commands the same way whichever variant is active.
    """

    kind: str = "unknown"

    @abstractmethod
    async def acquire(self) -> StoreConnection:
        """Return a connection ready to take commands"""
        pass

    @abstractmethod
    def is_usable(self) -> bool:
        """False when the topology must be discarded and rebuilt"""
        pass

    @abstractmethod
    def connections(self) -> List[StoreConnection]:
        pass

    @abstractmethod
    def stats(self) -> Dict[str, Any]:
        pass

    async def close(self) -> None:
        """Close every held connection"""
        held = self.connections()
        results = await asyncio.gather(
            *(connection.close() for connection in held), return_exceptions=True
        )
        for connection, result in zip(held, results):
            if isinstance(result, Exception):
                logger.error(f"[{connection.label}] Error while closing: {result}")
        logger.info(f"Closed {self.kind} topology ({len(held)} connections)")


class SingleTopology(Topology):
    kind = "single"

    def __init__(self, connection: StoreConnection):
        self._connection = connection

    async def acquire(self) -> StoreConnection:
        return self._connection

    def is_usable(self) -> bool:
        return self._connection.is_ready()

    def connections(self) -> List[StoreConnection]:
        return [self._connection]

    def stats(self) -> Dict[str, Any]:
        return {"mode": self.kind, "connections": 1, "active_index": 0}


class PoolTopology(Topology):
    """
    Fixed set of connections handed out in strict round-robin order.

    A member found not ready when its turn comes is reconnected inline
    instead of being skipped, so the rotation never changes.
    """

    kind = "pool"

    def __init__(self, connections: Sequence[StoreConnection]):
        if len(connections) == 0:
            raise ValueError("a pool needs at least one connection")
        self._connections = list(connections)
        self._locks = [asyncio.Lock() for _ in self._connections]
        self._cursor = 0

    @property
    def size(self) -> int:
        return len(self._connections)

    @property
    def cursor(self) -> int:
        return self._cursor

    def next_index(self) -> int:
        # No await between read and write: atomic on a single event loop
        index = self._cursor % len(self._connections)
        self._cursor = (index + 1) % len(self._connections)
        return index

    async def acquire(self) -> StoreConnection:
        index = self.next_index()
        connection = self._connections[index]

        if not connection.is_ready():
            async with self._locks[index]:
                if not connection.is_ready():
                    logger.info(f"[{connection.label}] Not ready, reconnecting")
                    await connect_with_retry(connection)

        return connection

    def is_usable(self) -> bool:
        return True

    def connections(self) -> List[StoreConnection]:
        return list(self._connections)

    def stats(self) -> Dict[str, Any]:
        return {"mode": self.kind, "connections": self.size, "active_index": self._cursor}


class ClusterTopology(Topology):
    """Cluster client; read routing is left to the client via scale_reads"""

    kind = "cluster"

    def __init__(
        self,
        connection: StoreConnection,
        nodes: Sequence[Tuple[str, int]],
        scale_reads: str,
    ):
        self._connection = connection
        self._nodes = list(nodes)
        self._scale_reads = scale_reads

    @property
    def nodes(self) -> List[Tuple[str, int]]:
        return list(self._nodes)

    @property
    def scale_reads(self) -> str:
        return self._scale_reads

    async def acquire(self) -> StoreConnection:
        return self._connection

    def is_usable(self) -> bool:
        return self._connection.is_ready()

    def connections(self) -> List[StoreConnection]:
        return [self._connection]

    def stats(self) -> Dict[str, Any]:
        return {
            "mode": self.kind,
            "connections": len(self._nodes),
            "active_index": 0,
            "scale_reads": self._scale_reads,
        }
