import asyncio
import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from src.config.settings import AdapterConfig
from src.core.errors import ClusterConfigError
from src.core.store.factory import StoreFactory
from src.core.store.interface import StoreConnection
from src.core.topology.retry import connect_with_retry
from src.core.topology.topology import (
    ClusterTopology,
    PoolTopology,
    SingleTopology,
    Topology,
    parse_cluster_node,
)

logger = logging.getLogger(__name__)


class TopologyState(Enum):
    UNINITIALIZED = "uninitialized"
    CONNECTING = "connecting"
    READY = "ready"


class TopologyManager:
    """
    Owns the single store topology of the process.

    The topology is created on the first acquire() and cached. Concurrent
    callers arriving while it is being created all await the same creation
    task. A failed creation returns the manager to UNINITIALIZED so the
    next caller starts a fresh attempt instead of inheriting the failure.

    State machine:
        UNINITIALIZED -> CONNECTING -> READY
        CONNECTING -> UNINITIALIZED   (creation failed)
        READY -> UNINITIALIZED        (topology unusable, or close())
    """

    def __init__(
        self,
        config: AdapterConfig,
        store_factory: Optional[StoreFactory] = None,
    ):
        """
        Args:
            config: Adapter configuration (pool, cluster and timeout settings)
            store_factory: Factory for store connections (built from config if omitted)
        """
        self._config = config
        self._store_factory = store_factory or StoreFactory.from_config(config)

        self._state = TopologyState.UNINITIALIZED
        self._topology: Optional[Topology] = None
        self._pending: Optional["asyncio.Future[Topology]"] = None
        self._close_lock = asyncio.Lock()

        logger.info(f"TopologyManager configured in {self.mode} mode")

    @property
    def mode(self) -> str:
        if self._config.cluster.enabled:
            return "cluster"
        if self._config.pool.enabled:
            return "pool"
        return "single"

    @property
    def state(self) -> TopologyState:
        return self._state

    @property
    def topology(self) -> Optional[Topology]:
        return self._topology

    async def acquire(self) -> StoreConnection:
        """
        Return a connection for the next command or batch.

        Raises:
            StoreConnectionError: The store could not be reached; the next
                call starts a new attempt
            ClusterConfigError: Cluster mode is enabled without nodes
        """
        topology = await self.get_topology()
        return await topology.acquire()

    async def get_topology(self) -> Topology:
        if self._state == TopologyState.READY and self._topology is not None:
            if self._topology.is_usable():
                return self._topology
            logger.warning(f"{self._topology.kind} topology is no longer usable, rebuilding")
            await self._discard_topology()

        if self._pending is None:
            self._state = TopologyState.CONNECTING
            self._pending = asyncio.ensure_future(self._create_topology())

        pending = self._pending
        try:
            # Shielded so one cancelled request does not cancel the shared attempt
            topology = await asyncio.shield(pending)
        except Exception:
            if self._pending is pending:
                self._pending = None
                self._state = TopologyState.UNINITIALIZED
            raise

        if self._pending is pending:
            self._topology = topology
            self._state = TopologyState.READY
            self._pending = None

        return topology

    async def _create_topology(self) -> Topology:
        mode = self.mode
        logger.debug(f"Creating {mode} topology")

        if mode == "cluster":
            return await self._create_cluster_topology()
        if mode == "pool":
            return await self._create_pool_topology()
        return await self._create_single_topology()

    async def _connect_or_close(self, connection: StoreConnection) -> StoreConnection:
        try:
            return await connect_with_retry(connection)
        except Exception:
            await connection.close()
            raise

    async def _create_single_topology(self) -> SingleTopology:
        connection = self._store_factory.create_connection(label="Redis")
        await self._connect_or_close(connection)
        return SingleTopology(connection)

    async def _create_pool_topology(self) -> PoolTopology:
        pool_size = max(self._config.pool.min, 1)
        logger.info(f"[Redis Pool] Initializing {pool_size} connections...")

        connections = [
            self._store_factory.create_connection(label=f"Pool[{index}]")
            for index in range(pool_size)
        ]
        results = await asyncio.gather(
            *(connect_with_retry(connection) for connection in connections),
            return_exceptions=True,
        )

        failures = [result for result in results if isinstance(result, BaseException)]
        if failures:
            await asyncio.gather(
                *(connection.close() for connection in connections),
                return_exceptions=True,
            )
            logger.error(f"[Redis Pool] {len(failures)}/{pool_size} connections failed")
            raise failures[0]

        logger.info(f"[Redis Pool] {pool_size} connections ready")
        return PoolTopology(connections)

    async def _create_cluster_topology(self) -> ClusterTopology:
        cluster = self._config.cluster
        if len(cluster.nodes) == 0:
            raise ClusterConfigError(
                "Redis Cluster enabled but no nodes configured. Set REDIS_CLUSTER_NODES."
            )

        nodes = [parse_cluster_node(node) for node in cluster.nodes]
        connection = self._store_factory.create_cluster_connection(
            nodes, scale_reads=cluster.scale_reads, label="Cluster"
        )
        await self._connect_or_close(connection)
        return ClusterTopology(connection, nodes, cluster.scale_reads)

    async def _discard_topology(self) -> None:
        topology = self._topology
        self._topology = None
        self._state = TopologyState.UNINITIALIZED
        if topology is not None:
            await topology.close()

    async def close(self) -> None:
        """
        Close every held connection and clear cached state.

        A creation attempt still in flight is awaited first so its
        connections are closed too.
        """
        async with self._close_lock:
            pending = self._pending
            if pending is not None:
                await asyncio.wait([pending])
                if (
                    self._topology is None
                    and not pending.cancelled()
                    and pending.exception() is None
                ):
                    self._topology = pending.result()
                self._pending = None

            await self._discard_topology()
            logger.info("TopologyManager closed")

    def get_pool_stats(self) -> Dict[str, Any]:
        """Mode, connection count and round-robin cursor for monitoring"""
        if self._topology is not None:
            return self._topology.stats()
        if self.mode == "cluster":
            return {
                "mode": "cluster",
                "connections": len(self._config.cluster.nodes),
                "active_index": 0,
                "scale_reads": self._config.cluster.scale_reads,
            }
        return {"mode": self.mode, "connections": 0, "active_index": 0}

    def held_connections(self) -> List[StoreConnection]:
        return self._topology.connections() if self._topology is not None else []
