import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple
from urllib.parse import urlsplit

from redis.asyncio import Redis
from redis.asyncio.cluster import ClusterNode, RedisCluster
from redis.cluster import LoadBalancingStrategy
from redis.exceptions import (
    ClusterDownError,
    ConnectionError as RedisConnectionError,
    MaxConnectionsError,
    RedisClusterException,
    RedisError,
    TimeoutError as RedisTimeoutError,
    WatchError,
)

from src.commands.interfaces.command import Arg
from src.core.errors import BackendCommandError, StoreConnectionError
from src.core.store.interface import BatchReply, StoreBatch, StoreConnection

logger = logging.getLogger(__name__)

# Replies are read in RESP2 shape whatever the client library defaults to
_WIRE_PROTOCOL = 2

# The cluster client parses these replies itself during slot and key discovery
_CLUSTER_INTERNAL_CALLBACKS = ("CLUSTER SLOTS", "CLUSTER SHARDS", "COMMAND", "COMMAND GETKEYS")

_CONNECTION_ERRORS = (
    RedisConnectionError,
    RedisTimeoutError,
    MaxConnectionsError,
    ClusterDownError,
    OSError,
)

_SCALE_READS_STRATEGIES: Dict[str, Optional[LoadBalancingStrategy]] = {
    "master": None,
    "slave": LoadBalancingStrategy.ROUND_ROBIN_REPLICAS,
    "all": LoadBalancingStrategy.ROUND_ROBIN,
}


def _use_raw_replies(callbacks: Dict[str, Any], keep: Sequence[str] = ()) -> None:
    """
    Drop redis-py reply post-processing so replies keep their wire shape.

    Without this SET would come back as True instead of the "OK" token and
    HGETALL as a dict instead of the flat field/value array.
    """
    for name in list(callbacks.keys()):
        if name.upper() not in keep:
            del callbacks[name]


def _translate_error(label: str, error: Exception, connecting: bool = False) -> Exception:
    """
    Map a redis-py exception onto the adapter taxonomy.

    While connecting every cluster client error means the cluster could not
    be reached (no reachable startup node, slots not covered).
    """
    if isinstance(error, _CONNECTION_ERRORS) or (
        connecting and isinstance(error, RedisClusterException)
    ):
        return StoreConnectionError(f"[{label}] Connection error: {error}", error)
    if isinstance(error, (RedisError, RedisClusterException)):
        return BackendCommandError(str(error))
    return error


def extract_password(redis_url: str) -> Optional[str]:
    """Password embedded in a store URL, if any"""
    try:
        return urlsplit(redis_url).password or None
    except ValueError:
        return None


class RedisBatch(StoreBatch):
    """Pipeline or MULTI/EXEC batch built on a redis-py pipeline"""

    def __init__(self, connection: "RedisConnection", atomic: bool):
        self._connection = connection
        self._atomic = atomic
        self._queued: List[Tuple[str, List[Arg]]] = []

    def call(self, name: str, args: Sequence[Arg]) -> None:
        self._queued.append((name, list(args)))

    def __len__(self) -> int:
        return len(self._queued)

    async def execute(self) -> Optional[BatchReply]:
        client = self._connection.client
        try:
            pipe = client.pipeline(transaction=self._atomic)
            for name, args in self._queued:
                pipe.execute_command(name, *args)
            raw = await pipe.execute(raise_on_error=False)
        except WatchError:
            logger.info(f"[{self._connection.label}] Transaction aborted by the server")
            return None
        except Exception as e:
            translated = _translate_error(self._connection.label, e)
            if isinstance(translated, StoreConnectionError):
                self._connection.mark_not_ready()
            raise translated from e

        replies: BatchReply = []
        for item in raw:
            if isinstance(item, Exception):
                replies.append((BackendCommandError(str(item)), None))
            else:
                replies.append((None, item))
        return replies


class RedisConnection(StoreConnection):
    """Connection to a single Redis server through redis.asyncio"""

    def __init__(
        self,
        redis_url: str,
        connect_timeout: float,
        command_timeout: float,
        label: str = "Redis",
    ):
        super().__init__(label)
        self._redis_url = redis_url
        self._ready = False
        self._client = Redis.from_url(
            redis_url,
            socket_connect_timeout=connect_timeout,
            socket_timeout=command_timeout,
            protocol=_WIRE_PROTOCOL,
        )
        _use_raw_replies(self._client.response_callbacks)

    @property
    def client(self) -> Any:
        return self._client

    def mark_not_ready(self) -> None:
        self._ready = False

    async def connect(self) -> None:
        try:
            await self._client.execute_command("PING")
        except Exception as e:
            self._ready = False
            logger.debug(f"[{self.label}] Connect attempt failed: {e}")
            raise _translate_error(self.label, e, connecting=True) from e
        self._ready = True
        logger.debug(f"[{self.label}] Connected")

    def is_ready(self) -> bool:
        return self._ready

    async def call(self, name: str, args: Sequence[Arg]) -> Any:
        try:
            return await self._client.execute_command(name, *args)
        except Exception as e:
            translated = _translate_error(self.label, e)
            if isinstance(translated, StoreConnectionError):
                self._ready = False
            raise translated from e

    def open_pipeline(self) -> StoreBatch:
        return RedisBatch(self, atomic=False)

    def open_transaction(self) -> StoreBatch:
        return RedisBatch(self, atomic=True)

    async def close(self) -> None:
        self._ready = False
        await self._client.aclose()
        logger.debug(f"[{self.label}] Connection closed")


class RedisClusterConnection(RedisConnection):
    """Connection to a Redis Cluster; read routing follows scale_reads"""

    def __init__(
        self,
        nodes: Sequence[Tuple[str, int]],
        scale_reads: str,
        connect_timeout: float,
        command_timeout: float,
        password: Optional[str] = None,
        label: str = "Cluster",
    ):
        StoreConnection.__init__(self, label)
        self._ready = False
        self._nodes = list(nodes)
        self._scale_reads = scale_reads

        options: Dict[str, Any] = {
            "startup_nodes": [ClusterNode(host, port) for host, port in self._nodes],
            "password": password,
            "socket_connect_timeout": connect_timeout,
            "socket_timeout": command_timeout,
            "protocol": _WIRE_PROTOCOL,
        }
        strategy = _SCALE_READS_STRATEGIES[scale_reads]
        if strategy is not None:
            options["load_balancing_strategy"] = strategy
        self._client = RedisCluster(**options)
        _use_raw_replies(self._client.response_callbacks, keep=_CLUSTER_INTERNAL_CALLBACKS)

    @property
    def nodes(self) -> List[Tuple[str, int]]:
        return list(self._nodes)

    @property
    def scale_reads(self) -> str:
        return self._scale_reads

    async def connect(self) -> None:
        try:
            await self._client.initialize()
        except Exception as e:
            self._ready = False
            logger.debug(f"[{self.label}] Connect attempt failed: {e}")
            raise _translate_error(self.label, e, connecting=True) from e
        self._ready = True
        logger.info(f"[{self.label}] Connected to {len(self._nodes)} nodes")
