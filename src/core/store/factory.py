import logging
from typing import Any, Dict, Optional, Sequence, Tuple
from urllib.parse import urlsplit

from src.commands.filter.security import mask_redis_url
from src.config.constants import MEMORY_STORE_SCHEME, REDIS_STORE_SCHEMES
from src.config.settings import AdapterConfig
from src.core.store.interface import StoreConnection
from src.core.store.memory import MemoryConnection, MemoryStore
from src.core.store.redis_store import (
    RedisClusterConnection,
    RedisConnection,
    extract_password,
)

logger = logging.getLogger(__name__)


class StoreFactory:
    """
    Factory for store connections.

    The backend is chosen from the scheme of the store URL: redis://,
    rediss:// and unix:// go to redis-py, memory:// to an in-process
    MemoryStore shared by every connection this factory creates.
    """

    def __init__(
        self,
        redis_url: str,
        connect_timeout: float = 5.0,
        command_timeout: float = 30.0,
    ):
        """
        Args:
            redis_url: Store connection URL
            connect_timeout: Seconds allowed for one connect attempt
            command_timeout: Seconds allowed for one command round trip
        """
        self._redis_url = redis_url
        self._connect_timeout = connect_timeout
        self._command_timeout = command_timeout
        self._store_type = self._detect_store_type(redis_url)

        # Memory connections of one factory see the same keyspace
        self._memory_store: Optional[MemoryStore] = None

        logger.info(
            f"StoreFactory configured: type={self._store_type}, url={mask_redis_url(redis_url)}"
        )

    @staticmethod
    def _detect_store_type(redis_url: str) -> str:
        scheme = urlsplit(redis_url).scheme.lower()
        if scheme == MEMORY_STORE_SCHEME:
            return "memory"
        if scheme in REDIS_STORE_SCHEMES:
            return "redis"
        raise ValueError(f"Unsupported store URL scheme: '{scheme}'")

    @property
    def store_type(self) -> str:
        return self._store_type

    @property
    def memory_store(self) -> MemoryStore:
        if self._memory_store is None:
            self._memory_store = MemoryStore()
        return self._memory_store

    def create_connection(self, label: str = "Redis") -> StoreConnection:
        """Create an unconnected handle on the configured store"""
        if self._store_type == "memory":
            return MemoryConnection(self.memory_store, label=label)

        return RedisConnection(
            self._redis_url,
            connect_timeout=self._connect_timeout,
            command_timeout=self._command_timeout,
            label=label,
        )

    def create_cluster_connection(
        self,
        nodes: Sequence[Tuple[str, int]],
        scale_reads: str,
        label: str = "Cluster",
    ) -> StoreConnection:
        """Create an unconnected handle on a cluster of store nodes"""
        if self._store_type == "memory":
            # No cluster semantics in memory; all nodes share one keyspace
            return MemoryConnection(self.memory_store, label=label)

        return RedisClusterConnection(
            nodes,
            scale_reads=scale_reads,
            connect_timeout=self._connect_timeout,
            command_timeout=self._command_timeout,
            password=extract_password(self._redis_url),
            label=label,
        )

    @classmethod
    def from_config(cls, config: AdapterConfig) -> "StoreFactory":
        return cls(
            redis_url=config.redis_url,
            connect_timeout=config.connection_timeout_seconds,
            command_timeout=config.command_timeout_seconds,
        )

    @classmethod
    def for_development(cls) -> "StoreFactory":
        """In-memory store, no Redis server required"""
        return cls(redis_url="memory://development")

    @classmethod
    def for_testing(cls) -> "StoreFactory":
        """In-memory store with short timeouts"""
        return cls(redis_url="memory://test", connect_timeout=0.1, command_timeout=0.1)

    def get_store_info(self) -> Dict[str, Any]:
        """Configuration summary without credentials"""
        return {
            "store_type": self._store_type,
            "redis_url": mask_redis_url(self._redis_url),
            "connect_timeout_seconds": self._connect_timeout,
            "command_timeout_seconds": self._command_timeout,
        }
