import logging
import os
from typing import List, Literal, Mapping, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from src.config.constants import (
    DEFAULT_COMMAND_TIMEOUT_MS,
    DEFAULT_CONNECTION_TIMEOUT_MS,
    DEFAULT_MAX_BODY_SIZE,
    DEFAULT_POOL_MAX,
    DEFAULT_POOL_MIN,
    DEFAULT_PORT,
    DEFAULT_REDIS_URL,
)

logger = logging.getLogger(__name__)

FilterMode = Literal["blocklist", "allowlist", "none"]
ScaleReads = Literal["master", "slave", "all"]


def normalize_command_list(commands: List[str]) -> List[str]:
    """Strip and upper-case command names, dropping blank entries"""
    return [c.strip().upper() for c in commands if c and c.strip()]


class FilterConfig(BaseModel):
    mode: FilterMode = Field(
        default="blocklist",
        description="'blocklist' blocks dangerous commands, 'allowlist' permits only safe ones, 'none' disables filtering",
    )
    additional_blocked: List[str] = Field(
        default_factory=list, description="Extra commands to block in blocklist mode"
    )
    additional_allowed: List[str] = Field(
        default_factory=list, description="Extra commands to allow in allowlist mode"
    )

    @field_validator("additional_blocked", "additional_allowed")
    @classmethod
    def _upper_case(cls, value: List[str]) -> List[str]:
        return normalize_command_list(value)


class PoolConfig(BaseModel):
    enabled: bool = Field(default=False, description="Use a round-robin connection pool")
    min: int = Field(default=DEFAULT_POOL_MIN, ge=0, description="Connections opened at startup")
    max: int = Field(default=DEFAULT_POOL_MAX, ge=1, description="Upper bound on pool size")

    @model_validator(mode="after")
    def _check_bounds(self) -> "PoolConfig":
        if self.min > self.max:
            raise ValueError(f"pool min ({self.min}) must not exceed pool max ({self.max})")
        return self


class ClusterConfig(BaseModel):
    enabled: bool = Field(default=False, description="Connect to a Redis Cluster")
    nodes: List[str] = Field(
        default_factory=list, description="Cluster node URLs or host:port pairs"
    )
    scale_reads: ScaleReads = Field(
        default="master", description="Where read commands are routed: master, slave or all"
    )


class AdapterConfig(BaseModel):
    """Structured configuration consumed by the adapter core"""

    redis_url: str = Field(default=DEFAULT_REDIS_URL, description="Store connection URL")
    port: int = Field(default=DEFAULT_PORT, description="HTTP port")
    token: Optional[str] = Field(default=None, description="Bearer token; auth is disabled when unset")
    verbose: bool = False
    max_body_size: int = Field(default=DEFAULT_MAX_BODY_SIZE, ge=0)
    connection_timeout_ms: int = Field(default=DEFAULT_CONNECTION_TIMEOUT_MS, ge=0)
    command_timeout_ms: int = Field(default=DEFAULT_COMMAND_TIMEOUT_MS, ge=0)
    filter: FilterConfig = Field(default_factory=FilterConfig)
    pool: PoolConfig = Field(default_factory=PoolConfig)
    cluster: ClusterConfig = Field(default_factory=ClusterConfig)

    @property
    def connection_timeout_seconds(self) -> float:
        return self.connection_timeout_ms / 1000.0

    @property
    def command_timeout_seconds(self) -> float:
        return self.command_timeout_ms / 1000.0


def _split_list(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


def _parse_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {raw!r}")


def load_config(environ: Optional[Mapping[str, str]] = None) -> AdapterConfig:
    """
    Build the adapter configuration from environment variables.

    Args:
        environ: Mapping to read from (defaults to os.environ)

    Returns:
        Validated AdapterConfig
    """
    env = os.environ if environ is None else environ

    filter_mode = env.get("COMMAND_FILTER_MODE", "blocklist")
    if filter_mode not in ("blocklist", "allowlist", "none"):
        logger.warning(f"Unknown COMMAND_FILTER_MODE '{filter_mode}', using blocklist")
        filter_mode = "blocklist"

    verbose = env.get("VERBOSE", "").lower() in ("true", "1")

    return AdapterConfig(
        redis_url=env.get("REDIS_URL", DEFAULT_REDIS_URL),
        port=_parse_int(env, "PORT", DEFAULT_PORT),
        token=env.get("UPSTASH_TOKEN") or env.get("TOKEN") or None,
        verbose=verbose,
        max_body_size=_parse_int(env, "MAX_BODY_SIZE", DEFAULT_MAX_BODY_SIZE),
        connection_timeout_ms=_parse_int(
            env, "CONNECTION_TIMEOUT", DEFAULT_CONNECTION_TIMEOUT_MS
        ),
        command_timeout_ms=_parse_int(env, "COMMAND_TIMEOUT", DEFAULT_COMMAND_TIMEOUT_MS),
        filter=FilterConfig(
            mode=filter_mode,
            additional_blocked=_split_list(env.get("BLOCKED_COMMANDS")),
            additional_allowed=_split_list(env.get("ALLOWED_COMMANDS")),
        ),
        pool=PoolConfig(
            enabled=env.get("REDIS_POOL_ENABLED") == "true",
            min=_parse_int(env, "REDIS_POOL_MIN", DEFAULT_POOL_MIN),
            max=_parse_int(env, "REDIS_POOL_MAX", DEFAULT_POOL_MAX),
        ),
        cluster=ClusterConfig(
            enabled=env.get("REDIS_CLUSTER_ENABLED") == "true",
            nodes=_split_list(env.get("REDIS_CLUSTER_NODES")),
            scale_reads=env.get("REDIS_CLUSTER_SCALE_READS") or "master",
        ),
    )
