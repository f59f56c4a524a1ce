import pytest
from pydantic import ValidationError

from src.config.settings import AdapterConfig, PoolConfig, load_config


class TestLoadConfig:
    def test_defaults(self) -> None:
        config = load_config({})

        assert config.redis_url == "redis://localhost:6379"
        assert config.port == 8080
        assert config.token is None
        assert config.verbose is False
        assert config.max_body_size == 1024 * 1024
        assert config.filter.mode == "blocklist"
        assert config.pool.enabled is False
        assert (config.pool.min, config.pool.max) == (2, 10)
        assert config.cluster.enabled is False
        assert config.cluster.scale_reads == "master"

    def test_timeouts_in_seconds(self) -> None:
        config = load_config({"CONNECTION_TIMEOUT": "2500", "COMMAND_TIMEOUT": "100"})

        assert config.connection_timeout_seconds == 2.5
        assert config.command_timeout_seconds == 0.1

    def test_token_prefers_upstash_token(self) -> None:
        assert load_config({"UPSTASH_TOKEN": "a", "TOKEN": "b"}).token == "a"
        assert load_config({"TOKEN": "b"}).token == "b"

    @pytest.mark.parametrize("raw,expected", [("true", True), ("1", True), ("yes", False)])
    def test_verbose_flag(self, raw: str, expected: bool) -> None:
        assert load_config({"VERBOSE": raw}).verbose is expected

    def test_command_lists_are_split_and_upper_cased(self) -> None:
        config = load_config(
            {"BLOCKED_COMMANDS": "hgetall, lrange ,", "ALLOWED_COMMANDS": "my.cmd"}
        )

        assert config.filter.additional_blocked == ["HGETALL", "LRANGE"]
        assert config.filter.additional_allowed == ["MY.CMD"]

    def test_unknown_filter_mode_falls_back_to_blocklist(self) -> None:
        assert load_config({"COMMAND_FILTER_MODE": "paranoid"}).filter.mode == "blocklist"

    def test_pool_and_cluster(self) -> None:
        config = load_config(
            {
                "REDIS_POOL_ENABLED": "true",
                "REDIS_POOL_MIN": "4",
                "REDIS_POOL_MAX": "8",
                "REDIS_CLUSTER_ENABLED": "true",
                "REDIS_CLUSTER_NODES": "redis://a:7000,b:7001",
                "REDIS_CLUSTER_SCALE_READS": "slave",
            }
        )

        assert config.pool.enabled and (config.pool.min, config.pool.max) == (4, 8)
        assert config.cluster.enabled
        assert config.cluster.nodes == ["redis://a:7000", "b:7001"]
        assert config.cluster.scale_reads == "slave"

    def test_flags_require_exact_true(self) -> None:
        config = load_config({"REDIS_POOL_ENABLED": "TRUE", "REDIS_CLUSTER_ENABLED": "1"})

        assert not config.pool.enabled
        assert not config.cluster.enabled

    def test_invalid_scale_reads_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            load_config({"REDIS_CLUSTER_SCALE_READS": "replicas"})

    def test_non_integer_port_is_rejected(self) -> None:
        with pytest.raises(ValueError, match="PORT"):
            load_config({"PORT": "eighty"})


class TestConfigModels:
    def test_pool_min_cannot_exceed_max(self) -> None:
        with pytest.raises(ValidationError):
            PoolConfig(min=5, max=2)

    def test_direct_construction(self) -> None:
        config = AdapterConfig(redis_url="memory://test", token="t")

        assert config.token == "t"
        assert config.filter.additional_blocked == []
