import pytest

from src.commands.executor.command_executor import CommandExecutor
from src.commands.filter.command_filter import FilterPolicy
from src.config.settings import AdapterConfig
from src.core.store.factory import StoreFactory
from src.core.topology import retry
from src.core.topology.manager import TopologyManager


@pytest.fixture
def no_retry_delay(monkeypatch: pytest.MonkeyPatch) -> None:
    """Skip the backoff sleeps between connect attempts"""
    monkeypatch.setattr(retry, "retry_delay_seconds", lambda attempt: 0)


@pytest.fixture
def adapter_config() -> AdapterConfig:
    """Configuration pointing at the in-memory store"""
    return AdapterConfig(redis_url="memory://test")


@pytest.fixture
def store_factory() -> StoreFactory:
    return StoreFactory.for_testing()


@pytest.fixture
def topology_manager(
    adapter_config: AdapterConfig, store_factory: StoreFactory
) -> TopologyManager:
    return TopologyManager(adapter_config, store_factory)


@pytest.fixture
def executor(topology_manager: TopologyManager) -> CommandExecutor:
    """Executor over the in-memory store with the default blocklist"""
    return CommandExecutor(topology_manager, FilterPolicy())
