from typing import Any, List, Optional, Sequence, Tuple

from src.commands.interfaces.command import Arg
from src.core.errors import StoreConnectionError
from src.core.store.interface import BatchReply, StoreBatch, StoreConnection


class ScriptedBatch(StoreBatch):
    """Batch that records queued commands and returns a canned reply"""

    def __init__(self, reply: Optional[BatchReply]):
        self.reply = reply
        self.queued: List[Tuple[str, List[Arg]]] = []
        self.executed = False

    def call(self, name: str, args: Sequence[Arg]) -> None:
        self.queued.append((name, list(args)))

    def __len__(self) -> int:
        return len(self.queued)

    async def execute(self) -> Optional[BatchReply]:
        self.executed = True
        return self.reply


class ScriptedConnection(StoreConnection):
    """
    Store connection with scripted behaviour for executor and topology tests.

    connect() fails for the first `fail_connects` attempts, then succeeds.
    call() returns `call_reply` or raises `call_error`.
    """

    def __init__(
        self,
        label: str = "Scripted",
        fail_connects: int = 0,
        call_reply: Any = None,
        call_error: Optional[Exception] = None,
        batch_reply: Optional[BatchReply] = None,
    ):
        super().__init__(label)
        self.fail_connects = fail_connects
        self.call_reply = call_reply
        self.call_error = call_error
        self.batch_reply = batch_reply
        self.connect_attempts = 0
        self.close_count = 0
        self.calls: List[Tuple[str, List[Arg]]] = []
        self.batches: List[ScriptedBatch] = []
        self._ready = False

    async def connect(self) -> None:
        self.connect_attempts += 1
        if self.connect_attempts <= self.fail_connects:
            raise StoreConnectionError(f"[{self.label}] refused")
        self._ready = True

    def is_ready(self) -> bool:
        return self._ready

    def drop(self) -> None:
        self._ready = False

    async def call(self, name: str, args: Sequence[Arg]) -> Any:
        self.calls.append((name, list(args)))
        if self.call_error is not None:
            raise self.call_error
        return self.call_reply

    def _open(self) -> ScriptedBatch:
        batch = ScriptedBatch(self.batch_reply)
        self.batches.append(batch)
        return batch

    def open_pipeline(self) -> StoreBatch:
        return self._open()

    def open_transaction(self) -> StoreBatch:
        return self._open()

    async def close(self) -> None:
        self.close_count += 1
        self._ready = False


class ScriptedStoreFactory:
    """Stands in for StoreFactory, handing out ScriptedConnections"""

    def __init__(self, fail_connects: int = 0, **connection_options: Any):
        self.fail_connects = fail_connects
        self.connection_options = connection_options
        self.created: List[ScriptedConnection] = []
        self.cluster_requests: List[Tuple[List[Tuple[str, int]], str]] = []

    def create_connection(self, label: str = "Redis") -> ScriptedConnection:
        connection = ScriptedConnection(
            label=label, fail_connects=self.fail_connects, **self.connection_options
        )
        self.created.append(connection)
        return connection

    def create_cluster_connection(
        self, nodes: Sequence[Tuple[str, int]], scale_reads: str, label: str = "Cluster"
    ) -> ScriptedConnection:
        self.cluster_requests.append((list(nodes), scale_reads))
        return self.create_connection(label=label)
