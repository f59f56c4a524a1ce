from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence, Tuple

from src.commands.interfaces.command import Arg

# One (error, value) pair per queued command; error is None on success
BatchReply = List[Tuple[Optional[Exception], Any]]


class StoreBatch(ABC):
    """Builder for a batch of commands sent to the store together"""

    @abstractmethod
    def call(self, name: str, args: Sequence[Arg]) -> None:
        """
        Queue a command in the batch

        Args:
            name: Upper-cased command name
            args: Command arguments in order
        """
        pass

    @abstractmethod
    async def execute(self) -> Optional[BatchReply]:
        """
        Send the queued commands and collect their outcomes.

        Returns:
            One (error, value) pair per queued command, in queue order.
            Atomic batches return None when the store aborted the whole
            batch (e.g. a watched key changed).
        """
        pass

    @abstractmethod
    def __len__(self) -> int:
        pass


class StoreConnection(ABC):
    """
    Abstract handle on the backing key-value store.

    Implementations dispatch commands by name; the adapter never needs a
    catalogue of the commands the store understands.
    """

    def __init__(self, label: str = "Store"):
        self.label = label

    @abstractmethod
    async def connect(self) -> None:
        """Establish the connection (a single attempt, no retry)"""
        pass

    @abstractmethod
    def is_ready(self) -> bool:
        """Whether the connection can take commands without reconnecting"""
        pass

    @abstractmethod
    async def call(self, name: str, args: Sequence[Arg]) -> Any:
        """
        Execute one command

        Raises:
            Exception: Whatever the store reports for a failing command
        """
        pass

    @abstractmethod
    def open_pipeline(self) -> StoreBatch:
        """Start a non-atomic batch"""
        pass

    @abstractmethod
    def open_transaction(self) -> StoreBatch:
        """Start an atomic (MULTI/EXEC) batch"""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the connection and release its resources"""
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(label='{self.label}', ready={self.is_ready()})"
