from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from src.commands.serializer.result_serializer import format_error, format_success
from src.core.errors import AdapterError, ErrorKind


class CommandStatus(Enum):
    """Outcome of a single command"""

    SUCCESS = "success"
    FAILURE = "failure"


@dataclass
class CommandResult:
    """
    Outcome of one command, as a value rather than an exception.

    The executor turns every error of the adapter's taxonomy into a
    failure result carrying its ErrorKind so the HTTP layer can choose a
    status code without inspecting exception types.
    """

    status: CommandStatus
    value: Any = None
    error_message: Optional[str] = None
    error_kind: Optional[ErrorKind] = None

    @classmethod
    def success(cls, value: Any) -> "CommandResult":
        return cls(status=CommandStatus.SUCCESS, value=value)

    @classmethod
    def failure(
        cls, error_message: str, error_kind: ErrorKind = ErrorKind.BACKEND_COMMAND
    ) -> "CommandResult":
        return cls(
            status=CommandStatus.FAILURE,
            error_message=error_message,
            error_kind=error_kind,
        )

    @classmethod
    def from_error(cls, error: Exception) -> "CommandResult":
        """Build a failure from an adapter error or a raw backend exception"""
        if isinstance(error, AdapterError):
            return cls.failure(error.message, error.kind)
        return cls.failure(str(error), ErrorKind.BACKEND_COMMAND)

    def is_success(self) -> bool:
        return self.status == CommandStatus.SUCCESS

    def is_failure(self) -> bool:
        return self.status == CommandStatus.FAILURE

    def to_envelope(self) -> Dict[str, Any]:
        """Render as ``{"result": value}`` or ``{"error": message}``"""
        if self.is_success():
            return format_success(self.value)
        return format_error(self.error_message or "Unknown error")


@dataclass
class BatchResult:
    """
    Outcome of a pipeline or transaction.

    Either ``results`` holds one CommandResult per input command, in input
    order, or ``failure`` holds a single aggregate failure for the whole
    batch (parse error, denial, connection error, transaction failure).
    """

    results: List[CommandResult] = field(default_factory=list)
    failure: Optional[CommandResult] = None

    @classmethod
    def of(cls, results: List[CommandResult]) -> "BatchResult":
        return cls(results=list(results))

    @classmethod
    def failed(cls, failure: CommandResult) -> "BatchResult":
        return cls(failure=failure)

    def is_failure(self) -> bool:
        return self.failure is not None

    @property
    def error_kind(self) -> Optional[ErrorKind]:
        return self.failure.error_kind if self.failure else None

    def __len__(self) -> int:
        return len(self.results)

    def to_envelope(self) -> Union[Dict[str, Any], List[Dict[str, Any]]]:
        """Array of per-command envelopes, or one top-level error envelope"""
        if self.failure is not None:
            return self.failure.to_envelope()
        return [result.to_envelope() for result in self.results]
