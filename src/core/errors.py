from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Classification of every failure the adapter can report"""

    PARSE = "parse"
    COMMAND_BLOCKED = "command_blocked"
    CONNECTION = "connection"
    CLUSTER_CONFIG = "cluster_config"
    TRANSACTION_ABORTED = "transaction_aborted"
    BACKEND_COMMAND = "backend_command"


class AdapterError(Exception):
    """Base exception for all adapter errors"""

    kind: ErrorKind = ErrorKind.BACKEND_COMMAND

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ParseError(AdapterError):
    """Raised when a request cannot be normalized into a command"""

    kind = ErrorKind.PARSE


class NoCommandProvided(ParseError):
    def __init__(self, message: str = "No command provided"):
        super().__init__(message)


class EmptyCommandArray(ParseError):
    def __init__(self, message: str = "Empty command array"):
        super().__init__(message)


class InvalidCommandFormat(ParseError):
    def __init__(
        self,
        message: str = "Invalid command format. Expected array or object with command property.",
    ):
        super().__init__(message)


class IndexedBatchError(ParseError):
    """Raised when one element of a batch body fails to parse"""

    def __init__(self, index: int, inner_message: str):
        self.index = index
        self.inner_message = inner_message
        super().__init__(f"Invalid command at index {index}: {inner_message}")


class CommandBlockedError(AdapterError):
    """Raised when the filter policy denies a command"""

    kind = ErrorKind.COMMAND_BLOCKED

    def __init__(self, command: str, reason: str):
        self.command = command
        self.reason = reason
        super().__init__(f"Command '{command}' is blocked: {reason}")


class StoreConnectionError(AdapterError):
    """Raised when the backing store cannot be reached after all retries"""

    kind = ErrorKind.CONNECTION

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.original_error = original_error
        super().__init__(message)


class ClusterConfigError(AdapterError):
    """Raised when cluster mode is enabled without a usable node list"""

    kind = ErrorKind.CLUSTER_CONFIG


class TransactionAbortedError(AdapterError):
    """Raised when the backend discards an atomic batch as a whole"""

    kind = ErrorKind.TRANSACTION_ABORTED

    def __init__(self, message: str = "Transaction was aborted"):
        super().__init__(message)


class BackendCommandError(AdapterError):
    """Wraps a failure reported by the store for an individual command"""

    kind = ErrorKind.BACKEND_COMMAND
