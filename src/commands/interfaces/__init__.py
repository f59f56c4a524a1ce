"""
Command value types shared by the parser, filter and executor.
"""

from .command import Arg, Command
from .command_result import BatchResult, CommandResult, CommandStatus

__all__ = ["Arg", "Command", "BatchResult", "CommandResult", "CommandStatus"]
