"""
Command executor for validating, dispatching and serializing commands
in single, pipeline and transaction mode.
"""

from .command_executor import CommandExecutor

__all__ = ["CommandExecutor"]
