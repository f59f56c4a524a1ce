"""
Command filter policy (blocklist / allowlist / none) and security helpers.
"""

from .command_filter import (
    FilterDecision,
    FilterPolicy,
    decide,
    get_filter_summary,
    validate_command,
    validate_commands,
)

__all__ = [
    "FilterDecision",
    "FilterPolicy",
    "decide",
    "get_filter_summary",
    "validate_command",
    "validate_commands",
]
