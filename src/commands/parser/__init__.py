"""
Parsing of path, body and batch request encodings into commands.
"""

from .command_parser import (
    parse_body_command,
    parse_hybrid_command,
    parse_multiple_commands,
    parse_path_command,
    parse_request,
)

__all__ = [
    "parse_body_command",
    "parse_hybrid_command",
    "parse_multiple_commands",
    "parse_path_command",
    "parse_request",
]
