"""
Normalization of request encodings into canonical commands.

Accepted encodings:

    path segments   /SET/mykey/myvalue             -> SET mykey myvalue
    array body      ["SET", "key", "value"]        -> SET key value
    object body     {"command": "SET", "args": [...]}
    hybrid          /SET + body ["key", "value"]   -> SET key value
    batch body      [["SET", "k1", "v1"], ["GET", "k1"]]
"""

import json
import logging
from typing import Any, List, Optional, Sequence, Union
from urllib.parse import unquote

from src.commands.interfaces.command import Arg, Command
from src.core.errors import (
    EmptyCommandArray,
    IndexedBatchError,
    InvalidCommandFormat,
    NoCommandProvided,
    ParseError,
)

logger = logging.getLogger(__name__)


def _to_json_text(value: Any) -> str:
    # Compact separators so nested objects match JSON.stringify output
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _canonical_number(value: Union[int, float]) -> Union[int, float]:
    # JSON does not tell 1 from 1.0, so 1.0 and 1e20 are sent as "1" and
    # "100000000000000000000"; from 1e21 on the exponent form is kept
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e21:
        return int(value)
    return value


def _decode_segment(segment: str) -> str:
    try:
        return unquote(segment, encoding="utf-8", errors="strict")
    except UnicodeDecodeError:
        raise InvalidCommandFormat(f"Malformed percent-encoding in path segment: {segment}")


def coerce_body_arg(arg: Any) -> Arg:
    """
    Coerce one argument of an array or object body.

    Text, numbers and bytes pass through, integral floats as integers;
    anything else (objects, arrays, booleans, null) is sent as its JSON text.
    """
    if isinstance(arg, str):
        return arg
    if _is_number(arg):
        return _canonical_number(arg)
    if isinstance(arg, (bytes, bytearray)):
        return bytes(arg)
    return _to_json_text(arg)


def coerce_hybrid_arg(arg: Any) -> Arg:
    """
    Coerce one argument of a path command whose args come from the body.

    Unlike coerce_body_arg, null becomes an empty string rather than the
    text "null". Both rules are kept because clients rely on each.
    """
    if isinstance(arg, str):
        return arg
    if _is_number(arg):
        return _canonical_number(arg)
    if arg is None:
        return ""
    return _to_json_text(arg)


def parse_path_command(path_segments: Sequence[str]) -> Command:
    """
    Parse URL path segments into a command.

    Each segment is percent-decoded; the first one is the command name.

    Raises:
        NoCommandProvided: When there are no segments or the name is empty
        InvalidCommandFormat: When a segment is not valid percent-encoded UTF-8
    """
    if len(path_segments) == 0:
        raise NoCommandProvided()

    decoded = [_decode_segment(segment) for segment in path_segments]
    name, args = decoded[0], decoded[1:]

    if not name:
        raise NoCommandProvided("Empty command")

    return Command(name=name.upper(), args=list(args))


def parse_body_command(body: Any) -> Command:
    """
    Parse a JSON body into a command.

    Array format: ["SET", "key", "value"]
    Object format: {"command": "SET", "args": ["key", "value"]}

    Raises:
        EmptyCommandArray: When the array body is empty
        InvalidCommandFormat: When the name is not text or the body has
            neither shape
    """
    if isinstance(body, list):
        if len(body) == 0:
            raise EmptyCommandArray()

        name, args = body[0], body[1:]
        if not isinstance(name, str):
            raise InvalidCommandFormat("Command must be a string")
        if not name:
            raise NoCommandProvided("Empty command")

        return Command(name=name.upper(), args=[coerce_body_arg(arg) for arg in args])

    if isinstance(body, dict) and isinstance(body.get("command"), str):
        args = body.get("args")
        if not isinstance(args, list):
            args = []
        return parse_body_command([body["command"], *args])

    raise InvalidCommandFormat()


def parse_hybrid_command(path_segments: Sequence[str], body_args: List[Any]) -> Command:
    """
    Parse a command whose name comes from the path and args from the body.

    Path segments after the command name are ignored.
    """
    if len(path_segments) == 0:
        raise NoCommandProvided()

    name = _decode_segment(path_segments[0])
    if not name:
        raise NoCommandProvided("Empty command")

    return Command(name=name.upper(), args=[coerce_hybrid_arg(arg) for arg in body_args])


def parse_multiple_commands(body: Any) -> List[Command]:
    """
    Parse a pipeline or transaction body.

    Format: [["SET", "k1", "v1"], ["GET", "k1"]]

    The whole batch is rejected if any element fails to parse; the error
    names the failing index.
    """
    if not isinstance(body, list):
        raise InvalidCommandFormat("Expected array of commands")

    if len(body) == 0:
        raise EmptyCommandArray()

    commands: List[Command] = []
    for index, element in enumerate(body):
        try:
            commands.append(parse_body_command(element))
        except ParseError as e:
            raise IndexedBatchError(index, e.message)

    return commands


def parse_request(path_segments: Sequence[str], body: Optional[Any] = None) -> Command:
    """
    Parse a request that reached the path-based catch-all route.

    A non-empty array body supplies the args for the command named in the
    path; an object body is a complete command on its own; otherwise the
    path segments carry both the name and the args.
    """
    if isinstance(body, list) and len(body) > 0:
        logger.debug("Parsing hybrid path+body command")
        return parse_hybrid_command(path_segments, body)

    if isinstance(body, dict):
        logger.debug("Parsing object body command on path route")
        return parse_body_command(body)

    return parse_path_command(path_segments)
