"""
Translation of store replies into the JSON-safe response envelope.

Response format mirrors the Upstash REST API so existing Upstash clients
can talk to the adapter unchanged:

    single command      {"result": <value>} or {"error": "<message>"}
    pipeline / multi    [{"result": ...}, {"error": ...}, ...]
"""

import base64
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union


def serialize_result(result: Any) -> Any:
    """
    Convert a store reply into a JSON-safe value.

    Binary replies are decoded as UTF-8 and fall back to base64 when the
    bytes are not valid UTF-8. Integers are passed through untouched;
    JSON consumers without arbitrary-precision numbers may lose precision
    above 2**53.
    """
    if result is None:
        return None

    if isinstance(result, (bytes, bytearray, memoryview)):
        raw = bytes(result)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError:
            return base64.b64encode(raw).decode("ascii")

    if isinstance(result, (list, tuple, set, frozenset)):
        return [serialize_result(item) for item in result]

    if isinstance(result, dict):
        return {
            str(serialize_result(key)): serialize_result(value)
            for key, value in result.items()
        }

    return result


def _error_message(error: Union[str, BaseException, Any]) -> str:
    if isinstance(error, str):
        return error
    message = getattr(error, "message", None)
    if isinstance(message, str):
        return message
    return str(error)


def format_success(result: Any) -> Dict[str, Any]:
    """Format a successful reply as ``{"result": <value>}``"""
    return {"result": serialize_result(result)}


def format_error(error: Union[str, BaseException]) -> Dict[str, str]:
    """Format an error as ``{"error": "<message>"}``"""
    return {"error": _error_message(error)}


def format_multiple_results(
    results: Iterable[Tuple[Optional[BaseException], Any]],
) -> List[Dict[str, Any]]:
    """Format pipeline ``(error, value)`` pairs, one envelope per command"""
    envelopes: List[Dict[str, Any]] = []
    for error, value in results:
        if error is not None:
            envelopes.append(format_error(error))
        else:
            envelopes.append(format_success(value))
    return envelopes


def format_transaction_results(results: Iterable[Any]) -> List[Dict[str, Any]]:
    """Format the values of a transaction that succeeded as a whole"""
    return [format_success(value) for value in results]
