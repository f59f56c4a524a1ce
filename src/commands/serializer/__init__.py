from .result_serializer import (
    format_error,
    format_multiple_results,
    format_success,
    format_transaction_results,
    serialize_result,
)

__all__ = [
    "format_error",
    "format_multiple_results",
    "format_success",
    "format_transaction_results",
    "serialize_result",
]
