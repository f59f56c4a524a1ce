import base64

from src.commands.interfaces.command_result import BatchResult, CommandResult
from src.commands.serializer.result_serializer import (
    format_error,
    format_multiple_results,
    format_success,
    format_transaction_results,
    serialize_result,
)
from src.core.errors import BackendCommandError, ErrorKind, TransactionAbortedError


class TestSerializeResult:
    def test_none_stays_none(self) -> None:
        assert serialize_result(None) is None

    def test_utf8_bytes_become_text(self) -> None:
        assert serialize_result("héllo".encode("utf-8")) == "héllo"

    def test_binary_bytes_fall_back_to_base64(self) -> None:
        raw = b"\xff\xfe\x00\x01"

        assert serialize_result(raw) == base64.b64encode(raw).decode("ascii")

    def test_nested_arrays(self) -> None:
        assert serialize_result([b"a", [b"b", None], 3]) == ["a", ["b", None], 3]

    def test_tuples_become_lists(self) -> None:
        assert serialize_result((b"x", 1)) == ["x", 1]

    def test_mapping_keys_and_values(self) -> None:
        assert serialize_result({b"field": b"value"}) == {"field": "value"}

    def test_scalars_pass_through(self) -> None:
        assert serialize_result(2**60) == 2**60
        assert serialize_result("OK") == "OK"
        assert serialize_result(1.5) == 1.5


class TestEnvelopes:
    def test_format_success(self) -> None:
        assert format_success(b"v1") == {"result": "v1"}

    def test_format_error_from_text_and_exception(self) -> None:
        assert format_error("boom") == {"error": "boom"}
        assert format_error(ValueError("bad")) == {"error": "bad"}
        assert format_error(BackendCommandError("WRONGTYPE")) == {"error": "WRONGTYPE"}

    def test_pipeline_reply_maps_to_envelopes(self) -> None:
        reply = [(None, "OK"), (None, "v1")]

        assert format_multiple_results(reply) == [{"result": "OK"}, {"result": "v1"}]

    def test_pipeline_keeps_per_slot_errors(self) -> None:
        reply = [(None, "OK"), (Exception("ERR boom"), None), (None, None)]

        assert format_multiple_results(reply) == [
            {"result": "OK"},
            {"error": "ERR boom"},
            {"result": None},
        ]

    def test_transaction_values(self) -> None:
        assert format_transaction_results(["OK", b"1"]) == [
            {"result": "OK"},
            {"result": "1"},
        ]


class TestResultValues:
    def test_command_result_from_adapter_error(self) -> None:
        result = CommandResult.from_error(TransactionAbortedError())

        assert result.is_failure()
        assert result.error_kind == ErrorKind.TRANSACTION_ABORTED
        assert result.to_envelope() == {"error": "Transaction was aborted"}

    def test_command_result_from_foreign_error(self) -> None:
        result = CommandResult.from_error(RuntimeError("ERR odd"))

        assert result.error_kind == ErrorKind.BACKEND_COMMAND
        assert result.error_message == "ERR odd"

    def test_batch_result_envelopes(self) -> None:
        batch = BatchResult.of(
            [CommandResult.success("OK"), CommandResult.failure("ERR x")]
        )

        assert len(batch) == 2
        assert not batch.is_failure()
        assert batch.to_envelope() == [{"result": "OK"}, {"error": "ERR x"}]

    def test_failed_batch_is_single_envelope(self) -> None:
        batch = BatchResult.failed(CommandResult.failure("nope", ErrorKind.PARSE))

        assert batch.is_failure()
        assert batch.error_kind == ErrorKind.PARSE
        assert batch.to_envelope() == {"error": "nope"}
