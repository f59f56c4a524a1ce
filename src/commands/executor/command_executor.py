import time
import logging
from typing import Any, Dict, Optional, Sequence

from src.commands.filter.command_filter import (
    FilterPolicy,
    validate_command,
    validate_commands,
)
from src.commands.interfaces.command import Command
from src.commands.interfaces.command_result import BatchResult, CommandResult
from src.commands.parser.command_parser import (
    parse_body_command,
    parse_multiple_commands,
    parse_request,
)
from src.commands.serializer.result_serializer import format_error, serialize_result
from src.core.errors import (
    AdapterError,
    BackendCommandError,
    ErrorKind,
    TransactionAbortedError,
)
from src.core.store.interface import BatchReply, StoreBatch
from src.core.topology.manager import TopologyManager


logger = logging.getLogger(__name__)


class CommandExecutor:
    """
    Validates, dispatches and serializes commands against the store.

    Three execution modes are supported:
    - execute: one command, one result
    - pipeline: N commands sent together, N independent results
    - transaction: N commands run atomically, N results or one failure

    No method raises for an adapter error. Parse errors, filter denials,
    connection failures and backend errors all come back as failure
    results carrying their ErrorKind, so callers map outcomes to responses
    without exception handling.
    """

    def __init__(
        self,
        topology_manager: TopologyManager,
        filter_policy: Optional[FilterPolicy] = None,
    ):
        """
        Initialize command executor.

        Args:
            topology_manager: Source of store connections
            filter_policy: Command gating policy (blocklist defaults if omitted)
        """
        logger.info("Initializing CommandExecutor")

        self._topology_manager = topology_manager
        self._filter_policy = filter_policy or FilterPolicy()

        # Track execution metrics
        self._execution_count = 0
        self._success_count = 0
        self._failure_count = 0
        self._blocked_count = 0
        self._mode_counts = {"single": 0, "pipeline": 0, "transaction": 0}
        self._total_execution_time = 0.0

    @property
    def filter_policy(self) -> FilterPolicy:
        return self._filter_policy

    @property
    def topology_manager(self) -> TopologyManager:
        return self._topology_manager

    async def execute(self, command: Command) -> CommandResult:
        """
        Execute a single command.

        Args:
            command: Parsed command

        Returns:
            CommandResult with the serialized reply, or the failure
        """
        start_time = time.time()
        self._begin("single")

        try:
            validate_command(command.name, self._filter_policy)
            connection = await self._topology_manager.acquire()
            reply = await connection.call(command.name, command.args)
        except Exception as e:
            result = CommandResult.from_error(e)
            self._finish(result, start_time, command.describe())
            return result

        result = CommandResult.success(serialize_result(reply))
        self._finish(result, start_time, command.describe())
        return result

    async def pipeline(self, commands: Sequence[Command]) -> BatchResult:
        """
        Execute commands as one non-atomic batch.

        The whole batch is rejected when any command is denied. Once
        dispatched, every command gets its own result and a failing
        command does not affect the others.
        """
        start_time = time.time()
        self._begin("pipeline")
        label = f"pipeline of {len(commands)}"

        try:
            validate_commands(commands, self._filter_policy)
            connection = await self._topology_manager.acquire()
            reply = await self._run_batch(connection.open_pipeline(), commands)
            if reply is None:
                raise BackendCommandError("Pipeline returned no results")
        except Exception as e:
            failure = CommandResult.from_error(e)
            self._finish(failure, start_time, label)
            return BatchResult.failed(failure)

        results = [
            CommandResult.from_error(error)
            if error is not None
            else CommandResult.success(serialize_result(value))
            for error, value in reply
        ]

        failed = sum(1 for r in results if r.is_failure())
        if failed:
            logger.debug(f"{label}: {failed}/{len(results)} commands returned errors")

        self._finish(CommandResult.success(None), start_time, label)
        return BatchResult.of(results)

    async def transaction(self, commands: Sequence[Command]) -> BatchResult:
        """
        Execute commands as one atomic batch.

        Returns N success results, or a single failure: the abort signal
        when the store discarded the batch, otherwise the first failing
        command's message prefixed with "Transaction failed: ".
        """
        start_time = time.time()
        self._begin("transaction")
        label = f"transaction of {len(commands)}"

        try:
            validate_commands(commands, self._filter_policy)
            connection = await self._topology_manager.acquire()
            reply = await self._run_batch(connection.open_transaction(), commands)
            if reply is None:
                raise TransactionAbortedError()

            first_error = next((error for error, _ in reply if error is not None), None)
            if first_error is not None:
                raise BackendCommandError(
                    f"Transaction failed: {format_error(first_error)['error']}"
                )
        except Exception as e:
            failure = CommandResult.from_error(e)
            self._finish(failure, start_time, label)
            return BatchResult.failed(failure)

        results = [CommandResult.success(serialize_result(value)) for _, value in reply]
        self._finish(CommandResult.success(None), start_time, label)
        return BatchResult.of(results)

    async def _run_batch(
        self, batch: StoreBatch, commands: Sequence[Command]
    ) -> Optional[BatchReply]:
        for command in commands:
            batch.call(command.name, command.args)
        return await batch.execute()

    async def execute_body(self, body: Any) -> CommandResult:
        """Parse a single-command JSON body (array or object) and execute it"""
        try:
            command = parse_body_command(body)
        except AdapterError as e:
            return self._parse_failure(e)
        return await self.execute(command)

    async def execute_request(
        self, segments: Sequence[str], body: Any = None
    ) -> CommandResult:
        """Parse a path-addressed request (path, hybrid or object form) and execute it"""
        try:
            command = parse_request(segments, body)
        except AdapterError as e:
            return self._parse_failure(e)
        return await self.execute(command)

    async def pipeline_body(self, body: Any) -> BatchResult:
        """Parse a batch body and execute it as a pipeline"""
        try:
            commands = parse_multiple_commands(body)
        except AdapterError as e:
            return BatchResult.failed(self._parse_failure(e))
        return await self.pipeline(commands)

    async def transaction_body(self, body: Any) -> BatchResult:
        """Parse a batch body and execute it as a transaction"""
        try:
            commands = parse_multiple_commands(body)
        except AdapterError as e:
            return BatchResult.failed(self._parse_failure(e))
        return await self.transaction(commands)

    def _parse_failure(self, error: AdapterError) -> CommandResult:
        self._execution_count += 1
        self._failure_count += 1
        logger.debug(f"Rejected request: {error.message}")
        return CommandResult.from_error(error)

    def _begin(self, mode: str) -> None:
        self._execution_count += 1
        self._mode_counts[mode] += 1

    def _finish(self, result: CommandResult, start_time: float, label: str) -> None:
        execution_time = (time.time() - start_time) * 1000  # Convert to ms
        self._total_execution_time += execution_time

        if result.is_success():
            self._success_count += 1
            logger.debug(f"{label} completed in {execution_time:.2f}ms")
            return

        self._failure_count += 1
        if result.error_kind == ErrorKind.COMMAND_BLOCKED:
            self._blocked_count += 1
            return

        logger.info(
            f"{label} failed in {execution_time:.2f}ms "
            f"({result.error_kind.value if result.error_kind else 'unknown'}): "
            f"{result.error_message}"
        )

    def get_execution_metrics(self) -> Dict[str, Any]:
        """
        Get execution metrics for monitoring and debugging.

        Returns:
            Dictionary containing execution statistics
        """
        avg_execution_time = (
            self._total_execution_time / self._execution_count
            if self._execution_count > 0
            else 0
        )

        success_rate = (
            (self._success_count / self._execution_count) * 100
            if self._execution_count > 0
            else 0
        )

        return {
            "total_executions": self._execution_count,
            "successful_executions": self._success_count,
            "failed_executions": self._failure_count,
            "blocked_executions": self._blocked_count,
            "executions_by_mode": dict(self._mode_counts),
            "success_rate_percent": round(success_rate, 2),
            "average_execution_time_ms": round(avg_execution_time, 2),
            "total_execution_time_ms": round(self._total_execution_time, 2),
            "filter_mode": self._filter_policy.mode,
        }

    def reset_metrics(self) -> None:
        """Reset execution metrics (useful for testing)"""
        self._execution_count = 0
        self._success_count = 0
        self._failure_count = 0
        self._blocked_count = 0
        self._mode_counts = {mode: 0 for mode in self._mode_counts}
        self._total_execution_time = 0.0
        logger.info("Execution metrics reset")

