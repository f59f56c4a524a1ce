import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field, field_validator

from src.commands.filter.security import DANGEROUS_COMMANDS, SAFE_COMMANDS
from src.commands.interfaces.command import Command
from src.config.settings import AdapterConfig, FilterMode, normalize_command_list
from src.core.errors import CommandBlockedError

logger = logging.getLogger(__name__)


class FilterPolicy(BaseModel):
    """
    Command gating policy.

    Modes:
    - blocklist: deny the builtin dangerous set plus additional_blocked
    - allowlist: permit only the builtin safe set plus additional_allowed
    - none: permit everything (unsafe, intended for trusted networks only)
    """

    mode: FilterMode = "blocklist"
    additional_blocked: List[str] = Field(default_factory=list)
    additional_allowed: List[str] = Field(default_factory=list)

    @field_validator("additional_blocked", "additional_allowed")
    @classmethod
    def _upper_case(cls, value: List[str]) -> List[str]:
        return normalize_command_list(value)

    @classmethod
    def from_config(cls, config: AdapterConfig) -> "FilterPolicy":
        return cls(
            mode=config.filter.mode,
            additional_blocked=config.filter.additional_blocked,
            additional_allowed=config.filter.additional_allowed,
        )


@dataclass(frozen=True)
class FilterDecision:
    """Allow/deny verdict for one command name"""

    command: str
    allowed: bool
    reason: Optional[str] = None

    @property
    def message(self) -> str:
        if self.allowed:
            return f"Command '{self.command}' is allowed"
        return f"Command '{self.command}' is blocked: {self.reason}"


def decide(command_name: str, policy: FilterPolicy) -> FilterDecision:
    """
    Decide whether a command may reach the store.

    The comparison always uses the upper-cased name, so mixed-case
    spellings cannot slip past either list.
    """
    cmd = command_name.upper()

    if policy.mode == "blocklist":
        if cmd in DANGEROUS_COMMANDS:
            return FilterDecision(cmd, False, "dangerous command blocked for security")
        if cmd in policy.additional_blocked:
            return FilterDecision(cmd, False, "command blocked by configuration")
        return FilterDecision(cmd, True)

    if policy.mode == "allowlist":
        if cmd in SAFE_COMMANDS or cmd in policy.additional_allowed:
            return FilterDecision(cmd, True)
        return FilterDecision(cmd, False, "command not in allowlist")

    return FilterDecision(cmd, True)


def validate_command(command_name: str, policy: FilterPolicy) -> None:
    """
    Raise if the policy denies the command.

    Raises:
        CommandBlockedError: With the offending name and the denial reason
    """
    decision = decide(command_name, policy)
    if not decision.allowed:
        logger.warning(decision.message)
        raise CommandBlockedError(decision.command, decision.reason or "blocked")


def validate_commands(commands: Iterable[Command], policy: FilterPolicy) -> None:
    """Validate every command of a batch, stopping at the first denial"""
    for command in commands:
        validate_command(command.name, policy)


def get_filter_summary(policy: FilterPolicy) -> Dict[str, Any]:
    """Summary of the active policy for the startup log"""
    return {
        "mode": policy.mode,
        "blocked_count": (
            len(DANGEROUS_COMMANDS) + len(policy.additional_blocked)
            if policy.mode == "blocklist"
            else 0
        ),
        "allowed_count": (
            len(SAFE_COMMANDS) + len(policy.additional_allowed)
            if policy.mode == "allowlist"
            else 0
        ),
    }
