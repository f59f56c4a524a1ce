from dataclasses import dataclass, field
from typing import List, Optional, Union

# A single command argument as it is handed to the store client
Arg = Union[str, int, float, bool, None, bytes]


@dataclass(frozen=True)
class Command:
    """
    Canonical form of a key-value store command.

    Every request encoding accepted by the adapter (URL path segments,
    JSON array body, JSON object body, path plus body array) is normalized
    into this value before it reaches the filter policy or the store.
    Command-specific behaviour never lives here; the name is an opaque
    upper-cased token dispatched dynamically by the store client.
    """

    name: str
    args: List[Arg] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("command name is required")
        object.__setattr__(self, "name", self.name.upper())
        object.__setattr__(self, "args", list(self.args))

    def as_list(self) -> List[Arg]:
        """Return the command in its canonical list form ``[NAME, *args]``"""
        return [self.name, *self.args]

    def describe(self, max_args: Optional[int] = 3) -> str:
        """Short human-readable rendering used in log lines"""
        shown = self.args if max_args is None else self.args[:max_args]
        rendered = " ".join(str(arg) for arg in shown)
        if max_args is not None and len(self.args) > max_args:
            rendered += " ..."
        return f"{self.name} {rendered}".rstrip()

    def __str__(self) -> str:
        return self.describe()
