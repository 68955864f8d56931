"""Data types shared by the interpreter layer and the session."""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class Operation(Enum):
    """Kind of interaction that produced a response."""

    START = "start"
    ACTION = "action"
    SCORE = "score"
    SAVE = "save"
    RESTORE = "restore"
    QUIT = "quit"
    ERROR = "error"

    def __str__(self) -> str:
        return self.value


class Prompt(Enum):
    """What the interpreter is waiting for at the end of its output."""

    NONE = "none"
    COMMAND = "command"  # the ">" line prompt
    FILENAME = "filename"
    OVERWRITE = "overwrite"
    CONFIRM = "confirm"  # e.g. "Are you sure you want to quit?"
    KEYPRESS = "keypress"  # MORE pages, "press any key"

    def __str__(self) -> str:
        return self.value


DetailPairs = tuple[tuple[str, Any], ...]


@dataclass(frozen=True)
class Response:
    """Structured result of one interaction with the interpreter.

    ``details`` is an ordered sequence of key/value pairs pulled out of the
    text (score, moves, location, ...). It is empty when nothing was
    recognized; values are never invented.
    """

    raw_output: str
    details: DetailPairs = ()
    message: str | None = None
    success: bool = True
    operation: Operation = Operation.ACTION
    input: str = ""
    prompt: Prompt = Prompt.NONE

    def detail(self, key: str, default: Any = None) -> Any:
        """Return the first value recorded under ``key``."""
        for name, value in self.details:
            if name == key:
                return value
        return default

    @property
    def details_dict(self) -> dict[str, Any]:
        return dict(self.details)

    def to_dict(self) -> dict[str, Any]:
        """Structured record of the response."""
        return {
            "input": self.input,
            "operation": self.operation.value,
            "raw_output": self.raw_output,
            "details": self.details_dict,
            "message": self.message,
            "success": self.success,
            "prompt": self.prompt.value,
        }


@dataclass(frozen=True)
class ParseContext:
    """What the parser knows about the exchange that produced some bytes."""

    command: str = ""
    operation: Operation = Operation.ACTION
