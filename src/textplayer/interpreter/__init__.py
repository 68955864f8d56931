"""Interpreter process handling, output parsing and dialog automation."""

from textplayer.interpreter.base import (
    ExecutableNotFound,
    InterpreterError,
    InterpreterIOError,
    InterpreterProcess,
    InterpreterTimeout,
    ProcessExitedError,
    SpawnFailed,
    resolve_executable,
)
from textplayer.interpreter.negotiator import (
    DialogState,
    SaveRestoreNegotiator,
    UnexpectedDialogState,
)
from textplayer.interpreter.parser import (
    LocationExtractor,
    PatternExtractor,
    PromptPatterns,
    ResponseParser,
)
from textplayer.interpreter.protocol import Operation, ParseContext, Prompt, Response

__all__ = [
    "DialogState",
    "ExecutableNotFound",
    "InterpreterError",
    "InterpreterIOError",
    "InterpreterProcess",
    "InterpreterTimeout",
    "LocationExtractor",
    "Operation",
    "ParseContext",
    "PatternExtractor",
    "ProcessExitedError",
    "Prompt",
    "PromptPatterns",
    "Response",
    "ResponseParser",
    "SaveRestoreNegotiator",
    "SpawnFailed",
    "UnexpectedDialogState",
    "resolve_executable",
]
