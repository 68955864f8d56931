"""Automation of the interpreter's interactive save/restore dialog."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from textplayer.errors import TextPlayerError
from textplayer.interpreter.base import InterpreterProcess, InterpreterTimeout
from textplayer.interpreter.parser import ResponseParser
from textplayer.interpreter.protocol import Operation, ParseContext, Prompt, Response
from textplayer.savefile import SAVE_EXTENSION, SaveSlot

logger = logging.getLogger(__name__)

RESULT_OK = re.compile(r"^\s*Ok\.", re.MULTILINE)
RESULT_FAILED = re.compile(r"^\s*Failed\.", re.MULTILINE | re.IGNORECASE)


class DialogState(Enum):
    """Where the save/restore dialog currently stands."""

    AWAITING_FILENAME = "awaiting-filename"
    AWAITING_CONFIRMATION = "awaiting-confirmation"
    AWAITING_RESULT = "awaiting-result"
    COMPLETE = "complete"


# (state, prompt seen) -> next state. Anything missing is a protocol anomaly.
TRANSITIONS: dict[tuple[DialogState, Prompt], DialogState] = {
    (DialogState.AWAITING_FILENAME, Prompt.FILENAME): DialogState.AWAITING_CONFIRMATION,
    # The game declined to save or restore right now.
    (DialogState.AWAITING_FILENAME, Prompt.COMMAND): DialogState.COMPLETE,
    (DialogState.AWAITING_CONFIRMATION, Prompt.OVERWRITE): DialogState.AWAITING_RESULT,
    (DialogState.AWAITING_CONFIRMATION, Prompt.COMMAND): DialogState.COMPLETE,
    (DialogState.AWAITING_RESULT, Prompt.COMMAND): DialogState.COMPLETE,
}


class UnexpectedDialogState(TextPlayerError):
    """The interpreter answered the dialog with a prompt we don't expect.

    Usually means the interpreter or game speaks a different dialect than
    the configured prompt patterns. ``recovered`` tells whether the dialog
    was cancelled and the game is back at its command prompt.
    """

    def __init__(
        self,
        operation: Operation,
        state: DialogState,
        prompt: Prompt,
        output: str,
        recovered: bool = False,
    ) -> None:
        super().__init__(
            f"Unexpected {prompt} prompt during {operation} ({state.value}): {output[-80:]!r}"
        )
        self.operation = operation
        self.state = state
        self.prompt = prompt
        self.output = output
        self.recovered = recovered


@dataclass
class SaveRestoreNegotiator:
    """Drives save and restore to completion for a named slot.

    Filename prompts are answered with the slot's path and overwrite
    prompts with "y", so a save always replaces its slot.
    """

    process: InterpreterProcess
    parser: ResponseParser
    save_directory: Path
    extension: str = SAVE_EXTENSION
    timeout: float | None = None
    cancel_attempts: int = 3

    def save(self, slot: SaveSlot) -> Response:
        return self._negotiate(Operation.SAVE, slot)

    def restore(self, slot: SaveSlot) -> Response:
        return self._negotiate(Operation.RESTORE, slot)

    def _negotiate(self, operation: Operation, slot: SaveSlot) -> Response:
        path = slot.path(self.save_directory, self.extension).resolve()
        if operation is Operation.SAVE:
            path.parent.mkdir(parents=True, exist_ok=True)

        sent = operation.value
        self.process.write_command(sent)

        state = DialogState.AWAITING_FILENAME
        outputs: list[str] = []
        reply = None
        while state is not DialogState.COMPLETE:
            raw = self.process.read_until_quiescent(
                timeout=self.timeout, until=self.parser.terminator
            )
            reply = self.parser.parse(raw, ParseContext(command=sent, operation=operation))
            if reply.raw_output:
                outputs.append(reply.raw_output)

            next_state = TRANSITIONS.get((state, reply.prompt))
            if next_state is None or (
                reply.prompt is Prompt.OVERWRITE and operation is not Operation.SAVE
            ):
                logger.warning(
                    "Protocol anomaly: %s prompt during %s while %s",
                    reply.prompt,
                    operation,
                    state.value,
                )
                recovered = self._cancel()
                raise UnexpectedDialogState(
                    operation, state, reply.prompt, reply.raw_output, recovered=recovered
                )

            answer = self._answer(reply.prompt, path)
            if answer is not None:
                self.process.write_command(answer)
                sent = answer
            logger.debug("%s dialog: %s -> %s", operation, state.value, next_state.value)
            state = next_state

        assert reply is not None
        return self._conclude(operation, slot, path, "\n".join(outputs), reply)

    def _cancel(self) -> bool:
        """Answer a stray prompt with empty lines until the game prompt returns.

        An empty filename or confirmation makes the interpreter abandon the
        dialog, so no command typed later is taken as an answer.
        """
        for _ in range(self.cancel_attempts):
            self.process.write_command("")
            try:
                raw = self.process.read_until_quiescent(
                    timeout=self.timeout, until=self.parser.terminator
                )
            except InterpreterTimeout:
                return False
            if self.parser.parse(raw).prompt is Prompt.COMMAND:
                return True
        logger.warning("Could not leave the dialog after %d attempts", self.cancel_attempts)
        return False

    @staticmethod
    def _answer(prompt: Prompt, path: Path) -> str | None:
        if prompt is Prompt.FILENAME:
            return str(path)
        if prompt is Prompt.OVERWRITE:
            return "y"
        return None

    def _conclude(
        self,
        operation: Operation,
        slot: SaveSlot,
        path: Path,
        text: str,
        final: Response,
    ) -> Response:
        success = bool(RESULT_OK.search(text)) and not RESULT_FAILED.search(text)
        details = [*final.details, ("slot", slot.slot), ("filename", str(path))]

        if operation is Operation.SAVE:
            message = (
                f"[{slot.slot}] Game saved successfully" if success else "Save operation failed"
            )
        elif success:
            message = f"[{slot.slot}] Game restored successfully"
        elif not slot.exists(self.save_directory, self.extension):
            message = f"[{slot.slot}] No saved game found"
            details.append(("error", "slot_not_found"))
        else:
            message = "Restore operation failed"

        if not success:
            logger.info("%s of slot %r failed: %s", operation, slot.slot, text[-80:])

        return Response(
            raw_output=text,
            details=tuple(details),
            message=message,
            success=success,
            operation=operation,
            input=operation.value,
            prompt=final.prompt,
        )
