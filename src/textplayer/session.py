"""Game session lifecycle."""

from __future__ import annotations

import contextlib
import logging
import weakref
from collections.abc import Callable, Iterator
from dataclasses import replace
from enum import Enum
from pathlib import Path

from textplayer.config import Config, load_config
from textplayer.errors import TextPlayerError
from textplayer.gamefile import Gamefile, GameNotFound
from textplayer.interpreter.base import (
    InterpreterIOError,
    InterpreterProcess,
    InterpreterTimeout,
    ProcessExitedError,
    resolve_executable,
)
from textplayer.interpreter.negotiator import SaveRestoreNegotiator, UnexpectedDialogState
from textplayer.interpreter.parser import ResponseParser
from textplayer.interpreter.protocol import Operation, ParseContext, Prompt, Response
from textplayer.savefile import InvalidSlotName, SaveSlot

logger = logging.getLogger(__name__)

# Receives the latest response, returns the next command (None or "" to stop).
InteractionCallback = Callable[[Response], "str | None"]

# Errors that end one turn of run() but leave the session usable.
RECOVERABLE_ERRORS = (InterpreterTimeout, UnexpectedDialogState, InvalidSlotName)


class SessionState(Enum):
    """Lifecycle phase of a session."""

    NOT_STARTED = "not-started"
    RUNNING = "running"
    AWAITING_INPUT = "awaiting-input"  # inside a save/restore dialog
    TERMINATED = "terminated"


class SessionError(TextPlayerError):
    """Base exception for session misuse."""


class NotRunning(SessionError):
    """The operation needs a running session."""


class SessionClosed(NotRunning):
    """The session has ended and cannot be used again."""


class AlreadyStarted(SessionError):
    """start() was called on a session that is already running."""


class Session:
    """One game played through one interpreter process.

    Sequences the process handle, response parser and save/restore
    negotiator. Not safe for concurrent use; run one Session per game.

    Example:
        with Session(Gamefile.from_path("zork1.z5")) as session:
            session.start()
            print(session.call("open mailbox").raw_output)
    """

    def __init__(
        self,
        gamefile: Gamefile | str | Path,
        dfrotz_path: str | None = None,
        config: Config | None = None,
        parser: ResponseParser | None = None,
    ) -> None:
        """Initialize the session without starting the interpreter.

        Args:
            gamefile: Game to play.
            dfrotz_path: Interpreter override; beats config and environment.
            config: Application configuration.
            parser: Response parser; built from the config when omitted.

        Raises:
            GameNotFound: If the game file is missing or unreadable.
        """
        if not isinstance(gamefile, Gamefile):
            gamefile = Gamefile.from_path(gamefile)
        elif not gamefile.canonical_path.is_file():
            raise GameNotFound(f"Game file not found: {gamefile.path}")

        self.gamefile = gamefile
        self.dfrotz_path = dfrotz_path
        self.config = config or load_config()
        self.parser = parser or ResponseParser.from_config(self.config.parser)
        self._state = SessionState.NOT_STARTED
        self._process: InterpreterProcess | None = None
        self._finalizer: weakref.finalize | None = None
        self._last_response: Response | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state in (SessionState.RUNNING, SessionState.AWAITING_INPUT)

    @property
    def last_response(self) -> Response | None:
        return self._last_response

    def start(self) -> Response:
        """Start the interpreter and return the game's opening text.

        Raises:
            AlreadyStarted: If the session is already running.
            SessionClosed: If the session has ended.
            ExecutableNotFound: If the interpreter cannot be located.
            SpawnFailed: If the process could not be created.
        """
        if self._state is SessionState.TERMINATED:
            raise SessionClosed("Session has ended; create a new one")
        if self._state is not SessionState.NOT_STARTED:
            raise AlreadyStarted("Session already started")

        settings = self.config.interpreter
        try:
            executable = resolve_executable(
                self.dfrotz_path or settings.dfrotz_path,
                env_var=settings.env_var,
                name=settings.executable_name,
            )
            process = InterpreterProcess.spawn(
                executable,
                self.gamefile.canonical_path,
                args=settings.args,
                read_timeout=settings.read_timeout,
                quiet_window=settings.quiet_window,
                terminate_grace=settings.terminate_grace,
            )
        except TextPlayerError:
            self._state = SessionState.TERMINATED
            raise

        self._process = process
        # Reap the child even if the caller never closes the session.
        self._finalizer = weakref.finalize(self, process.terminate, False)
        self._state = SessionState.RUNNING
        logger.info("Started %s with %s (pid %d)", self.gamefile.name, executable, process.pid)

        return self._exchange(None, ParseContext(operation=Operation.START))

    def call(self, command: str, timeout: float | None = None) -> Response:
        """Send a command and return the parsed reply.

        ``score``, ``save [slot]``, ``restore [slot]`` and ``quit`` are
        routed to the matching session operation.

        Args:
            command: Text typed at the game prompt.
            timeout: Read timeout override in seconds.

        Raises:
            NotRunning: Before start().
            SessionClosed: After the session has ended.
            InterpreterTimeout: If the game did not answer in time.
            ProcessExitedError: If the interpreter died; the partial reply
                is on ``exc.response``.
        """
        self._require_running()

        verb, _, argument = command.strip().partition(" ")
        verb = verb.lower()
        argument = argument.strip()
        if verb == "score" and not argument:
            return self.score()
        if verb == "save":
            return self.save(argument or None)
        if verb == "restore":
            return self.restore(argument or None)
        if verb == "quit" and not argument:
            return self.quit()

        return self._exchange(command, ParseContext(command=command), timeout)

    def score(self) -> Response:
        """Ask the game for the score."""
        self._require_running()
        response = self._exchange("score", ParseContext(command="score", operation=Operation.SCORE))

        score = response.detail("score")
        if score is None:
            return response
        out_of = response.detail("out_of")
        message = f"Score: {score}/{out_of}" if out_of is not None else f"Score: {score}"
        self._last_response = replace(response, message=message)
        return self._last_response

    def save(self, slot: str | None = None) -> Response:
        """Save to a named slot, or the default slot."""
        return self._negotiate(Operation.SAVE, slot)

    def restore(self, slot: str | None = None) -> Response:
        """Restore from a named slot, or the default slot.

        A missing slot is reported as ``success=False``, not raised.
        """
        return self._negotiate(Operation.RESTORE, slot)

    def quit(self) -> Response:
        """Quit the game and stop the interpreter."""
        if self._state is SessionState.TERMINATED:
            raise SessionClosed("Session has ended")

        context = ParseContext(command="quit", operation=Operation.QUIT)
        raw = b""
        if self._process is not None:
            try:
                self._process.write_command("quit")
                raw = self._process.read_until_quiescent(until=self.parser.terminator)
                if self.parser.parse(raw, context).prompt is Prompt.CONFIRM:
                    self._process.write_command("y")
                    # Collect the farewell; the interpreter exits after it.
                    raw += self._process.read_until_quiescent(until=self.parser.terminator)
            except ProcessExitedError as e:
                raw += e.partial
            except (InterpreterTimeout, InterpreterIOError) as e:
                logger.warning("Interpreter did not answer quit cleanly: %s", e)

        self._terminate(graceful=True)
        self._last_response = Response(
            raw_output=self.parser.parse(raw, context).raw_output,
            message="Game ended",
            operation=Operation.QUIT,
            input="quit",
            prompt=Prompt.NONE,
        )
        return self._last_response

    def close(self) -> None:
        """Stop the interpreter without the quit dialog. Idempotent."""
        if self._state is not SessionState.TERMINATED:
            self._terminate(graceful=self._state is SessionState.RUNNING)

    def run(self, callback: InteractionCallback) -> Response | None:
        """Drive the game by turn-taking with ``callback``.

        The callback gets each response and returns the next command. The
        loop ends when it returns None or an empty string, or when the
        session terminates. Timeouts, dialog mismatches and bad slot names
        are logged and handed to the callback as ERROR responses.

        Returns:
            The last response produced.
        """
        if self._state is SessionState.NOT_STARTED:
            response = self.start()
        else:
            self._require_running()
            response = self._last_response or Response(raw_output="")

        while self._state is SessionState.RUNNING:
            command = callback(response)
            if not command:
                break
            try:
                response = self.call(command)
            except RECOVERABLE_ERRORS as e:
                logger.warning("Command %r failed: %s", command, e)
                response = Response(
                    raw_output="",
                    message=str(e),
                    success=False,
                    operation=Operation.ERROR,
                    input=command,
                )
        return response

    def _negotiate(self, operation: Operation, slot_name: str | None) -> Response:
        self._require_running()
        assert self._process is not None
        saves = self.config.saves
        slot = SaveSlot.resolve(slot_name, self.gamefile.stem, saves.default_slot)
        negotiator = SaveRestoreNegotiator(
            process=self._process,
            parser=self.parser,
            save_directory=saves.directory,
            extension=saves.extension,
        )

        self._state = SessionState.AWAITING_INPUT
        try:
            with self._transport(ParseContext(command=operation.value, operation=operation)):
                if operation is Operation.SAVE:
                    response = negotiator.save(slot)
                else:
                    response = negotiator.restore(slot)
        except UnexpectedDialogState as e:
            if not e.recovered:
                # Still inside the dialog; the next command would become its answer.
                logger.error("Ending session stuck in the %s dialog", operation)
                self._terminate(graceful=False)
            raise
        finally:
            if self._state is SessionState.AWAITING_INPUT:
                self._state = SessionState.RUNNING

        self._last_response = response
        return response

    def _exchange(
        self,
        command: str | None,
        context: ParseContext,
        timeout: float | None = None,
    ) -> Response:
        """Write a command (if any), read the reply and parse it.

        MORE/keypress pages are acknowledged and merged into one response.
        """
        assert self._process is not None
        process = self._process
        collected = b""

        with self._transport(context):
            if command is not None:
                process.write_command(command)
            collected = process.read_until_quiescent(timeout=timeout, until=self.parser.terminator)
            response = self.parser.parse(collected, context)

            pages = 0
            while response.prompt is Prompt.KEYPRESS and pages < self.config.interpreter.max_pages:
                process.write_command("")
                collected += process.read_until_quiescent(
                    timeout=timeout, until=self.parser.terminator
                )
                response = self.parser.parse(collected, context)
                pages += 1

        self._last_response = response
        return response

    @contextlib.contextmanager
    def _transport(self, context: ParseContext) -> Iterator[None]:
        """End the session on process failures, keeping partial output."""
        try:
            yield
        except ProcessExitedError as e:
            if e.response is None:
                e.response = self.parser.parse(e.partial, context)
            self._last_response = e.response
            self._terminate(graceful=False)
            raise
        except InterpreterIOError:
            self._terminate(graceful=False)
            raise

    def _require_running(self) -> None:
        if self._state is SessionState.TERMINATED:
            raise SessionClosed("Session has ended")
        if self._state is SessionState.NOT_STARTED:
            raise NotRunning("Session not started; call start() first")
        if self._state is SessionState.AWAITING_INPUT:
            raise NotRunning("A save/restore dialog is in progress")
        if self._process is None or not self._process.is_alive:
            self._terminate(graceful=False)
            raise SessionClosed("Interpreter is no longer running")

    def _terminate(self, graceful: bool) -> None:
        self._state = SessionState.TERMINATED
        if self._process is not None:
            self._process.terminate(graceful=graceful)
        if self._finalizer is not None:
            self._finalizer.detach()
            self._finalizer = None

    def __enter__(self) -> Session:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        self.close()
