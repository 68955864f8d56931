"""Subprocess handle for the dfrotz interpreter."""

from __future__ import annotations

import codecs
import contextlib
import logging
import os
import re
import select
import shutil
import subprocess
import time
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import IO, TYPE_CHECKING

from textplayer.errors import TextPlayerError

if TYPE_CHECKING:
    from textplayer.interpreter.protocol import Response

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024
# Prompts sit at the end of the output; only this much of the tail is matched.
PROMPT_WINDOW = 1024

# What an interactive player would type to leave the game.
QUIT_SEQUENCE = ("quit", "y")


class InterpreterError(TextPlayerError):
    """Base exception for interpreter errors."""


class ExecutableNotFound(InterpreterError):
    """The interpreter binary could not be located."""


class SpawnFailed(InterpreterError):
    """The operating system refused to start the interpreter."""


class InterpreterIOError(InterpreterError):
    """Reading from or writing to the interpreter's pipes failed."""


class InterpreterTimeout(InterpreterError, TimeoutError):
    """The interpreter produced no output within the read timeout."""


class ProcessExitedError(InterpreterError):
    """The interpreter exited while a reply was being read.

    Attributes:
        partial: Bytes received before the process went away.
        returncode: Exit status, if the process could be reaped.
        response: Parsed form of ``partial``, attached by the session.
    """

    def __init__(
        self,
        message: str,
        partial: bytes = b"",
        returncode: int | None = None,
    ) -> None:
        super().__init__(message)
        self.partial = partial
        self.returncode = returncode
        self.response: Response | None = None


def resolve_executable(
    explicit: str | None = None,
    env_var: str = "DFROTZ_PATH",
    name: str = "dfrotz",
) -> str:
    """Locate the interpreter binary.

    The first source that names a candidate wins: an explicit path, then
    the environment variable, then a PATH lookup of ``name``.

    Args:
        explicit: Path or command name given by the caller.
        env_var: Environment variable consulted when ``explicit`` is empty.
        name: Command looked up on PATH as the last resort.

    Returns:
        Path to an executable file.

    Raises:
        ExecutableNotFound: If the chosen candidate is not executable.
    """
    candidates = [
        ("argument", explicit),
        (f"${env_var}", os.environ.get(env_var)),
        ("PATH", name),
    ]
    for source, candidate in candidates:
        if not candidate:
            continue
        resolved = shutil.which(candidate)
        if resolved is None:
            raise ExecutableNotFound(f"Interpreter not found ({source}): {candidate}")
        return resolved

    raise ExecutableNotFound("No interpreter configured")


@dataclass
class InterpreterProcess:
    """Wrapper around a running interpreter subprocess.

    Owns the child's pipes. Writes are line oriented; reads collect raw
    bytes until the stream goes quiet or a terminator pattern shows up.
    """

    process: subprocess.Popen[bytes]
    _stdin: IO[bytes]
    _stdout: IO[bytes]
    read_timeout: float = 5.0
    quiet_window: float = 0.3
    terminate_grace: float = 2.0
    encoding: str = "utf-8"
    _closed: bool = False

    @classmethod
    def spawn(
        cls,
        executable: str,
        gamefile: str | Path,
        args: Sequence[str] = (),
        cwd: str | Path | None = None,
        read_timeout: float = 5.0,
        quiet_window: float = 0.3,
        terminate_grace: float = 2.0,
    ) -> InterpreterProcess:
        """Start the interpreter on a game file.

        Args:
            executable: Interpreter binary.
            gamefile: Game image passed as the last argument.
            args: Extra interpreter flags placed before the game file.
            cwd: Working directory for the process.
            read_timeout: Upper bound for a single read, in seconds.
            quiet_window: Silence that ends a read once output has started.
            terminate_grace: Seconds to wait for a clean exit before killing.

        Returns:
            InterpreterProcess wrapper.

        Raises:
            ExecutableNotFound: If the binary does not exist.
            SpawnFailed: If the process could not be created.
        """
        cmd = [executable, *args, str(gamefile)]
        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                bufsize=0,
                cwd=cwd,
            )
        except FileNotFoundError as e:
            raise ExecutableNotFound(f"Interpreter not found: {executable}") from e
        except OSError as e:
            raise SpawnFailed(f"Failed to start interpreter: {e}") from e

        if process.stdin is None or process.stdout is None:
            process.kill()
            process.wait()
            raise SpawnFailed("Failed to open stdin/stdout pipes")

        logger.debug("Started interpreter pid=%d: %s", process.pid, " ".join(cmd))
        return cls(
            process=process,
            _stdin=process.stdin,
            _stdout=process.stdout,
            read_timeout=read_timeout,
            quiet_window=quiet_window,
            terminate_grace=terminate_grace,
        )

    def write(self, text: str) -> None:
        """Write raw text to the interpreter's stdin.

        Raises:
            InterpreterIOError: If the pipe is broken or closed.
        """
        try:
            self._stdin.write(text.encode(self.encoding))
            self._stdin.flush()
        except (OSError, ValueError) as e:
            raise InterpreterIOError(f"Failed to write to interpreter: {e}") from e

    def write_command(self, text: str) -> None:
        """Write one line (newline added automatically)."""
        self.write(text + "\n")

    def read_until_quiescent(
        self,
        timeout: float | None = None,
        until: re.Pattern[str] | None = None,
    ) -> bytes:
        """Read output until the stream goes quiet.

        The read ends when no new bytes arrive within ``quiet_window`` after
        at least one byte was received, or as soon as the decoded buffer
        matches ``until``. Output that never settles is cut at the timeout.

        Args:
            timeout: Upper bound in seconds; defaults to ``read_timeout``.
            until: Terminator pattern, e.g. the command prompt.

        Returns:
            The raw bytes received.

        Raises:
            InterpreterTimeout: If nothing arrived before the timeout.
            ProcessExitedError: If the process exited or was terminated.
            InterpreterIOError: If the pipe could not be read.
        """
        limit = self.read_timeout if timeout is None else timeout
        deadline = time.monotonic() + limit
        buffer = bytearray()
        decoder = codecs.getincrementaldecoder(self.encoding)(errors="replace")
        text = ""

        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                if buffer:
                    logger.debug("Read cut at %.2fs with %d bytes", limit, len(buffer))
                    return bytes(buffer)
                raise InterpreterTimeout(f"No output from interpreter within {limit:.2f}s")

            wait = min(remaining, self.quiet_window) if buffer else remaining
            try:
                ready, _, _ = select.select([self._stdout], [], [], wait)
                chunk = os.read(self._stdout.fileno(), CHUNK_SIZE) if ready else None
            except (OSError, ValueError) as e:
                if self._closed:
                    raise ProcessExitedError(
                        "Interpreter was terminated", bytes(buffer), self.process.returncode
                    ) from e
                raise InterpreterIOError(f"Failed to read from interpreter: {e}") from e

            if chunk is None:
                if buffer:
                    return bytes(buffer)
                continue

            if not chunk:
                returncode = self._reap()
                logger.info("Interpreter exited with status %s mid-read", returncode)
                raise ProcessExitedError(
                    f"Interpreter exited (status {returncode})", bytes(buffer), returncode
                )

            buffer.extend(chunk)
            if until is not None:
                text += decoder.decode(chunk)
                if until.search(text, max(0, len(text) - PROMPT_WINDOW)):
                    return bytes(buffer)

    def _reap(self) -> int | None:
        try:
            return self.process.wait(timeout=self.terminate_grace)
        except subprocess.TimeoutExpired:
            return None

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def returncode(self) -> int | None:
        return self.process.returncode

    @property
    def is_alive(self) -> bool:
        """Check if the process is still running."""
        return not self._closed and self.process.poll() is None

    def terminate(self, graceful: bool = True) -> int | None:
        """Stop the interpreter and release its pipes.

        Safe to call more than once and from another thread; a read that is
        blocked on the process ends with ProcessExitedError.

        Args:
            graceful: Type the quit sequence and wait before killing.

        Returns:
            The process exit status.
        """
        if self._closed:
            return self.process.returncode
        self._closed = True

        try:
            if graceful and self.process.poll() is None:
                for line in QUIT_SEQUENCE:
                    try:
                        self.write_command(line)
                    except InterpreterIOError:
                        break
            with contextlib.suppress(OSError):
                self._stdin.close()

            try:
                self.process.wait(timeout=self.terminate_grace if graceful else 0)
            except subprocess.TimeoutExpired:
                if graceful:
                    logger.warning("Interpreter pid=%d ignored quit, killing it", self.pid)
                self.process.kill()
                self.process.wait()
        finally:
            with contextlib.suppress(OSError):
                self._stdout.close()

        logger.debug("Interpreter pid=%d exited with %s", self.pid, self.process.returncode)
        return self.process.returncode

    def __enter__(self) -> InterpreterProcess:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        self.terminate()
