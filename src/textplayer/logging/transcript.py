"""Transcript logging for game sessions."""

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, TextIO

from textplayer.interpreter.protocol import Operation, Response


@dataclass
class TranscriptEntry:
    """A single entry in the transcript."""

    timestamp: str
    turn: int
    entry_type: str  # "command", "response", "error"
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)


class TranscriptLogger:
    """Dual-format transcript logger (JSON + Markdown).

    The Markdown file is streamed as the game is played; the JSON record,
    which keeps every Response in structured form, is written on finalize.
    """

    def __init__(
        self,
        json_path: Path | None = None,
        markdown_path: Path | None = None,
        game_title: str | None = None,
    ) -> None:
        """Initialize the transcript logger.

        Args:
            json_path: Path for JSON transcript output.
            markdown_path: Path for Markdown transcript output.
            game_title: Title of the game being played.
        """
        self.json_path = json_path
        self.markdown_path = markdown_path
        self.game_title = game_title
        self._entries: list[TranscriptEntry] = []
        self._turn = 0
        self._md_file: TextIO | None = None
        self._start_time = datetime.now()

        if markdown_path:
            markdown_path.parent.mkdir(parents=True, exist_ok=True)
            self._md_file = open(markdown_path, "w", encoding="utf-8")  # noqa: SIM115
            self._write_markdown_header()

    @property
    def turn(self) -> int:
        return self._turn

    def _write_markdown_header(self) -> None:
        if self._md_file is None:
            return

        title = self.game_title or "Game Transcript"
        self._md_file.write(f"# {title}\n\n")
        self._md_file.write(f"Started: {self._start_time.isoformat()}\n\n")
        self._md_file.write("---\n\n")
        self._md_file.flush()

    def log_command(self, command: str) -> None:
        """Log a command typed by the player; starts a new turn."""
        self._turn += 1
        self._add_entry("command", command)

        if self._md_file:
            self._md_file.write(f"### Turn {self._turn}\n\n")
            self._md_file.write(f"**Command:** `{command}`\n\n")
            self._md_file.flush()

    def log_response(self, response: Response) -> None:
        """Log a parsed response.

        Args:
            response: Response returned by the session.
        """
        record = response.to_dict()
        content = record.pop("raw_output")
        self._add_entry("response", content, record)

        if self._md_file:
            location = response.detail("location")
            if location:
                self._md_file.write(f"*Location: {location}*\n\n")
            if response.operation is not Operation.ACTION and response.message:
                verdict = "ok" if response.success else "failed"
                note = f"{response.operation.value} {verdict}: {response.message}"
                self._md_file.write(f"*[{note}]*\n\n")
            if content:
                self._md_file.write(f"```\n{content}\n```\n\n")
            self._md_file.flush()

    def log_error(self, error_type: str, message: str) -> None:
        """Log an error.

        Args:
            error_type: Type of error.
            message: Error message.
        """
        self._add_entry("error", message, {"error_type": error_type})

        if self._md_file:
            self._md_file.write(f"> **Error ({error_type}):** {message}\n\n")
            self._md_file.flush()

    def _add_entry(
        self,
        entry_type: str,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self._entries.append(
            TranscriptEntry(
                timestamp=datetime.now().isoformat(),
                turn=self._turn,
                entry_type=entry_type,
                content=content,
                metadata=metadata or {},
            )
        )

    def get_entries(self) -> list[TranscriptEntry]:
        return self._entries.copy()

    def finalize(self) -> None:
        """Write the JSON transcript and close the Markdown file.

        Calling it again only rewrites the JSON record.
        """
        end_time = datetime.now()

        if self.json_path:
            self.json_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.json_path, "w", encoding="utf-8") as f:
                json.dump(
                    {
                        "game_title": self.game_title,
                        "start_time": self._start_time.isoformat(),
                        "end_time": end_time.isoformat(),
                        "total_turns": self._turn,
                        "entries": [asdict(e) for e in self._entries],
                    },
                    f,
                    indent=2,
                    ensure_ascii=False,
                )

        if self._md_file:
            self._md_file.write("\n---\n\n")
            self._md_file.write(f"Completed: {end_time.isoformat()}\n")
            self._md_file.write(f"Total turns: {self._turn}\n")
            self._md_file.close()
            self._md_file = None

    def __enter__(self) -> "TranscriptLogger":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        self.finalize()


def create_transcript_paths(
    base_dir: Path,
    game_name: str,
    session_id: str | None = None,
) -> tuple[Path, Path]:
    """Create paths for transcript files.

    Args:
        base_dir: Base directory for transcripts.
        game_name: Name of the game.
        session_id: Optional session identifier; defaults to a timestamp.

    Returns:
        Tuple of (json_path, markdown_path).
    """
    if session_id is None:
        session_id = datetime.now().strftime("%Y%m%d_%H%M%S")

    safe_name = "".join(c if c.isalnum() or c in "-_" else "_" for c in game_name)
    stem = f"{safe_name}_{session_id}"
    return base_dir / f"{stem}.json", base_dir / f"{stem}.md"
