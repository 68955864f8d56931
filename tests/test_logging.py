"""Tests for transcript logging."""

import json
import tempfile
from pathlib import Path

from textplayer.interpreter.protocol import Operation, Prompt, Response
from textplayer.logging.transcript import (
    TranscriptEntry,
    TranscriptLogger,
    create_transcript_paths,
)

ROOM = Response(
    raw_output="West of House\nYou are standing in an open field.",
    details=(("location", "West of House"),),
    input="look",
    prompt=Prompt.COMMAND,
)


class TestTranscriptEntry:
    """Tests for TranscriptEntry."""

    def test_entry_creation(self) -> None:
        """Test creating a transcript entry."""
        entry = TranscriptEntry(
            timestamp="2024-01-01T12:00:00",
            turn=5,
            entry_type="command",
            content="open mailbox",
        )

        assert entry.turn == 5
        assert entry.entry_type == "command"
        assert entry.content == "open mailbox"
        assert entry.metadata == {}


class TestTranscriptLogger:
    """Tests for TranscriptLogger."""

    def test_init_no_files(self) -> None:
        """Test initialization without file output."""
        logger = TranscriptLogger()

        assert logger.json_path is None
        assert logger.markdown_path is None
        assert logger.get_entries() == []
        assert logger.turn == 0

    def test_init_creates_markdown(self) -> None:
        """Test the Markdown file is opened up front."""
        with tempfile.TemporaryDirectory() as tmpdir:
            md_path = Path(tmpdir) / "sub" / "test.md"

            logger = TranscriptLogger(markdown_path=md_path, game_title="zork1.z5")

            assert md_path.exists()
            logger.finalize()

    def test_log_command_starts_turn(self) -> None:
        """Test each command begins a new turn."""
        logger = TranscriptLogger()

        logger.log_command("look")
        logger.log_command("north")

        entries = logger.get_entries()
        assert [e.turn for e in entries] == [1, 2]
        assert entries[1].content == "north"
        assert logger.turn == 2

    def test_log_response(self) -> None:
        """Test responses are recorded with their structured fields."""
        logger = TranscriptLogger()
        logger.log_command("look")

        logger.log_response(ROOM)

        entry = logger.get_entries()[-1]
        assert entry.entry_type == "response"
        assert entry.turn == 1
        assert entry.content == ROOM.raw_output
        assert entry.metadata["details"] == {"location": "West of House"}
        assert entry.metadata["operation"] == "action"
        assert entry.metadata["prompt"] == "command"

    def test_log_error(self) -> None:
        """Test logging an error."""
        logger = TranscriptLogger()

        logger.log_error("InterpreterTimeout", "No output from interpreter within 5.00s")

        entries = logger.get_entries()
        assert entries[0].entry_type == "error"
        assert entries[0].metadata["error_type"] == "InterpreterTimeout"

    def test_finalize_json(self) -> None:
        """Test the JSON record holds every entry."""
        with tempfile.TemporaryDirectory() as tmpdir:
            json_path = Path(tmpdir) / "test.json"
            logger = TranscriptLogger(json_path=json_path, game_title="zork1.z5")

            logger.log_response(ROOM)
            logger.log_command("look")
            logger.log_response(ROOM)
            logger.finalize()

            data = json.loads(json_path.read_text())

        assert data["game_title"] == "zork1.z5"
        assert data["total_turns"] == 1
        assert [e["entry_type"] for e in data["entries"]] == ["response", "command", "response"]

    def test_finalize_markdown(self) -> None:
        """Test the Markdown transcript is readable."""
        with tempfile.TemporaryDirectory() as tmpdir:
            md_path = Path(tmpdir) / "test.md"
            logger = TranscriptLogger(markdown_path=md_path, game_title="zork1.z5")

            logger.log_command("look")
            logger.log_response(ROOM)
            logger.log_response(
                Response(
                    raw_output="",
                    message="[autosave] Game saved successfully",
                    operation=Operation.SAVE,
                )
            )
            logger.finalize()

            content = md_path.read_text()

        assert content.startswith("# zork1.z5")
        assert "### Turn 1" in content
        assert "`look`" in content
        assert "*Location: West of House*" in content
        assert "save ok: [autosave] Game saved successfully" in content
        assert "Completed:" in content

    def test_context_manager(self) -> None:
        """Test leaving the with block finalizes."""
        with tempfile.TemporaryDirectory() as tmpdir:
            json_path = Path(tmpdir) / "test.json"

            with TranscriptLogger(json_path=json_path) as logger:
                logger.log_command("look")

            assert json_path.exists()

    def test_get_entries_returns_copy(self) -> None:
        """Test that get_entries returns a copy."""
        logger = TranscriptLogger()
        logger.log_command("look")

        logger.get_entries().clear()

        assert len(logger.get_entries()) == 1


class TestCreateTranscriptPaths:
    """Tests for create_transcript_paths."""

    def test_creates_paths(self) -> None:
        """Test creating transcript paths."""
        json_path, md_path = create_transcript_paths(
            Path("/transcripts"), "Zork I", session_id="test123"
        )

        assert json_path == Path("/transcripts/Zork_I_test123.json")
        assert md_path == Path("/transcripts/Zork_I_test123.md")

    def test_sanitizes_game_name(self) -> None:
        """Test that game names are sanitized."""
        json_path, _ = create_transcript_paths(Path("/transcripts"), "Game: Special!", "x")

        assert ":" not in json_path.name
        assert "!" not in json_path.name

    def test_auto_generates_session_id(self) -> None:
        """Test auto-generation of session ID."""
        json_path, _ = create_transcript_paths(Path("/transcripts"), "zork1")

        assert len(json_path.stem) > len("zork1_")
