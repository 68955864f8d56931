"""Tests for the command line interface."""

import json
from pathlib import Path

import pytest
from click.testing import Result
from typer.testing import CliRunner

from textplayer import __version__
from textplayer.__main__ import app, with_default_command

runner = CliRunner()


def play(game: Path, dfrotz: Path, *extra: str, stdin: str = "") -> Result:
    return runner.invoke(
        app,
        ["play", str(game), "--dfrotz", str(dfrotz), "--no-transcript", *extra],
        input=stdin,
    )


class TestDefaultCommand:
    """Tests for the bare gamefile shorthand."""

    def test_gamefile_becomes_play(self) -> None:
        """Test a bare game argument is played."""
        assert with_default_command(["zork1.z5", "-f", "json"]) == [
            "play",
            "zork1.z5",
            "-f",
            "json",
        ]

    @pytest.mark.parametrize("argv", [["play", "zork1.z5"], ["version"], ["--help"], []])
    def test_commands_untouched(self, argv: list[str]) -> None:
        """Test known commands and options pass through."""
        assert with_default_command(argv) == argv


class TestInfoCommands:
    """Tests for the informational commands."""

    def test_version(self) -> None:
        """Test the version is printed."""
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_formatters(self) -> None:
        """Test every formatter is listed."""
        result = runner.invoke(app, ["formatters"])

        assert result.exit_code == 0
        for name in ("raw", "text", "shell", "json", "data"):
            assert name in result.output


class TestPlayErrors:
    """Tests for play command failures."""

    def test_unknown_formatter(self, game_path: Path, fake_dfrotz: Path) -> None:
        """Test an unknown formatter is a usage error."""
        result = play(game_path, fake_dfrotz, "--formatter", "xml")

        assert result.exit_code == 2

    def test_unrecognized_extension(self, tmp_path: Path, fake_dfrotz: Path) -> None:
        """Test a non Z-machine file is a usage error."""
        game = tmp_path / "game.ulx"
        game.write_bytes(b"Glul")

        result = play(game, fake_dfrotz)

        assert result.exit_code == 2

    def test_missing_game(self, tmp_path: Path, fake_dfrotz: Path) -> None:
        """Test a missing game exits with an error."""
        result = play(tmp_path / "missing.z5", fake_dfrotz)

        assert result.exit_code == 1
        assert "Game file not found" in result.output

    def test_missing_interpreter(self, game_path: Path, tmp_path: Path) -> None:
        """Test a missing interpreter exits with an error."""
        result = play(game_path, tmp_path / "no-dfrotz")

        assert result.exit_code == 1
        assert "Interpreter not found" in result.output


class TestPlay:
    """Tests for playing through the scripted interpreter."""

    def test_play_and_quit(self, game_path: Path, fake_dfrotz: Path) -> None:
        """Test a short game from start to quit."""
        result = play(game_path, fake_dfrotz, stdin="north\nquit\n")

        assert result.exit_code == 0
        assert "West of House" in result.output
        assert "North of House" in result.output
        assert "QUIT: Game ended" in result.output

    def test_end_of_input_stops(self, game_path: Path, fake_dfrotz: Path) -> None:
        """Test the game ends cleanly when input runs out."""
        result = play(game_path, fake_dfrotz, stdin="look\n")

        assert result.exit_code == 0
        assert result.output.count("West of House") == 2

    def test_json_formatter(self, game_path: Path, fake_dfrotz: Path) -> None:
        """Test the JSON formatter prints one record per response."""
        result = play(game_path, fake_dfrotz, "--formatter", "json", stdin="score\n")

        records = [json.loads(line) for line in result.output.splitlines() if line.startswith("{")]
        assert [r["operation"] for r in records] == ["start", "score"]
        assert records[1]["details"]["score"] == 0

    def test_interpreter_crash(self, game_path: Path, fake_dfrotz: Path) -> None:
        """Test an interpreter crash shows the partial output and fails."""
        result = play(game_path, fake_dfrotz, stdin="die\n")

        assert result.exit_code == 1
        assert "The ground gives way" in result.output

    def test_transcript_written(self, game_path: Path, fake_dfrotz: Path, tmp_path: Path) -> None:
        """Test transcripts are saved when enabled."""
        transcripts = tmp_path / "transcripts"

        result = runner.invoke(
            app,
            [
                "play",
                str(game_path),
                "--dfrotz",
                str(fake_dfrotz),
                "--transcript-dir",
                str(transcripts),
            ],
            input="north\n",
        )

        assert result.exit_code == 0
        md_files = list(transcripts.glob("zork1_*.md"))
        json_files = list(transcripts.glob("zork1_*.json"))
        assert len(md_files) == 1 and len(json_files) == 1
        assert "**Command:** `north`" in md_files[0].read_text()
        data = json.loads(json_files[0].read_text())
        assert data["total_turns"] == 1
