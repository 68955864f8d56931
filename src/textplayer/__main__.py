"""Entry point for textplayer CLI."""

import logging
import sys
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from textplayer import __version__
from textplayer.config import load_config
from textplayer.errors import TextPlayerError
from textplayer.formatters import FORMATTERS, UnknownFormatter, get_formatter
from textplayer.gamefile import ZMACHINE_EXTENSIONS, Gamefile, GamefileError
from textplayer.interpreter.base import ProcessExitedError
from textplayer.interpreter.protocol import Operation, Response
from textplayer.logging.transcript import TranscriptLogger, create_transcript_paths
from textplayer.session import Session

app = typer.Typer(
    name="textplayer",
    help="Play Z-machine interactive fiction through dfrotz",
)
console = Console()

COMMANDS = frozenset({"play", "formatters", "version"})


def setup_logging(level: str) -> None:
    """Route library diagnostics to stderr through rich."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def with_default_command(argv: list[str]) -> list[str]:
    """Treat ``textplayer <gamefile> ...`` as ``textplayer play <gamefile> ...``."""
    if argv and not argv[0].startswith("-") and argv[0] not in COMMANDS:
        return ["play", *argv]
    return argv


def resolve_gamefile(name: str, game_dir: Path) -> Gamefile:
    """Find the game and check dfrotz can run it.

    Raises:
        GamefileError: If the game cannot be found.
        typer.BadParameter: If the extension is not a Z-machine format.
    """
    game = Gamefile.from_input(name, game_dir)
    if not game.is_recognized:
        raise typer.BadParameter(
            f"Unknown game format for extension '{game.extension}'. "
            f"Supported Z-Machine: {sorted(ZMACHINE_EXTENSIONS)}",
            param_hint="GAMEFILE",
        )
    return game


@app.command()
def play(
    gamefile: Annotated[
        str,
        typer.Argument(help="Game file path, or a name to look up in the games directory"),
    ],
    formatter: Annotated[
        str | None,
        typer.Option("--formatter", "-f", help="Output formatter (see 'formatters')"),
    ] = None,
    dfrotz_path: Annotated[
        str | None,
        typer.Option("--dfrotz", help="Path to dfrotz executable"),
    ] = None,
    config: Annotated[
        str | None,
        typer.Option("--config", "-c", help="Path to config YAML file"),
    ] = None,
    transcript_dir: Annotated[
        Path | None,
        typer.Option("--transcript-dir", "-t", help="Directory for transcripts"),
    ] = None,
    no_transcript: Annotated[
        bool,
        typer.Option("--no-transcript", help="Disable transcript logging"),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging"),
    ] = False,
) -> None:
    """Play a game interactively."""
    app_config = load_config(Path(config) if config else None)
    setup_logging("DEBUG" if verbose else app_config.logging.level)

    try:
        output = get_formatter(formatter or app_config.formatter)
    except UnknownFormatter as e:
        raise typer.BadParameter(str(e), param_hint="'--formatter'") from None

    try:
        game = resolve_gamefile(gamefile, app_config.game_dir)
    except GamefileError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    transcript_logger: TranscriptLogger | None = None
    if not no_transcript:
        t_dir = transcript_dir or app_config.logging.transcript_dir
        t_dir.mkdir(parents=True, exist_ok=True)

        json_path, md_path = create_transcript_paths(t_dir, game.stem)
        transcript_logger = TranscriptLogger(
            json_path=json_path if app_config.logging.enable_json else None,
            markdown_path=md_path if app_config.logging.enable_markdown else None,
            game_title=game.name,
        )

    def show(response: Response) -> None:
        output.write_to(response, console)
        if transcript_logger:
            transcript_logger.log_response(response)

    def next_command(response: Response) -> str | None:
        show(response)
        while True:
            try:
                line = console.input()
            except (EOFError, KeyboardInterrupt):
                console.print()
                return None
            command = line.strip()
            if command:
                if transcript_logger:
                    transcript_logger.log_command(command)
                return command

    try:
        with Session(game, dfrotz_path=dfrotz_path, config=app_config) as session:
            final = session.run(next_command)
            if final is not None and final.operation is Operation.QUIT:
                show(final)
    except ProcessExitedError as e:
        # Games may end the interpreter themselves, e.g. after winning.
        if e.response is not None:
            show(e.response)
        console.print(f"[dim]{e}[/dim]")
        if e.returncode not in (0, None):
            if transcript_logger:
                transcript_logger.log_error(type(e).__name__, str(e))
            raise typer.Exit(1) from None
    except TextPlayerError as e:
        if transcript_logger:
            transcript_logger.log_error(type(e).__name__, str(e))
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None
    finally:
        if transcript_logger:
            transcript_logger.finalize()


@app.command()
def formatters() -> None:
    """Show available output formatters."""
    console.print("[bold]Output Formatters[/bold]")
    console.print()
    for name, cls in sorted(FORMATTERS.items()):
        console.print(f"  [cyan]{name:<8}[/cyan] {cls.description}")


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"[bold]textplayer[/bold] {__version__}")


def main() -> None:
    """Main entry point."""
    app(args=with_default_command(sys.argv[1:]))


if __name__ == "__main__":
    main()
