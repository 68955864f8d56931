"""Presentation of responses for humans and programs."""

import json
import re
from abc import ABC, abstractmethod
from typing import Any

from rich.console import Console
from rich.text import Text

from textplayer.errors import TextPlayerError
from textplayer.interpreter.protocol import Operation, Prompt, Response

# Status fragments removed from the data formatter's cleaned output
_STATUS_FRAGMENTS = re.compile(
    r"\b(?:Score|Moves|Turns):\s*-?\d+|\b\d{1,2}:\d{2}\s*(?:AM|PM)", re.IGNORECASE
)
_EXCESS_BLANK_LINES = re.compile(r"\n{3,}")
_TRAILING_SPACE = re.compile(r"[ \t]+$", re.MULTILINE)

SHELL_PROMPT = "> "


class UnknownFormatter(TextPlayerError, ValueError):
    """No formatter is registered under the requested name."""


class Formatter(ABC):
    """Renders a Response. Formatters hold no state between calls."""

    name: str = ""
    description: str = ""

    @abstractmethod
    def format(self, response: Response) -> str:
        """Render the response as a string."""

    def write_to(self, response: Response, console: Console) -> None:
        """Print the response without rich markup or highlighting."""
        console.print(self.format(response), end="", markup=False, highlight=False, soft_wrap=True)


class RawFormatter(Formatter):
    name = "raw"
    description = "Interpreter output exactly as parsed"

    def format(self, response: Response) -> str:
        return response.raw_output


class TextFormatter(Formatter):
    name = "text"
    description = "Plain text, message preferred over game output"

    def format(self, response: Response) -> str:
        content = response.message or response.raw_output
        return f"{content.rstrip()}\n\n"


class ShellFormatter(Formatter):
    """Interactive presentation.

    Game turns print the text followed by a "> " prompt, green when the
    game accepted the command and red when it refused. Save, restore, quit
    and errors print a one-line verdict with their details underneath.
    """

    name = "shell"
    description = "Interactive output with prompts and colours"

    def format(self, response: Response) -> str:
        if self._is_game_output(response):
            content = response.message or response.raw_output
            if response.prompt is Prompt.COMMAND:
                return f"{content.rstrip()}\n\n{SHELL_PROMPT}"
            return content
        return self._feedback_line(response) + self._detail_lines(response)

    def write_to(self, response: Response, console: Console) -> None:
        text = Text()
        if self._is_game_output(response):
            content = response.message or response.raw_output
            if response.prompt is Prompt.COMMAND:
                text.append(f"{content.rstrip()}\n\n")
                text.append(SHELL_PROMPT, style="green" if response.success else "red")
            else:
                text.append(content)
        else:
            mark, style = ("✓", "bold green") if response.success else ("✗", "bold red")
            text.append(mark, style=style)
            text.append(self._feedback_line(response)[1:])
            text.append(self._detail_lines(response), style="dim")
            text.append("\n")
        console.print(text, end="", highlight=False, soft_wrap=True)

    @staticmethod
    def _is_game_output(response: Response) -> bool:
        return response.operation in (Operation.ACTION, Operation.START, Operation.SCORE)

    @staticmethod
    def _feedback_line(response: Response) -> str:
        mark = "✓" if response.success else "✗"
        return f"{mark} {response.operation.value.upper()}: {response.message or ''}"

    @staticmethod
    def _detail_lines(response: Response) -> str:
        return "".join(f"\n  {key}: {value}" for key, value in response.details)


class JsonFormatter(Formatter):
    name = "json"
    description = "One JSON record per response"

    def format(self, response: Response) -> str:
        return json.dumps(response.to_dict(), ensure_ascii=False) + "\n"


class DataFormatter(Formatter):
    """Extracted game data as pretty-printed JSON.

    ``output`` is the game text with status fragments (score, moves, clock)
    removed and whitespace tidied.
    """

    name = "data"
    description = "Extracted location, score, moves and cleaned text as JSON"

    def format(self, response: Response) -> str:
        return json.dumps(self.extract(response), indent=2, ensure_ascii=False) + "\n"

    def extract(self, response: Response) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for key in ("location", "score", "moves", "time"):
            value = response.detail(key)
            if value is not None:
                data[key] = value
        data["prompt"] = ">"
        data["output"] = self.clean(response.raw_output)
        data["has_prompt"] = response.prompt is Prompt.COMMAND
        return data

    @staticmethod
    def clean(text: str) -> str:
        text = _STATUS_FRAGMENTS.sub("", text)
        text = _TRAILING_SPACE.sub("", text)
        return _EXCESS_BLANK_LINES.sub("\n\n", text).strip()


FORMATTERS: dict[str, type[Formatter]] = {
    cls.name: cls
    for cls in (RawFormatter, TextFormatter, ShellFormatter, JsonFormatter, DataFormatter)
}


def get_formatter(name: str) -> Formatter:
    """Look up a formatter by name, ignoring case.

    Raises:
        UnknownFormatter: If no formatter has that name.
    """
    try:
        return FORMATTERS[name.strip().lower()]()
    except KeyError:
        known = ", ".join(sorted(FORMATTERS))
        raise UnknownFormatter(f"Unknown formatter '{name}' (choose from: {known})") from None
