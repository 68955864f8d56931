"""Turn raw interpreter output into structured responses.

The interpreter speaks free-form text, so parsing is a pipeline rather than a
grammar: clean the bytes, work out which prompt the stream stopped at, cut the
text at command prompts, then run a list of best-effort extractors over what is
left. An extractor that finds nothing simply contributes no detail.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

from textplayer.interpreter.protocol import (
    DetailPairs,
    Operation,
    ParseContext,
    Prompt,
    Response,
)

if TYPE_CHECKING:
    from textplayer.config import ParserConfig

ANSI_ESCAPE = re.compile(r"\x1b(?:\[[0-?]*[ -/]*[@-~]|\][^\x07\x1b]*(?:\x07|\x1b\\)|[@-Z\\-_])")
# C0 controls and DEL, minus tab and newline
CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")
MORE_MARKER = re.compile(r"[ \t]*(?:\*\*\*\s*MORE\s*\*\*\*|\[MORE\])[ \t]*", re.IGNORECASE)
PROMPT_LINE = re.compile(r"^>[ \t]*$", re.MULTILINE)


@dataclass(frozen=True)
class PromptPatterns:
    """Patterns for the prompts an interpreter can leave the stream at.

    Each pattern must only match at the very end of the output.
    """

    command: re.Pattern[str] = re.compile(r"(?:\A|\n)>[ \t]*\Z")
    keypress: re.Pattern[str] = re.compile(
        r"(?:\*\*\*\s*MORE\s*\*\*\*|\[MORE\]|\[?(?:press|hit) any key[^\n]*)[ \t]*\Z",
        re.IGNORECASE,
    )
    overwrite: re.Pattern[str] = re.compile(r"Overwrite existing file\?[ \t]*\Z", re.IGNORECASE)
    confirm: re.Pattern[str] = re.compile(r"Are you sure[^\n]*\?[ \t]*\Z", re.IGNORECASE)
    filename: re.Pattern[str] = re.compile(
        r"(?:Please enter a )?filename(?: \[[^\]\n]*\])?:[ \t]*\Z", re.IGNORECASE
    )

    def _ordered(self) -> list[tuple[Prompt, re.Pattern[str]]]:
        return [
            (Prompt.COMMAND, self.command),
            (Prompt.KEYPRESS, self.keypress),
            (Prompt.OVERWRITE, self.overwrite),
            (Prompt.CONFIRM, self.confirm),
            (Prompt.FILENAME, self.filename),
        ]

    def classify(self, text: str) -> Prompt:
        """Return the prompt ``text`` ends with."""
        for prompt, pattern in self._ordered():
            if pattern.search(text):
                return prompt
        return Prompt.NONE

    @property
    def terminator(self) -> re.Pattern[str]:
        """Single pattern matching the end of any recognized prompt."""
        alternatives = "|".join(f"(?:{pattern.pattern})" for _, pattern in self._ordered())
        return re.compile(alternatives, re.IGNORECASE)


class DetailExtractor(Protocol):
    """Pulls one named value out of response text."""

    key: str

    def extract(self, text: str) -> Any | None: ...


@dataclass(frozen=True)
class PatternExtractor:
    """Regex-backed extractor; the chosen group is passed through ``convert``."""

    key: str
    pattern: re.Pattern[str]
    convert: Callable[[str], Any] = int
    group: int = 1

    def extract(self, text: str) -> Any | None:
        match = self.pattern.search(text)
        if match is None:
            return None
        try:
            value = match.group(self.group)
            return None if value is None else self.convert(value)
        except (IndexError, ValueError):
            return None


# Stats that share a line with the room name in dfrotz status lines
_STATUS_STATS = re.compile(r"\b(?:Score|Moves|Turns):|\d{1,2}:\d{2}\s*(?:AM|PM)", re.IGNORECASE)
_COLUMN_GAP = re.compile(r"\s{3,}")
_PARAGRAPH_BREAK = re.compile(r"\n[ \t]*\n")
_BANNER_WORDS = re.compile(r"\b(?:release|revision|serial number|copyright|version)\b", re.I)
_NOT_ROOM_PREFIXES = (
    "I don't ",
    "I can't ",
    "What do you ",
    "You're ",
    "You ",
    "That's not ",
    "I beg your pardon",
)


@dataclass(frozen=True)
class LocationExtractor:
    """Finds the room name in a status line or a room banner.

    Room banners are short capitalized lines without sentence punctuation
    that open a paragraph. Only the opening line of the first few paragraphs
    is considered, so item lists under "You are carrying:" never count.
    """

    key: str = "location"
    max_paragraphs: int = 3

    def extract(self, text: str) -> str | None:
        for line in self._paragraph_openers(text)[: self.max_paragraphs]:
            candidate = line.strip()
            if _STATUS_STATS.search(candidate):
                candidate = _COLUMN_GAP.split(candidate, maxsplit=1)[0]
                if _STATUS_STATS.search(candidate):
                    continue
            if self._looks_like_room(candidate):
                return candidate
        return None

    @staticmethod
    def _paragraph_openers(text: str) -> list[str]:
        openers = []
        for paragraph in _PARAGRAPH_BREAK.split(text):
            lines = [line for line in paragraph.splitlines() if line.strip()]
            if lines:
                openers.append(lines[0])
        return openers

    def _looks_like_room(self, line: str) -> bool:
        if not 3 <= len(line) <= 50:
            return False
        if not line[0].isupper():
            return False
        if any(ch in line for ch in ".,!?:;\"()"):
            return False
        if _BANNER_WORDS.search(line):
            return False
        return not line.startswith(_NOT_ROOM_PREFIXES)


def _pattern(key: str, regex: str, convert: Callable[[str], Any] = int) -> PatternExtractor:
    return PatternExtractor(key=key, pattern=re.compile(regex, re.IGNORECASE), convert=convert)


DEFAULT_EXTRACTORS: tuple[DetailExtractor, ...] = (
    LocationExtractor(),
    _pattern("score", r"\bScore:\s*(-?\d+)"),
    _pattern("score", r"\byour score (?:is|was|would be|of) (-?\d+)"),
    _pattern("score", r"\byou have (?:scored )?(-?\d+) points?\b"),
    _pattern("out_of", r"(?:\(total of |(?:out )?of a (?:possible|maximum) )(\d+)"),
    _pattern("moves", r"\b(?:Moves|Turns):\s*(\d+)"),
    _pattern("moves", r"\bin (\d+) (?:moves?|turns?)\b"),
    _pattern("time", r"\b(\d{1,2}:\d{2}\s*(?:AM|PM))", str),
    _pattern(
        "game_over",
        r"\*\*\*\s*(You have died|You have won|You are dead|The End|Game Over)\s*\*\*\*",
        str,
    ),
)

DEFAULT_FAILURE_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"I don't understand",
        r"I don't know",
        r"You can't",
        r"You're not",
        r"I can't see",
        r"That doesn't make sense",
        r"That's not a verb I recogni[sz]e",
        r"What do you want to",
        r"You don't see",
        r"There is no",
        r"I don't see",
        r"I beg your pardon",
    )
)

CONVERTERS: dict[str, Callable[[str], Any]] = {"int": int, "str": str, "float": float}


class ResponseParser:
    """Stateless parser from interpreter bytes to Response values.

    Parsing the same bytes with the same context always yields an equal
    Response.
    """

    def __init__(
        self,
        extractors: Iterable[DetailExtractor] | None = None,
        failure_patterns: Iterable[re.Pattern[str]] | None = None,
        prompts: PromptPatterns | None = None,
        encoding: str = "utf-8",
    ) -> None:
        self.extractors: tuple[DetailExtractor, ...] = (
            tuple(extractors) if extractors is not None else DEFAULT_EXTRACTORS
        )
        self.failure_patterns: tuple[re.Pattern[str], ...] = (
            tuple(failure_patterns) if failure_patterns is not None else DEFAULT_FAILURE_PATTERNS
        )
        self.prompts = prompts or PromptPatterns()
        self.encoding = encoding
        self._terminator = self.prompts.terminator

    @classmethod
    def from_config(cls, config: ParserConfig) -> ResponseParser:
        """Build a parser with configured patterns ahead of the defaults."""
        extra = [
            PatternExtractor(
                key=entry.key,
                pattern=re.compile(entry.pattern, re.IGNORECASE | re.MULTILINE),
                convert=CONVERTERS[entry.type],
            )
            for entry in config.status_patterns
        ]
        failures = [re.compile(p, re.IGNORECASE) for p in config.failure_patterns]
        return cls(
            extractors=[*extra, *DEFAULT_EXTRACTORS],
            failure_patterns=[*failures, *DEFAULT_FAILURE_PATTERNS],
        )

    @property
    def terminator(self) -> re.Pattern[str]:
        """Pattern that ends a read: any recognized prompt."""
        return self._terminator

    def parse(self, raw: bytes, context: ParseContext | None = None) -> Response:
        """Parse the bytes read for one exchange.

        Args:
            raw: Bytes read from the interpreter.
            context: The command and operation that produced them.

        Returns:
            Response with cleaned text, extracted details and the prompt
            the interpreter is now waiting at.
        """
        context = context or ParseContext()
        text = self.normalize(raw)
        prompt = self.prompts.classify(text)
        text = MORE_MARKER.sub("", text)

        output = self._strip_echo("\n".join(self.segment(text)), context.command)
        details = self.extract_details(output)

        success = True
        if context.operation is Operation.ACTION:
            success = not self.is_refusal(output)

        return Response(
            raw_output=output,
            details=details,
            success=success,
            operation=context.operation,
            input=context.command,
            prompt=prompt,
        )

    def normalize(self, raw: bytes) -> str:
        """Decode bytes, unify line endings and drop control sequences."""
        text = raw.decode(self.encoding, errors="replace")
        text = text.replace("\r\n", "\n").replace("\r", "\n")
        text = ANSI_ESCAPE.sub("", text)
        return CONTROL_CHARS.sub("", text)

    def segment(self, text: str) -> list[str]:
        """Split text at command-prompt lines.

        Prompt lines are dropped; every non-blank segment is kept in order,
        including trailing text that no prompt closed.
        """
        segments = []
        for part in PROMPT_LINE.split(text):
            if not part.strip():
                continue
            segments.append(part.lstrip("\n").rstrip())
        return segments

    def extract_details(self, text: str) -> DetailPairs:
        """Run the extractors; the first value found for a key wins."""
        found: dict[str, Any] = {}
        for extractor in self.extractors:
            if extractor.key in found:
                continue
            value = extractor.extract(text)
            if value is not None:
                found[extractor.key] = value
        return tuple(found.items())

    def is_refusal(self, text: str) -> bool:
        """Check whether the game refused or failed to parse the command."""
        return any(pattern.search(text) for pattern in self.failure_patterns)

    @staticmethod
    def _strip_echo(text: str, command: str) -> str:
        """Drop a leading line that merely repeats the command sent."""
        if not command.strip():
            return text
        first, _, rest = text.partition("\n")
        if first.strip().lower() == command.strip().lower():
            return rest.lstrip("\n")
        return text
