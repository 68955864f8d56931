"""Game image references."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from textplayer.errors import TextPlayerError

# Z-Machine file extensions dfrotz can run
ZMACHINE_EXTENSIONS = frozenset(
    {".z1", ".z2", ".z3", ".z4", ".z5", ".z6", ".z7", ".z8", ".zblorb", ".zlb", ".dat"}
)


class GamefileError(TextPlayerError):
    """Base exception for game file problems."""


class GameNotFound(GamefileError):
    """No readable game file matches the request."""


class AmbiguousGame(GamefileError):
    """A game name matches more than one file in the games directory."""

    def __init__(self, name: str, matches: list[str]) -> None:
        super().__init__(f"Multiple games found for '{name}': {', '.join(matches)}")
        self.name = name
        self.matches = matches


@dataclass(frozen=True)
class Gamefile:
    """A game image on disk.

    Attributes:
        path: The path as given.
        canonical_path: Absolute, symlink-resolved path.
        name: File name, used for display and save slot names.
    """

    path: Path
    canonical_path: Path
    name: str

    @classmethod
    def from_path(cls, path: str | Path) -> Gamefile:
        """Reference an existing, readable game file.

        Raises:
            GameNotFound: If the file is missing or unreadable.
        """
        path = Path(path)
        if not path.is_file():
            raise GameNotFound(f"Game file not found: {path}")
        if not os.access(path, os.R_OK):
            raise GameNotFound(f"Game file is not readable: {path}")
        return cls(path=path, canonical_path=path.resolve(), name=path.name)

    @classmethod
    def from_input(cls, text: str, game_dir: Path) -> Gamefile:
        """Resolve user input to a game file.

        Input containing a path separator, or naming an existing file, is
        used as a path. Anything else is treated as a game name and matched
        by prefix against the files in ``game_dir``.

        Raises:
            GameNotFound: If nothing matches.
            AmbiguousGame: If several files in ``game_dir`` match.
        """
        if "/" in text or "\\" in text or Path(text).is_file():
            return cls.from_path(text)

        matches = (
            sorted(p for p in game_dir.iterdir() if p.is_file() and p.name.startswith(text))
            if game_dir.is_dir()
            else []
        )
        if not matches:
            raise GameNotFound(f"Game not found: {text}")
        if len(matches) > 1:
            raise AmbiguousGame(text, [p.name for p in matches])
        return cls.from_path(matches[0])

    @property
    def stem(self) -> str:
        return self.path.stem

    @property
    def extension(self) -> str:
        return self.path.suffix.lower()

    @property
    def is_recognized(self) -> bool:
        """Whether the extension is a known Z-machine game format."""
        return self.extension in ZMACHINE_EXTENSIONS
