"""Named save slots and their files."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from textplayer.errors import TextPlayerError

AUTO_SAVE_SLOT = "autosave"
SAVE_EXTENSION = ".qzl"

_SLOT_NAME = re.compile(r"^[A-Za-z0-9_-]+$")


class InvalidSlotName(TextPlayerError, ValueError):
    """Slot names are limited to letters, digits, '-' and '_'."""


@dataclass(frozen=True)
class SaveSlot:
    """A logical save location for one game.

    The file path is a pure function of the save directory, the game and
    the slot name, so two slot names never share a file.
    """

    slot: str
    game_name: str | None = None

    @classmethod
    def resolve(
        cls,
        slot: str | None,
        game_name: str | None = None,
        default: str = AUTO_SAVE_SLOT,
    ) -> SaveSlot:
        """Build a slot from an optional caller-supplied name.

        Raises:
            InvalidSlotName: If the name contains other characters.
        """
        name = (slot or "").strip() or default
        if not _SLOT_NAME.match(name):
            raise InvalidSlotName(f"Invalid save slot name: {name!r}")
        return cls(slot=name, game_name=game_name)

    @property
    def basename(self) -> str:
        if self.game_name:
            return f"{self.game_name}_{self.slot}"
        return self.slot

    def path(self, directory: Path, extension: str = SAVE_EXTENSION) -> Path:
        return directory / f"{self.basename}{extension}"

    def exists(self, directory: Path, extension: str = SAVE_EXTENSION) -> bool:
        return self.path(directory, extension).exists()

    def delete(self, directory: Path, extension: str = SAVE_EXTENSION) -> bool:
        """Remove the slot's file; returns False if there was none."""
        path = self.path(directory, extension)
        if not path.exists():
            return False
        path.unlink()
        return True
