"""Shared fixtures."""

import stat
import sys
from pathlib import Path

import pytest

from textplayer.config import Config, InterpreterConfig, SaveConfig
from textplayer.gamefile import Gamefile

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture
def fake_dfrotz(tmp_path: Path) -> Path:
    """Executable wrapper that runs the scripted fake interpreter."""
    script = tmp_path / "fake-dfrotz"
    script.write_text(
        f'#!/bin/sh\nexec "{sys.executable}" -u "{FIXTURES / "fake_dfrotz.py"}" "$@"\n'
    )
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return script


@pytest.fixture
def game_path(tmp_path: Path) -> Path:
    path = tmp_path / "games" / "zork1.z5"
    path.parent.mkdir()
    path.write_bytes(b"\x05" + b"\x00" * 63)
    return path


@pytest.fixture
def gamefile(game_path: Path) -> Gamefile:
    return Gamefile.from_path(game_path)


@pytest.fixture
def config(tmp_path: Path, fake_dfrotz: Path) -> Config:
    """Config pointing at the fake interpreter with a private save directory."""
    return Config(
        game_dir=tmp_path / "games",
        interpreter=InterpreterConfig(
            dfrotz_path=str(fake_dfrotz),
            args=[],
            read_timeout=3.0,
            quiet_window=1.0,
            terminate_grace=2.0,
        ),
        saves=SaveConfig(directory=tmp_path / "saves"),
    )
