"""textplayer - play Z-machine games through dfrotz, from code or the shell."""

from textplayer.config import Config, load_config
from textplayer.errors import TextPlayerError
from textplayer.formatters import get_formatter
from textplayer.gamefile import Gamefile
from textplayer.interpreter.protocol import Operation, Prompt, Response
from textplayer.session import Session, SessionState

__version__ = "0.1.0"

__all__ = [
    "Config",
    "Gamefile",
    "Operation",
    "Prompt",
    "Response",
    "Session",
    "SessionState",
    "TextPlayerError",
    "__version__",
    "get_formatter",
    "load_config",
]
