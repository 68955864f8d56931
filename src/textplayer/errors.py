"""Root of the textplayer exception hierarchy."""


class TextPlayerError(Exception):
    """Base exception for everything textplayer raises on purpose."""
