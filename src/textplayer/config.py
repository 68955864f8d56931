"""Configuration management for textplayer."""

import re
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class InterpreterConfig(BaseModel):
    """How the interpreter is located, started and read."""

    dfrotz_path: str | None = None
    env_var: str = "DFROTZ_PATH"
    executable_name: str = "dfrotz"
    # -m: no MORE prompts, -p: plain ASCII output, -w: screen width
    args: list[str] = Field(default_factory=lambda: ["-m", "-p", "-w", "80"])
    read_timeout: float = Field(default=5.0, gt=0)
    quiet_window: float = Field(default=0.3, gt=0)
    terminate_grace: float = Field(default=2.0, ge=0)
    max_pages: int = Field(default=10, ge=0)


class SaveConfig(BaseModel):
    """Save slot storage settings."""

    directory: Path = Field(default_factory=lambda: Path("./saves"))
    default_slot: str = "autosave"
    extension: str = ".qzl"


class StatusPatternConfig(BaseModel):
    """Extra detail pattern; the first capture group becomes the value."""

    key: str
    pattern: str
    type: Literal["int", "str", "float"] = "int"

    @field_validator("pattern")
    @classmethod
    def _needs_capture_group(cls, value: str) -> str:
        try:
            compiled = re.compile(value)
        except re.error as e:
            raise ValueError(f"Invalid regular expression {value!r}: {e}") from e
        if compiled.groups < 1:
            raise ValueError(f"Pattern {value!r} needs a capture group for the value")
        return value


class ParserConfig(BaseModel):
    """Additions to the built-in response patterns."""

    status_patterns: list[StatusPatternConfig] = Field(default_factory=list)
    failure_patterns: list[str] = Field(default_factory=list)

    @field_validator("failure_patterns")
    @classmethod
    def _valid_regexes(cls, value: list[str]) -> list[str]:
        for pattern in value:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"Invalid regular expression {pattern!r}: {e}") from e
        return value


class LoggingConfig(BaseModel):
    """Logging and transcript settings."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"
    transcript_dir: Path = Field(default_factory=lambda: Path("./transcripts"))
    enable_json: bool = True
    enable_markdown: bool = True


class Config(BaseSettings):
    """Main application configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TEXTPLAYER_",
        env_nested_delimiter="__",
    )

    game_dir: Path = Field(default_factory=lambda: Path("./games"))
    formatter: str = "shell"
    interpreter: InterpreterConfig = Field(default_factory=InterpreterConfig)
    saves: SaveConfig = Field(default_factory=SaveConfig)
    parser: ParserConfig = Field(default_factory=ParserConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from file and environment.

    Args:
        config_path: Optional path to YAML config file.

    Returns:
        Loaded configuration.
    """
    config_data: dict[str, Any] = {}

    if config_path and config_path.exists():
        import yaml

        with open(config_path) as f:
            loaded = yaml.safe_load(f)
            if loaded:
                config_data = loaded

    return Config(**config_data)
