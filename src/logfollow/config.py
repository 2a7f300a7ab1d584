from __future__ import annotations
from dataclasses import dataclass
from typing import Optional
import codecs
import yaml

from .buffer import DEFAULT_BUFFER_SIZE
from .follower import DEFAULT_RENAME_GRACE

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class Config:
    version: int = 1
    from_start: bool = False
    buffer_size: int = DEFAULT_BUFFER_SIZE
    rename_grace: float = DEFAULT_RENAME_GRACE
    encoding: str = "utf-8"
    errors: str = "replace"
    log_level: str = "WARNING"


def load_config(path: Optional[str]) -> Config:
    if path is None:
        return Config()
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        raise FileNotFoundError(
            f"Configuration file not found: {path}\n"
            f"Please ensure the file exists or specify a different config with --config"
        )
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in configuration file {path}: {e}")

    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping at the top level")

    from_start = data.get("from_start", False)
    if not isinstance(from_start, bool):
        raise ValueError(f"'from_start' must be true or false, got {from_start!r}")

    try:
        buffer_size = int(data.get("buffer_size", DEFAULT_BUFFER_SIZE))
    except (TypeError, ValueError):
        raise ValueError(f"'buffer_size' must be an integer, got {data.get('buffer_size')!r}")
    if buffer_size <= 0:
        raise ValueError(f"'buffer_size' must be positive, got {buffer_size}")

    rename_grace = data.get("rename_grace", DEFAULT_RENAME_GRACE)
    if isinstance(rename_grace, bool) or not isinstance(rename_grace, (int, float)) or rename_grace < 0:
        raise ValueError(f"'rename_grace' must be a non-negative number of seconds, got {rename_grace!r}")

    encoding = str(data.get("encoding", "utf-8"))
    try:
        codecs.lookup(encoding)
    except LookupError:
        raise ValueError(f"Unknown encoding '{encoding}' in configuration file {path}")

    errors = str(data.get("errors", "replace"))
    try:
        codecs.lookup_error(errors)
    except LookupError:
        raise ValueError(f"Unknown decode error handler '{errors}' in configuration file {path}")

    log_level = str(data.get("log_level", "WARNING")).upper()
    if log_level not in LOG_LEVELS:
        raise ValueError(
            f"Invalid log_level '{log_level}'\n"
            f"Expected one of: {', '.join(LOG_LEVELS)}"
        )

    return Config(
        version=int(data.get("version", 1)),
        from_start=from_start,
        buffer_size=buffer_size,
        rename_grace=float(rename_grace),
        encoding=encoding,
        errors=errors,
        log_level=log_level,
    )
