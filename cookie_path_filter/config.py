"""
Configuration models for the cookie path replacement filter.

Rules are declared as an ordered list; order matters because every matching
rule rewrites the path seen by the rules after it.
"""

import json
import logging
from pathlib import Path
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from cookie_path_filter.vars import (
    COOKIE_PATH_REPLACEMENTS,
    COOKIE_PATH_REPLACEMENTS_FILE,
)

logger = logging.getLogger("uvicorn.error")


class ConfigError(ValueError):
    """Raised when the replacement configuration cannot be read or validated."""

    def __init__(self, message: str, source: str = ""):
        self.message = message
        self.source = source
        super().__init__(f"{source}: {message}" if source else message)


class ReplacementConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    # Regex for the cookie name, empty matches every cookie
    name_regex: str = ""
    # Regex for the original path
    original: str
    # New path, may reference named groups of `original` as {{group_name}}
    replacement: str


class Config(BaseModel):
    model_config = ConfigDict(extra="forbid")

    replacements: List[ReplacementConfig] = Field(default_factory=list)


def create_config() -> Config:
    """Create the default (empty) configuration."""
    return Config()


def parse_config(data: Any, source: str = "") -> Config:
    """
    Build a Config from decoded JSON.

    Accepts either ``{"replacements": [...]}`` or the bare list of rules.
    """
    if isinstance(data, list):
        data = {"replacements": data}
    try:
        return Config.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"invalid replacement configuration: {e}", source) from e


def load_config(
    raw: Optional[str] = None, path: Optional[str] = None
) -> Config:
    """
    Load the configuration from an inline JSON string or a JSON file.

    Falls back to ``COOKIE_PATH_REPLACEMENTS`` / ``COOKIE_PATH_REPLACEMENTS_FILE``
    when neither argument is given. Returns an empty config if nothing is set.
    """
    if raw is None and path is None:
        raw = COOKIE_PATH_REPLACEMENTS
        path = COOKIE_PATH_REPLACEMENTS_FILE

    if raw:
        source = "COOKIE_PATH_REPLACEMENTS"
    elif path:
        source = path
        try:
            raw = Path(path).read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"cannot read file: {e}", source) from e
    else:
        logger.debug("[CookiePath] No replacements configured")
        return create_config()

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid JSON: {e}", source) from e

    config = parse_config(data, source)
    logger.info(
        f"[CookiePath] Loaded {len(config.replacements)} replacement(s) from {source}"
    )
    return config
