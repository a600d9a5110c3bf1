"""Helpers for loading environment configuration."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional, Tuple, Union

_ENV_LOADED = False

_LOGGER = logging.getLogger(__name__)


def load_dotenv(dotenv_path: Union[str, Path] = ".env") -> None:
    """Merge ``KEY=VALUE`` lines from a ``.env`` file into ``os.environ``.

    Variables already present in the process environment are left alone, so
    deployment settings always win over the file.
    """
    global _ENV_LOADED
    if _ENV_LOADED:
        return

    path = Path(dotenv_path)
    if path.exists():
        loaded = 0
        for line in path.read_text(encoding="utf-8").splitlines():
            parsed = _parse_line(line)
            if parsed:
                key, value = parsed
                os.environ.setdefault(key, value)
                loaded += 1
        _LOGGER.debug("Loaded %d settings from %s", loaded, path)

    _ENV_LOADED = True


def _parse_line(line: str) -> Optional[Tuple[str, str]]:
    stripped = line.strip()
    if not stripped or stripped.startswith("#"):
        return None

    if stripped.startswith("export "):
        stripped = stripped[len("export "):].lstrip()

    if "=" not in stripped:
        return None

    key, value = stripped.split("=", 1)
    key = key.strip()
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        value = value[1:-1]
    if not key:
        return None
    return (key, value)


def truthy(value: Optional[str]) -> bool:
    """Return True for the usual affirmative spellings (1/true/yes/on)."""
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}
