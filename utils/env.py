"""Environment helpers.

``load_project_dotenv`` reads the `.env` next to ``pyproject.toml`` so that
settings such as ``API_BASE_URL`` or ``REDIS_HOST`` reach the ``from_env``
constructors in ``config.config``. The typed readers below treat an unset or
empty variable as "use the default".
"""

import os
from pathlib import Path

from dotenv import load_dotenv

__all__ = ["load_project_dotenv", "env_flag", "env_float", "env_int"]

_TRUTHY = ("1", "true", "yes", "on")


def _find_project_root(start: Path | None = None) -> Path:
    """Walk upwards until a directory containing `pyproject.toml` is found."""
    current = start or Path(__file__).resolve().parent
    for _ in range(10):
        if (current / "pyproject.toml").exists():
            return current
        if current.parent == current:
            break
        current = current.parent
    return Path(__file__).resolve().parent


def load_project_dotenv(start: Path | None = None) -> Path | None:
    """Load the project-level `.env` without overriding variables already set; returns the loaded path."""
    dotenv_path = _find_project_root(start) / ".env"
    if not dotenv_path.exists():
        return None
    load_dotenv(dotenv_path=dotenv_path, override=False)
    return dotenv_path


def env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in _TRUTHY


def env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw not in (None, "") else default


def env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw not in (None, "") else default
