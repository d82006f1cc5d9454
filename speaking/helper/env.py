from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

_TRUTHY = ("1", "true", "yes", "on")
_FALSY = ("0", "false", "no", "off")


def load_repo_dotenv() -> None:
    """
    Load .env from the project root if present. No-op if missing.
    Values already in the environment win.
    """
    repo_root = Path(__file__).resolve().parents[2]  # speaking/helper -> speaking -> repo
    env_path = repo_root / ".env"
    if env_path.exists():
        load_dotenv(env_path, override=False)


def env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    return default


def env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default
