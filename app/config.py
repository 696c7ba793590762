"""Runtime configuration helpers for environment-driven settings."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


def env_flag(name: str, *, default: bool = False) -> bool:
    """Return a boolean flag from environment variables.

    The helper treats common truthy values (``1``, ``true``, ``yes``, ``on``)
    as ``True`` and common falsy ones (``0``, ``false``, ``no``, ``off``) as
    ``False``.  If the variable is unset or contains an unrecognised value, the
    provided ``default`` is used.
    """
    value = os.getenv(name)
    if value is None:
        return default

    normalised = value.strip().lower()
    if normalised in {"1", "true", "yes", "on"}:
        return True
    if normalised in {"0", "false", "no", "off"}:
        return False
    return default


def env_int(name: str, *, default: int, minimum: int = 0) -> int:
    """Return a non-negative integer setting, falling back to ``default``."""
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        number = int(value.strip())
    except ValueError:
        return default
    return number if number >= minimum else default


@dataclass(frozen=True)
class Settings:
    commit_window: int
    turn_window: int
    setup_seed: Optional[bytes]
    persist: bool
    dev_mining: bool


def load_settings() -> Settings:
    seed = os.getenv("ZK_SETUP_SEED")
    return Settings(
        commit_window=env_int("COMMIT_WINDOW_BLOCKS", default=120, minimum=1),
        turn_window=env_int("TURN_WINDOW_BLOCKS", default=20, minimum=1),
        setup_seed=seed.encode() if seed else None,
        persist=env_flag("LEDGER_PERSIST", default=False),
        dev_mining=env_flag("LEDGER_DEV_MINING", default=False),
    )


__all__ = [
    "Settings",
    "env_flag",
    "env_int",
    "load_settings",
]
