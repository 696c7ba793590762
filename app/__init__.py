"""HTTP service exposing the game ledger."""
from __future__ import annotations

from app.config import Settings, env_flag, env_int, load_settings

__all__ = ["Settings", "env_flag", "env_int", "load_settings"]
