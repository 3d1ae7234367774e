"""
Environment-driven settings.

Scripts load a `.env` from the working directory before reading these; library code only
reads `os.environ`, so nothing here requires a config file to exist.
"""
from __future__ import annotations

import os
from pathlib import Path

_ROOT = Path(__file__).resolve().parent


def truthy_env(name: str) -> bool:
    return str(os.getenv(name, "")).strip().lower() in {"1", "true", "yes", "y", "on"}


def debug_log_path() -> str:
    """
    Path of the JSON-lines debug log. Empty disables logging.
    """
    return str(os.getenv("PANEL_DEBUG_LOG", "")).strip()


def company_name() -> str:
    return str(os.getenv("PANEL_COMPANY_NAME", "")).strip() or "Home Automation Studio"


def canonical_name_order() -> bool:
    # Stored names use input order; canonical order is opt-in.
    return truthy_env("PANEL_NAME_CANONICAL_ORDER")


def panel_presets_path() -> Path:
    raw = str(os.getenv("PANEL_PRESETS_PATH", "")).strip()
    return Path(raw) if raw else _ROOT / "data" / "panel_presets.json"
