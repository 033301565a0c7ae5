"""
YAML → typed config loader.

Loads user settings from settings.yaml (bundled with the package) and
merges user overrides from ~/.ironlog/settings.yaml.

Usage:
    from ironlog.core.engine.config_loader import load_settings
    settings = load_settings()
    plates = settings.available_plates

If the bundled YAML cannot be parsed, the defaults from config.py are
used (no crash).  If the user override file has parse errors or illegal
values, a warning is issued and the file is ignored.
"""

from __future__ import annotations

import os
import warnings
from pathlib import Path
from typing import Any

import yaml

from ..models import Settings

# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML mapping; warn and return {} when it is unreadable."""
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError) as exc:
        warnings.warn(f"ironlog: ignoring {path} ({exc})", stacklevel=2)
        return {}
    if data is None:
        return {}
    if not isinstance(data, dict):
        warnings.warn(f"ironlog: ignoring {path} (top level is not a mapping)", stacklevel=2)
        return {}
    return data


def deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge *override* into *base* (non-destructive to base)."""
    result = dict(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(result.get(k), dict):
            result[k] = deep_merge(result[k], v)
        else:
            result[k] = v
    return result


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def get_package_dir() -> Path:
    """Root of the installed ironlog package (holds the bundled YAML)."""
    # config_loader.py lives at src/ironlog/core/engine/config_loader.py
    return Path(__file__).parent.parent.parent


def get_user_dir() -> Path:
    """
    User data directory: $IRONLOG_HOME if set, else ~/.ironlog.

    The directory is not created here.
    """
    override = os.environ.get("IRONLOG_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".ironlog"


def settings_from_dict(d: dict[str, Any]) -> Settings:
    """
    Convert a raw settings mapping to Settings.

    Unknown keys are ignored; missing keys take the defaults.

    Raises:
        ValueError: If a value is illegal
    """
    defaults = Settings()
    try:
        return Settings(
            units=str(d.get("units", defaults.units)),
            bar_weight=float(d.get("bar_weight", defaults.bar_weight)),
            available_plates=[float(p) for p in d.get("available_plates", defaults.available_plates)],
            default_rest_seconds=int(d.get("default_rest_seconds", defaults.default_rest_seconds)),
            timer_sound=bool(d.get("timer_sound", defaults.timer_sound)),
            timer_vibrate=bool(d.get("timer_vibrate", defaults.timer_vibrate)),
        )
    except TypeError as e:
        raise ValueError(f"Malformed settings: {e}") from e


def load_settings(user_dir: Path | None = None) -> Settings:
    """
    Load and merge settings from YAML sources.

    Load order (later overrides earlier):
    1. Bundled src/ironlog/settings.yaml
    2. User override at <user_dir>/settings.yaml

    Returns:
        Settings; built-in defaults when nothing usable is found
    """
    config: dict[str, Any] = {}

    bundled = get_package_dir() / "settings.yaml"
    if bundled.exists():
        config = load_yaml_file(bundled)

    base = settings_from_dict(config)

    user_path = (user_dir if user_dir is not None else get_user_dir()) / "settings.yaml"
    if not user_path.exists():
        return base

    user_cfg = load_yaml_file(user_path)
    if not user_cfg:
        return base
    try:
        return settings_from_dict(deep_merge(config, user_cfg))
    except ValueError as exc:
        warnings.warn(f"ironlog: ignoring {user_path} ({exc})", stacklevel=2)
        return base

