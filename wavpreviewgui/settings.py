"""Persistent GUI configuration (wavpreview.config.json).

On first launch the file is created in the OS-specific user preferences
directory with all built-in defaults.  Later launches load it, merge it
over the current defaults (so new keys always get a value) and validate it.

The file is organised by section::

    {
        "general":         { "auto_analyze": ..., "auto_play": ... },
        "transfer":        { "first_chunk_bytes": ..., ... },
        "analyze_default": { "window_size_index": ..., ... },
        "player_default":  { "enable_hpf": ..., ... },
        "gui":             { "window_geometry": ... },
    }

Locations:
    Windows : %APPDATA%\\wavpreview\\wavpreview.config.json
    macOS   : ~/Library/Application Support/wavpreview/wavpreview.config.json
    Linux   : $XDG_CONFIG_HOME/wavpreview/wavpreview.config.json
              (defaults to ~/.config/wavpreview/wavpreview.config.json)
"""

from __future__ import annotations

import copy
import json
import logging
import os
import platform
from typing import Any

from wavpreviewlib.config import (
    CONFIG_SECTIONS,
    build_structured_defaults,
    validate_structured_config,
)

log = logging.getLogger(__name__)

CONFIG_FILENAME = "wavpreview.config.json"

_GUI_DEFAULTS: dict[str, Any] = {
    "window_width": 1280,
    "window_height": 860,
}


def _config_dir() -> str:
    system = platform.system()
    if system == "Windows":
        base = os.environ.get("APPDATA") or os.path.expanduser("~")
        return os.path.join(base, "wavpreview")
    if system == "Darwin":
        return os.path.join(os.path.expanduser("~"), "Library",
                            "Application Support", "wavpreview")
    base = os.environ.get("XDG_CONFIG_HOME")
    if not base:
        base = os.path.join(os.path.expanduser("~"), ".config")
    return os.path.join(base, "wavpreview")


def config_path() -> str:
    return os.path.join(_config_dir(), CONFIG_FILENAME)


def _defaults() -> dict[str, Any]:
    defaults = build_structured_defaults()
    defaults["gui"] = copy.deepcopy(_GUI_DEFAULTS)
    return defaults


def _recreate(path: str, defaults: dict[str, Any]) -> dict[str, Any]:
    if os.path.isfile(path):
        _backup_corrupt(path)
    save_config(defaults)
    return copy.deepcopy(defaults)


def load_config() -> dict[str, Any]:
    """Load the GUI config, creating it with defaults if needed.

    A corrupt or invalid file is backed up as ``*.bak`` and recreated; the
    window geometry of an invalid file is kept.
    """
    path = config_path()
    defaults = _defaults()

    if not os.path.isfile(path):
        log.info("Creating default config at %s", path)
        return _recreate(path, defaults)

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as exc:
        log.warning("Unreadable config %s: %s", path, exc)
        return _recreate(path, defaults)
    if not isinstance(data, dict):
        log.warning("Config %s does not hold a JSON object", path)
        return _recreate(path, defaults)

    merged = _merge_structured(defaults, data)
    errors = validate_structured_config(merged)
    if errors:
        for e in errors:
            log.warning("Invalid config value %s: %s", e.key, e.message)
        defaults["gui"] = copy.deepcopy(merged["gui"])
        return _recreate(path, defaults)

    if merged != data:
        save_config(merged)
    return merged


def save_config(config: dict[str, Any]) -> str:
    path = config_path()
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(config, f, indent=4, ensure_ascii=False)
        f.write("\n")
    log.info("Config saved to %s", path)
    return path


def _merge_structured(
    defaults: dict[str, Any],
    overrides: dict[str, Any],
) -> dict[str, Any]:
    """Merge known keys of known sections from *overrides* into *defaults*."""
    merged = copy.deepcopy(defaults)
    for section in list(CONFIG_SECTIONS) + ["gui"]:
        values = overrides.get(section)
        if not isinstance(values, dict):
            continue
        target = merged[section]
        for k, v in values.items():
            if k in target:
                target[k] = v
    return merged


def _backup_corrupt(path: str) -> None:
    """Rename a corrupt config file to ``*.bak`` (best-effort)."""
    backup = path + ".bak"
    try:
        if os.path.isfile(backup):
            os.remove(backup)
        os.rename(path, backup)
        log.info("Backed up corrupt config to %s", backup)
    except OSError as exc:
        log.warning("Could not back up %s: %s", path, exc)
