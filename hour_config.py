"""User settings for Power Hour, kept as JSON in the home directory."""
from __future__ import annotations
import json
import logging
import os
from typing import Any

logger = logging.getLogger(__name__)

CONFIG_FILE = os.path.join(os.path.expanduser("~"), "power_hour_config.json")

DEFAULT_CONFIG = {
    "sound_enabled": True,            # Play the cue sound every minute
    "custom_sound_path": "",          # Path to a custom mp3/wav (blank = bundled sound.mp3)
    "notifications_enabled": True,    # Desktop notification with drinks remaining
    "show_tray": True,                # Tray icon with badge count
    "always_on_top": False,           # Keep the timer window above other windows
    "colorful_background": True,      # New pastel background on every cue
    "window_position": None,          # Saved [x, y] (None = centred)
}


def load_config(path: str = CONFIG_FILE) -> dict[str, Any]:
    """Load config from file, falling back to defaults for missing/invalid values."""
    cfg = json.loads(json.dumps(DEFAULT_CONFIG))
    if os.path.exists(path):
        try:
            with open(path, encoding="utf-8") as f:
                user_cfg = json.load(f)
            if isinstance(user_cfg, dict):
                cfg.update(user_cfg)
        except (json.JSONDecodeError, IOError, OSError) as e:
            logger.warning("Config load error: %s. Using defaults.", e)

    for key in ("sound_enabled", "notifications_enabled", "show_tray",
                "always_on_top", "colorful_background"):
        if not isinstance(cfg.get(key), bool):
            cfg[key] = DEFAULT_CONFIG[key]
    if not isinstance(cfg.get("custom_sound_path"), str):
        cfg["custom_sound_path"] = ""
    pos = cfg.get("window_position")
    if pos is not None and not (isinstance(pos, list) and len(pos) == 2
                                and all(isinstance(v, int) for v in pos)):
        cfg["window_position"] = None
    return cfg


def save_config(cfg: dict[str, Any], path: str = CONFIG_FILE) -> None:
    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(cfg, f, indent=2)
    except (IOError, OSError) as e:
        logger.error("Config save error: %s", e)


def remember_window_position(cfg: dict[str, Any], x: int, y: int,
                             path: str = CONFIG_FILE) -> bool:
    """Store [x, y] and save; returns False when the position is unchanged."""
    pos = [int(x), int(y)]
    if cfg.get("window_position") == pos:
        return False
    cfg["window_position"] = pos
    save_config(cfg, path)
    return True


# ─── Console Banner ───────────────────────────────────────────
BANNER_WIDTH = 47


def banner_lines(cfg: dict[str, Any], saved_start=None) -> list[str]:
    """Startup summary box; every row is padded to the same width."""
    rule = "  +" + "-" * BANNER_WIDTH + "+"

    def row(text: str) -> str:
        return f"  |  {text:<{BANNER_WIDTH - 2}s}|"

    lines = [rule, row("Power Hour -- 60 drinks, 60 min"), rule]
    if saved_start is not None:
        lines.append(row(f"Resuming run from {saved_start:%H:%M:%S}"))
    else:
        lines.append(row("No run in progress"))
    lines.append(row(f"Sound: {'on' if cfg.get('sound_enabled') else 'off'}"
                     f"   Notifications: {'on' if cfg.get('notifications_enabled') else 'off'}"))
    lines.append(rule)
    return lines
