"""Configuration helpers for the score panel client."""
from __future__ import annotations

import json
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from panel_client.connection_manager import DEFAULT_SERVER_URL

CONFIG_FILE = "panel_client.json"
CONFIG_DIR_ENV_VAR = "SCORE_PANEL_CONFIG_DIR"


def default_player_program() -> str:
    if sys.platform.startswith("win"):
        return "ffplay.exe"
    return "/usr/bin/ffplay"


def resolve_config_dir(override: Optional[str] = None) -> Path:
    """Pick the directory holding panel_client.json, panel_settings.json and debug.json."""
    if override:
        return Path(override).expanduser()
    env_override = os.getenv(CONFIG_DIR_ENV_VAR)
    if env_override:
        return Path(env_override).expanduser()
    config_home = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return config_home / "score-panel"


@dataclass
class InitialClientSettings:
    """Values used to bootstrap the client before the controller connects."""

    server_url: str = DEFAULT_SERVER_URL
    spot_dir: str = str(Path("~/spots"))
    slide_dir: str = str(Path("~/slides"))
    player_program: str = field(default_factory=default_player_program)
    transition_mode: str = "fade"
    screen_index: int = 1
    client_log_retention: int = 5
    max_crash_restarts: int = 3


def load_initial_settings(settings_path: Path) -> InitialClientSettings:
    """Read bootstrap defaults from panel_client.json if it exists."""
    defaults = InitialClientSettings()
    try:
        raw = settings_path.read_text(encoding="utf-8")
    except (FileNotFoundError, OSError):
        return defaults

    try:
        data: Dict[str, Any] = json.loads(raw)
    except json.JSONDecodeError:
        return defaults
    if not isinstance(data, dict):
        return defaults

    def _str(key: str, fallback: str) -> str:
        value = data.get(key)
        if value is None:
            return fallback
        text = str(value).strip()
        return text or fallback

    def _int(key: str, fallback: int, minimum: int) -> int:
        try:
            return max(minimum, int(data.get(key, fallback)))
        except (TypeError, ValueError):
            return fallback

    return InitialClientSettings(
        server_url=_str("server_url", defaults.server_url),
        spot_dir=_str("spot_dir", defaults.spot_dir),
        slide_dir=_str("slide_dir", defaults.slide_dir),
        player_program=_str("player_program", defaults.player_program),
        transition_mode=_str("transition_mode", defaults.transition_mode).lower(),
        screen_index=_int("screen_index", defaults.screen_index, 0),
        client_log_retention=_int("client_log_retention", defaults.client_log_retention, 1),
        max_crash_restarts=_int("max_crash_restarts", defaults.max_crash_restarts, 1),
    )
