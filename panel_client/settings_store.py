"""Persisted panel settings (score-only, orientation, language)."""
from __future__ import annotations

import json
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional

from panel_client.logging_utils import get_client_logger

_LOGGER = get_client_logger("Settings")

SETTINGS_FILE = "panel_settings.json"
DEFAULT_LANGUAGE = "Italiano"
SUPPORTED_LANGUAGES = ("Italiano", "English")

KEY_SCORE_ONLY = "panel/scoreOnly"
KEY_ORIENTATION = "panel/orientation"
KEY_LANGUAGE = "language/current"

ORIENTATION_NORMAL = 0
ORIENTATION_REFLECTED = 1


def normalize_language(value: Any) -> str:
    token = str(value or "").strip()
    return "English" if token == "English" else DEFAULT_LANGUAGE


def _read_flag(value: Any) -> Optional[int]:
    """Flags are stored as JSON booleans; older files hold 0/1 integers."""
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class PanelSettings:
    score_only: bool = False
    mirrored: bool = False
    language: str = DEFAULT_LANGUAGE

    @property
    def orientation(self) -> int:
        return ORIENTATION_REFLECTED if self.mirrored else ORIENTATION_NORMAL

    def with_score_only(self, value: bool) -> "PanelSettings":
        return replace(self, score_only=bool(value))

    def with_orientation(self, orientation: int) -> "PanelSettings":
        return replace(self, mirrored=orientation == ORIENTATION_REFLECTED)

    def with_language(self, language: Any) -> "PanelSettings":
        return replace(self, language=normalize_language(language))

    def to_payload(self) -> Dict[str, Any]:
        return {
            KEY_SCORE_ONLY: bool(self.score_only),
            KEY_ORIENTATION: bool(self.mirrored),
            KEY_LANGUAGE: self.language,
        }

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "PanelSettings":
        score_only = _read_flag(data.get(KEY_SCORE_ONLY)) not in (None, 0)
        mirrored = _read_flag(data.get(KEY_ORIENTATION)) == ORIENTATION_REFLECTED
        return cls(
            score_only=score_only,
            mirrored=mirrored,
            language=normalize_language(data.get(KEY_LANGUAGE, DEFAULT_LANGUAGE)),
        )


class SettingsStore:
    """JSON file holding one ``PanelSettings`` value."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> PanelSettings:
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return PanelSettings()
        except (OSError, json.JSONDecodeError) as exc:
            _LOGGER.warning("Unable to read settings from %s: %s", self._path, exc)
            return PanelSettings()
        if not isinstance(data, dict):
            return PanelSettings()
        return PanelSettings.from_payload(data)

    def save(self, settings: PanelSettings) -> bool:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(settings.to_payload(), indent=2) + "\n", encoding="utf-8")
        except OSError as exc:
            _LOGGER.warning("Unable to save settings to %s: %s", self._path, exc)
            return False
        _LOGGER.debug("Settings saved: %s", settings)
        return True
