"""Debug configuration loader for message tracing."""

from __future__ import annotations

import json
from copy import deepcopy
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from panel_client.version import __version__ as PANEL_CLIENT_VERSION, is_dev_build

DEBUG_CONFIG_ENABLED = is_dev_build(PANEL_CLIENT_VERSION)
CLIENT_LOG_RETENTION_MIN = 1
CLIENT_LOG_RETENTION_MAX = 20


@dataclass(frozen=True)
class DebugConfig:
    trace_enabled: bool = False
    trace_tokens: tuple[str, ...] = ()
    panel_logs_to_keep: Optional[int] = None

    def traces(self, token: str) -> bool:
        if not self.trace_enabled:
            return False
        return not self.trace_tokens or token in self.trace_tokens


def _coerce_log_retention(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        numeric = int(value)
    except (TypeError, ValueError):
        return None
    if numeric <= 0:
        return CLIENT_LOG_RETENTION_MIN
    if numeric > CLIENT_LOG_RETENTION_MAX:
        return CLIENT_LOG_RETENTION_MAX
    return numeric


def load_debug_config(path: Path, *, enabled: Optional[bool] = None) -> DebugConfig:
    """Load dev-mode-only flags from debug.json, writing defaults when missing."""

    if enabled is None:
        enabled = DEBUG_CONFIG_ENABLED
    if not enabled:
        return DebugConfig()
    defaults = {
        "trace_enabled": False,
        "trace_tokens": [],
        "panel_logs_to_keep": None,
    }
    needs_write = False
    try:
        raw_text = path.read_text(encoding="utf-8")
    except (FileNotFoundError, OSError):
        raw_data: Any = deepcopy(defaults)
        needs_write = True
    else:
        try:
            raw_data = json.loads(raw_text)
        except json.JSONDecodeError:
            raw_data = deepcopy(defaults)
            needs_write = True
    if not isinstance(raw_data, dict):
        raw_data = deepcopy(defaults)
        needs_write = True

    data: dict[str, Any] = deepcopy(raw_data)
    for key, default_value in defaults.items():
        if key not in data:
            data[key] = default_value
            needs_write = True

    tokens_value = data.get("trace_tokens")
    trace_tokens: tuple[str, ...] = ()
    if isinstance(tokens_value, (list, tuple, set)):
        cleaned = [str(item).strip() for item in tokens_value if isinstance(item, (str, int))]
        trace_tokens = tuple(filter(None, cleaned))
    elif tokens_value is not None:
        single = str(tokens_value).strip()
        if single:
            trace_tokens = (single,)

    normalized = DebugConfig(
        trace_enabled=bool(data.get("trace_enabled", False)),
        trace_tokens=trace_tokens,
        panel_logs_to_keep=_coerce_log_retention(data.get("panel_logs_to_keep")),
    )

    if needs_write:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(data, indent=2, sort_keys=True) + "\n", encoding="utf-8")
        except OSError:
            pass

    return normalized
