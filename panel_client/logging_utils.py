from __future__ import annotations

import logging
import os
import tempfile
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from panel_client.debug_config import DEBUG_CONFIG_ENABLED

CLIENT_LOGGER_NAME = "ScorePanel.Client"
PROPAGATE_ENV_VAR = "SCORE_PANEL_PROPAGATE_LOGS"
LOG_DIR_ENV_VAR = "SCORE_PANEL_LOG_DIR"


class _ReleaseLogLevelFilter(logging.Filter):
    """Promote debug logs to INFO in release builds so diagnostics stay visible."""

    def __init__(self, release_mode: bool) -> None:
        super().__init__()
        self._release_mode = release_mode

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover - logging shim
        if self._release_mode and record.levelno == logging.DEBUG:
            record.levelno = logging.INFO
            record.levelname = "INFO"
        return True


def resolve_log_level(debug_enabled: bool) -> int:
    """Return a log level consistent with dev/release behaviour."""
    return logging.DEBUG if debug_enabled else logging.INFO


def get_client_logger(component: Optional[str] = None) -> logging.Logger:
    """Return the client logger (or a component child) with the release filter attached."""
    name = CLIENT_LOGGER_NAME if not component else f"{CLIENT_LOGGER_NAME}.{component}"
    logger = logging.getLogger(name)
    if not any(isinstance(item, _ReleaseLogLevelFilter) for item in logger.filters):
        logger.setLevel(resolve_log_level(DEBUG_CONFIG_ENABLED))
        logger.addFilter(_ReleaseLogLevelFilter(release_mode=not DEBUG_CONFIG_ENABLED))
    if component is None:
        # Opt-in propagation flag for environments that want client logs upstream.
        logger.propagate = os.environ.get(PROPAGATE_ENV_VAR, "").lower() in {"1", "true", "yes", "on"}
    return logger


def resolve_logs_dir(base_path: Path, log_dir_name: str = "ScorePanel") -> Path:
    """
    Resolve the directory to store client logs.

    Strategy:
    - Use SCORE_PANEL_LOG_DIR if set.
    - Fall back to XDG state/cache locations, then `cwd/logs/<log_dir_name>`.
    - Final fallback: tempdir/<log_dir_name>.
    The install directory (``base_path``) is intentionally avoided.
    """
    candidates = []

    env_override = os.environ.get(LOG_DIR_ENV_VAR)
    if env_override:
        candidates.append(Path(env_override).expanduser())

    state_home = Path(os.environ.get("XDG_STATE_HOME", Path.home() / ".local" / "state"))
    cache_home = Path(os.environ.get("XDG_CACHE_HOME", Path.home() / ".cache"))
    candidates.append(state_home / "score-panel" / "logs")
    candidates.append(cache_home / "score-panel" / "logs")
    candidates.append(Path.cwd() / "logs")

    for base in candidates:
        try:
            target = base / log_dir_name
            target.mkdir(parents=True, exist_ok=True)
            return target
        except OSError:
            continue

    temp_fallback = Path(tempfile.gettempdir()) / "score-panel" / log_dir_name
    temp_fallback.mkdir(parents=True, exist_ok=True)
    return temp_fallback


def build_rotating_file_handler(
    log_dir: Path,
    filename: str,
    *,
    retention: int = 5,
    max_bytes: int = 512 * 1024,
    formatter: Optional[logging.Formatter] = None,
) -> logging.Handler:
    """Construct a rotating file handler with sane defaults."""
    retention = max(1, retention)
    backup_count = max(0, retention - 1)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / filename
    handler = RotatingFileHandler(
        log_path,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    if formatter is not None:
        handler.setFormatter(formatter)
    return handler
