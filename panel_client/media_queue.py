"""Cyclic media queues rebuilt from non-recursive directory scans."""
from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Iterable, Optional, Tuple, Union

from panel_client.logging_utils import get_client_logger

_LOGGER = get_client_logger("MediaQueue")

VIDEO_EXTENSIONS: frozenset[str] = frozenset({".mp4"})
IMAGE_EXTENSIONS: frozenset[str] = frozenset({".jpg", ".jpeg", ".png"})

PathLike = Union[str, Path]


def scan_media_directory(directory: Optional[PathLike], extensions: Iterable[str]) -> Tuple[Path, ...]:
    """List regular files in ``directory`` whose suffix matches ``extensions`` (case-insensitive)."""
    if not directory:
        return ()
    wanted = {ext.lower() for ext in extensions}
    root = Path(directory).expanduser()
    try:
        candidates = list(root.iterdir())
    except FileNotFoundError:
        return ()
    except OSError as exc:
        _LOGGER.warning("Unable to scan media directory %s: %s", root, exc)
        return ()
    entries = []
    for candidate in candidates:
        if candidate.suffix.lower() not in wanted:
            continue
        try:
            if not candidate.is_file():
                continue
        except OSError:
            continue
        entries.append(candidate.absolute())
    entries.sort(key=lambda path: (path.name.lower(), path.name))
    return tuple(entries)


@dataclass(frozen=True)
class MediaQueue:
    """Immutable snapshot of a cyclic play list and its cursor."""

    entries: Tuple[Path, ...] = ()
    cursor: int = 0

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def is_empty(self) -> bool:
        return not self.entries

    @property
    def current(self) -> Optional[Path]:
        if not self.entries:
            return None
        return self.entries[self.cursor % len(self.entries)]

    def advanced(self) -> "MediaQueue":
        if not self.entries:
            return self
        return replace(self, cursor=(self.cursor + 1) % len(self.entries))

    def rescanned(self, entries: Iterable[Path]) -> "MediaQueue":
        """Replace the entries, carrying the cursor modulo the new length."""
        snapshot = tuple(entries)
        cursor = self.cursor % len(snapshot) if snapshot else self.cursor
        return MediaQueue(entries=snapshot, cursor=cursor)

    def reset(self) -> "MediaQueue":
        return MediaQueue(entries=self.entries, cursor=0)


class MediaDirectory:
    """Scannable media source bound to a directory and an extension set."""

    def __init__(self, directory: Optional[PathLike], extensions: Iterable[str]) -> None:
        self._directory: Optional[Path] = Path(directory).expanduser() if directory else None
        self._extensions = frozenset(ext.lower() for ext in extensions)
        self._queue = MediaQueue()

    @property
    def directory(self) -> Optional[Path]:
        return self._directory

    @property
    def queue(self) -> MediaQueue:
        return self._queue

    def set_directory(self, directory: Optional[PathLike]) -> bool:
        """Point at a new directory; returns True when it changed (cursor reset)."""
        new_dir = Path(directory).expanduser() if directory else None
        if new_dir == self._directory:
            return False
        self._directory = new_dir
        self._queue = MediaQueue()
        _LOGGER.debug("Media directory set to %s", new_dir)
        return True

    def rescan(self) -> MediaQueue:
        self._queue = self._queue.rescanned(scan_media_directory(self._directory, self._extensions))
        return self._queue

    def advance(self) -> MediaQueue:
        self._queue = self._queue.advanced()
        return self._queue
