from __future__ import annotations

from typing import Optional, Protocol, Tuple

from panel_client.score_fields import ScoreState


class Presentation(Protocol):
    """Window-side collaborator driven by the dispatcher."""

    def show_panel(self) -> None:
        ...

    def hide_panel(self) -> None:
        ...

    def show_slides(self) -> None:
        ...

    def hide_slides(self) -> None:
        ...

    def update_score(self, state: ScoreState) -> None:
        ...

    def apply_orientation(self, mirrored: bool) -> None:
        ...

    def apply_language(self, language: str) -> None:
        ...

    def show_countdown(self, seconds: int) -> None:
        ...

    def hide_countdown(self) -> None:
        ...

    def panel_geometry(self) -> Optional[Tuple[int, int, int, int]]:
        """Screen rectangle ``(x, y, width, height)`` the player should cover."""
        ...
