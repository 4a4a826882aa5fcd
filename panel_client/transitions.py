"""Frame plans for the slideshow transitions.

A plan is an ordered list of layers (back to front). Each layer names which
buffered slide it draws, the source/destination rectangles and the opacity.
Plans are pure data so they can be recomputed on every tick and every resize.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

DEFAULT_GRANULARITY = 30


class TransitionMode(Enum):
    ABRUPT = "abrupt"
    FROM_LEFT = "from_left"
    FADE = "fade"

    @classmethod
    def parse(cls, value: object, fallback: Optional["TransitionMode"] = None) -> "TransitionMode":
        token = str(value or "").strip().lower().replace("-", "_")
        for mode in cls:
            if mode.value == token:
                return mode
        return fallback if fallback is not None else cls.FADE


class SlideRole(Enum):
    PRESENT = "present"
    NEXT = "next"


class Composition(Enum):
    SOURCE = "source"
    SOURCE_OVER = "source_over"


@dataclass(frozen=True)
class Rect:
    x: int
    y: int
    width: int
    height: int

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0


@dataclass(frozen=True)
class Layer:
    role: SlideRole
    source: Rect
    destination: Rect
    opacity: float = 1.0
    composition: Composition = Composition.SOURCE_OVER


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def transition_fraction(step: int, granularity: int) -> float:
    if granularity <= 0:
        return 1.0
    return min(1.0, max(0.0, step / granularity))


def wipe_regions(step: int, granularity: int, width: int, height: int) -> Tuple[Rect, Rect, Rect, Rect]:
    """Return ``(source_present, dest_present, source_next, dest_next)`` for the from-left wipe."""
    fraction = transition_fraction(step, granularity)
    present_width = round_half_up(width * (1.0 - fraction))
    next_width = round_half_up(width * fraction)
    source_present = Rect(0, 0, present_width, height)
    dest_present = Rect(round_half_up(width * fraction), 0, present_width, height)
    source_next = Rect(present_width, 0, next_width, height)
    dest_next = Rect(0, 0, next_width, height)
    return source_present, dest_present, source_next, dest_next


def fade_opacities(step: int, granularity: int) -> Tuple[float, float]:
    """Return ``(next_opacity, present_opacity)`` for a linear dissolve."""
    fraction = transition_fraction(step, granularity)
    return fraction, 1.0 - fraction


def plan_frame(mode: TransitionMode, step: int, granularity: int, width: int, height: int) -> Tuple[Layer, ...]:
    full = Rect(0, 0, width, height)
    if mode is TransitionMode.FADE:
        next_opacity, present_opacity = fade_opacities(step, granularity)
        return (
            Layer(SlideRole.NEXT, full, full, next_opacity, Composition.SOURCE),
            Layer(SlideRole.PRESENT, full, full, present_opacity, Composition.SOURCE_OVER),
        )
    if mode is TransitionMode.FROM_LEFT:
        source_present, dest_present, source_next, dest_next = wipe_regions(step, granularity, width, height)
        return (
            Layer(SlideRole.NEXT, source_next, dest_next, 1.0, Composition.SOURCE),
            Layer(SlideRole.PRESENT, source_present, dest_present, 1.0, Composition.SOURCE_OVER),
        )
    return (Layer(SlideRole.PRESENT, full, full, 1.0, Composition.SOURCE),)
