"""Decide which records fit on screen and where each one goes."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from procwatch.entry import Record


@dataclass(frozen=True)
class Region:
    """A horizontal band of the screen assigned to one record."""

    top: int
    height: int
    left: int = 0
    width: int = 0


def visible_count(heights: Iterable[int], budget: int) -> int:
    """Length of the longest prefix of *heights* whose sum fits in *budget*."""
    n = 0
    total = 0
    for h in heights:
        total += h
        if total > budget:
            break
        n += 1
    return n


def plan(
    records: Sequence[Record], height: int, width: int = 0
) -> list[tuple[Region, Record]]:
    """Stack records from the top of a ``height``-row area.

    Records are taken in order until the next one would overflow; that
    record and everything after it are left off this frame. Nothing is
    drawn partially.
    """
    heights = [r.height for r in records]
    n = visible_count(heights, height)

    placed: list[tuple[Region, Record]] = []
    top = 0
    for h, record in zip(heights[:n], records[:n]):
        placed.append((Region(top=top, height=h, width=width), record))
        top += h
    return placed
