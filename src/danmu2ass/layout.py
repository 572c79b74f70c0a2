from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Iterable, Union

from danmu2ass.comments import CommentRecord
from danmu2ass.config import LayoutConfig

logger = logging.getLogger(__name__)

# Collisions needing at least this much delay are dropped instead of shifted.
SHIFT_TOLERANCE_S = 1.0
# Added on top of the computed delay so the shifted comment is not exactly on the boundary.
SHIFT_MARGIN_S = 0.01


def weighted_char_count(text: str) -> int:
    # Narrow (ASCII) glyphs count 2, everything else 3.
    return sum(2 if ord(ch) < 128 else 3 for ch in text)


def estimate_width(comment: CommentRecord, config: LayoutConfig) -> float:
    """
    Rough on-screen width of a comment in pixels.

    Not glyph metrics: only the relative ordering between comments is meaningful.
    """
    return (config.font_size * weighted_char_count(comment.text) / 3) * config.width_scale


@dataclass(frozen=True)
class Clear:
    """The candidate fits behind the lane's last comment."""

    margin_px: float


@dataclass(frozen=True)
class PendingClear:
    """The candidate fits only because the lane's last comment leaves the screen first."""

    margin_px: float


@dataclass(frozen=True)
class Collides:
    """The candidate would overtake the lane's last comment unless delayed."""

    min_delay_s: float


CollisionOutcome = Union[Clear, PendingClear, Collides]


@dataclass
class Lane:
    index: int
    last_start: float
    last_length: float


def check_collision(
    lane: Lane, *, start: float, length: float, config: LayoutConfig
) -> CollisionOutcome:
    """
    Classify a candidate (start time, width) against the lane's last comment.

    Both comments move right-to-left at constant speed, covering `screen_width + length`
    pixels in `travel_duration` seconds, so longer comments are faster.
    """
    t = config.travel_duration
    w = config.screen_width
    gap = config.horizontal_gap

    t1 = lane.last_start
    l1 = lane.last_length
    l2 = length

    v1 = (w + l1) / t
    v2 = (w + l2) / t

    delta_t = start - t1
    # Distance between the occupant's tail and the right edge when the candidate enters.
    delta_x = v1 * delta_t - l1

    if delta_x < gap:
        if l2 <= l1:
            return Collides(min_delay_s=(gap - delta_x) / v1)
        return Collides(min_delay_s=(t - (w - gap) / v2) - delta_t)

    if l2 <= l1:
        return Clear(margin_px=delta_x - gap)

    # Candidate is faster: where is its head when the occupant leaves the screen?
    pos = v2 * (t - delta_t)
    if pos < w - gap:
        return PendingClear(margin_px=(w - gap) - pos)
    return Collides(min_delay_s=(pos - (w - gap)) / v2)


@dataclass(frozen=True)
class Placement:
    comment: CommentRecord
    lane: int
    start: float
    length: float
    y: int
    outcome: CollisionOutcome | None = None
    shifted_by: float = 0.0


def prepare_timeline(
    comments: Iterable[CommentRecord], config: LayoutConfig
) -> list[CommentRecord]:
    """
    Normalize kinds to scrolling, apply the global time offset and sort by start time.

    Comments that end up before zero are dropped. The sort is stable, so equal start
    times keep their decode order.
    """
    out: list[CommentRecord] = []
    for c in comments:
        moved = replace(c, kind="scroll", time_offset=c.time_offset + config.time_offset)
        if moved.time_offset < 0:
            continue
        out.append(moved)
    out.sort(key=lambda c: c.time_offset)
    return out


class LaneAllocator:
    """
    Single forward pass lane assignment over time-sorted comments.

    Owns `lane_count` slots for one conversion; a slot is `None` until something is placed
    into it. Earlier placements are never revisited.
    """

    def __init__(self, config: LayoutConfig) -> None:
        self._config = config
        self._lanes: list[Lane | None] = [None] * config.lane_count

    @property
    def lanes(self) -> list[Lane | None]:
        return list(self._lanes)

    def _occupy(
        self,
        index: int,
        comment: CommentRecord,
        *,
        outcome: CollisionOutcome | None,
        shifted_by: float = 0.0,
    ) -> Placement:
        length = estimate_width(comment, self._config)
        self._lanes[index] = Lane(
            index=index, last_start=comment.time_offset, last_length=length
        )
        return Placement(
            comment=comment,
            lane=index,
            start=comment.time_offset,
            length=length,
            y=index * self._config.lane_height,
            outcome=outcome,
            shifted_by=shifted_by,
        )

    def place(self, comment: CommentRecord) -> Placement | None:
        length = estimate_width(comment, self._config)
        collisions: list[tuple[int, float]] = []

        for i, lane in enumerate(self._lanes):
            if lane is None:
                return self._occupy(i, comment, outcome=None)
            outcome = check_collision(
                lane, start=comment.time_offset, length=length, config=self._config
            )
            if isinstance(outcome, (Clear, PendingClear)):
                return self._occupy(i, comment, outcome=outcome)
            collisions.append((i, outcome.min_delay_s))

        if not collisions:
            return None

        # min() keeps the lowest lane index among equal delays.
        best_lane, best_delay = min(collisions, key=lambda x: x[1])
        if best_delay >= SHIFT_TOLERANCE_S:
            return None

        shift = best_delay + SHIFT_MARGIN_S
        shifted = replace(comment, time_offset=comment.time_offset + shift)
        return self._occupy(
            best_lane,
            shifted,
            outcome=Collides(min_delay_s=best_delay),
            shifted_by=shift,
        )


def allocate_lanes(
    comments: Iterable[CommentRecord], config: LayoutConfig
) -> tuple[list[Placement], int]:
    """
    Place already-sorted comments into lanes.

    Returns the placements in placement order and the number of dropped comments.
    """
    allocator = LaneAllocator(config)
    placements: list[Placement] = []
    dropped = 0
    for comment in comments:
        p = allocator.place(comment)
        if p is None:
            dropped += 1
            continue
        placements.append(p)
    logger.debug(
        "Layout: %d placed, %d dropped over %d lanes",
        len(placements),
        dropped,
        config.lane_count,
    )
    return placements, dropped
