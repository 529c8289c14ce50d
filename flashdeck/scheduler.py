# flashdeck/scheduler.py

"""
Defines the BaseScheduler abstract class and the Leitner box scheduler.

Each card sits in a box; a rating moves it between boxes and the box's
interval decides when it is due next.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

from pydantic import BaseModel, Field, field_validator

from .constants import DEFAULT_INTERVALS, ONE_DAY_MS
from .models import Card, Rating, now_ms

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SchedulerOutput:
    box: int
    next_review: int


def compute_review(
    current_box: int,
    rating: Union[Rating, str],
    now: Optional[int] = None,
    intervals: Sequence[int] = DEFAULT_INTERVALS,
) -> SchedulerOutput:
    """
    Computes the new box and next due time for a single rating.

    Args:
        current_box: The card's box before the review. Out-of-range values
            are clamped into the interval table.
        rating: again, good or easy.
        now: Review time in epoch ms; defaults to the current time.
        intervals: Ascending interval table in days.

    Returns:
        SchedulerOutput with the new box and the next review timestamp.

    Raises:
        InvalidRatingError: If the rating is not again/good/easy.
    """
    rating = Rating.parse(rating)
    max_box = len(intervals) - 1
    box = min(max(current_box, 0), max_box)

    if rating is Rating.Again:
        new_box = 0
    elif rating is Rating.Good:
        new_box = min(box + 1, max_box)
    else:
        new_box = min(box + 2, max_box)

    ts = now_ms() if now is None else now
    return SchedulerOutput(
        box=new_box, next_review=ts + intervals[new_box] * ONE_DAY_MS
    )


class BaseScheduler(ABC):
    """
    Abstract base class for all schedulers in flashdeck.
    """

    @property
    @abstractmethod
    def max_box_index(self) -> int:
        pass

    @abstractmethod
    def compute_next_state(
        self,
        card: Card,
        rating: Union[Rating, str],
        review_ts: Optional[int] = None,
    ) -> SchedulerOutput:
        """
        Computes the next scheduling state of a card for a new rating.

        Args:
            card: The card being reviewed; only its box is read.
            rating: The rating given for this review.
            review_ts: Review time in epoch ms; defaults to now.

        Returns:
            A SchedulerOutput object containing the new state.

        Raises:
            InvalidRatingError: If the rating is invalid.
        """
        pass


class LeitnerSchedulerConfig(BaseModel):
    """Configuration for the Leitner scheduler."""

    intervals: Tuple[int, ...] = Field(
        default_factory=lambda: tuple(DEFAULT_INTERVALS)
    )

    @field_validator("intervals")
    @classmethod
    def check_ascending(cls, intervals: Tuple[int, ...]) -> Tuple[int, ...]:
        if not intervals:
            raise ValueError("Interval table must not be empty.")
        if any(days <= 0 for days in intervals):
            raise ValueError("Intervals must be positive day counts.")
        if any(a >= b for a, b in zip(intervals, intervals[1:])):
            raise ValueError("Intervals must be strictly ascending.")
        return intervals


class LeitnerScheduler(BaseScheduler):
    """
    Leitner box scheduler: again resets to box 0, good moves up one box,
    easy moves up two, never past the last box.
    """

    def __init__(self, config: Optional[LeitnerSchedulerConfig] = None):
        if config is None:
            config = LeitnerSchedulerConfig()
        self.config = config

    @property
    def max_box_index(self) -> int:
        return len(self.config.intervals) - 1

    def compute_next_state(
        self,
        card: Card,
        rating: Union[Rating, str],
        review_ts: Optional[int] = None,
    ) -> SchedulerOutput:
        output = compute_review(
            card.box, rating, now=review_ts, intervals=self.config.intervals
        )
        logger.debug(
            f"Card {card.id}: box {card.box} -> {output.box}"
        )
        return output
