"""Canonical ordering and step-by-step validation of candidate rankings."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .errors import CommandRejected, RejectReason
from .items import Challenge, Direction, Item


class RankingError(CommandRejected):
    """Raised for invalid ranking submissions or reveal requests."""


def canonical_order(items: Sequence[Item], challenge: Challenge) -> List[Item]:
    """Sort by the challenge metric; ties keep their input order."""
    reverse = challenge.direction is Direction.DESCENDING
    # sorted() is stable for reverse=True as well, so ties stay in input order.
    return sorted(items, key=lambda item: item.metric(challenge.metric), reverse=reverse)


def validate_sequence_step(prev: Item, curr: Item, challenge: Challenge) -> bool:
    before = prev.metric(challenge.metric)
    after = curr.metric(challenge.metric)
    if challenge.direction is Direction.ASCENDING:
        return after >= before
    return after <= before


def validate_full(candidate: Sequence[Item], challenge: Challenge) -> Optional[int]:
    """Return the first index diverging from the canonical order, or None.

    Items with equal metric values are interchangeable, so the comparison is
    on metric values rather than identities.
    """
    expected = canonical_order(candidate, challenge)
    for index, (given, wanted) in enumerate(zip(candidate, expected)):
        if given.metric(challenge.metric) != wanted.metric(challenge.metric):
            return index
    return None


def first_sequence_break(candidate: Sequence[Item], challenge: Challenge) -> Optional[int]:
    for index in range(1, len(candidate)):
        if not validate_sequence_step(candidate[index - 1], candidate[index], challenge):
            return index
    return None


@dataclass(frozen=True)
class RevealStep:
    index: int
    item_id: str
    in_sequence: bool
    contributes: bool


@dataclass
class RevealProgress:
    """Progressive disclosure of a candidate order."""

    candidate: List[Item]
    challenge: Challenge
    steps: List[RevealStep] = field(default_factory=list)
    break_index: Optional[int] = None

    @property
    def revealed_count(self) -> int:
        return len(self.steps)

    def is_complete(self) -> bool:
        return len(self.steps) >= len(self.candidate)

    def succeeded(self) -> bool:
        return self.is_complete() and self.break_index is None

    def reveal_next(self) -> RevealStep:
        if self.is_complete():
            raise RankingError(RejectReason.NOTHING_TO_REVEAL, "Every item has already been revealed.")
        index = len(self.steps)
        item = self.candidate[index]
        in_sequence = index == 0 or validate_sequence_step(self.candidate[index - 1], item, self.challenge)
        if not in_sequence and self.break_index is None:
            self.break_index = index
        step = RevealStep(
            index=index,
            item_id=item.item_id,
            in_sequence=in_sequence,
            contributes=self.break_index is None,
        )
        self.steps.append(step)
        return step
