"""Competitive auction deciding who ranks how many items."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import List, Optional, Sequence, Set, Tuple

from .errors import CommandRejected, RejectReason

logger = logging.getLogger(__name__)


class BiddingError(CommandRejected):
    """Raised when a bid or pass is not allowed."""


class AuctionPhase(Enum):
    ACTIVE = auto()
    COMPLETE = auto()


@dataclass
class Auction:
    """Open auction among all players of a round.

    Any player who has not passed may raise at any time. The auction closes
    once a non-zero bid stands and everybody else has passed.
    """

    players: Sequence[str]
    opening_bid: int = 1
    max_bid: int = 10
    phase: AuctionPhase = AuctionPhase.ACTIVE
    highest_bid: int = 0
    highest_bidder: Optional[str] = None
    passed: Set[str] = field(default_factory=set)
    bidders: Set[str] = field(default_factory=set)
    restarts: int = 0
    history: List[Tuple[str, str, Optional[int]]] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.players = list(self.players)
        if len(self.players) < 2:
            raise ValueError("An auction needs at least two players.")
        if len(set(self.players)) != len(self.players):
            raise ValueError("Auction players must be unique.")

    def next_amount(self) -> int:
        if self.highest_bid == 0:
            return self.opening_bid
        return self.highest_bid + 1

    def bid(self, player: str, amount: Optional[int] = None) -> int:
        self._ensure_active(player)
        if player in self.passed:
            raise BiddingError(RejectReason.ALREADY_PASSED, f"{player} has already passed this auction.")
        if player == self.highest_bidder:
            raise BiddingError(RejectReason.ALREADY_HIGHEST_BIDDER, f"{player} already holds the highest bid.")

        minimum = self.next_amount()
        if amount is None:
            amount = minimum
        if amount < minimum:
            raise BiddingError(RejectReason.BID_TOO_LOW, f"Bid {amount} must be at least {minimum}.")
        if amount > self.max_bid:
            raise BiddingError(RejectReason.BID_ABOVE_MAX, f"Bid {amount} exceeds the maximum of {self.max_bid}.")

        self.highest_bid = amount
        self.highest_bidder = player
        self.bidders.add(player)
        self.history.append((player, "bid", amount))
        logger.debug("%s bids %d", player, amount)
        self._check_complete()
        return amount

    def pass_bid(self, player: str) -> None:
        self._ensure_active(player)
        if player in self.passed:
            raise BiddingError(RejectReason.ALREADY_PASSED, f"{player} has already passed this auction.")
        if player == self.highest_bidder:
            raise BiddingError(RejectReason.HIGHEST_BIDDER_CANNOT_PASS, "The highest bidder cannot pass.")

        self.passed.add(player)
        self.history.append((player, "pass", None))

        if self.highest_bid == 0 and len(self.passed) == len(self.players):
            self.passed.clear()
            self.restarts += 1
            self.history.append(("", "restart", None))
            logger.info("Every player passed without a bid; auction restarts (restart #%d)", self.restarts)
            return
        self._check_complete()

    def active_players(self) -> List[str]:
        return [player for player in self.players if player not in self.passed]

    def _check_complete(self) -> None:
        if self.highest_bid == 0 or self.highest_bidder is None:
            return
        if self.active_players() == [self.highest_bidder]:
            self.phase = AuctionPhase.COMPLETE
            logger.info("Auction won by %s at %d", self.highest_bidder, self.highest_bid)

    def _ensure_active(self, player: str) -> None:
        if self.phase is AuctionPhase.COMPLETE:
            raise BiddingError(RejectReason.AUCTION_COMPLETE, "Auction already complete.")
        if player not in self.players:
            raise BiddingError(RejectReason.UNKNOWN_PLAYER, f"{player!r} is not in this auction.")

    def is_complete(self) -> bool:
        return self.phase is AuctionPhase.COMPLETE and self.highest_bidder is not None

    def result(self) -> Tuple[str, int]:
        if not self.is_complete():
            raise RuntimeError("Auction not yet complete.")
        assert self.highest_bidder is not None
        return self.highest_bidder, self.highest_bid
