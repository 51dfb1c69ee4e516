"""Post-auction blocking turns where non-bidders wager tokens on items."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

from .errors import CommandRejected, RejectReason
from .pool import CardPool
from .tokens import Denomination, TokenLedger

logger = logging.getLogger(__name__)


class BlockingError(CommandRejected):
    """Raised when a token selection or block is not allowed."""


@dataclass(frozen=True)
class BlockRecord:
    blocker: str
    item_id: str
    denomination: Denomination


def blocking_order(seats: Sequence[str], bidder: str, scores: Mapping[str, int]) -> List[str]:
    """Non-bidders, lowest score first; seat order breaks ties."""
    contenders = [player for player in seats if player != bidder]
    return sorted(contenders, key=lambda player: (scores[player], seats.index(player)))


@dataclass
class BlockingPhase:
    """One turn per non-bidder: block exactly one item or skip."""

    bidder: str
    order: List[str]
    drawn: List[str]
    ledger: TokenLedger
    pool: CardPool
    index: int = 0
    blocked: List[str] = field(default_factory=list)
    blocks: Dict[str, BlockRecord] = field(default_factory=dict)
    selected_token: Optional[Denomination] = None
    skipped: List[str] = field(default_factory=list)

    @property
    def current_blocker(self) -> Optional[str]:
        if self.index >= len(self.order):
            return None
        return self.order[self.index]

    def is_complete(self) -> bool:
        return self.index >= len(self.order)

    def select_token(self, player: str, denom: Denomination) -> None:
        self._ensure_turn(player)
        if self.ledger.available(player, denom) <= 0:
            raise BlockingError(RejectReason.TOKEN_UNAVAILABLE, f"{player} has no unused {denom} token.")
        self.selected_token = denom

    def block(self, player: str, item_id: str, denom: Optional[Denomination] = None) -> BlockRecord:
        self._ensure_turn(player)
        token = denom or self.selected_token
        if token is None:
            raise BlockingError(RejectReason.NO_TOKEN_SELECTED, "Select a token before blocking.")
        if self.ledger.available(player, token) <= 0:
            raise BlockingError(RejectReason.TOKEN_UNAVAILABLE, f"{player} has no unused {token} token.")
        if item_id not in self.drawn:
            raise BlockingError(RejectReason.ITEM_NOT_IN_POOL, f"{item_id!r} was not drawn this round.")
        if item_id in self.blocked:
            raise BlockingError(RejectReason.ITEM_ALREADY_BLOCKED, f"{item_id!r} is already blocked.")
        owner = self.pool.owner_of(item_id)
        if owner is not None or self.pool.is_retired(item_id):
            raise BlockingError(RejectReason.ITEM_OWNED, f"{item_id!r} is owned by {owner}.")

        self.ledger.mark_used(player, token)
        record = BlockRecord(blocker=player, item_id=item_id, denomination=token)
        self.blocks[player] = record
        self.blocked.append(item_id)
        logger.info("%s blocks %s with a %s token", player, item_id, token)
        self._advance()
        return record

    def skip(self, player: str) -> None:
        self._ensure_turn(player)
        self.skipped.append(player)
        logger.debug("%s skips blocking", player)
        self._advance()

    def _advance(self) -> None:
        self.selected_token = None
        self.index += 1

    def _ensure_turn(self, player: str) -> None:
        if player == self.bidder:
            raise BlockingError(RejectReason.BIDDER_CANNOT_BLOCK, "The bidder cannot block.")
        if self.is_complete() or player != self.current_blocker:
            raise BlockingError(RejectReason.NOT_YOUR_TURN, f"It is not {player}'s blocking turn.")
