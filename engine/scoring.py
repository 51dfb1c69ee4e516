"""Round settlement and end-game bonuses."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from .errors import IntegrityViolation
from .integrity import check_bidder, check_round_consistency, check_token_conservation
from .state import GameState, RoundOutcome
from .tokens import Denomination

logger = logging.getLogger(__name__)


class ScoringError(IntegrityViolation):
    """Raised when a round cannot be settled consistently."""


@dataclass(frozen=True)
class RoundScoreResult:
    round_number: int
    bidder: str
    bid_amount: int
    outcome: RoundOutcome
    points: Dict[str, int]
    token_transfers: Tuple[Tuple[str, str, Denomination], ...] = ()
    ownership_grants: Tuple[Tuple[str, str], ...] = ()


@dataclass(frozen=True)
class BonusResult:
    owned_points: Dict[str, int] = field(default_factory=dict)
    token_points: Dict[str, int] = field(default_factory=dict)

    def total(self, player: str) -> int:
        return self.owned_points.get(player, 0) + self.token_points.get(player, 0)


def settle_round(state: GameState) -> RoundScoreResult:
    """Apply the round outcome to scores, tokens and ownership exactly once."""
    current = state.round
    if current is None:
        raise ScoringError("scoring", "No round to score")
    if current.scoring_applied:
        assert current.score_result is not None
        logger.debug("Round %d already scored; ignoring repeat", current.number)
        return current.score_result

    bidder_id = check_bidder(state)
    if current.outcome is None:
        raise ScoringError("scoring", f"Round {current.number} has no outcome yet")

    blocks = current.blocks
    grant_ownership = current.outcome is RoundOutcome.FAILURE and state.rules.blocking_grants_ownership
    if grant_ownership:
        for record in blocks.values():
            owner = state.pool.owner_of(record.item_id)
            if owner is not None:
                raise IntegrityViolation(
                    "duplicate_ownership", f"Blocked item {record.item_id!r} is already owned by {owner!r}"
                )

    bidder = state.player(bidder_id)
    points = {player.player_id: 0 for player in state.players}
    transfers: List[Tuple[str, str, Denomination]] = []
    grants: List[Tuple[str, str]] = []

    if current.outcome is RoundOutcome.SUCCESS:
        points[bidder_id] += current.bid_amount
        bidder.stats.successful_rankings += 1
        for blocker_id, record in blocks.items():
            state.ledger.transfer(blocker_id, bidder_id, record.denomination)
            transfers.append((blocker_id, bidder_id, record.denomination))
            blocker = state.player(blocker_id)
            blocker.stats.blocks_lost += 1
            blocker.stats.tokens_lost += 1
            bidder.stats.tokens_gained += 1
    else:
        bidder.stats.failed_rankings += 1
        for blocker_id, record in blocks.items():
            state.ledger.release(blocker_id, record.denomination)
            points[blocker_id] += record.denomination.points
            blocker = state.player(blocker_id)
            blocker.stats.blocks_won += 1
            if grant_ownership:
                state.pool.grant(blocker_id, record.item_id)
                grants.append((blocker_id, record.item_id))

    for player in state.players:
        player.score += points[player.player_id]

    result = RoundScoreResult(
        round_number=current.number,
        bidder=bidder_id,
        bid_amount=current.bid_amount,
        outcome=current.outcome,
        points=points,
        token_transfers=tuple(transfers),
        ownership_grants=tuple(grants),
    )
    current.scoring_applied = True
    current.score_result = result
    state.completed_rounds += 1
    logger.info(
        "Round %d settled: %s %s bid of %d; points %s",
        current.number,
        bidder_id,
        current.outcome.value,
        current.bid_amount,
        points,
    )

    check_token_conservation(state)
    check_round_consistency(state)
    return result


def apply_end_game_bonuses(state: GameState) -> BonusResult:
    """Award owned-item and remaining-token bonuses once per game."""
    if state.bonuses_applied:
        return BonusResult()
    owned_points: Dict[str, int] = {}
    token_points: Dict[str, int] = {}
    for player in state.players:
        owned = len(state.pool.owned_by(player.player_id))
        tokens = state.ledger.token_count(player.player_id)
        owned_points[player.player_id] = owned * state.rules.owned_item_bonus
        token_points[player.player_id] = tokens * state.rules.token_bonus
        player.score += owned_points[player.player_id] + token_points[player.player_id]
    state.bonuses_applied = True
    logger.info("End-game bonuses applied: owned=%s tokens=%s", owned_points, token_points)
    return BonusResult(owned_points=owned_points, token_points=token_points)


def final_standings(state: GameState) -> List[Dict[str, Any]]:
    seats = state.player_ids()
    ordered = sorted(state.players, key=lambda player: (-player.score, seats.index(player.player_id)))
    top = ordered[0].score if ordered else 0
    standings = []
    for rank, player in enumerate(ordered, start=1):
        standings.append(
            {
                "rank": rank,
                "player_id": player.player_id,
                "score": player.score,
                "owned": len(state.pool.owned_by(player.player_id)),
                "tokens": state.ledger.token_count(player.player_id),
                "winner": player.score == top,
            }
        )
    return standings
