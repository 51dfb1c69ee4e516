"""Integrity checks and best-effort normalization of auxiliary records."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping

from .errors import IntegrityViolation
from .state import GameState
from .tokens import Denomination

logger = logging.getLogger(__name__)


def check_token_conservation(state: GameState) -> None:
    state.ledger.check_conservation(state.rules.starting_tokens)


def check_round_consistency(state: GameState) -> None:
    """Every scored round has exactly one auction winner."""
    bids_won = sum(player.stats.bids_won for player in state.players)
    if bids_won != state.completed_rounds:
        raise IntegrityViolation(
            "round_consistency",
            f"{bids_won} bids won across players but {state.completed_rounds} rounds scored",
        )
    if state.completed_rounds > state.round_number:
        raise IntegrityViolation(
            "round_consistency",
            f"{state.completed_rounds} rounds scored but round counter is {state.round_number}",
        )


def check_bidder(state: GameState) -> str:
    current = state.round
    if current is None:
        raise IntegrityViolation("bidder", "No active round at scoring time")
    if current.bidder is None:
        raise IntegrityViolation("bidder", f"Round {current.number} reached scoring without a bidder")
    if not state.has_player(current.bidder):
        raise IntegrityViolation("bidder", f"Bidder {current.bidder!r} is not seated in this game")
    if current.bid_amount < 1:
        raise IntegrityViolation("bidder", f"Bid amount {current.bid_amount} is invalid")
    if current.bidder in current.blocks:
        raise IntegrityViolation("bidder", f"Bidder {current.bidder!r} appears among the blockers")
    return current.bidder


def _as_int(value: Any) -> int:
    try:
        number = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(0, number)


def normalize_player_record(raw: Any) -> Dict[str, Any]:
    """Clamp or initialize a mirrored player record to safe defaults.

    Only shapes are repaired. Token balances are copied as found (clamped to
    non-negative integers); a conservation mismatch is left for
    :func:`check_token_conservation` to report.
    """
    record: Mapping[str, Any] = raw if isinstance(raw, Mapping) else {}
    if record is not raw:
        logger.warning("Replacing non-mapping player record %r with defaults", raw)

    owned_raw = record.get("owned")
    owned: Dict[str, list] = {}
    if isinstance(owned_raw, Mapping):
        for category, items in owned_raw.items():
            if isinstance(items, (list, tuple, set)):
                owned[str(category)] = [str(item) for item in items]
            elif items is None:
                owned[str(category)] = []
            else:
                owned[str(category)] = [str(items)]
    elif owned_raw is not None:
        logger.warning("Dropping malformed owned collection %r", owned_raw)

    tokens_raw = record.get("tokens")
    tokens_map = tokens_raw if isinstance(tokens_raw, Mapping) else {}
    tokens = {str(denom): _as_int(tokens_map.get(str(denom), 0)) for denom in Denomination}

    stats_raw = record.get("stats")
    stats = {str(key): _as_int(value) for key, value in stats_raw.items()} if isinstance(stats_raw, Mapping) else {}

    return {
        "score": _as_int(record.get("score", 0)),
        "tokens": tokens,
        "owned": owned,
        "stats": stats,
    }
