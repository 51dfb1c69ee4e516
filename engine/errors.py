"""Shared error tiers for the FourFor4 engine."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class RejectReason(str, Enum):
    """Reason codes reported back to callers for rejected commands."""

    WRONG_PHASE = "wrong_phase"
    UNKNOWN_PLAYER = "unknown_player"
    UNKNOWN_CATEGORY = "unknown_category"
    CATEGORY_EXHAUSTED = "category_exhausted"
    INVALID_PLAYERS = "invalid_players"
    BID_TOO_LOW = "bid_too_low"
    BID_ABOVE_MAX = "bid_above_max"
    ALREADY_PASSED = "already_passed"
    ALREADY_HIGHEST_BIDDER = "already_highest_bidder"
    HIGHEST_BIDDER_CANNOT_PASS = "highest_bidder_cannot_pass"
    AUCTION_COMPLETE = "auction_complete"
    BIDDER_CANNOT_BLOCK = "bidder_cannot_block"
    NOT_YOUR_TURN = "not_your_turn"
    TOKEN_UNAVAILABLE = "token_unavailable"
    NO_TOKEN_SELECTED = "no_token_selected"
    ITEM_NOT_IN_POOL = "item_not_in_pool"
    ITEM_ALREADY_BLOCKED = "item_already_blocked"
    ITEM_OWNED = "item_owned"
    ITEM_NOT_AVAILABLE = "item_not_available"
    ITEM_ALREADY_SELECTED = "item_already_selected"
    ITEM_NOT_SELECTED = "item_not_selected"
    TOO_MANY_ITEMS = "too_many_items"
    INCOMPLETE_RANKING = "incomplete_ranking"
    NOTHING_TO_REVEAL = "nothing_to_reveal"
    DUPLICATE_COMMAND = "duplicate_command"
    BUSY = "busy"
    UNKNOWN_COMMAND = "unknown_command"
    INVALID_PAYLOAD = "invalid_payload"


class CommandRejected(ValueError):
    """A caller-correctable command failure; engine state is left untouched."""

    def __init__(self, reason: RejectReason, message: Optional[str] = None) -> None:
        self.reason = reason
        super().__init__(message or reason.value)


class IntegrityViolation(RuntimeError):
    """Fatal-to-round inconsistency that must halt automatic progression."""

    def __init__(self, check: str, detail: str) -> None:
        self.check = check
        self.detail = detail
        super().__init__(f"{check}: {detail}")
