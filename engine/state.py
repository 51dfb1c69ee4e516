"""Typed game state owned by the phase controller."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from .bidding import Auction
from .blocking import BlockingPhase, BlockRecord
from .items import Challenge
from .pool import CardPool
from .ranking import RevealProgress
from .rules_schema import RuleConfig
from .tokens import TokenLedger, serialize_holdings

if TYPE_CHECKING:
    from .scoring import RoundScoreResult


class GamePhase(Enum):
    IDLE = "idle"
    CATEGORY_SELECT = "category_select"
    BIDDING = "bidding"
    BLOCKING = "blocking"
    CARD_SELECTION = "card_selection"
    RANKING = "ranking"
    REVEAL = "reveal"
    SCORING = "scoring"
    ROUND_END = "round_end"
    GAME_END = "game_end"


class RoundOutcome(Enum):
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass
class PlayerStats:
    bids_won: int = 0
    bids_attempted: int = 0
    successful_rankings: int = 0
    failed_rankings: int = 0
    blocks_made: int = 0
    blocks_won: int = 0
    blocks_lost: int = 0
    tokens_gained: int = 0
    tokens_lost: int = 0


@dataclass
class Player:
    player_id: str
    score: int = 0
    stats: PlayerStats = field(default_factory=PlayerStats)


@dataclass
class Round:
    number: int
    category: str
    challenge: Challenge
    drawn: List[str]
    auction: Auction
    bidder: Optional[str] = None
    bid_amount: int = 0
    blocking: Optional[BlockingPhase] = None
    selected: List[str] = field(default_factory=list)
    candidate_order: List[str] = field(default_factory=list)
    consumed_owned: List[str] = field(default_factory=list)
    reveal: Optional[RevealProgress] = None
    outcome: Optional[RoundOutcome] = None
    failure_reason: Optional[str] = None
    scoring_applied: bool = False
    score_result: Optional["RoundScoreResult"] = None

    @property
    def blocked(self) -> List[str]:
        return list(self.blocking.blocked) if self.blocking else []

    @property
    def blocks(self) -> Dict[str, BlockRecord]:
        return dict(self.blocking.blocks) if self.blocking else {}

    @property
    def break_index(self) -> Optional[int]:
        return self.reveal.break_index if self.reveal else None

    def snapshot(self) -> Dict[str, Any]:
        blocking = self.blocking
        return {
            "number": self.number,
            "category": self.category,
            "challenge": {
                "metric": self.challenge.metric,
                "direction": self.challenge.direction.value,
                "label": self.challenge.label,
            },
            "drawn": list(self.drawn),
            "blocked": self.blocked,
            "bidder": self.bidder,
            "bid_amount": self.bid_amount,
            "highest_bid": self.auction.highest_bid,
            "highest_bidder": self.auction.highest_bidder,
            "passed": sorted(self.auction.passed),
            "blocks": {
                blocker: {"item_id": record.item_id, "denomination": record.denomination.points}
                for blocker, record in self.blocks.items()
            },
            "blocking_order": list(blocking.order) if blocking else [],
            "blocking_index": blocking.index if blocking else 0,
            "selected": list(self.selected),
            "candidate_order": list(self.candidate_order),
            "revealed": self.reveal.revealed_count if self.reveal else 0,
            "break_index": self.break_index,
            "outcome": self.outcome.value if self.outcome else None,
            "scoring_applied": self.scoring_applied,
        }


@dataclass
class GameState:
    rules: RuleConfig
    pool: CardPool
    players: List[Player] = field(default_factory=list)
    ledger: TokenLedger = field(default_factory=TokenLedger)
    phase: GamePhase = GamePhase.IDLE
    round_number: int = 0
    round: Optional[Round] = None
    completed_rounds: int = 0
    history: List["RoundScoreResult"] = field(default_factory=list)
    bonuses_applied: bool = False
    final_standings: List[Dict[str, Any]] = field(default_factory=list)
    halted: bool = False
    halt_reason: Optional[str] = None

    def player_ids(self) -> List[str]:
        return [player.player_id for player in self.players]

    def has_player(self, player_id: str) -> bool:
        return any(player.player_id == player_id for player in self.players)

    def player(self, player_id: str) -> Player:
        for player in self.players:
            if player.player_id == player_id:
                return player
        raise KeyError(player_id)

    def scores(self) -> Dict[str, int]:
        return {player.player_id: player.score for player in self.players}

    def owned_items(self, player_id: str) -> Dict[str, List[str]]:
        """Owned item ids grouped by category."""
        grouped: Dict[str, List[str]] = {}
        for item_id in self.pool.owned_by(player_id):
            grouped.setdefault(self.pool.catalog.item(item_id).category, []).append(item_id)
        return {category: sorted(ids) for category, ids in grouped.items()}

    def snapshot(self) -> Dict[str, Any]:
        return {
            "phase": self.phase.value,
            "round_number": self.round_number,
            "rules": self.rules.name,
            "halted": self.halted,
            "players": {
                player.player_id: {
                    "score": player.score,
                    "tokens": serialize_holdings(self.ledger.holdings(player.player_id)),
                    "owned": self.owned_items(player.player_id),
                    "stats": asdict(player.stats),
                }
                for player in self.players
            },
            "round": self.round.snapshot() if self.round else None,
            "standings": [dict(entry) for entry in self.final_standings],
        }
