"""Phase controller orchestrating FourFor4 rounds and games."""

from __future__ import annotations

import functools
import logging
from random import Random
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar, Union

from .bidding import Auction
from .blocking import BlockingPhase, BlockRecord, blocking_order
from .catalog import build_catalog
from .errors import CommandRejected, IntegrityViolation, RejectReason
from .items import Catalog
from .pool import CardPool, SelectionError
from .ranking import RankingError, RevealProgress, RevealStep
from .rules_schema import RuleConfig
from .scoring import RoundScoreResult, apply_end_game_bonuses, final_standings, settle_round
from .state import GamePhase, GameState, Player, Round, RoundOutcome
from .sync import CommitChannel, InMemoryCommitter, diff_snapshots
from .tokens import Denomination

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class PhaseError(CommandRejected):
    """Raised when a command arrives outside the phase that accepts it."""


def engine_command(method: F) -> F:
    """Reject re-entrant calls, halt on integrity violations, publish patches."""

    @functools.wraps(method)
    def wrapper(self: "GameEngine", *args: Any, **kwargs: Any) -> Any:
        if self._busy:
            raise CommandRejected(RejectReason.BUSY, "Another command is still being applied.")
        if self.state.halted and method.__name__ != "start_new_game":
            raise IntegrityViolation("halted", self.state.halt_reason or "engine halted")
        self._busy = True
        try:
            result = method(self, *args, **kwargs)
            self._publish()
        except IntegrityViolation as exc:
            self.state.halted = True
            self.state.halt_reason = str(exc)
            logger.error("Integrity violation, engine halted: %s", exc)
            raise
        finally:
            self._busy = False
        return result

    return wrapper  # type: ignore[return-value]


class GameEngine:
    """Authoritative owner of the game state.

    All mutations go through the command methods below; each checks the phase
    first and validates fully before touching state, so a rejected command
    leaves everything unchanged.
    """

    def __init__(
        self,
        rules: Optional[RuleConfig] = None,
        catalog: Optional[Catalog] = None,
        rng: Optional[Random] = None,
        channel: Optional[CommitChannel] = None,
    ) -> None:
        self.rules = rules or RuleConfig()
        self.catalog = catalog or build_catalog()
        self.rng = rng or Random()
        self.channel: CommitChannel = channel if channel is not None else InMemoryCommitter()
        self.state = GameState(rules=self.rules, pool=CardPool(self.catalog))
        self._busy = False
        self._published: Optional[Dict[str, Any]] = None

    # Queries -------------------------------------------------------------

    @property
    def phase(self) -> GamePhase:
        return self.state.phase

    @property
    def current_round(self) -> Optional[Round]:
        return self.state.round

    def ranking_material(self) -> List[str]:
        current = self._require_round()
        if current.bidder is None:
            return []
        return self.state.pool.ranking_material(
            current.drawn,
            current.blocked,
            current.bidder,
            include_owned=self.rules.allow_owned_in_ranking,
            category_id=current.category,
        )

    def is_game_over(self) -> bool:
        if self.state.round_number >= self.rules.max_rounds:
            return True
        return any(player.score >= self.rules.winning_score for player in self.state.players)

    # Game lifecycle ------------------------------------------------------

    @engine_command
    def start_new_game(self, player_ids: Sequence[str]) -> None:
        # A halted engine may restart from anywhere; otherwise only between rounds.
        if not self.state.halted:
            self._ensure_phase(GamePhase.IDLE, GamePhase.CATEGORY_SELECT, GamePhase.ROUND_END, GamePhase.GAME_END)
        ids = [str(player_id).strip() for player_id in player_ids]
        if any(not player_id for player_id in ids) or len(set(ids)) != len(ids):
            raise CommandRejected(RejectReason.INVALID_PLAYERS, "Player ids must be unique and non-empty.")
        if not self.rules.min_players <= len(ids) <= self.rules.max_players:
            raise CommandRejected(
                RejectReason.INVALID_PLAYERS,
                f"A game needs {self.rules.min_players}-{self.rules.max_players} players, got {len(ids)}.",
            )

        self.state.pool.reset()
        self.state = GameState(rules=self.rules, pool=self.state.pool)
        for player_id in ids:
            self.state.players.append(Player(player_id=player_id))
            self.state.ledger.open_account(player_id, self.rules.starting_tokens)
        self.state.round_number = 1
        self.state.phase = GamePhase.CATEGORY_SELECT
        logger.info("New game (%s rules) with players %s", self.rules.name, ids)

    @engine_command
    def select_category(self, category_id: str, *, metric: Optional[str] = None) -> Round:
        self._ensure_phase(GamePhase.CATEGORY_SELECT)
        if category_id not in self.catalog:
            raise CommandRejected(RejectReason.UNKNOWN_CATEGORY, f"Unknown category {category_id!r}.")
        category = self.catalog.category(category_id)
        challenges = [challenge for challenge in category.challenges if metric is None or challenge.metric == metric]
        if not challenges:
            raise CommandRejected(RejectReason.UNKNOWN_CATEGORY, f"{category_id!r} has no challenge on {metric!r}.")
        in_circulation = [item for item in category.items if self.state.pool.in_circulation(item.item_id)]
        if len(in_circulation) < self.rules.opening_bid:
            raise CommandRejected(RejectReason.CATEGORY_EXHAUSTED, f"{category_id!r} has too few items left.")

        challenge = self.rng.choice(challenges)
        drawn = self.state.pool.draw(category_id, self.rules.hand_size, self.rng)
        auction = Auction(self.state.player_ids(), opening_bid=self.rules.opening_bid, max_bid=self.rules.max_bid)
        self.state.round = Round(
            number=self.state.round_number,
            category=category_id,
            challenge=challenge,
            drawn=drawn,
            auction=auction,
        )
        self.state.phase = GamePhase.BIDDING
        logger.info(
            "Round %d: %s / %s (%s), %d items drawn",
            self.state.round_number,
            category_id,
            challenge.metric,
            challenge.direction,
            len(drawn),
        )
        return self.state.round

    # Bidding -------------------------------------------------------------

    @engine_command
    def place_bid(self, player_id: str, amount: Optional[int] = None) -> int:
        self._ensure_phase(GamePhase.BIDDING)
        self._require_player(player_id)
        current = self._require_round()
        if amount is not None and (isinstance(amount, bool) or not isinstance(amount, int)):
            raise CommandRejected(RejectReason.INVALID_PAYLOAD, f"Bid amount must be an integer, got {amount!r}.")
        accepted = current.auction.bid(player_id, amount)
        if current.auction.is_complete():
            self._finish_auction()
        return accepted

    @engine_command
    def pass_bid(self, player_id: str) -> None:
        self._ensure_phase(GamePhase.BIDDING)
        self._require_player(player_id)
        current = self._require_round()
        current.auction.pass_bid(player_id)
        if current.auction.is_complete():
            self._finish_auction()

    # Blocking ------------------------------------------------------------

    @engine_command
    def select_blocking_token(self, player_id: str, denomination: Union[Denomination, str, int]) -> Denomination:
        self._ensure_phase(GamePhase.BLOCKING)
        self._require_player(player_id)
        denom = self._parse_denomination(denomination)
        self._require_blocking().select_token(player_id, denom)
        return denom

    @engine_command
    def block_item(
        self,
        player_id: str,
        item_id: str,
        denomination: Optional[Union[Denomination, str, int]] = None,
    ) -> BlockRecord:
        self._ensure_phase(GamePhase.BLOCKING)
        self._require_player(player_id)
        denom = self._parse_denomination(denomination) if denomination is not None else None
        blocking = self._require_blocking()
        record = blocking.block(player_id, item_id, denom)
        self.state.player(player_id).stats.blocks_made += 1
        if blocking.is_complete():
            self._finish_blocking()
        return record

    @engine_command
    def skip_block(self, player_id: str) -> None:
        self._ensure_phase(GamePhase.BLOCKING)
        self._require_player(player_id)
        blocking = self._require_blocking()
        blocking.skip(player_id)
        if blocking.is_complete():
            self._finish_blocking()

    # Card selection and ranking ------------------------------------------

    @engine_command
    def select_ranking_item(self, item_id: str, *, player_id: Optional[str] = None) -> List[str]:
        current = self._require_round()
        if self.state.phase is GamePhase.RANKING:
            raise SelectionError(RejectReason.TOO_MANY_ITEMS, f"Already selected {current.bid_amount} items.")
        self._ensure_phase(GamePhase.CARD_SELECTION)
        self._require_bidder(player_id)
        if item_id in current.selected:
            raise SelectionError(RejectReason.ITEM_ALREADY_SELECTED, f"{item_id!r} is already selected.")
        if item_id not in self.ranking_material():
            raise SelectionError(RejectReason.ITEM_NOT_AVAILABLE, f"{item_id!r} is not available for ranking.")

        current.selected.append(item_id)
        if len(current.selected) == current.bid_amount:
            self.state.phase = GamePhase.RANKING
        return list(current.selected)

    @engine_command
    def deselect_ranking_item(self, item_id: str, *, player_id: Optional[str] = None) -> List[str]:
        self._ensure_phase(GamePhase.CARD_SELECTION, GamePhase.RANKING)
        self._require_bidder(player_id)
        current = self._require_round()
        if item_id not in current.selected:
            raise SelectionError(RejectReason.ITEM_NOT_SELECTED, f"{item_id!r} is not selected.")
        current.selected.remove(item_id)
        self.state.phase = GamePhase.CARD_SELECTION
        return list(current.selected)

    @engine_command
    def submit_ranking(self, order: Sequence[str], *, player_id: Optional[str] = None) -> List[str]:
        self._ensure_phase(GamePhase.RANKING)
        self._require_bidder(player_id)
        current = self._require_round()
        order = [str(item_id) for item_id in order]
        if any(item_id not in current.selected for item_id in order):
            raise RankingError(RejectReason.ITEM_NOT_SELECTED, "Ranking contains items that were not selected.")
        if len(order) != current.bid_amount or set(order) != set(current.selected):
            raise RankingError(
                RejectReason.INCOMPLETE_RANKING,
                f"Ranking must order all {current.bid_amount} selected items exactly once.",
            )

        assert current.bidder is not None
        for item_id in order:
            if self.state.pool.owner_of(item_id) == current.bidder:
                self.state.pool.consume(current.bidder, item_id)
                current.consumed_owned.append(item_id)
        current.candidate_order = order
        current.reveal = RevealProgress(candidate=self.state.pool.items(order), challenge=current.challenge)
        self.state.phase = GamePhase.REVEAL
        logger.info("%s submitted a ranking of %d items", current.bidder, len(order))
        return list(order)

    @engine_command
    def reveal_next(self) -> RevealStep:
        self._ensure_phase(GamePhase.REVEAL)
        current = self._require_round()
        assert current.reveal is not None
        step = current.reveal.reveal_next()
        if not step.in_sequence and step.index == current.reveal.break_index:
            logger.info("Sequence break at position %d (%s)", step.index, step.item_id)
        if current.reveal.is_complete():
            if current.reveal.succeeded():
                current.outcome = RoundOutcome.SUCCESS
            else:
                current.outcome = RoundOutcome.FAILURE
                current.failure_reason = "sequence_break"
            self._enter_scoring()
        return step

    # Scoring and round transitions ---------------------------------------

    @engine_command
    def score_round(self) -> RoundScoreResult:
        """Return the settlement of the current round; settles at most once."""
        self._ensure_phase(GamePhase.SCORING, GamePhase.ROUND_END, GamePhase.GAME_END)
        return settle_round(self.state)

    @engine_command
    def continue_to_next_round(self) -> int:
        self._ensure_phase(GamePhase.ROUND_END)
        self._retire_round()
        self.state.round_number += 1
        self.state.phase = GamePhase.CATEGORY_SELECT
        logger.info("Advancing to round %d", self.state.round_number)
        return self.state.round_number

    # Internal transitions ------------------------------------------------

    def _finish_auction(self) -> None:
        current = self._require_round()
        bidder, amount = current.auction.result()
        current.bidder = bidder
        current.bid_amount = amount
        for player_id in current.auction.bidders:
            self.state.player(player_id).stats.bids_attempted += 1
        self.state.player(bidder).stats.bids_won += 1

        order = blocking_order(self.state.player_ids(), bidder, self.state.scores())
        current.blocking = BlockingPhase(
            bidder=bidder,
            order=order,
            drawn=list(current.drawn),
            ledger=self.state.ledger,
            pool=self.state.pool,
        )
        self.state.phase = GamePhase.BLOCKING
        logger.info("%s won the auction with %d; blocking order %s", bidder, amount, order)
        if current.blocking.is_complete():
            self._finish_blocking()

    def _finish_blocking(self) -> None:
        current = self._require_round()
        self.state.phase = GamePhase.CARD_SELECTION
        material = self.ranking_material()
        if len(material) < current.bid_amount:
            logger.info(
                "Only %d items available for a bid of %d; round %d fails", len(material), current.bid_amount, current.number
            )
            current.outcome = RoundOutcome.FAILURE
            current.failure_reason = "insufficient_items"
            self._enter_scoring()

    def _enter_scoring(self) -> None:
        self.state.phase = GamePhase.SCORING
        result = settle_round(self.state)
        self.state.history.append(result)
        if self.is_game_over():
            self._enter_game_end()
        else:
            self.state.phase = GamePhase.ROUND_END

    def _enter_game_end(self) -> None:
        self.state.phase = GamePhase.GAME_END
        apply_end_game_bonuses(self.state)
        self.state.final_standings = final_standings(self.state)
        winners = [entry["player_id"] for entry in self.state.final_standings if entry["winner"]]
        logger.info("Game over after round %d; winners %s", self.state.round_number, winners)

    def _retire_round(self) -> None:
        self.state.ledger.reset_round()
        self.state.round = None

    def _publish(self) -> None:
        snapshot = self.state.snapshot()
        for patch in diff_snapshots(self._published, snapshot):
            self.channel.apply_patch(patch.path, patch.value)
        self._published = snapshot

    # Guards --------------------------------------------------------------

    def _ensure_phase(self, *expected: GamePhase) -> None:
        if self.state.phase not in expected:
            names = ", ".join(phase.value for phase in expected)
            raise PhaseError(
                RejectReason.WRONG_PHASE, f"Action not allowed in phase {self.state.phase.value}. Expected {names}."
            )

    def _require_round(self) -> Round:
        if self.state.round is None:
            raise PhaseError(RejectReason.WRONG_PHASE, "No active round.")
        return self.state.round

    def _require_blocking(self) -> BlockingPhase:
        current = self._require_round()
        if current.blocking is None:
            raise PhaseError(RejectReason.WRONG_PHASE, "Blocking has not started.")
        return current.blocking

    def _require_player(self, player_id: Optional[str]) -> None:
        if player_id is None or not self.state.has_player(player_id):
            raise CommandRejected(RejectReason.UNKNOWN_PLAYER, f"Unknown player {player_id!r}.")

    def _require_bidder(self, player_id: Optional[str]) -> None:
        if player_id is None:
            return
        self._require_player(player_id)
        if player_id != self._require_round().bidder:
            raise CommandRejected(RejectReason.NOT_YOUR_TURN, "Only the bidder selects and ranks items.")

    @staticmethod
    def _parse_denomination(value: Union[Denomination, str, int]) -> Denomination:
        try:
            return Denomination.parse(value)
        except (KeyError, ValueError) as exc:
            raise CommandRejected(RejectReason.TOKEN_UNAVAILABLE, f"Unknown token denomination {value!r}.") from exc
