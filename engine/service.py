"""Convenience service layer for UI, bots and the HTTP server."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Sequence

from .commands import Command, CommandQueue, CommandResult, CommandType
from .game import GameEngine
from .items import describe_direction, item_label, serialize_item
from .state import GamePhase
from .tokens import serialize_holdings


@dataclass
class PlayerView:
    player_id: str
    score: int
    tokens: Dict[str, int]
    available_tokens: Dict[str, int]
    owned: Dict[str, list]
    stats: Dict[str, int]


@dataclass
class RevealView:
    revealed: list[dict]
    remaining: int
    break_index: Optional[int]
    complete: bool


@dataclass
class RoundView:
    number: int
    category: str
    metric: str
    direction: str
    prompt: str
    drawn: list[dict]
    blocked: list[str]
    highest_bid: int
    highest_bidder: Optional[str]
    passed: list[str]
    bidder: Optional[str]
    bid_amount: int
    blocking_order: list[str]
    current_blocker: Optional[str]
    blocks: Dict[str, dict]
    ranking_material: list[str]
    selected: list[str]
    reveal: Optional[RevealView]
    outcome: Optional[str]
    failure_reason: Optional[str]
    auction_history: list[dict]


@dataclass
class GameView:
    phase: str
    round_number: int
    max_rounds: int
    winning_score: int
    players: list[PlayerView]
    round: Optional[RoundView]
    standings: list[dict]
    halted: bool
    halt_reason: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class GameService:
    """Facade around GameEngine; every action goes through the command queue."""

    def __init__(self, engine: Optional[GameEngine] = None) -> None:
        self.engine = engine or GameEngine()
        self.queue = CommandQueue(self.engine)

    # Actions -----------------------------------------------------------

    def submit(self, command: Command) -> CommandResult:
        return self.queue.submit(command)

    def start_new_game(self, players: Sequence[str]) -> CommandResult:
        return self._send(CommandType.START_NEW_GAME, players=list(players))

    def select_category(self, category: str, metric: Optional[str] = None) -> CommandResult:
        payload: Dict[str, Any] = {"category": category}
        if metric is not None:
            payload["metric"] = metric
        return self._send(CommandType.SELECT_CATEGORY, **payload)

    def place_bid(self, player_id: str, amount: Optional[int] = None) -> CommandResult:
        return self._send(CommandType.PLACE_BID, player_id, amount=amount)

    def pass_bid(self, player_id: str) -> CommandResult:
        return self._send(CommandType.PASS, player_id)

    def select_blocking_token(self, player_id: str, denomination: Any) -> CommandResult:
        return self._send(CommandType.SELECT_BLOCKING_TOKEN, player_id, denomination=denomination)

    def block_item(self, player_id: str, item_id: str, denomination: Any = None) -> CommandResult:
        return self._send(CommandType.BLOCK_ITEM, player_id, item_id=item_id, denomination=denomination)

    def skip_block(self, player_id: str) -> CommandResult:
        return self._send(CommandType.SKIP_BLOCK, player_id)

    def select_ranking_item(self, item_id: str, player_id: Optional[str] = None) -> CommandResult:
        return self._send(CommandType.SELECT_RANKING_ITEM, player_id, item_id=item_id)

    def deselect_ranking_item(self, item_id: str, player_id: Optional[str] = None) -> CommandResult:
        return self._send(CommandType.DESELECT_RANKING_ITEM, player_id, item_id=item_id)

    def submit_ranking(self, order: Sequence[str], player_id: Optional[str] = None) -> CommandResult:
        return self._send(CommandType.SUBMIT_RANKING, player_id, order=list(order))

    def reveal_next(self) -> CommandResult:
        return self._send(CommandType.REVEAL_NEXT)

    def reveal_all(self) -> list[CommandResult]:
        results = []
        while self.engine.phase is GamePhase.REVEAL:
            result = self.reveal_next()
            results.append(result)
            if not result.accepted:
                break
        return results

    def continue_to_next_round(self) -> CommandResult:
        return self._send(CommandType.CONTINUE_TO_NEXT_ROUND)

    # Views -------------------------------------------------------------

    def get_game_view(self) -> GameView:
        state = self.engine.state
        return GameView(
            phase=state.phase.value,
            round_number=state.round_number,
            max_rounds=state.rules.max_rounds,
            winning_score=state.rules.winning_score,
            players=[self.get_player_view(player_id) for player_id in state.player_ids()],
            round=self.get_round_view(),
            standings=[dict(entry) for entry in state.final_standings],
            halted=state.halted,
            halt_reason=state.halt_reason,
        )

    def get_player_view(self, player_id: str) -> PlayerView:
        state = self.engine.state
        player = state.player(player_id)
        holdings = state.ledger.holdings(player_id)
        return PlayerView(
            player_id=player_id,
            score=player.score,
            tokens=serialize_holdings(holdings),
            available_tokens={str(denom): state.ledger.available(player_id, denom) for denom in holdings},
            owned=state.owned_items(player_id),
            stats=asdict(player.stats),
        )

    def get_round_view(self) -> Optional[RoundView]:
        current = self.engine.current_round
        if current is None:
            return None
        blocking = current.blocking
        return RoundView(
            number=current.number,
            category=current.category,
            metric=current.challenge.metric,
            direction=current.challenge.direction.value,
            prompt=describe_direction(current.challenge),
            drawn=[self._item_payload(item_id) for item_id in current.drawn],
            blocked=current.blocked,
            highest_bid=current.auction.highest_bid,
            highest_bidder=current.auction.highest_bidder,
            passed=sorted(current.auction.passed),
            bidder=current.bidder,
            bid_amount=current.bid_amount,
            blocking_order=list(blocking.order) if blocking else [],
            current_blocker=blocking.current_blocker if blocking else None,
            blocks={
                blocker: {"item_id": record.item_id, "denomination": str(record.denomination)}
                for blocker, record in current.blocks.items()
            },
            ranking_material=self.engine.ranking_material(),
            selected=list(current.selected),
            reveal=self._reveal_view(),
            outcome=current.outcome.value if current.outcome else None,
            failure_reason=current.failure_reason,
            auction_history=[
                {"player": player, "action": action, "amount": amount}
                for player, action, amount in current.auction.history
            ],
        )

    # Helpers -----------------------------------------------------------

    def _item_payload(self, item_id: str) -> dict:
        item = self.engine.catalog.item(item_id)
        return dict(serialize_item(item), label=item_label(item))

    def _reveal_view(self) -> Optional[RevealView]:
        current = self.engine.current_round
        if current is None or current.reveal is None:
            return None
        reveal = current.reveal
        catalog = self.engine.catalog
        revealed = []
        for step in reveal.steps:
            item = catalog.item(step.item_id)
            revealed.append(
                {
                    "index": step.index,
                    "item_id": step.item_id,
                    "label": item_label(item),
                    "value": item.metric(current.challenge.metric),
                    "in_sequence": step.in_sequence,
                    "contributes": step.contributes,
                }
            )
        return RevealView(
            revealed=revealed,
            remaining=len(reveal.candidate) - reveal.revealed_count,
            break_index=reveal.break_index,
            complete=reveal.is_complete(),
        )

    def _send(self, command_type: CommandType, player_id: Optional[str] = None, **payload: Any) -> CommandResult:
        body = {key: value for key, value in payload.items() if value is not None}
        return self.queue.submit(Command(type=command_type, player_id=player_id, payload=body))
