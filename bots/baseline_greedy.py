"""Baseline greedy bot."""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from engine.game import GameEngine
from engine.items import Item
from engine.ranking import canonical_order
from engine.tokens import Denomination

from .base import BotStrategy, available_tokens, blockable_items, open_categories


def _round_items(engine: GameEngine, item_ids: Sequence[str]) -> List[Item]:
    return [engine.catalog.item(item_id) for item_id in item_ids]


class GreedyBot(BotStrategy):
    """Knows every metric value: ranks perfectly and bids what it can cover.

    The bid ceiling leaves room for one block per opponent, so with full
    material the bot never fails a ranking. As a blocker it always spends its
    cheapest token on the item that would lead the canonical order.
    """

    name = "Greedy"

    def choose_category(self, engine: GameEngine, player: str) -> str:
        pool = engine.state.pool
        return max(
            open_categories(engine),
            key=lambda category_id: sum(
                1 for item in engine.catalog.items_in(category_id) if pool.in_circulation(item.item_id)
            ),
        )

    def offer_bid(self, engine: GameEngine, player: str) -> Optional[int]:
        current = engine.current_round
        if current is None:
            return None
        opponents = len(engine.state.players) - 1
        ceiling = min(engine.rules.max_bid, len(current.drawn) - opponents)
        amount = current.auction.next_amount()
        if amount > ceiling:
            return None
        return amount

    def choose_block(self, engine: GameEngine, player: str) -> Optional[Tuple[str, Denomination]]:
        current = engine.current_round
        tokens = available_tokens(engine, player)
        items = blockable_items(engine)
        if current is None or not tokens or not items:
            return None
        ordered = canonical_order(_round_items(engine, items), current.challenge)
        return ordered[0].item_id, min(tokens, key=lambda denom: denom.points)

    def choose_items(self, engine: GameEngine, player: str, material: Sequence[str], count: int) -> Sequence[str]:
        current = engine.current_round
        assert current is not None
        ordered = canonical_order(_round_items(engine, material), current.challenge)
        return [item.item_id for item in ordered[:count]]

    def order_items(self, engine: GameEngine, player: str, item_ids: Sequence[str]) -> Sequence[str]:
        current = engine.current_round
        assert current is not None
        return [item.item_id for item in canonical_order(_round_items(engine, item_ids), current.challenge)]
