"""Common bot strategy interfaces."""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from engine.game import GameEngine
from engine.tokens import Denomination


def open_categories(engine: GameEngine) -> List[str]:
    """Categories that still have enough items in circulation to open a round."""
    minimum = engine.rules.opening_bid
    categories = []
    for category_id in engine.catalog.category_ids():
        live = [item for item in engine.catalog.items_in(category_id) if engine.state.pool.in_circulation(item.item_id)]
        if len(live) >= minimum:
            categories.append(category_id)
    return categories


def available_tokens(engine: GameEngine, player: str) -> List[Denomination]:
    ledger = engine.state.ledger
    return [denom for denom in Denomination if ledger.available(player, denom) > 0]


def blockable_items(engine: GameEngine) -> List[str]:
    current = engine.current_round
    if current is None:
        return []
    pool = engine.state.pool
    blocked = set(current.blocked)
    return [
        item_id
        for item_id in current.drawn
        if item_id not in blocked and pool.owner_of(item_id) is None and not pool.is_retired(item_id)
    ]


class BotStrategy:
    """Base class for bot policies.

    Bots only read engine state; the arena turns their decisions into commands.
    """

    name: str = "BaseBot"

    def on_game_start(self, engine: GameEngine, player: str) -> None:
        """Optional hook invoked when a new game starts."""
        return None

    def choose_category(self, engine: GameEngine, player: str) -> str:
        """Return the category id for the next round."""
        return open_categories(engine)[0]

    def offer_bid(self, engine: GameEngine, player: str) -> Optional[int]:
        """Return a bid amount, or None to pass."""
        return None

    def choose_block(self, engine: GameEngine, player: str) -> Optional[Tuple[str, Denomination]]:
        """Return (item_id, denomination) to block, or None to skip."""
        return None

    def choose_items(self, engine: GameEngine, player: str, material: Sequence[str], count: int) -> Sequence[str]:
        """Return exactly ``count`` item ids from ``material`` to rank."""
        return list(material[:count])

    def order_items(self, engine: GameEngine, player: str, item_ids: Sequence[str]) -> Sequence[str]:
        """Return the candidate order for the selected items."""
        return list(item_ids)
