"""Random scripted driver with configurable bid and block probabilities."""

from __future__ import annotations

import random
from typing import Optional, Sequence, Tuple

from engine.game import GameEngine
from engine.tokens import Denomination

from .base import BotStrategy, available_tokens, blockable_items, open_categories


class RandomBot(BotStrategy):
    name = "Random"

    def __init__(
        self,
        seed: Optional[int] = None,
        *,
        bid_probability: float = 0.5,
        block_probability: float = 0.5,
        max_raise: int = 2,
    ) -> None:
        if not 0.0 <= bid_probability <= 1.0 or not 0.0 <= block_probability <= 1.0:
            raise ValueError("Probabilities must be within [0, 1].")
        self._rng = random.Random(seed)
        self.bid_probability = bid_probability
        self.block_probability = block_probability
        self.max_raise = max(0, max_raise)

    def choose_category(self, engine: GameEngine, player: str) -> str:
        return self._rng.choice(open_categories(engine))

    def offer_bid(self, engine: GameEngine, player: str) -> Optional[int]:
        current = engine.current_round
        if current is None or self._rng.random() >= self.bid_probability:
            return None
        amount = current.auction.next_amount() + self._rng.randint(0, self.max_raise)
        if amount > engine.rules.max_bid:
            return None
        return amount

    def choose_block(self, engine: GameEngine, player: str) -> Optional[Tuple[str, Denomination]]:
        tokens = available_tokens(engine, player)
        items = blockable_items(engine)
        if not tokens or not items or self._rng.random() >= self.block_probability:
            return None
        return self._rng.choice(items), self._rng.choice(tokens)

    def choose_items(self, engine: GameEngine, player: str, material: Sequence[str], count: int) -> Sequence[str]:
        return self._rng.sample(list(material), count)

    def order_items(self, engine: GameEngine, player: str, item_ids: Sequence[str]) -> Sequence[str]:
        order = list(item_ids)
        self._rng.shuffle(order)
        return order
