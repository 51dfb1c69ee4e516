from random import Random
from typing import List, Optional

from engine.game import GameEngine
from engine.items import Catalog, Category, Challenge, Direction, make_item
from engine.rules_schema import RuleConfig
from engine.state import GamePhase


def build_test_catalog(size: int = 12) -> Catalog:
    """One numeric category where item ``nK`` has value K, plus a one-item category."""
    numbers = Category(
        category_id="numbers",
        name="Numbers",
        items=[
            make_item(f"n{i}", f"Number {i}", "numbers", {"value": float(i), "size": float(100 - i)})
            for i in range(1, size + 1)
        ],
        challenges=[
            Challenge("numbers", "value", Direction.ASCENDING, "Smallest value first"),
            Challenge("numbers", "size", Direction.DESCENDING, "Largest size first"),
        ],
    )
    tiny = Category(
        category_id="tiny",
        name="Tiny",
        items=[make_item("t1", "Only One", "tiny", {"value": 1.0})],
        challenges=[Challenge("tiny", "value", Direction.ASCENDING)],
    )
    return Catalog([numbers, tiny])


def make_engine(rules: Optional[RuleConfig] = None, seed: int = 7, **overrides) -> GameEngine:
    rules = rules or RuleConfig(**overrides)
    return GameEngine(rules=rules, catalog=build_test_catalog(), rng=Random(seed))


def sorted_by_value(engine: GameEngine, item_ids: List[str]) -> List[str]:
    return sorted(item_ids, key=lambda item_id: engine.catalog.item(item_id).metric("value"))


def start_round(engine: GameEngine, players=("alice", "bob", "carol")) -> None:
    """Start a game and open a round on the ascending ``value`` challenge."""
    engine.start_new_game(list(players))
    engine.select_category("numbers", metric="value")


def win_auction(engine: GameEngine, bidder: str, amount: int) -> None:
    """``bidder`` bids ``amount``; every other player passes."""
    engine.place_bid(bidder, amount)
    for player in engine.state.player_ids():
        if player != bidder and engine.phase is GamePhase.BIDDING:
            engine.pass_bid(player)
