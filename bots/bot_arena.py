"""Bot arena driving full FourFor4 games through the command API."""

from __future__ import annotations

import argparse
import logging
from random import Random
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from engine.errors import IntegrityViolation
from engine.game import GameEngine
from engine.logging_config import setup_logging
from engine.rules_schema import RULE_PRESETS, RuleConfig, get_preset
from engine.service import GameService
from engine.state import GamePhase

from .base import BotStrategy, open_categories
from .baseline_greedy import GreedyBot
from .random_bot import RandomBot

logger = logging.getLogger(__name__)

BOT_REGISTRY: Dict[str, type[BotStrategy]] = {
    "greedy": GreedyBot,
    "random": RandomBot,
}

# After this many all-pass restarts the first seated player is made to open.
MAX_AUCTION_RESTARTS = 3


class ArenaStalled(RuntimeError):
    """Raised when the bots cannot move the game forward."""


def _choose_category(service: GameService, bots: Mapping[str, BotStrategy], chooser: str) -> None:
    engine = service.engine
    categories = open_categories(engine)
    if not categories:
        raise ArenaStalled("Every category is exhausted.")
    preferred = bots[chooser].choose_category(engine, chooser)
    candidates = [preferred] + [category for category in categories if category != preferred]
    for category in candidates:
        if service.select_category(category).accepted:
            return
    raise ArenaStalled("No category can open a round.")


def _resolve_auction(service: GameService, bots: Mapping[str, BotStrategy]) -> None:
    engine = service.engine
    while engine.phase is GamePhase.BIDDING:
        current = engine.current_round
        assert current is not None
        auction = current.auction
        if auction.restarts >= MAX_AUCTION_RESTARTS and auction.highest_bidder is None:
            service.place_bid(auction.active_players()[0])
            continue
        for player in auction.active_players():
            if engine.phase is not GamePhase.BIDDING:
                break
            if player == auction.highest_bidder:
                continue
            amount = bots[player].offer_bid(engine, player)
            if amount is None or not service.place_bid(player, amount).accepted:
                service.pass_bid(player)


def _resolve_blocking(service: GameService, bots: Mapping[str, BotStrategy]) -> None:
    engine = service.engine
    while engine.phase is GamePhase.BLOCKING:
        current = engine.current_round
        assert current is not None and current.blocking is not None
        blocker = current.blocking.current_blocker
        assert blocker is not None
        decision = bots[blocker].choose_block(engine, blocker)
        if decision is None:
            service.skip_block(blocker)
            continue
        item_id, denomination = decision
        if not service.block_item(blocker, item_id, str(denomination)).accepted:
            service.skip_block(blocker)


def _resolve_ranking(service: GameService, bots: Mapping[str, BotStrategy]) -> None:
    engine = service.engine
    if engine.phase is not GamePhase.CARD_SELECTION:
        return
    current = engine.current_round
    assert current is not None and current.bidder is not None
    bidder = current.bidder
    material = engine.ranking_material()
    chosen = list(bots[bidder].choose_items(engine, bidder, material, current.bid_amount))
    for item_id in chosen:
        result = service.select_ranking_item(item_id, player_id=bidder)
        if not result.accepted:
            raise ArenaStalled(f"{bidder} picked unavailable item {item_id}: {result.message}")
    order = bots[bidder].order_items(engine, bidder, list(current.selected))
    result = service.submit_ranking(order, player_id=bidder)
    if not result.accepted:
        raise ArenaStalled(f"{bidder} submitted an invalid ranking: {result.message}")
    service.reveal_all()


def play_round(service: GameService, bots: Mapping[str, BotStrategy], chooser: str) -> None:
    _choose_category(service, bots, chooser)
    _resolve_auction(service, bots)
    _resolve_blocking(service, bots)
    _resolve_ranking(service, bots)


def run_match(
    bots: Mapping[str, BotStrategy],
    *,
    rules: Optional[RuleConfig] = None,
    seed: Optional[int] = None,
) -> dict:
    engine = GameEngine(rules=rules, rng=Random(seed))
    service = GameService(engine)
    seats = list(bots)
    result = service.start_new_game(seats)
    if not result.accepted:
        raise ValueError(result.message)
    for player, bot in bots.items():
        bot.on_game_start(engine, player)

    history: List[dict] = []
    halted: Optional[str] = None
    try:
        while engine.phase is not GamePhase.GAME_END:
            chooser = seats[(engine.state.round_number - 1) % len(seats)]
            play_round(service, bots, chooser)
            settled = engine.state.history[-1]
            history.append(
                {
                    "round": settled.round_number,
                    "bidder": settled.bidder,
                    "bid": settled.bid_amount,
                    "outcome": settled.outcome.value,
                    "points": dict(settled.points),
                }
            )
            if engine.phase is GamePhase.ROUND_END:
                service.continue_to_next_round()
    except IntegrityViolation as exc:
        logger.error("Match halted: %s", exc)
        halted = str(exc)

    return {
        "scores": engine.state.scores(),
        "history": history,
        "standings": list(engine.state.final_standings),
        "halted": halted,
    }


def main(argv: Iterable[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Run a bot match.")
    parser.add_argument("--bots", nargs="+", default=["greedy", "random"], choices=BOT_REGISTRY.keys())
    parser.add_argument("--rules", default="classic", choices=RULE_PRESETS.keys())
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--log-level", default="WARNING")
    args = parser.parse_args(argv)

    setup_logging(args.log_level)
    bots = _seat_bots(args.bots)
    results = run_match(bots, rules=get_preset(args.rules), seed=args.seed)

    print(f"Scores after {len(results['history'])} rounds: {results['scores']}")
    successes = sum(1 for entry in results["history"] if entry["outcome"] == "success")
    print(f"Ranking success rate: {successes}/{len(results['history'])}")
    if results["halted"]:
        print(f"Match halted: {results['halted']}")


def _seat_bots(names: Sequence[str]) -> Dict[str, BotStrategy]:
    return {f"{name}-{seat}": BOT_REGISTRY[name]() for seat, name in enumerate(names, start=1)}


if __name__ == "__main__":
    main()
