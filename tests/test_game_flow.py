import pytest

from engine.errors import CommandRejected, IntegrityViolation, RejectReason
from engine.game import PhaseError
from engine.state import GamePhase, RoundOutcome
from engine.tokens import Denomination

from tests.helpers import make_engine, sorted_by_value, start_round, win_auction


def test_start_new_game_sets_up_players_and_tokens(engine):
    engine.start_new_game(["alice", "bob", "carol"])
    assert engine.phase is GamePhase.CATEGORY_SELECT
    assert engine.state.round_number == 1
    for player in engine.state.player_ids():
        assert engine.state.ledger.token_count(player) == 3
        assert engine.state.player(player).score == 0


@pytest.mark.parametrize("players", [["solo"], ["a", "a"], ["a", ""], [str(i) for i in range(7)]])
def test_start_new_game_rejects_bad_rosters(engine, players):
    with pytest.raises(CommandRejected) as excinfo:
        engine.start_new_game(players)
    assert excinfo.value.reason is RejectReason.INVALID_PLAYERS
    assert engine.phase is GamePhase.IDLE


def test_commands_outside_their_phase_are_rejected(engine):
    engine.start_new_game(["alice", "bob"])
    before = engine.state.snapshot()
    with pytest.raises(PhaseError) as excinfo:
        engine.place_bid("alice")
    assert excinfo.value.reason is RejectReason.WRONG_PHASE
    with pytest.raises(PhaseError):
        engine.reveal_next()
    assert engine.state.snapshot() == before


def test_select_category_draws_hand_and_opens_bidding(engine):
    start_round(engine)
    current = engine.current_round
    assert engine.phase is GamePhase.BIDDING
    assert len(current.drawn) == 10
    assert len(set(current.drawn)) == 10
    assert current.challenge.metric == "value"


def test_unknown_and_exhausted_categories_rejected(engine):
    engine.start_new_game(["alice", "bob"])
    with pytest.raises(CommandRejected) as excinfo:
        engine.select_category("planets")
    assert excinfo.value.reason is RejectReason.UNKNOWN_CATEGORY

    engine.state.pool.grant("alice", "t1")
    with pytest.raises(CommandRejected) as excinfo:
        engine.select_category("tiny")
    assert excinfo.value.reason is RejectReason.CATEGORY_EXHAUSTED
    assert engine.phase is GamePhase.CATEGORY_SELECT


def test_same_seed_draws_same_hand():
    first, second = make_engine(seed=11), make_engine(seed=11)
    start_round(first)
    start_round(second)
    assert first.current_round.drawn == second.current_round.drawn


def test_auction_result_moves_to_blocking_with_catch_up_order(engine):
    engine.start_new_game(["alice", "bob", "carol"])
    engine.state.player("bob").score = 5
    engine.select_category("numbers", metric="value")
    engine.place_bid("alice")
    engine.place_bid("carol", 3)
    engine.pass_bid("bob")
    engine.pass_bid("alice")

    current = engine.current_round
    assert engine.phase is GamePhase.BLOCKING
    assert (current.bidder, current.bid_amount) == ("carol", 3)
    assert current.blocking.order == ["alice", "bob"]
    assert engine.state.player("carol").stats.bids_won == 1
    assert engine.state.player("alice").stats.bids_attempted == 1
    assert engine.state.player("bob").stats.bids_attempted == 0


def test_all_pass_restarts_bidding_without_advancing_round():
    engine = make_engine()
    start_round(engine, players=("a", "b", "c", "d"))
    for player in ("a", "b", "c", "d"):
        engine.pass_bid(player)
    current = engine.current_round
    assert engine.phase is GamePhase.BIDDING
    assert current.auction.passed == set()
    assert current.auction.restarts == 1
    assert engine.state.round_number == 1
    assert engine.state.completed_rounds == 0


def test_blocking_token_and_bidder_checks(engine):
    start_round(engine)
    win_auction(engine, "alice", 2)
    order = engine.current_round.blocking.order
    first = order[0]

    with pytest.raises(CommandRejected) as excinfo:
        engine.block_item("alice", engine.current_round.drawn[0], "high")
    assert excinfo.value.reason is RejectReason.BIDDER_CANNOT_BLOCK

    assert engine.select_blocking_token(first, 4) is Denomination.HIGH
    engine.block_item(first, engine.current_round.drawn[0])
    assert engine.state.ledger.available(first, Denomination.HIGH) == 0
    assert engine.state.player(first).stats.blocks_made == 1
    assert engine.current_round.blocking.current_blocker == order[1]


def test_card_selection_limits_and_deselect(engine):
    start_round(engine)
    win_auction(engine, "alice", 2)
    blocked = engine.current_round.drawn[0]
    engine.block_item("bob", blocked, Denomination.LOW)
    engine.skip_block("carol")
    assert engine.phase is GamePhase.CARD_SELECTION

    material = engine.ranking_material()
    assert blocked not in material
    with pytest.raises(CommandRejected) as excinfo:
        engine.select_ranking_item(blocked)
    assert excinfo.value.reason is RejectReason.ITEM_NOT_AVAILABLE
    with pytest.raises(CommandRejected) as excinfo:
        engine.select_ranking_item(material[0], player_id="bob")
    assert excinfo.value.reason is RejectReason.NOT_YOUR_TURN

    engine.select_ranking_item(material[0])
    with pytest.raises(CommandRejected) as excinfo:
        engine.select_ranking_item(material[0])
    assert excinfo.value.reason is RejectReason.ITEM_ALREADY_SELECTED
    engine.select_ranking_item(material[1])
    assert engine.phase is GamePhase.RANKING
    with pytest.raises(CommandRejected) as excinfo:
        engine.select_ranking_item(material[2])
    assert excinfo.value.reason is RejectReason.TOO_MANY_ITEMS

    engine.deselect_ranking_item(material[1])
    assert engine.phase is GamePhase.CARD_SELECTION
    assert engine.current_round.selected == [material[0]]


def test_submit_ranking_must_use_exactly_selected_items(engine):
    start_round(engine)
    win_auction(engine, "alice", 2)
    engine.skip_block("bob")
    engine.skip_block("carol")
    first, second, third = engine.ranking_material()[:3]
    engine.select_ranking_item(first)
    engine.select_ranking_item(second)

    with pytest.raises(CommandRejected) as excinfo:
        engine.submit_ranking([first])
    assert excinfo.value.reason is RejectReason.INCOMPLETE_RANKING
    with pytest.raises(CommandRejected) as excinfo:
        engine.submit_ranking([first, third])
    assert excinfo.value.reason is RejectReason.ITEM_NOT_SELECTED
    assert engine.phase is GamePhase.RANKING


def test_continue_to_next_round_resets_round_state(engine):
    start_round(engine)
    win_auction(engine, "alice", 1)
    engine.block_item("bob", engine.current_round.drawn[0], "medium")
    engine.skip_block("carol")
    item = engine.ranking_material()[0]
    engine.select_ranking_item(item)
    engine.submit_ranking([item])
    engine.reveal_next()
    assert engine.phase is GamePhase.ROUND_END

    assert engine.continue_to_next_round() == 2
    assert engine.phase is GamePhase.CATEGORY_SELECT
    assert engine.current_round is None
    for player in engine.state.player_ids():
        for denom in Denomination:
            assert engine.state.ledger.used(player, denom) == 0


def test_insufficient_material_fails_round_immediately():
    engine = make_engine(hand_size=3, max_bid=3)
    start_round(engine)
    win_auction(engine, "alice", 3)
    drawn = engine.current_round.drawn
    engine.block_item("bob", drawn[0], "low")
    engine.block_item("carol", drawn[1], "medium")

    current = engine.current_round
    assert engine.phase is GamePhase.ROUND_END
    assert current.outcome is RoundOutcome.FAILURE
    assert current.failure_reason == "insufficient_items"
    assert engine.state.player("bob").score == 2
    assert engine.state.player("carol").score == 3
    assert engine.state.pool.owner_of(drawn[0]) == "bob"


def test_game_ends_at_max_rounds():
    engine = make_engine(max_rounds=1)
    start_round(engine)
    win_auction(engine, "alice", 1)
    engine.skip_block("bob")
    engine.skip_block("carol")
    item = engine.ranking_material()[0]
    engine.select_ranking_item(item)
    engine.submit_ranking([item])
    engine.reveal_next()

    assert engine.phase is GamePhase.GAME_END
    assert engine.state.round_number == 1
    with pytest.raises(PhaseError):
        engine.continue_to_next_round()


def test_integrity_violation_halts_engine_until_new_game(engine):
    start_round(engine)
    win_auction(engine, "alice", 1)
    engine.skip_block("bob")
    engine.skip_block("carol")
    item = engine.ranking_material()[0]
    engine.select_ranking_item(item)
    engine.submit_ranking([item])
    engine.state.ledger._counts["bob"][Denomination.LOW] += 1

    with pytest.raises(IntegrityViolation) as excinfo:
        engine.reveal_next()
    assert excinfo.value.check == "token_conservation"
    assert engine.state.halted
    with pytest.raises(IntegrityViolation):
        engine.continue_to_next_round()

    engine.start_new_game(["alice", "bob"])
    assert not engine.state.halted
    assert engine.phase is GamePhase.CATEGORY_SELECT


def test_state_changes_are_published_to_channel(engine):
    start_round(engine)
    mirror = engine.channel
    assert mirror.get("phase") == "bidding"
    assert mirror.get("players/alice/tokens/high") == 1
    engine.place_bid("bob", 2)
    assert mirror.get("round/highest_bid") == 2
    assert mirror.get("round/highest_bidder") == "bob"


def test_ranking_with_sorted_order_succeeds(engine):
    start_round(engine)
    win_auction(engine, "alice", 4)
    engine.skip_block("bob")
    engine.skip_block("carol")
    chosen = engine.ranking_material()[:4]
    for item in chosen:
        engine.select_ranking_item(item)
    engine.submit_ranking(sorted_by_value(engine, chosen))
    steps = [engine.reveal_next() for _ in range(4)]

    assert all(step.contributes for step in steps)
    assert engine.current_round.outcome is RoundOutcome.SUCCESS
    assert engine.state.player("alice").score == 4


def test_new_game_only_starts_between_rounds(engine):
    start_round(engine)
    engine.place_bid("alice", 2)
    before = engine.state.snapshot()

    with pytest.raises(PhaseError) as excinfo:
        engine.start_new_game(["dave", "erin"])
    assert excinfo.value.reason is RejectReason.WRONG_PHASE
    assert engine.state.snapshot() == before

    engine.pass_bid("bob")
    engine.pass_bid("carol")
    engine.skip_block("bob")
    engine.skip_block("carol")
    material = engine.ranking_material()
    chosen = material[:2]
    for item in chosen:
        engine.select_ranking_item(item)
    engine.submit_ranking(sorted_by_value(engine, chosen))
    engine.reveal_next()
    engine.reveal_next()
    assert engine.phase in (GamePhase.ROUND_END, GamePhase.GAME_END)

    engine.start_new_game(["dave", "erin"])
    assert engine.phase is GamePhase.CATEGORY_SELECT
    assert engine.state.player_ids() == ["dave", "erin"]
