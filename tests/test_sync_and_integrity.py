import pytest

from engine.commands import Command, CommandQueue, CommandStatus, CommandType
from engine.errors import RejectReason
from engine.game import GameEngine
from engine.integrity import normalize_player_record
from engine.state import GamePhase
from engine.sync import InMemoryCommitter, Patch, RemoteSyncCommitter, diff_snapshots, get_path, set_path

from tests.helpers import build_test_catalog, make_engine


def test_diff_snapshots_emits_leaf_changes_and_removals():
    old = {"phase": "bidding", "round": {"bid": 1, "bidder": "alice"}}
    new = {"phase": "blocking", "round": {"bid": 1}}
    patches = diff_snapshots(old, new)
    assert Patch("phase", "blocking") in patches
    assert Patch("round/bidder", None) in patches
    assert all(patch.path != "round/bid" for patch in patches)


def test_committer_mirror_replays_to_same_tree():
    committer = InMemoryCommitter()
    first = {"phase": "bidding", "round": {"number": 1, "drawn": ["n1", "n2"]}}
    second = {"phase": "round_end", "round": None}
    for patch in diff_snapshots(None, first):
        committer.apply_patch(patch.path, patch.value)
    assert committer.mirror == first
    for patch in diff_snapshots(first, second):
        committer.apply_patch(patch.path, patch.value)
    assert committer.mirror == {"phase": "round_end"}


def test_set_and_get_path():
    tree = {}
    set_path(tree, "players/alice/score", 3)
    assert get_path(tree, "players/alice/score") == 3
    set_path(tree, "players/alice/score", None)
    assert get_path(tree, "players/alice/score") is None
    set_path(tree, "missing/branch", None)
    assert "missing" not in tree


def test_engine_mirror_matches_state_snapshot(engine):
    engine.start_new_game(["alice", "bob"])
    engine.select_category("numbers", metric="value")
    engine.place_bid("alice", 2)
    engine.pass_bid("bob")
    snapshot = engine.state.snapshot()
    mirror = engine.channel.mirror
    assert mirror["phase"] == snapshot["phase"] == "blocking"
    assert mirror["round"]["bidder"] == "alice"
    assert mirror["players"]["bob"]["tokens"] == snapshot["players"]["bob"]["tokens"]


def test_remote_commands_flow_through_local_queue():
    sent = []
    remote = RemoteSyncCommitter(lambda path, value: sent.append((path, value)))
    engine = GameEngine(catalog=build_test_catalog(), channel=remote)
    queue = CommandQueue(engine)
    remote.bind(queue)

    remote.receive("commands/c1", {"type": "start_new_game", "players": ["alice", "bob"]})
    remote.receive("commands/c2", {"type": "select_category", "category": "numbers"})
    result = remote.receive("commands/c3", {"type": "place_bid", "player_id": "bob", "amount": 2})

    assert result.accepted
    assert engine.current_round.auction.highest_bidder == "bob"
    assert ("phase", "bidding") in sent

    duplicate = remote.receive("commands/c3", {"type": "place_bid", "player_id": "bob", "amount": 2})
    assert duplicate.reason is RejectReason.DUPLICATE_COMMAND


def test_malformed_remote_command_is_rejected_not_raised():
    remote = RemoteSyncCommitter(lambda path, value: None)
    remote.bind(CommandQueue(make_engine()))
    result = remote.receive("commands/x", {"type": "launch_rockets"})
    assert result.status is CommandStatus.REJECTED
    assert result.command is None
    assert result.reason is RejectReason.UNKNOWN_COMMAND


def test_remote_player_records_are_normalized():
    remote = RemoteSyncCommitter(lambda path, value: None)
    remote.receive("players/bob", {"score": "12", "owned": {"movies": "movies-avatar"}, "tokens": {"low": -2}})
    record = remote.remote_view["players"]["bob"]
    assert record["score"] == 12
    assert record["owned"] == {"movies": ["movies-avatar"]}
    assert record["tokens"] == {"low": 0, "medium": 0, "high": 0}


def test_normalize_player_record_defaults():
    assert normalize_player_record(None) == {
        "score": 0,
        "tokens": {"low": 0, "medium": 0, "high": 0},
        "owned": {},
        "stats": {},
    }
    record = normalize_player_record({"score": "abc", "owned": ["not", "a", "map"], "stats": {"bids_won": 2.7}})
    assert record["score"] == 0
    assert record["owned"] == {}
    assert record["stats"] == {"bids_won": 2}


def test_normalize_never_rebalances_tokens():
    record = normalize_player_record({"tokens": {"low": 5, "medium": 1, "high": 0}})
    assert record["tokens"] == {"low": 5, "medium": 1, "high": 0}


def test_engine_phase_after_remote_start():
    remote = RemoteSyncCommitter(lambda path, value: None)
    engine = make_engine()
    engine.channel = remote
    remote.bind(CommandQueue(engine))
    remote.receive("commands/start", {"type": "start_new_game", "players": ["a", "b", "c"]})
    assert engine.phase is GamePhase.CATEGORY_SELECT


def test_published_command_is_applied_by_the_other_client():
    host_engine = make_engine()
    host = RemoteSyncCommitter(lambda path, value: None)
    host_engine.channel = host
    host.bind(CommandQueue(host_engine))

    outbox = []
    guest = RemoteSyncCommitter(lambda path, value: outbox.append((path, value)))
    guest.publish_command(Command(CommandType.START_NEW_GAME, payload={"players": ["a", "b"]}, command_id="c1"))
    assert outbox == [("commands/c1", {"players": ["a", "b"], "type": "start_new_game", "command_id": "c1"})]

    path, value = outbox[0]
    assert host.receive(path, value).accepted
    assert host_engine.phase is GamePhase.CATEGORY_SELECT


def test_publishing_needs_a_command_id():
    guest = RemoteSyncCommitter(lambda path, value: None)
    with pytest.raises(ValueError):
        guest.publish_command(Command(CommandType.PASS, "a"))
