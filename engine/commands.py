"""Serialized command pipeline in front of the game engine."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Deque, Dict, List, Mapping, Optional, Set, Tuple

from .errors import CommandRejected, IntegrityViolation, RejectReason
from .tokens import Denomination

if TYPE_CHECKING:
    from .game import GameEngine

logger = logging.getLogger(__name__)


class CommandType(str, Enum):
    START_NEW_GAME = "start_new_game"
    SELECT_CATEGORY = "select_category"
    PLACE_BID = "place_bid"
    PASS = "pass"
    SELECT_BLOCKING_TOKEN = "select_blocking_token"
    BLOCK_ITEM = "block_item"
    SKIP_BLOCK = "skip_block"
    SELECT_RANKING_ITEM = "select_ranking_item"
    DESELECT_RANKING_ITEM = "deselect_ranking_item"
    SUBMIT_RANKING = "submit_ranking"
    REVEAL_NEXT = "reveal_next"
    CONTINUE_TO_NEXT_ROUND = "continue_to_next_round"


class CommandStatus(str, Enum):
    APPLIED = "applied"
    REJECTED = "rejected"
    QUEUED = "queued"


@dataclass(frozen=True)
class Command:
    type: CommandType
    player_id: Optional[str] = None
    payload: Mapping[str, Any] = field(default_factory=dict)
    command_id: Optional[str] = None


@dataclass(frozen=True)
class CommandResult:
    command: Optional[Command]
    status: CommandStatus
    reason: Optional[RejectReason] = None
    message: str = ""
    value: Any = None

    @property
    def accepted(self) -> bool:
        return self.status is CommandStatus.APPLIED


def command_from_payload(payload: Mapping[str, Any]) -> Command:
    """Build a command from a JSON-style mapping (remote intents, HTTP bodies)."""
    raw_type = payload.get("type")
    try:
        command_type = CommandType(raw_type)
    except ValueError as exc:
        raise CommandRejected(RejectReason.UNKNOWN_COMMAND, f"Unknown command type {raw_type!r}.") from exc
    body = {key: value for key, value in payload.items() if key not in {"type", "player_id", "command_id"}}
    player_id = payload.get("player_id")
    command_id = payload.get("command_id")
    return Command(
        type=command_type,
        player_id=str(player_id) if player_id is not None else None,
        payload=body,
        command_id=str(command_id) if command_id is not None else None,
    )


def command_to_payload(command: Command) -> Dict[str, Any]:
    payload: Dict[str, Any] = dict(command.payload)
    payload["type"] = command.type.value
    if command.player_id is not None:
        payload["player_id"] = command.player_id
    if command.command_id is not None:
        payload["command_id"] = command.command_id
    return payload


REQUIRED_FIELDS: Dict[CommandType, tuple] = {
    CommandType.START_NEW_GAME: ("players",),
    CommandType.SELECT_CATEGORY: ("category",),
    CommandType.SELECT_BLOCKING_TOKEN: ("denomination",),
    CommandType.BLOCK_ITEM: ("item_id",),
    CommandType.SELECT_RANKING_ITEM: ("item_id",),
    CommandType.DESELECT_RANKING_ITEM: ("item_id",),
    CommandType.SUBMIT_RANKING: ("order",),
}

# Queued commands always name their sender, including the bidder-only ones.
PLAYER_COMMANDS = {
    CommandType.PLACE_BID,
    CommandType.PASS,
    CommandType.SELECT_BLOCKING_TOKEN,
    CommandType.BLOCK_ITEM,
    CommandType.SKIP_BLOCK,
    CommandType.SELECT_RANKING_ITEM,
    CommandType.DESELECT_RANKING_ITEM,
    CommandType.SUBMIT_RANKING,
}


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_str_list(value: Any) -> bool:
    return isinstance(value, (list, tuple)) and all(isinstance(entry, str) for entry in value)


FIELD_CHECKS: Dict[str, Tuple[Callable[[Any], bool], str]] = {
    "players": (_is_str_list, "a list of strings"),
    "category": (lambda value: isinstance(value, str), "a string"),
    "metric": (lambda value: isinstance(value, str), "a string"),
    "item_id": (lambda value: isinstance(value, str), "a string"),
    "amount": (_is_int, "an integer"),
    "denomination": (lambda value: isinstance(value, (str, Denomination)) or _is_int(value), "a token name or value"),
    "order": (_is_str_list, "a list of strings"),
}


def _check_fields(command: Command) -> None:
    missing = [name for name in REQUIRED_FIELDS.get(command.type, ()) if name not in command.payload]
    if command.type in PLAYER_COMMANDS and command.player_id is None:
        missing.append("player_id")
    if missing:
        raise CommandRejected(RejectReason.UNKNOWN_COMMAND, f"{command.type.value} is missing {missing}.")
    for name, value in command.payload.items():
        if value is None or name not in FIELD_CHECKS:
            continue
        check, expected = FIELD_CHECKS[name]
        if not check(value):
            raise CommandRejected(RejectReason.INVALID_PAYLOAD, f"{name} must be {expected}, got {value!r}.")


class CommandQueue:
    """Runs commands one at a time, in arrival order.

    A command submitted while another is still being processed (for example a
    remote intent delivered while patches are being published) is queued and
    executed right after the current one, before the outer ``submit`` returns.
    """

    def __init__(self, engine: "GameEngine") -> None:
        self.engine = engine
        self.history: List[CommandResult] = []
        self._pending: Deque[Command] = deque()
        self._seen_ids: Set[str] = set()
        self._processing = False
        self._handlers: Dict[CommandType, Callable[[Command], Any]] = {
            CommandType.START_NEW_GAME: lambda cmd: engine.start_new_game(cmd.payload["players"]),
            CommandType.SELECT_CATEGORY: lambda cmd: engine.select_category(
                cmd.payload["category"], metric=cmd.payload.get("metric")
            ),
            CommandType.PLACE_BID: lambda cmd: engine.place_bid(cmd.player_id, cmd.payload.get("amount")),
            CommandType.PASS: lambda cmd: engine.pass_bid(cmd.player_id),
            CommandType.SELECT_BLOCKING_TOKEN: lambda cmd: engine.select_blocking_token(
                cmd.player_id, cmd.payload["denomination"]
            ),
            CommandType.BLOCK_ITEM: lambda cmd: engine.block_item(
                cmd.player_id, cmd.payload["item_id"], cmd.payload.get("denomination")
            ),
            CommandType.SKIP_BLOCK: lambda cmd: engine.skip_block(cmd.player_id),
            CommandType.SELECT_RANKING_ITEM: lambda cmd: engine.select_ranking_item(
                cmd.payload["item_id"], player_id=cmd.player_id
            ),
            CommandType.DESELECT_RANKING_ITEM: lambda cmd: engine.deselect_ranking_item(
                cmd.payload["item_id"], player_id=cmd.player_id
            ),
            CommandType.SUBMIT_RANKING: lambda cmd: engine.submit_ranking(cmd.payload["order"], player_id=cmd.player_id),
            CommandType.REVEAL_NEXT: lambda cmd: engine.reveal_next(),
            CommandType.CONTINUE_TO_NEXT_ROUND: lambda cmd: engine.continue_to_next_round(),
        }

    @property
    def processing(self) -> bool:
        return self._processing

    def submit(self, command: Command) -> CommandResult:
        if command.command_id is not None:
            if command.command_id in self._seen_ids:
                result = CommandResult(
                    command,
                    CommandStatus.REJECTED,
                    RejectReason.DUPLICATE_COMMAND,
                    f"Command {command.command_id} was already received.",
                )
                self.history.append(result)
                return result
            self._seen_ids.add(command.command_id)

        if self._processing:
            self._pending.append(command)
            logger.debug("Queued %s while another command is processing", command.type.value)
            return CommandResult(command, CommandStatus.QUEUED)

        self._processing = True
        try:
            result = self._execute(command)
            while self._pending:
                self._execute(self._pending.popleft())
        except IntegrityViolation:
            self._pending.clear()
            raise
        finally:
            self._processing = False
        return result

    def _execute(self, command: Command) -> CommandResult:
        try:
            _check_fields(command)
            value = self._handlers[command.type](command)
        except CommandRejected as exc:
            logger.warning("Rejected %s from %s: %s (%s)", command.type.value, command.player_id, exc, exc.reason.value)
            result = CommandResult(command, CommandStatus.REJECTED, exc.reason, str(exc))
        else:
            result = CommandResult(command, CommandStatus.APPLIED, value=value)
        self.history.append(result)
        return result
