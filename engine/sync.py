"""Commit channels mirroring engine state as path/value patches.

The engine writes the same patch stream regardless of mode. Local play uses
:class:`InMemoryCommitter`; online play plugs a :class:`RemoteSyncCommitter`
onto whatever transport the sync backend provides.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Protocol, Tuple

from .commands import Command, CommandQueue, CommandResult, CommandStatus, command_from_payload, command_to_payload
from .errors import CommandRejected
from .integrity import normalize_player_record

logger = logging.getLogger(__name__)

COMMANDS_PREFIX = "commands/"


class CommitChannel(Protocol):
    def apply_patch(self, path: str, value: Any) -> None:
        ...


@dataclass(frozen=True)
class Patch:
    path: str
    value: Any


def _flatten(node: Any, prefix: str) -> Iterator[Tuple[str, Any]]:
    if isinstance(node, Mapping) and node:
        for key, value in node.items():
            yield from _flatten(value, f"{prefix}/{key}" if prefix else str(key))
    else:
        yield prefix, node


def diff_snapshots(old: Optional[Mapping[str, Any]], new: Mapping[str, Any]) -> List[Patch]:
    """Leaf-level patches turning ``old`` into ``new``; removed paths map to None."""
    before = dict(_flatten(old or {}, ""))
    after = dict(_flatten(new, ""))
    patches = [Patch(path, value) for path, value in after.items() if path not in before or before[path] != value]
    for path in before:
        if path not in after and not any(other.startswith(path + "/") for other in after):
            patches.append(Patch(path, None))
    return patches


def set_path(tree: Dict[str, Any], path: str, value: Any) -> None:
    parts = [part for part in path.split("/") if part]
    if not parts:
        return
    node = tree
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            if value is None:
                return
            child = {}
            node[part] = child
        node = child
    if value is None:
        node.pop(parts[-1], None)
    else:
        node[parts[-1]] = value


def get_path(tree: Mapping[str, Any], path: str) -> Any:
    node: Any = tree
    for part in (part for part in path.split("/") if part):
        if not isinstance(node, Mapping) or part not in node:
            return None
        node = node[part]
    return node


class InMemoryCommitter:
    """Local committer: keeps a mirror of every patch applied."""

    def __init__(self) -> None:
        self.mirror: Dict[str, Any] = {}
        self.log: List[Patch] = []

    def apply_patch(self, path: str, value: Any) -> None:
        set_path(self.mirror, path, value)
        self.log.append(Patch(path, value))

    def get(self, path: str) -> Any:
        return get_path(self.mirror, path)


class RemoteSyncCommitter:
    """Bridges the engine to a remote sync backend.

    Outgoing patches go to ``transport``. Incoming patches from other clients
    arrive through :meth:`receive`: command intents under ``commands/`` are fed
    into the bound :class:`CommandQueue`, everything else is mirrored.
    """

    def __init__(self, transport: Callable[[str, Any], None]) -> None:
        self._transport = transport
        self._queue: Optional[CommandQueue] = None
        self.remote_view: Dict[str, Any] = {}
        self.results: List[CommandResult] = []

    def bind(self, queue: CommandQueue) -> None:
        self._queue = queue

    def apply_patch(self, path: str, value: Any) -> None:
        self._transport(path, value)

    def publish_command(self, command: Command) -> None:
        """Send a local command intent to the other clients."""
        if command.command_id is None:
            raise ValueError("Published commands need a command_id.")
        self._transport(f"{COMMANDS_PREFIX}{command.command_id}", command_to_payload(command))

    def receive(self, path: str, value: Any) -> Optional[CommandResult]:
        if path.startswith(COMMANDS_PREFIX):
            return self._receive_command(path, value)

        parts = [part for part in path.split("/") if part]
        if len(parts) == 2 and parts[0] == "players":
            value = normalize_player_record(value)
        set_path(self.remote_view, path, value)
        return None

    def _receive_command(self, path: str, value: Any) -> CommandResult:
        if self._queue is None:
            raise RuntimeError("RemoteSyncCommitter is not bound to a command queue.")
        payload = dict(value) if isinstance(value, Mapping) else {}
        payload.setdefault("command_id", path[len(COMMANDS_PREFIX):])
        try:
            command = command_from_payload(payload)
        except CommandRejected as exc:
            logger.warning("Dropping malformed remote command at %s: %s", path, exc)
            result = CommandResult(None, CommandStatus.REJECTED, exc.reason, str(exc))
            self.results.append(result)
            return result
        result = self._queue.submit(command)
        self.results.append(result)
        logger.debug("Remote command %s -> %s", command.command_id, result)
        return result
