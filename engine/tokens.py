"""Wager-token ledger with per-round usage marks."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, Mapping, Union

from .errors import IntegrityViolation

logger = logging.getLogger(__name__)


class Denomination(Enum):
    LOW = 2
    MEDIUM = 3
    HIGH = 4

    @property
    def points(self) -> int:
        return self.value

    def __str__(self) -> str:
        return self.name.lower()

    @classmethod
    def parse(cls, value: Union["Denomination", str, int]) -> "Denomination":
        if isinstance(value, Denomination):
            return value
        if isinstance(value, int):
            return cls(value)
        text = str(value).strip()
        if text.isdigit():
            return cls(int(text))
        return cls[text.upper()]


class LedgerError(RuntimeError):
    """Raised when a ledger operation would break the token economy."""


class TokenLedger:
    """Token counts per player and denomination.

    A token spent on a block is only *marked* as used for the round; it stays
    in the owner's count until scoring transfers or releases it.
    """

    def __init__(self) -> None:
        self._counts: Dict[str, Dict[Denomination, int]] = {}
        self._used: Dict[str, Dict[Denomination, int]] = {}

    def open_account(self, player: str, starting: int) -> None:
        if player in self._counts:
            raise LedgerError(f"Player {player!r} already has an account.")
        self._counts[player] = {denom: starting for denom in Denomination}
        self._used[player] = {denom: 0 for denom in Denomination}

    def count(self, player: str, denom: Denomination) -> int:
        return self._account(player)[denom]

    def used(self, player: str, denom: Denomination) -> int:
        self._account(player)
        return self._used[player][denom]

    def available(self, player: str, denom: Denomination) -> int:
        return self.count(player, denom) - self.used(player, denom)

    def mark_used(self, player: str, denom: Denomination) -> None:
        if self.available(player, denom) <= 0:
            raise LedgerError(f"Player {player!r} has no unused {denom} token.")
        self._used[player][denom] += 1

    def release(self, player: str, denom: Denomination) -> None:
        if self.used(player, denom) <= 0:
            raise LedgerError(f"Player {player!r} has no used {denom} token to release.")
        self._used[player][denom] -= 1

    def transfer(self, source: str, target: str, denom: Denomination) -> None:
        """Move one used token from ``source`` to ``target``."""
        self._account(target)
        self.release(source, denom)
        self._counts[source][denom] -= 1
        self._counts[target][denom] += 1
        logger.debug("Token %s moved %s -> %s", denom, source, target)

    def reset_round(self) -> None:
        for marks in self._used.values():
            for denom in marks:
                marks[denom] = 0

    def holdings(self, player: str) -> Dict[Denomination, int]:
        return dict(self._account(player))

    def token_count(self, player: str) -> int:
        return sum(self._account(player).values())

    def total(self, denom: Denomination) -> int:
        return sum(counts[denom] for counts in self._counts.values())

    def check_conservation(self, expected_per_denomination: int) -> None:
        expected = expected_per_denomination * len(self._counts)
        for denom in Denomination:
            total = self.total(denom)
            if total != expected:
                raise IntegrityViolation(
                    "token_conservation",
                    f"{denom} tokens total {total}, expected {expected}",
                )

    def _account(self, player: str) -> Dict[Denomination, int]:
        try:
            return self._counts[player]
        except KeyError as exc:
            raise LedgerError(f"Unknown player {player!r}.") from exc


def serialize_holdings(holdings: Mapping[Denomination, int]) -> Dict[str, int]:
    return {str(denom): count for denom, count in holdings.items()}

