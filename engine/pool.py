"""Card pool draws and permanent item ownership."""

from __future__ import annotations

import logging
from random import Random
from typing import Dict, Iterable, List, Optional, Set

from .errors import CommandRejected, IntegrityViolation
from .items import Catalog, Item

logger = logging.getLogger(__name__)


class SelectionError(CommandRejected):
    """Raised when the bidder picks ranking material that is not available."""


class CardPool:
    """Tracks which items are in circulation, owned, or retired.

    Owned items and retired (consumed) items are never drawn. Blocked items
    stay in circulation; they are only excluded for the current round.
    """

    def __init__(self, catalog: Catalog) -> None:
        self.catalog = catalog
        self._owners: Dict[str, str] = {}
        self._retired: Set[str] = set()

    def reset(self) -> None:
        self._owners.clear()
        self._retired.clear()

    def draw(self, category_id: str, count: int, rng: Random) -> List[str]:
        candidates = [item.item_id for item in self.catalog.items_in(category_id) if self.in_circulation(item.item_id)]
        if len(candidates) < count:
            logger.warning(
                "Category %s has only %d items left in circulation (wanted %d)", category_id, len(candidates), count
            )
            count = len(candidates)
        return rng.sample(candidates, count)

    def in_circulation(self, item_id: str) -> bool:
        return item_id not in self._owners and item_id not in self._retired

    def owner_of(self, item_id: str) -> Optional[str]:
        return self._owners.get(item_id)

    def is_retired(self, item_id: str) -> bool:
        return item_id in self._retired

    def owned_by(self, player: str, category_id: Optional[str] = None) -> List[str]:
        return [
            item_id
            for item_id, owner in self._owners.items()
            if owner == player and (category_id is None or self.catalog.item(item_id).category == category_id)
        ]

    def grant(self, player: str, item_id: str) -> None:
        current = self._owners.get(item_id)
        if current is not None:
            raise IntegrityViolation(
                "duplicate_ownership",
                f"Item {item_id!r} already owned by {current!r}; refusing grant to {player!r}",
            )
        if item_id in self._retired:
            raise IntegrityViolation("duplicate_ownership", f"Item {item_id!r} is retired and cannot be granted")
        self._owners[item_id] = player
        logger.info("%s now owns %s", player, item_id)

    def consume(self, player: str, item_id: str) -> None:
        """Spend an owned item as ranking material; it leaves the game."""
        if self._owners.get(item_id) != player:
            raise IntegrityViolation("ownership", f"{player!r} does not own {item_id!r}")
        del self._owners[item_id]
        self._retired.add(item_id)

    def ranking_material(
        self,
        drawn: Iterable[str],
        blocked: Iterable[str],
        bidder: str,
        *,
        include_owned: bool,
        category_id: str,
    ) -> List[str]:
        blocked_set = set(blocked)
        material = [item_id for item_id in drawn if item_id not in blocked_set]
        if include_owned:
            material.extend(item_id for item_id in self.owned_by(bidder, category_id) if item_id not in material)
        return material

    def items(self, item_ids: Iterable[str]) -> List[Item]:
        return [self.catalog.item(item_id) for item_id in item_ids]
