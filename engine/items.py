"""Item, category and challenge data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Tuple


class Direction(Enum):
    ASCENDING = "ascending"
    DESCENDING = "descending"

    def __str__(self) -> str:
        return self.value


class MissingMetric(KeyError):
    """Raised when an item does not carry the metric a challenge asks for."""


@dataclass(frozen=True)
class Challenge:
    """Defines how items of a category are canonically ordered for a round."""

    category: str
    metric: str
    direction: Direction
    label: str = ""


@dataclass(frozen=True)
class Item:
    """Immutable category entry carrying the metric values challenges use."""

    item_id: str
    name: str
    category: str
    metrics: Tuple[Tuple[str, float], ...] = ()

    def metric(self, key: str) -> float:
        for name, value in self.metrics:
            if name == key:
                return value
        raise MissingMetric(f"Item {self.item_id!r} has no metric {key!r}.")

    def has_metric(self, key: str) -> bool:
        return any(name == key for name, _ in self.metrics)


def make_item(item_id: str, name: str, category: str, metrics: Mapping[str, float]) -> Item:
    return Item(item_id=item_id, name=name, category=category, metrics=tuple(sorted(metrics.items())))


@dataclass
class Category:
    category_id: str
    name: str
    items: List[Item] = field(default_factory=list)
    challenges: List[Challenge] = field(default_factory=list)


class Catalog:
    """Lookup of categories and their items by id."""

    def __init__(self, categories: Iterable[Category]) -> None:
        self._categories: Dict[str, Category] = {}
        self._items: Dict[str, Item] = {}
        for category in categories:
            if category.category_id in self._categories:
                raise ValueError(f"Duplicate category {category.category_id!r}.")
            self._categories[category.category_id] = category
            for item in category.items:
                if item.item_id in self._items:
                    raise ValueError(f"Duplicate item id {item.item_id!r}.")
                self._items[item.item_id] = item

    def __contains__(self, category_id: object) -> bool:
        return category_id in self._categories

    def category_ids(self) -> List[str]:
        return list(self._categories)

    def category(self, category_id: str) -> Category:
        return self._categories[category_id]

    def item(self, item_id: str) -> Item:
        return self._items[item_id]

    def items_in(self, category_id: str) -> List[Item]:
        return list(self._categories[category_id].items)


def serialize_item(item: Item) -> dict:
    return {"id": item.item_id, "name": item.name, "category": item.category}


def item_label(item: Item) -> str:
    return f"{item.name} ({item.category})"


def describe_direction(challenge: Challenge) -> str:
    """Display hint only; validation reads ``challenge.direction``."""
    if challenge.direction is Direction.ASCENDING:
        return "lowest first"
    return "highest first"
