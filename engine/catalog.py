"""Built-in category catalog and JSON catalog loading."""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .items import Catalog, Category, Challenge, Direction, make_item

logger = logging.getLogger(__name__)


class CatalogError(ValueError):
    """Raised when catalog data cannot be loaded or validated."""


# name -> (box office in $M, release year, runtime in minutes)
_MOVIES: Dict[str, tuple] = {
    "Avatar": (2923, 2009, 162),
    "Avengers: Endgame": (2799, 2019, 181),
    "Titanic": (2264, 1997, 194),
    "Star Wars: The Force Awakens": (2071, 2015, 138),
    "Jurassic World": (1671, 2015, 124),
    "The Lion King (2019)": (1663, 2019, 118),
    "Frozen II": (1453, 2019, 103),
    "Top Gun: Maverick": (1495, 2022, 130),
    "Barbie": (1446, 2023, 114),
    "The Dark Knight": (1006, 2008, 152),
    "Jaws": (476, 1975, 124),
    "E.T. the Extra-Terrestrial": (797, 1982, 115),
    "The Matrix": (467, 1999, 136),
    "Forrest Gump": (678, 1994, 142),
    "Inception": (837, 2010, 148),
    "Finding Nemo": (941, 2003, 100),
    "Gone with the Wind": (402, 1939, 238),
    "Toy Story": (394, 1995, 81),
}

# name -> (population in millions, area in thousand km2, GDP in $B)
_COUNTRIES: Dict[str, tuple] = {
    "India": (1429, 3287, 3550),
    "China": (1410, 9597, 17790),
    "United States": (335, 9834, 27360),
    "Indonesia": (278, 1905, 1371),
    "Pakistan": (240, 882, 338),
    "Nigeria": (224, 924, 363),
    "Brazil": (216, 8516, 2174),
    "Bangladesh": (173, 148, 437),
    "Russia": (144, 17098, 2021),
    "Mexico": (128, 1964, 1789),
    "Japan": (124, 378, 4213),
    "Germany": (84, 357, 4456),
    "France": (68, 552, 3031),
    "Canada": (40, 9985, 2140),
    "Australia": (27, 7692, 1724),
    "Norway": (5.5, 385, 485),
    "Iceland": (0.39, 103, 31),
    "Egypt": (113, 1002, 396),
}

# name -> (adult weight in kg, lifespan in years, top speed in km/h)
_ANIMALS: Dict[str, tuple] = {
    "Blue Whale": (150000, 90, 50),
    "African Elephant": (6000, 70, 40),
    "Giraffe": (1200, 25, 60),
    "Hippopotamus": (1500, 45, 30),
    "Polar Bear": (450, 25, 40),
    "Lion": (190, 14, 80),
    "Cheetah": (54, 12, 110),
    "Grey Wolf": (40, 13, 65),
    "Red Kangaroo": (85, 22, 70),
    "Ostrich": (120, 45, 70),
    "Galapagos Tortoise": (300, 150, 0.3),
    "Bald Eagle": (5, 28, 160),
    "House Cat": (4.5, 15, 48),
    "Greyhound": (30, 12, 72),
    "Horse": (500, 28, 88),
    "Emperor Penguin": (30, 20, 9),
    "Sloth": (6, 30, 0.27),
    "Peregrine Falcon": (1, 15, 390),
}


def _slug(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")


def _build_category(category_id: str, name: str, rows: Dict[str, tuple], metric_names: List[str], challenges: List[Challenge]) -> Category:
    items = [
        make_item(f"{category_id}-{_slug(item_name)}", item_name, category_id, dict(zip(metric_names, values)))
        for item_name, values in rows.items()
    ]
    return Category(category_id=category_id, name=name, items=items, challenges=challenges)


def build_catalog() -> Catalog:
    """Return the built-in catalog used when no catalog file is given."""
    movies = _build_category(
        "movies",
        "Movies",
        _MOVIES,
        ["box_office", "release_year", "runtime"],
        [
            Challenge("movies", "box_office", Direction.DESCENDING, "Highest worldwide box office first"),
            Challenge("movies", "release_year", Direction.ASCENDING, "Earliest release first"),
            Challenge("movies", "runtime", Direction.DESCENDING, "Longest runtime first"),
        ],
    )
    countries = _build_category(
        "countries",
        "Countries",
        _COUNTRIES,
        ["population", "area", "gdp"],
        [
            Challenge("countries", "population", Direction.DESCENDING, "Most populous first"),
            Challenge("countries", "area", Direction.ASCENDING, "Smallest area first"),
            Challenge("countries", "gdp", Direction.DESCENDING, "Largest economy first"),
        ],
    )
    animals = _build_category(
        "animals",
        "Animals",
        _ANIMALS,
        ["weight", "lifespan", "top_speed"],
        [
            Challenge("animals", "weight", Direction.DESCENDING, "Heaviest first"),
            Challenge("animals", "lifespan", Direction.ASCENDING, "Shortest lifespan first"),
            Challenge("animals", "top_speed", Direction.DESCENDING, "Fastest first"),
        ],
    )
    return Catalog([movies, countries, animals])


_DESCENDING_WORDS = ("highest", "most", "largest", "biggest", "longest", "heaviest", "fastest", "descending", "latest", "newest")
_ASCENDING_WORDS = ("lowest", "least", "smallest", "shortest", "lightest", "slowest", "ascending", "earliest", "oldest", "fewest")


def backfill_direction(label: str) -> Direction:
    """Infer a structured direction from a challenge label.

    Migration step for catalog files that only describe the direction in
    prose. Runs once at load time; nothing downstream reads the label.
    """
    text = label.lower()
    descending = any(re.search(rf"\b{word}\b", text) for word in _DESCENDING_WORDS)
    ascending = any(re.search(rf"\b{word}\b", text) for word in _ASCENDING_WORDS)
    if descending == ascending:
        raise CatalogError(f"Cannot infer ranking direction from label {label!r}.")
    return Direction.DESCENDING if descending else Direction.ASCENDING


class ChallengeEntry(BaseModel):
    metric: str
    direction: Optional[Direction] = None
    label: str = ""

    @model_validator(mode="after")
    def ensure_direction(self) -> "ChallengeEntry":
        if self.direction is None and not self.label:
            raise ValueError(f"Challenge on {self.metric!r} needs a direction or a label to migrate from.")
        return self


class ItemEntry(BaseModel):
    id: str
    name: str
    metrics: Dict[str, float]


class CategoryEntry(BaseModel):
    id: str
    name: str
    items: List[ItemEntry] = Field(min_length=1)
    challenges: List[ChallengeEntry] = Field(min_length=1)

    @model_validator(mode="after")
    def metrics_present(self) -> "CategoryEntry":
        for challenge in self.challenges:
            missing = [item.id for item in self.items if challenge.metric not in item.metrics]
            if missing:
                raise ValueError(f"Items {missing} lack metric {challenge.metric!r} required by a challenge.")
        return self


class CatalogFile(BaseModel):
    categories: List[CategoryEntry]

    @field_validator("categories")
    def ensure_non_empty(cls, value: List[CategoryEntry]) -> List[CategoryEntry]:
        if not value:
            raise ValueError("Catalog must define at least one category.")
        return value


def catalog_from_dict(payload: dict) -> Catalog:
    try:
        parsed = CatalogFile.model_validate(payload)
    except ValidationError as exc:
        raise CatalogError(str(exc)) from exc

    categories = []
    for entry in parsed.categories:
        challenges = []
        for raw in entry.challenges:
            direction = raw.direction
            if direction is None:
                direction = backfill_direction(raw.label)
                logger.info("Backfilled direction %s for %s/%s from label", direction, entry.id, raw.metric)
            challenges.append(Challenge(entry.id, raw.metric, direction, raw.label))
        items = [make_item(item.id, item.name, entry.id, item.metrics) for item in entry.items]
        categories.append(Category(category_id=entry.id, name=entry.name, items=items, challenges=challenges))
    try:
        return Catalog(categories)
    except ValueError as exc:
        raise CatalogError(str(exc)) from exc


def load_catalog(path: Path) -> Catalog:
    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise CatalogError(f"Could not read catalog {path}: {exc}") from exc
    catalog = catalog_from_dict(payload)
    logger.info("Loaded catalog %s with %d categories", path, len(catalog.category_ids()))
    return catalog
