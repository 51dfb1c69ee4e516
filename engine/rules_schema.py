"""Validation schema and presets for FourFor4 rule configurations."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator


class RulesError(ValueError):
    """Raised when a rule configuration cannot be loaded."""


class RuleConfig(BaseModel):
    """Named, versioned set of knobs selected once per game."""

    model_config = ConfigDict(frozen=True)

    name: str = "classic"
    version: int = Field(1, ge=1)
    starting_tokens: int = Field(1, ge=0, description="Tokens of each denomination dealt to every player.")
    hand_size: int = Field(10, ge=1, description="Items drawn from the category each round.")
    opening_bid: int = Field(1, ge=1, description="Amount of the first bid of a round.")
    max_bid: int = Field(10, ge=1, description="Highest bid a player may commit to.")
    blocking_grants_ownership: bool = Field(True, description="A winning blocker keeps the blocked item.")
    allow_owned_in_ranking: bool = Field(False, description="The bidder may rank items they already own.")
    max_rounds: int = Field(10, ge=1)
    winning_score: int = Field(30, ge=1)
    owned_item_bonus: int = Field(1, ge=0, description="End-game points per owned item.")
    token_bonus: int = Field(1, ge=0, description="End-game points per remaining token.")
    min_players: int = Field(2, ge=2)
    max_players: int = Field(6, ge=2)

    @field_validator("name")
    def ensure_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Rule set name must not be empty.")
        return value

    @model_validator(mode="after")
    def validate_limits(self) -> "RuleConfig":
        if self.opening_bid > self.max_bid:
            raise ValueError("opening_bid cannot exceed max_bid.")
        if self.max_bid > self.hand_size:
            raise ValueError("max_bid cannot exceed hand_size.")
        if self.min_players > self.max_players:
            raise ValueError("min_players cannot exceed max_players.")
        return self


RULE_PRESETS: Dict[str, RuleConfig] = {
    "classic": RuleConfig(),
    "quick": RuleConfig(name="quick", max_rounds=5, winning_score=20),
    "no_ownership": RuleConfig(name="no_ownership", blocking_grants_ownership=False, owned_item_bonus=0),
    "keepers": RuleConfig(name="keepers", allow_owned_in_ranking=True, starting_tokens=2),
}


def get_preset(name: str) -> RuleConfig:
    try:
        return RULE_PRESETS[name]
    except KeyError as exc:
        raise RulesError(f"Unknown rule preset {name!r}. Known: {sorted(RULE_PRESETS)}") from exc


def load_rules_file(path: Path) -> RuleConfig:
    """Load a rule set from JSON, optionally layered on a named preset via ``base``."""
    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise RulesError(f"Could not read rules file {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise RulesError("Rules file must contain a JSON object.")

    base_name = payload.pop("base", None)
    merged = get_preset(base_name).model_dump() if base_name else {}
    merged.update(payload)
    try:
        return RuleConfig.model_validate(merged)
    except ValidationError as exc:
        raise RulesError(str(exc)) from exc
