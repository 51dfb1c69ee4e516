import json

import pytest

from engine.catalog import CatalogError, backfill_direction, build_catalog, catalog_from_dict, load_catalog
from engine.items import Direction, MissingMetric
from engine.rules_schema import RULE_PRESETS, RuleConfig, RulesError, get_preset, load_rules_file


def test_builtin_catalog_has_metrics_for_every_challenge():
    catalog = build_catalog()
    assert set(catalog.category_ids()) == {"movies", "countries", "animals"}
    for category_id in catalog.category_ids():
        category = catalog.category(category_id)
        assert len(category.items) >= 10
        for challenge in category.challenges:
            assert all(item.has_metric(challenge.metric) for item in category.items)


def test_missing_metric_raises():
    item = build_catalog().items_in("movies")[0]
    with pytest.raises(MissingMetric):
        item.metric("population")


@pytest.mark.parametrize(
    "label, direction",
    [
        ("Highest box office first", Direction.DESCENDING),
        ("Smallest area first", Direction.ASCENDING),
        ("Order from earliest to ... well", Direction.ASCENDING),
    ],
)
def test_backfill_direction(label, direction):
    assert backfill_direction(label) is direction


@pytest.mark.parametrize("label", ["Sort them", "Highest to lowest"])
def test_backfill_direction_rejects_unclear_labels(label):
    with pytest.raises(CatalogError):
        backfill_direction(label)


def _payload(challenge):
    return {
        "categories": [
            {
                "id": "cities",
                "name": "Cities",
                "items": [
                    {"id": "c1", "name": "Oslo", "metrics": {"population": 0.7}},
                    {"id": "c2", "name": "Tokyo", "metrics": {"population": 37.0}},
                ],
                "challenges": [challenge],
            }
        ]
    }


def test_catalog_from_dict_backfills_direction_from_label():
    catalog = catalog_from_dict(_payload({"metric": "population", "label": "Most populous first"}))
    challenge = catalog.category("cities").challenges[0]
    assert challenge.direction is Direction.DESCENDING
    assert catalog.item("c2").metric("population") == 37.0


def test_catalog_from_dict_rejects_items_missing_metric():
    with pytest.raises(CatalogError):
        catalog_from_dict(_payload({"metric": "area", "direction": "ascending"}))


def test_load_catalog_from_file(tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps(_payload({"metric": "population", "direction": "ascending"})), encoding="utf-8")
    catalog = load_catalog(path)
    assert catalog.category("cities").challenges[0].direction is Direction.ASCENDING


def test_rule_presets_validate():
    assert set(RULE_PRESETS) == {"classic", "quick", "no_ownership", "keepers"}
    assert get_preset("quick").max_rounds == 5
    assert get_preset("no_ownership").blocking_grants_ownership is False
    with pytest.raises(RulesError):
        get_preset("missing")


def test_rule_config_rejects_inconsistent_limits():
    with pytest.raises(ValueError):
        RuleConfig(opening_bid=5, max_bid=3)
    with pytest.raises(ValueError):
        RuleConfig(hand_size=4, max_bid=5)


def test_load_rules_file_layers_on_preset(tmp_path):
    path = tmp_path / "rules.json"
    path.write_text(json.dumps({"base": "keepers", "name": "house", "max_rounds": 3}), encoding="utf-8")
    rules = load_rules_file(path)
    assert rules.name == "house"
    assert rules.max_rounds == 3
    assert rules.allow_owned_in_ranking is True
    assert rules.starting_tokens == 2


def test_load_rules_file_reports_invalid_values(tmp_path):
    path = tmp_path / "rules.json"
    path.write_text(json.dumps({"max_bid": 50}), encoding="utf-8")
    with pytest.raises(RulesError):
        load_rules_file(path)
