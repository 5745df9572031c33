from __future__ import annotations

import json
from pathlib import Path

import pytest

from order_intake.settings.store import (
    DEFAULT_PAGINATION_LIMIT,
    MAX_TEMPLATES,
    JsonKeyValueStore,
    SettingsStore,
    TemplateStore,
)


def test_settings_default_when_file_missing(tmp_path: Path):
    settings = SettingsStore.at(tmp_path / "settings.json").load()
    assert settings.pagination_limit == DEFAULT_PAGINATION_LIMIT == 25


def test_settings_update_persists_under_namespaced_key(tmp_path: Path):
    path = tmp_path / "nested" / "settings.json"
    store = SettingsStore.at(path)
    store.update_pagination_limit(10)
    assert json.loads(path.read_text(encoding="utf-8")) == {"order_intake_settings": {"pagination_limit": 10}}
    assert SettingsStore.at(path).load().pagination_limit == 10
    with pytest.raises(ValueError):
        store.update_pagination_limit(0)


def test_settings_corrupt_file_reads_as_default(tmp_path: Path):
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")
    assert SettingsStore.at(path).load().pagination_limit == 25
    path.write_text(json.dumps({"order_intake_settings": {"pagination_limit": "many"}}), encoding="utf-8")
    assert SettingsStore.at(path).load().pagination_limit == 25


def test_templates_newest_first_and_capped(tmp_path: Path):
    templates = TemplateStore(JsonKeyValueStore(tmp_path / "s.json"))
    for i in range(MAX_TEMPLATES + 2):
        templates.save_template([f"h{i}"], {0: "sku"}, name=f"t{i}")
    names = [t.name for t in templates.get_templates()]
    assert names == ["t6", "t5", "t4", "t3", "t2"]


def test_templates_are_per_customer(tmp_path: Path):
    templates = TemplateStore(JsonKeyValueStore(tmp_path / "s.json"))
    templates.save_template(["SKU", "Qty"], {0: "sku", 1: "quantity"}, customer="acme")
    assert templates.get_templates("default") == []
    assert len(templates.get_templates("acme")) == 1


def test_find_matching_template_by_header(tmp_path: Path):
    store = JsonKeyValueStore(tmp_path / "s.json")
    templates = TemplateStore(store)
    templates.save_template(["Kód", "Ks"], {0: "sku", 1: "quantity"}, name="old")
    templates.save_template(["Kód", "Ks"], {1: "sku", 0: "quantity"}, name="new")
    templates.save_template(["Other"], {0: "sku"}, name="other")

    found = TemplateStore(store).find_matching_template([" kód ", "KS"])
    assert found is not None
    assert found.name == "new"
    # int keys survive the JSON round trip
    assert found.mapping == {1: "sku", 0: "quantity"}
    assert templates.find_matching_template(["Kód"]) is None


def test_settings_and_templates_share_one_file(tmp_path: Path):
    store = JsonKeyValueStore(tmp_path / "s.json")
    SettingsStore(store).update_pagination_limit(5)
    TemplateStore(store).save_template(["A"], {0: "sku"})
    data = json.loads((tmp_path / "s.json").read_text(encoding="utf-8"))
    assert set(data) == {"order_intake_settings", "order_intake_templates_default"}
