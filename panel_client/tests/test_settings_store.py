from __future__ import annotations

import json

from panel_client.settings_store import PanelSettings, SettingsStore, normalize_language


def test_missing_file_yields_defaults(tmp_path):
    settings = SettingsStore(tmp_path / "panel_settings.json").load()
    assert settings == PanelSettings(score_only=False, mirrored=False, language="Italiano")


def test_save_uses_slash_keys(tmp_path):
    path = tmp_path / "nested" / "panel_settings.json"
    store = SettingsStore(path)
    assert store.save(PanelSettings(score_only=True, mirrored=True, language="English")) is True

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data == {"panel/scoreOnly": True, "panel/orientation": True, "language/current": "English"}
    assert store.load() == PanelSettings(score_only=True, mirrored=True, language="English")


def test_corrupt_file_falls_back(tmp_path):
    path = tmp_path / "panel_settings.json"
    path.write_text("{not json", encoding="utf-8")
    assert SettingsStore(path).load() == PanelSettings()


def test_bad_values_are_normalised(tmp_path):
    path = tmp_path / "panel_settings.json"
    path.write_text(
        json.dumps({"panel/scoreOnly": "yes", "panel/orientation": 2, "language/current": "Klingon"}),
        encoding="utf-8",
    )
    assert SettingsStore(path).load() == PanelSettings()


def test_settings_are_replaced_not_mutated():
    original = PanelSettings()
    updated = original.with_score_only(True).with_orientation(1).with_language("English")
    assert original == PanelSettings()
    assert (updated.score_only, updated.mirrored, updated.language) == (True, True, "English")
    assert updated.with_orientation(0).orientation == 0


def test_normalize_language():
    assert normalize_language("English") == "English"
    assert normalize_language("english") == "Italiano"
    assert normalize_language(None) == "Italiano"


def test_integer_flags_from_older_files_still_load(tmp_path):
    path = tmp_path / "panel_settings.json"
    path.write_text(
        json.dumps({"panel/scoreOnly": 1, "panel/orientation": 1, "language/current": "English"}),
        encoding="utf-8",
    )
    store = SettingsStore(path)
    assert store.load() == PanelSettings(score_only=True, mirrored=True, language="English")

    store.save(PanelSettings(mirrored=False))
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["panel/scoreOnly"] is False
    assert data["panel/orientation"] is False
