"""
Tests for scenario loading.
"""
import pytest

import chat_session.prompts as prompts
from chat_session.prompts import Scenario, get_scenario, load_scenario


def test_default_scenario_from_yaml():
    scenario = load_scenario("default")

    assert scenario.name == "default"
    assert scenario.assistant_name == "Sarah"
    assert "BMW" in scenario.welcome_text
    assert scenario.sample_phrases == [
        "What are the current BMW models available?",
        "Which model is best for a family?",
        "How does the BMW warranty work?",
    ]


def test_unknown_scenario_falls_back_to_default():
    assert load_scenario("does_not_exist") == load_scenario("default")


def test_hardcoded_fallback(tmp_path, monkeypatch):
    monkeypatch.setattr(prompts, "_get_scenarios_dir", lambda: tmp_path)

    scenario = load_scenario("anything")

    assert scenario == Scenario(name="default")
    assert scenario.sample_phrases == []


def test_scenario_from_env(tmp_path, monkeypatch):
    (tmp_path / "showroom.yml").write_text(
        "name: showroom\nassistant_name: Max\nsample_phrases:\n  - Book a test drive\n"
    )
    monkeypatch.setattr(prompts, "_get_scenarios_dir", lambda: tmp_path)
    monkeypatch.setenv("CHAT_SCENARIO", "showroom")

    scenario = get_scenario()

    assert scenario.assistant_name == "Max"
    assert scenario.sample_phrases == ["Book a test drive"]


def test_json_scenario(tmp_path, monkeypatch):
    (tmp_path / "kiosk.json").write_text('{"name": "kiosk", "welcome_text": "  Hi there  "}')
    monkeypatch.setattr(prompts, "_get_scenarios_dir", lambda: tmp_path)

    assert load_scenario("kiosk").welcome_text == "Hi there"


@pytest.mark.parametrize("content", ["- just\n- a list\n", "name: x\nsample_phrases: nope\n"])
def test_invalid_scenario_file(tmp_path, monkeypatch, content):
    (tmp_path / "broken.yaml").write_text(content)
    monkeypatch.setattr(prompts, "_get_scenarios_dir", lambda: tmp_path)

    with pytest.raises(ValueError):
        load_scenario("broken")
