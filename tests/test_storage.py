import pytest

from guardrail_planner.calculators.errors import StorageError
from guardrail_planner.storage import ScenarioStore


def test_save_and_load(tmp_path):
    store = ScenarioStore(tmp_path)
    store.save_scenario("base", {"desired_spending": 45_000})
    store.save_scenario("lean", {"desired_spending": 38_000})
    assert store.load_scenario("base") == {"desired_spending": 45_000}
    assert [s["name"] for s in store.list_scenarios()] == ["lean", "base"]


def test_resave_replaces_and_moves_to_front(tmp_path):
    store = ScenarioStore(tmp_path)
    store.save_scenario("base", {"v": 1})
    store.save_scenario("other", {"v": 2})
    store.save_scenario("base", {"v": 3})
    assert [s["name"] for s in store.list_scenarios()] == ["base", "other"]
    assert store.load_scenario("base") == {"v": 3}


def test_delete(tmp_path):
    store = ScenarioStore(tmp_path)
    store.save_scenario("base", {})
    assert store.delete_scenario("base") is True
    assert store.delete_scenario("base") is False
    assert store.list_scenarios() == []


def test_missing_scenario_and_empty_name(tmp_path):
    store = ScenarioStore(tmp_path)
    with pytest.raises(StorageError):
        store.load_scenario("nope")
    with pytest.raises(StorageError):
        store.save_scenario("  ", {})


def test_corrupt_file(tmp_path):
    (tmp_path / "scenarios.json").write_text("[{broken")
    with pytest.raises(StorageError):
        ScenarioStore(tmp_path).list_scenarios()
    (tmp_path / "history.json").write_text('{"not": "a list"}')
    with pytest.raises(StorageError):
        ScenarioStore(tmp_path).history()


def test_history_newest_first(tmp_path):
    store = ScenarioStore(tmp_path / "nested")
    for pos in (70.0, 85.5, 97.2):
        store.record_calculation("base", {"probability_of_success": pos, "guardrail_status": "x", "extra": 1})
    entries = store.history()
    assert [e["probability_of_success"] for e in entries] == [97.2, 85.5, 70.0]
    assert "extra" not in entries[0]
    assert len(store.history(limit=2)) == 2
