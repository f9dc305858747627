"""Tests for the JSON state store."""

import json

import pytest

from distributor.persistence.state_store import STATE_VERSION, StateStore


class TestStateStore:
    def test_missing_file_loads_empty(self, tmp_path) -> None:
        store = StateStore(tmp_path / "state.json")
        assert not store.exists()
        assert store.load() == {
            "version": STATE_VERSION, "ledger": None, "distributors": {},
        }

    def test_save_then_load(self, tmp_path) -> None:
        store = StateStore(tmp_path / "nested" / "state.json")
        store.save({"GEN": {"token": "GEN"}}, ledger={"balances": {}})
        loaded = store.load()
        assert loaded["distributors"] == {"GEN": {"token": "GEN"}}
        assert loaded["ledger"] == {"balances": {}}
        assert not (tmp_path / "nested" / "state.json.tmp").exists()

    def test_save_replaces(self, tmp_path) -> None:
        store = StateStore(tmp_path / "state.json")
        store.save({"GEN": {}})
        store.save({"USD": {}})
        assert list(store.load()["distributors"]) == ["USD"]

    def test_unknown_version_rejected(self, tmp_path) -> None:
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"version": 99, "distributors": {}}), encoding="utf-8")
        with pytest.raises(ValueError, match="Unsupported state version"):
            StateStore(path).load()
