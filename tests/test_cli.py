"""Tests for the distributor CLI — proves CLI dispatches correctly."""

import json

import pytest
from pathlib import Path

from distributor.cli import build_parser, main


CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"


@pytest.fixture
def run(tmp_path, monkeypatch):
    monkeypatch.delenv("DISTRIBUTOR_OWNER", raising=False)
    data_dir = tmp_path / "data"

    def _run(*argv: str) -> int:
        return main(["--config", str(CONFIG_DIR), "--data-dir", str(data_dir), *argv])
    return _run


class TestCLIParsing:
    def test_status_command(self) -> None:
        args = build_parser().parse_args(["status"])
        assert args.command == "status"

    def test_set_allocation_entries(self) -> None:
        args = build_parser().parse_args([
            "set-allocation", "--token", "GEN", "--reason", "R1",
            "--entry", "alice=10", "--entry", "bob=20",
        ])
        assert args.entry == ["alice=10", "bob=20"]
        assert args.caller is None

    def test_set_allocation_needs_source(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["set-allocation", "--token", "GEN", "--reason", "R1"])

    def test_claim_requires_identity(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["claim", "--token", "GEN"])


class TestCLIExecution:
    def test_no_command_shows_help(self, run) -> None:
        assert run() == 0

    def test_status_runs(self, run) -> None:
        assert run("status") == 0

    def test_full_flow(self, run, capsys) -> None:
        assert run("mint", "--token", "GEN", "--account", "treasury", "--amount", "5000") == 0
        assert run("init", "--token", "GEN") == 0
        assert run(
            "set-allocation", "--token", "GEN", "--reason", "R1",
            "--entry", "alice=1000", "--entry", "bob=250",
        ) == 0
        assert run("deposit", "--token", "GEN", "--amount", "1250") == 0
        assert run("enable", "--token", "GEN") == 0
        capsys.readouterr()

        assert run("claim", "--token", "GEN", "--as", "alice") == 0
        out = json.loads(capsys.readouterr().out)
        assert out["total"] == 1000

        assert run("claim", "--token", "GEN", "--as", "alice") == 1
        assert "Failed:" in capsys.readouterr().err

        assert run("unclaimed", "--token", "GEN", "--recipient", "bob") == 0
        assert json.loads(capsys.readouterr().out)["total"] == 250

        assert run("check-invariants") == 0

    def test_csv_allocation(self, run, tmp_path, capsys) -> None:
        csv_path = tmp_path / "airdrop.csv"
        csv_path.write_text("recipient,amount\nalice,10\nbob,20\n", encoding="utf-8")
        assert run("init", "--token", "GEN") == 0
        assert run(
            "set-allocation", "--token", "GEN", "--reason", "AIR", "--csv", str(csv_path),
        ) == 0
        capsys.readouterr()
        assert run("history", "--token", "GEN", "--recipient", "bob") == 0
        lines = json.loads(capsys.readouterr().out)["lines"]
        assert lines == [{"reason": "AIR", "amount": 20, "claimed": False}]

    def test_bad_entry(self, run, capsys) -> None:
        assert run("init", "--token", "GEN") == 0
        assert run(
            "set-allocation", "--token", "GEN", "--reason", "R1", "--entry", "alice",
        ) == 1
        assert "recipient=amount" in capsys.readouterr().err

    def test_non_owner_refused(self, run, capsys) -> None:
        assert run("init", "--token", "GEN", "--as", "mallory") == 1
        assert "requires the owner" in capsys.readouterr().err

    def test_root_and_proof(self, run, capsys) -> None:
        assert run("init", "--token", "GEN") == 0
        assert run(
            "set-allocation", "--token", "GEN", "--reason", "R1", "--entry", "alice=5",
        ) == 0
        capsys.readouterr()
        assert run("root", "--token", "GEN") == 0
        root = capsys.readouterr().out.strip()
        assert root.startswith("sha256:")
        assert run("proof", "--token", "GEN", "--reason", "R1", "--recipient", "alice") == 0
        proof = json.loads(capsys.readouterr().out)
        assert proof["valid"] is True
        assert proof["root"] == root
        assert run("proof", "--token", "GEN", "--reason", "R1", "--recipient", "bob") == 1

    def test_unknown_token(self, run, capsys) -> None:
        assert run("root", "--token", "USD") == 1
        assert "No distributor initialized" in capsys.readouterr().err
