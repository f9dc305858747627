"""Distributor CLI — command-line interface over the distributor service.

Usage:
    python -m distributor.cli status
    python -m distributor.cli mint --token GEN --account treasury --amount 5000
    python -m distributor.cli init --token GEN
    python -m distributor.cli set-allocation --token GEN --reason R1 --entry alice=1000 --entry bob=250
    python -m distributor.cli set-allocation --token GEN --reason R2 --csv airdrop.csv
    python -m distributor.cli deposit --token GEN --amount 1250
    python -m distributor.cli enable --token GEN
    python -m distributor.cli claim --token GEN --as alice
    python -m distributor.cli unclaimed --token GEN --recipient bob
    python -m distributor.cli check-invariants

Owner commands act as the configured owner unless ``--as`` says otherwise.
"""

from __future__ import annotations

import argparse
import csv
import json
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Optional

from distributor.audit import check_state
from distributor.config import DistributorConfig
from distributor.crypto.merkle import verify_proof
from distributor.persistence.event_log import EventLog
from distributor.persistence.state_store import StateStore
from distributor.service import DistributorService, ServiceResult


ROOT = Path(__file__).resolve().parents[2]
DEFAULT_CONFIG = ROOT / "config"
DEFAULT_DATA = ROOT / "data"


def _make_service(args: argparse.Namespace) -> DistributorService:
    """Create a DistributorService with durable persistence."""
    data_dir: Path = args.data_dir
    data_dir.mkdir(parents=True, exist_ok=True)
    config = DistributorConfig.from_config_dir(args.config, env_file=ROOT / ".env")
    return DistributorService(
        config,
        event_log=EventLog(storage_path=data_dir / "events.jsonl"),
        state_store=StateStore(storage_path=data_dir / "state.json"),
    )


def _caller(args: argparse.Namespace, service: DistributorService) -> str:
    return args.caller or service.config.owner_id


def _report(result: ServiceResult) -> int:
    if result.success:
        print(json.dumps(result.data, indent=2, default=str))
        return 0
    print(f"Failed: {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def _parse_entries(entries: list[str]) -> tuple[list[str], list[int]]:
    recipients: list[str] = []
    amounts: list[int] = []
    for entry in entries:
        recipient, sep, amount = entry.rpartition("=")
        if not sep or not recipient:
            raise ValueError(f"Entry must look like recipient=amount, got {entry!r}")
        recipients.append(recipient.strip())
        amounts.append(int(amount))
    return recipients, amounts


def _read_csv(path: Path) -> tuple[list[str], list[int]]:
    """Read recipient,amount rows. A header row starting 'recipient' is skipped."""
    recipients: list[str] = []
    amounts: list[int] = []
    with path.open("r", encoding="utf-8", newline="") as handle:
        for row in csv.reader(handle):
            if not row or row[0].strip().lower() == "recipient":
                continue
            if len(row) != 2:
                raise ValueError(f"CSV row must have 2 columns, got {row!r}")
            recipients.append(row[0].strip())
            amounts.append(int(row[1]))
    return recipients, amounts


def cmd_status(args: argparse.Namespace) -> int:
    service = _make_service(args)
    print(json.dumps(service.status(), indent=2))
    return 0


def cmd_init(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.init_token(_caller(args, service), args.token))


def cmd_mint(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.mint(args.token, args.account, args.amount))


def cmd_set_allocation(args: argparse.Namespace) -> int:
    service = _make_service(args)
    try:
        if args.csv is not None:
            recipients, amounts = _read_csv(args.csv)
        else:
            recipients, amounts = _parse_entries(args.entry or [])
    except (ValueError, OSError) as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1
    return _report(service.set_allocation(
        _caller(args, service), args.token, recipients, amounts, args.reason,
    ))


def cmd_deposit(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.deposit(_caller(args, service), args.token, args.amount))


def cmd_enable(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.enable(_caller(args, service), args.token, True))


def cmd_disable(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.enable(_caller(args, service), args.token, False))


def cmd_claim(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.claim(args.caller, args.token))


def cmd_unclaimed(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.user_unclaimed(args.token, args.recipient))


def cmd_history(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.user_all(args.token, args.recipient))


def cmd_root(args: argparse.Namespace) -> int:
    service = _make_service(args)
    try:
        root = service.distributor(args.token).allocation_root()
    except ValueError as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1
    print(root)
    return 0


def cmd_proof(args: argparse.Namespace) -> int:
    service = _make_service(args)
    try:
        proof = service.distributor(args.token).allocation_proof(
            args.reason, args.recipient,
        )
    except ValueError as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1
    if proof is None:
        print(
            f"Failed: {args.recipient} has no line in {args.reason!r}",
            file=sys.stderr,
        )
        return 1
    print(json.dumps({**asdict(proof), "valid": verify_proof(proof)}, indent=2))
    return 0


def cmd_anchor(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.anchor(_caller(args, service), args.token))


def cmd_check_invariants(args: argparse.Namespace) -> int:
    """Run invariant checks over the persisted state and event log."""
    service = _make_service(args)
    events = service.event_log.events() if service.event_log is not None else None
    errors = check_state(service.snapshot(), events)
    if errors:
        for err in errors:
            print(f"VIOLATION: {err}", file=sys.stderr)
        return 1
    print("All distributor invariants hold.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="distributor",
        description="Token distributor — staged allocations, solvency-gated claims",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help="Path to config directory (default: config/)",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=DEFAULT_DATA,
        help="Directory for state.json and events.jsonl (default: data/)",
    )
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("status", help="Show distributor status for every token")

    def token_cmd(name: str, help_text: str, caller_required: bool = False) -> argparse.ArgumentParser:
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--token", required=True, help="Token type")
        p.add_argument(
            "--as", dest="caller", required=caller_required,
            help="Caller identity (default: configured owner)",
        )
        return p

    token_cmd("init", "Initialize a distributor for a token type")

    p_mint = sub.add_parser("mint", help="Credit an account on the local ledger")
    p_mint.add_argument("--token", required=True, help="Token type")
    p_mint.add_argument("--account", required=True, help="Account to credit")
    p_mint.add_argument("--amount", required=True, type=int, help="Amount (base units)")

    p_set = token_cmd("set-allocation", "Set (or replace) the allocation for a reason")
    p_set.add_argument("--reason", required=True, help="Campaign reason key")
    source = p_set.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--entry", action="append",
        help="recipient=amount (repeatable)",
    )
    source.add_argument("--csv", type=Path, help="CSV file of recipient,amount rows")

    p_dep = token_cmd("deposit", "Deposit owner funds into escrow")
    p_dep.add_argument("--amount", required=True, type=int, help="Amount (base units)")

    token_cmd("enable", "Open claims (solvency is checked)")
    token_cmd("disable", "Close claims")
    token_cmd("claim", "Claim every unclaimed entitlement", caller_required=True)

    for name, help_text in (
        ("unclaimed", "Show what a recipient can still claim"),
        ("history", "Show a recipient's full allocation history"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--token", required=True, help="Token type")
        p.add_argument("--recipient", required=True, help="Recipient identity")

    p_root = sub.add_parser("root", help="Print the allocation Merkle root")
    p_root.add_argument("--token", required=True, help="Token type")

    p_proof = sub.add_parser("proof", help="Print a recipient's inclusion proof")
    p_proof.add_argument("--token", required=True, help="Token type")
    p_proof.add_argument("--reason", required=True, help="Campaign reason key")
    p_proof.add_argument("--recipient", required=True, help="Recipient identity")

    token_cmd("anchor", "Anchor the allocation root on chain")

    sub.add_parser("check-invariants", help="Run distributor invariant checks")

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "status": cmd_status,
        "init": cmd_init,
        "mint": cmd_mint,
        "set-allocation": cmd_set_allocation,
        "deposit": cmd_deposit,
        "enable": cmd_enable,
        "disable": cmd_disable,
        "claim": cmd_claim,
        "unclaimed": cmd_unclaimed,
        "history": cmd_history,
        "root": cmd_root,
        "proof": cmd_proof,
        "anchor": cmd_anchor,
        "check-invariants": cmd_check_invariants,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    return handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
