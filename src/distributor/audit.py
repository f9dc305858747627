"""Invariant checks over a persisted distributor snapshot.

Checks, per token:
- Every claimed reason exists in the allocation registry.
- No claim record lists a reason twice, and its amounts match its reasons.
- Claim records sum to the escrow's total paid out.
- Escrow balance is non-negative.
- Escrow accounting: deposited - paid out == balance, where the ledger
  balance is available in the snapshot.
- Event log (when given): the sum of ESCROW_DEPOSITED amounts and
  REWARD_CLAIMED amounts agree with the escrow's running totals, and no
  (recipient, reason) pair was claimed twice.
"""

from __future__ import annotations

from typing import Any, Optional

from distributor.persistence.event_log import EventKind, EventRecord


def check_state(
    snapshot: dict[str, Any],
    events: Optional[list[EventRecord]] = None,
) -> list[str]:
    """Return a list of violation descriptions; empty means all checks pass."""
    errors: list[str] = []
    ledger_balances = (snapshot.get("ledger") or {}).get("balances", {})

    for token, data in sorted(snapshot.get("distributors", {}).items()):
        registry = {a["reason"]: a for a in data["registry"].get("allocations", [])}
        escrow = data["escrow"]

        for record in data["claims"].get("records", []):
            recipient = record["recipient"]
            reasons = record.get("reasons", [])
            amounts = record.get("amounts", {})
            if len(set(reasons)) != len(reasons):
                errors.append(f"{token}: {recipient} has a reason recorded twice")
            if set(reasons) != set(amounts):
                errors.append(
                    f"{token}: {recipient} claim reasons and amounts disagree"
                )
            for reason in reasons:
                if reason not in registry:
                    errors.append(
                        f"{token}: {recipient} claimed unknown reason {reason!r}"
                    )

        paid = escrow.get("total_paid_out", 0)
        deposited = escrow.get("total_deposited", 0)
        if paid > deposited:
            errors.append(
                f"{token}: paid out {paid} exceeds deposited {deposited}"
            )
        account = escrow["account_id"]
        if token in ledger_balances:
            balance = ledger_balances[token].get(account, 0)
            if balance < 0:
                errors.append(f"{token}: escrow balance is negative ({balance})")
            if deposited - paid != balance:
                errors.append(
                    f"{token}: escrow balance {balance} != deposited {deposited} "
                    f"- paid out {paid}"
                )

        claimed_total = sum(
            sum(r.get("amounts", {}).values())
            for r in data["claims"].get("records", [])
        )
        if claimed_total != paid:
            errors.append(
                f"{token}: claim records total {claimed_total} != escrow paid out {paid}"
            )

        if events is not None:
            errors.extend(_check_events(token, escrow, events))

    return errors


def _check_events(
    token: str,
    escrow: dict[str, Any],
    events: list[EventRecord],
) -> list[str]:
    errors: list[str] = []
    deposited = 0
    paid = 0
    seen: set[tuple[str, str]] = set()
    for event in events:
        if event.payload.get("token") != token:
            continue
        if event.event_kind == EventKind.ESCROW_DEPOSITED:
            deposited += event.payload["amount"]
        elif event.event_kind == EventKind.REWARD_CLAIMED:
            key = (event.payload["recipient"], event.payload["reason"])
            if key in seen:
                errors.append(
                    f"{token}: {key[0]} was paid for {key[1]!r} more than once"
                )
            seen.add(key)
            paid += event.payload["amount"]

    if deposited != escrow.get("total_deposited", 0):
        errors.append(
            f"{token}: event log deposits {deposited} != escrow deposits "
            f"{escrow.get('total_deposited', 0)}"
        )
    if paid != escrow.get("total_paid_out", 0):
        errors.append(
            f"{token}: event log payouts {paid} != escrow payouts "
            f"{escrow.get('total_paid_out', 0)}"
        )
    return errors
