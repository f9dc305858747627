#!/usr/bin/env python3
"""Anchor a token's allocation Merkle root on an EVM chain.

The root commits to every (reason, recipient, amount) line. Anchoring it
before opening claims gives recipients public proof that the table they
claim against is the one the owner published.

Usage:
    python3 tools/anchor_allocations.py GEN
    python3 tools/anchor_allocations.py GEN path/to/data

Requires:
    ANCHOR_RPC_URL and ANCHOR_PRIVATE_KEY in a .env file at the project root.
"""

import sys
from pathlib import Path

from dotenv import load_dotenv

from distributor.config import DistributorConfig
from distributor.persistence.event_log import EventLog
from distributor.persistence.state_store import StateStore
from distributor.service import DistributorService

ROOT = Path(__file__).resolve().parents[1]

# ------------------------------------------------------------------ #
# Configuration                                                       #
# ------------------------------------------------------------------ #

load_dotenv(ROOT / ".env")

if len(sys.argv) < 2:
    print(__doc__)
    sys.exit(1)

TOKEN = sys.argv[1]
DATA_DIR = Path(sys.argv[2]) if len(sys.argv) > 2 else ROOT / "data"

config = DistributorConfig.from_config_dir(ROOT / "config")
if not config.anchor.configured:
    print("ERROR: Missing ANCHOR_RPC_URL and/or ANCHOR_PRIVATE_KEY in .env")
    sys.exit(1)

service = DistributorService(
    config,
    event_log=EventLog(storage_path=DATA_DIR / "events.jsonl"),
    state_store=StateStore(storage_path=DATA_DIR / "state.json"),
)

# ------------------------------------------------------------------ #
# Anchor                                                              #
# ------------------------------------------------------------------ #

print("=" * 60)
print("TOKEN DISTRIBUTOR — ALLOCATION ANCHOR")
print("=" * 60)
print(f"  Token:    {TOKEN}")
print(f"  Chain ID: {config.anchor.chain_id}")
print("  Waiting for confirmation ...")

result = service.anchor(config.owner_id, TOKEN)
if not result.success:
    print(f"ERROR: {'; '.join(result.errors)}")
    sys.exit(1)

print()
print(f"  Root:     {result.data['allocation_root']}")
print(f"  Tx:       {result.data['tx_hash']}")
print(f"  Block:    {result.data['block_number']}")
print(f"  Explorer: {result.data['explorer_url']}")
