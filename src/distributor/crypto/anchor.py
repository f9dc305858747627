"""Chain anchoring — publishes an allocation root on an EVM chain.

Anchoring embeds the allocation Merkle root in a transaction, giving a
timestamped, publicly verifiable proof that the allocation table had
exactly this content before any claim was paid against it.

No contract executes on chain. The transaction is a 0-value self-send
whose data field is the 32-byte root.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from distributor.config import AnchorConfig


@dataclass(frozen=True)
class AnchorRecord:
    """A record of a successful anchor."""
    token: str
    allocation_root: str
    tx_hash: str
    block_number: int
    chain_id: int
    timestamp_utc: str
    explorer_url: str


def root_bytes(allocation_root: str) -> bytes:
    """The 32 raw bytes of a ``sha256:`` root."""
    digest = allocation_root.removeprefix("sha256:")
    raw = bytes.fromhex(digest)
    if len(raw) != 32:
        raise ValueError(f"Allocation root must be 32 bytes, got {len(raw)}")
    return raw


def anchor_to_chain(
    token: str,
    allocation_root: str,
    config: AnchorConfig,
    gas: int = 30_000,
    gas_price_gwei: str = "2",
    timeout: int = 300,
) -> AnchorRecord:
    """Send the root to chain and wait for one confirmation.

    Raises:
        ValueError: If the anchor config lacks an RPC URL or key, or the
            root is malformed.
    """
    if not config.configured:
        raise ValueError("Anchoring requires ANCHOR_RPC_URL and ANCHOR_PRIVATE_KEY")
    data = root_bytes(allocation_root)

    from web3 import Web3, HTTPProvider
    from eth_account import Account

    w3 = Web3(HTTPProvider(config.rpc_url))
    acct = Account.from_key(config.private_key)

    tx = {
        "to": acct.address,
        "value": 0,
        "gas": gas,
        "gasPrice": w3.to_wei(gas_price_gwei, "gwei"),
        "nonce": w3.eth.get_transaction_count(acct.address),
        "chainId": config.chain_id,
        "data": data,
    }
    signed = acct.sign_transaction(tx)
    tx_hash = w3.eth.send_raw_transaction(signed.raw_transaction)
    receipt = w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)

    return AnchorRecord(
        token=token,
        allocation_root=allocation_root,
        tx_hash=tx_hash.hex(),
        block_number=receipt.blockNumber,
        chain_id=config.chain_id,
        timestamp_utc=datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        explorer_url=f"{config.explorer_base}{tx_hash.hex()}",
    )
