"""Distributor configuration.

Loaded from ``config/distributor.json``; selected values can be
overridden from the environment (a ``.env`` file at the project root is
read first, without overwriting variables already set):

    DISTRIBUTOR_OWNER                 owner identity
    DISTRIBUTOR_ESCROW_ACCOUNT        escrow account template ({token} substituted)
    DISTRIBUTOR_REQUIRE_CLOSED_GATE   "1"/"true" to forbid allocation changes
                                      while claims are enabled
    ANCHOR_RPC_URL, ANCHOR_PRIVATE_KEY, ANCHOR_CHAIN_ID
                                      chain anchoring (optional)
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

CONFIG_FILENAME = "distributor.json"
_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class AnchorConfig:
    """Where and how allocation roots are anchored on chain."""
    rpc_url: Optional[str] = None
    private_key: Optional[str] = None
    chain_id: int = 11155111  # Sepolia
    explorer_base: str = "https://sepolia.etherscan.io/tx/"

    @property
    def configured(self) -> bool:
        return bool(self.rpc_url and self.private_key)


@dataclass(frozen=True)
class DistributorConfig:
    """Runtime configuration for the distributor service."""
    owner_id: str
    escrow_account_template: str = "escrow:{token}"
    tokens: tuple[str, ...] = ()  # empty: any token type may be initialized
    require_closed_gate_for_allocation: bool = False
    anchor: AnchorConfig = field(default_factory=AnchorConfig)

    def escrow_account(self, token: str) -> str:
        return self.escrow_account_template.format(token=token)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DistributorConfig:
        if not data.get("owner_id"):
            raise ValueError("Configuration must define a non-empty owner_id")
        anchor = data.get("anchor", {})
        return cls(
            owner_id=data["owner_id"],
            escrow_account_template=data.get("escrow_account_template", "escrow:{token}"),
            tokens=tuple(data.get("tokens", ())),
            require_closed_gate_for_allocation=bool(
                data.get("require_closed_gate_for_allocation", False)
            ),
            anchor=AnchorConfig(
                rpc_url=anchor.get("rpc_url"),
                private_key=anchor.get("private_key"),
                chain_id=int(anchor.get("chain_id", 11155111)),
                explorer_base=anchor.get(
                    "explorer_base", "https://sepolia.etherscan.io/tx/",
                ),
            ),
        )

    @classmethod
    def from_config_dir(
        cls,
        config_dir: Path,
        env_file: Optional[Path] = None,
    ) -> DistributorConfig:
        """Load config_dir/distributor.json, then apply environment overrides."""
        path = config_dir / CONFIG_FILENAME
        with path.open("r", encoding="utf-8") as handle:
            config = cls.from_dict(json.load(handle))
        if env_file is not None:
            load_dotenv(env_file)
        return config.with_env_overrides()

    def with_env_overrides(self) -> DistributorConfig:
        """Return a copy with any DISTRIBUTOR_* / ANCHOR_* variables applied."""
        config = self
        owner = os.getenv("DISTRIBUTOR_OWNER")
        if owner:
            config = replace(config, owner_id=owner)
        escrow = os.getenv("DISTRIBUTOR_ESCROW_ACCOUNT")
        if escrow:
            config = replace(config, escrow_account_template=escrow)
        closed_gate = os.getenv("DISTRIBUTOR_REQUIRE_CLOSED_GATE")
        if closed_gate is not None:
            config = replace(
                config,
                require_closed_gate_for_allocation=closed_gate.strip().lower() in _TRUTHY,
            )

        anchor = config.anchor
        rpc_url = os.getenv("ANCHOR_RPC_URL")
        if rpc_url:
            anchor = replace(anchor, rpc_url=rpc_url)
        private_key = os.getenv("ANCHOR_PRIVATE_KEY")
        if private_key:
            anchor = replace(anchor, private_key=private_key)
        chain_id = os.getenv("ANCHOR_CHAIN_ID")
        if chain_id:
            anchor = replace(anchor, chain_id=int(chain_id))
        return replace(config, anchor=anchor)
