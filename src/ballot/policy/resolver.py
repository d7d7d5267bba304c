"""Policy resolver: loads election parameters from the config directory.

All tunable behaviour lives in config/ballot_params.json. Missing keys
fall back to defaults; invalid values are rejected at load time so a
bad config can never reach a running election.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional


PARAMS_FILE = "ballot_params.json"


@dataclass(frozen=True)
class AnchorPolicy:
    """Ethereum anchoring parameters for election commitments."""
    chain_id: int = 11155111  # Sepolia
    gas: int = 30_000
    gas_price_gwei: str = "2"
    explorer_tx_url: str = "https://sepolia.etherscan.io/tx/{tx_hash}"


@dataclass(frozen=True)
class BallotPolicy:
    """Election rules that are not fixed by the workflow itself."""
    proposal_id_base: int = 0
    reject_empty_description: bool = True
    max_description_length: Optional[int] = None
    anchor: AnchorPolicy = field(default_factory=AnchorPolicy)

    def __post_init__(self) -> None:
        if self.proposal_id_base not in (0, 1):
            raise ValueError(
                f"proposal_id_base must be 0 or 1, got {self.proposal_id_base!r}"
            )
        if self.max_description_length is not None and self.max_description_length <= 0:
            raise ValueError("max_description_length must be positive or null")


class PolicyResolver:
    """Resolves ballot policy from JSON config.

    Usage:
        resolver = PolicyResolver.from_config_dir(Path("config"))
        policy = resolver.ballot_policy()
    """

    def __init__(self, params: dict[str, Any]) -> None:
        self._policy = self._build_policy(params)

    @classmethod
    def from_config_dir(cls, config_dir: Path) -> PolicyResolver:
        """Load params from config_dir/ballot_params.json (defaults if absent)."""
        path = config_dir / PARAMS_FILE
        if not path.exists():
            return cls({})
        try:
            params = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {path}: {e}") from e
        if not isinstance(params, dict):
            raise ValueError(f"{path} must contain a JSON object")
        return cls(params)

    @classmethod
    def defaults(cls) -> PolicyResolver:
        return cls({})

    def ballot_policy(self) -> BallotPolicy:
        return self._policy

    def anchor_policy(self) -> AnchorPolicy:
        return self._policy.anchor

    @staticmethod
    def _build_policy(params: dict[str, Any]) -> BallotPolicy:
        proposals = params.get("proposals", {})
        anchor = params.get("anchor", {})
        for section, value in (("proposals", proposals), ("anchor", anchor)):
            if not isinstance(value, dict):
                raise ValueError(f"{section} must be a JSON object, got {type(value).__name__}")

        base = proposals.get("id_base", 0)
        if not isinstance(base, int) or isinstance(base, bool):
            raise ValueError(f"proposals.id_base must be an integer, got {base!r}")

        reject_empty = proposals.get("reject_empty_description", True)
        if not isinstance(reject_empty, bool):
            raise ValueError("proposals.reject_empty_description must be a boolean")

        max_len = proposals.get("max_description_length")
        if max_len is not None and (not isinstance(max_len, int) or isinstance(max_len, bool)):
            raise ValueError("proposals.max_description_length must be an integer or null")

        defaults = AnchorPolicy()
        anchor_policy = AnchorPolicy(
            chain_id=int(anchor.get("chain_id", defaults.chain_id)),
            gas=int(anchor.get("gas", defaults.gas)),
            gas_price_gwei=str(anchor.get("gas_price_gwei", defaults.gas_price_gwei)),
            explorer_tx_url=str(anchor.get("explorer_tx_url", defaults.explorer_tx_url)),
        )

        return BallotPolicy(
            proposal_id_base=base,
            reject_empty_description=reject_empty,
            max_description_length=max_len,
            anchor=anchor_policy,
        )
