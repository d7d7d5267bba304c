"""Blockchain anchoring: embeds an election commitment hash on Ethereum.

This is NOT a smart contract. No code executes on-chain. A 0-ETH
self-send carries the commitment hash in its data field, and the chain
serves as a timestamped witness that the tallied result existed in this
exact form.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from ballot.log import get_logger
from ballot.policy.resolver import AnchorPolicy

logger = get_logger(__name__)


@dataclass(frozen=True)
class AnchorRecord:
    """A record of a successful blockchain anchor."""
    commitment_hash: str
    tx_hash: str
    block_number: int
    chain_id: int
    timestamp_utc: str
    explorer_url: str


def anchor_to_chain(
    digest: str,
    rpc_url: str,
    private_key: str,
    policy: AnchorPolicy = AnchorPolicy(),
) -> AnchorRecord:
    """Anchor a SHA-256 hex digest by embedding it in a transaction.

    Sends a 0-ETH self-send with the digest in the data field and waits
    for one confirmation.

    Args:
        digest: The SHA-256 hex string to anchor.
        rpc_url: Ethereum RPC endpoint URL.
        private_key: Hex-encoded private key for signing.
        policy: Chain id, gas and explorer settings.

    Raises:
        ValueError: if digest is not a 32-byte hex string.
    """
    try:
        data = bytes.fromhex(digest)
    except ValueError as e:
        raise ValueError(f"Digest is not hex: {digest!r}") from e
    if len(data) != 32:
        raise ValueError(f"Digest must be 32 bytes, got {len(data)}")

    from web3 import Web3, HTTPProvider
    from eth_account import Account

    w3 = Web3(HTTPProvider(rpc_url))
    acct = Account.from_key(private_key)

    nonce = w3.eth.get_transaction_count(acct.address)
    tx = {
        "to": acct.address,  # self-send, 0 ETH
        "value": 0,
        "gas": policy.gas,
        "gasPrice": w3.to_wei(policy.gas_price_gwei, "gwei"),
        "nonce": nonce,
        "chainId": policy.chain_id,
        "data": data,
    }

    signed = acct.sign_transaction(tx)
    tx_hash = w3.eth.send_raw_transaction(signed.raw_transaction)
    logger.info("anchor_sent", tx_hash=tx_hash.hex(), chain_id=policy.chain_id)

    receipt = w3.eth.wait_for_transaction_receipt(tx_hash, timeout=300)

    explorer_url = policy.explorer_tx_url.format(tx_hash=tx_hash.hex())
    now = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    logger.info("anchor_confirmed", block_number=receipt.blockNumber, explorer_url=explorer_url)

    return AnchorRecord(
        commitment_hash=digest,
        tx_hash=tx_hash.hex(),
        block_number=receipt.blockNumber,
        chain_id=policy.chain_id,
        timestamp_utc=now,
        explorer_url=explorer_url,
    )
