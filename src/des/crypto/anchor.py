"""Log anchoring — embeds the event log's head digest on Ethereum.

The head digest is a SHA-256 over the ordered event hashes. Putting it
in the data field of a 0-ETH self-send transaction gives a timestamped,
publicly verifiable commitment to the employment history up to that
event: any later edit to an earlier record changes the digest.

No contract code runs on-chain. web3 and eth_account are imported only
when an anchor is actually sent.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from des.persistence.event_log import EventLog

logger = logging.getLogger(__name__)

SEPOLIA_CHAIN_ID = 11155111

EXPLORERS = {
    1: "https://etherscan.io/tx/",
    SEPOLIA_CHAIN_ID: "https://sepolia.etherscan.io/tx/",
}


@dataclass(frozen=True)
class AnchorRecord:
    """A record of a successful blockchain anchor."""
    sha256_hash: str
    tx_hash: str
    block_number: int
    chain_id: int
    timestamp_utc: str
    explorer_url: str
    event_count: int = 0
    last_event_id: str = ""


def digest_bytes(digest: str) -> bytes:
    """Decode a SHA-256 hex digest. Raises ValueError unless it is 32 bytes."""
    try:
        data = bytes.fromhex(digest)
    except ValueError as e:
        raise ValueError(f"Digest is not hex: {digest!r}") from e
    if len(data) != 32:
        raise ValueError(f"Digest must be 32 bytes, got {len(data)}")
    return data


def build_anchor_tx(digest: str, address: str, nonce: int, gas_price_wei: int,
                    chain_id: int = SEPOLIA_CHAIN_ID, gas: int = 30_000) -> dict:
    """Build the unsigned self-send carrying ``digest`` as calldata."""
    return {
        "to": address,
        "value": 0,
        "gas": gas,
        "gasPrice": gas_price_wei,
        "nonce": nonce,
        "chainId": chain_id,
        "data": digest_bytes(digest),
    }


def anchor_to_chain(
    digest: str,
    rpc_url: str,
    private_key: str,
    chain_id: int = SEPOLIA_CHAIN_ID,
    gas: int = 30_000,
    gas_price_gwei: str = "2",
    timeout: int = 300,
) -> AnchorRecord:
    """Anchor a SHA-256 hex digest and wait for one confirmation.

    Raises:
        ValueError: digest is malformed, or the transaction reverted.
    """
    digest_bytes(digest)

    from web3 import Web3, HTTPProvider
    from eth_account import Account

    w3 = Web3(HTTPProvider(rpc_url))
    acct = Account.from_key(private_key)
    tx = build_anchor_tx(
        digest,
        acct.address,
        nonce=w3.eth.get_transaction_count(acct.address),
        gas_price_wei=w3.to_wei(gas_price_gwei, "gwei"),
        chain_id=chain_id,
        gas=gas,
    )

    signed = acct.sign_transaction(tx)
    tx_hash = w3.eth.send_raw_transaction(signed.raw_transaction)
    logger.info("Sent anchor tx %s; waiting for confirmation", tx_hash.hex())

    receipt = w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
    if receipt.status != 1:
        raise ValueError(f"Anchor tx {tx_hash.hex()} failed in block {receipt.blockNumber}")
    logger.info("Anchor confirmed in block %d", receipt.blockNumber)

    explorer = EXPLORERS.get(chain_id)
    return AnchorRecord(
        sha256_hash=digest,
        tx_hash=tx_hash.hex(),
        block_number=receipt.blockNumber,
        chain_id=chain_id,
        timestamp_utc=datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        explorer_url=explorer + tx_hash.hex() if explorer else "",
    )


def anchor_event_log(
    event_log: EventLog,
    rpc_url: str,
    private_key: str,
    chain_id: int = SEPOLIA_CHAIN_ID,
) -> AnchorRecord:
    """Anchor the current head digest of an event log.

    Raises:
        ValueError: the log is empty.
    """
    last = event_log.last_event
    if last is None:
        raise ValueError("Event log is empty; nothing to anchor")
    digest = event_log.head_digest()
    record = anchor_to_chain(digest, rpc_url, private_key, chain_id=chain_id)
    return dataclasses.replace(
        record, event_count=event_log.count, last_event_id=last.event_id,
    )
