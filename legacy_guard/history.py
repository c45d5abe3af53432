"""
Transaction history - the block explorer boundary used for key discovery
"""

import logging
from typing import Any, Dict, List

import requests

from .bitcoin_integration import is_testnet_address
from .config import MAINNET_API_URL, TESTNET_API_URL, LegacyGuardConfig
from .errors import InvalidInput, KeyExtractionFailed, UpstreamUnavailable
from .extractor import DEFAULT_SCAN_LIMIT, PublicKeyExtractor

log = logging.getLogger(__name__)


class TransactionHistoryProvider:
    """Returns an address's transactions, newest first, Esplora-shaped (txid, vin[])"""

    def fetch_transactions(self, address: str) -> List[Dict[str, Any]]:
        raise NotImplementedError


class BlockstreamHistoryProvider(TransactionHistoryProvider):
    """Esplora REST client (blockstream.info / mempool.space)"""

    def __init__(self, testnet_url: str = TESTNET_API_URL, mainnet_url: str = MAINNET_API_URL,
                 timeout: float = 10.0, session: requests.Session = None):
        self.testnet_url = testnet_url.rstrip("/")
        self.mainnet_url = mainnet_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config: LegacyGuardConfig) -> 'BlockstreamHistoryProvider':
        if config.network == "livenet":
            return cls(mainnet_url=config.history_api_url, timeout=config.history_request_timeout)
        return cls(testnet_url=config.history_api_url, timeout=config.history_request_timeout)

    def base_url(self, address: str) -> str:
        return self.testnet_url if is_testnet_address(address) else self.mainnet_url

    def fetch_transactions(self, address):
        url = f"{self.base_url(address)}/address/{address}/txs"
        log.info("Fetching transactions for %s from %s", address, url)

        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            log.error("Explorer request failed for %s: %s", address, e)
            raise UpstreamUnavailable("Transaction history", str(e))

        if response.status_code == 404:
            raise InvalidInput("Address not found. Make sure it's a valid Bitcoin address.")
        if response.status_code in (400, 422):
            raise InvalidInput(f"Explorer rejected address {address}")
        if not response.ok:
            log.error("Explorer returned %s for %s", response.status_code, address)
            raise UpstreamUnavailable("Transaction history", f"API error: {response.status_code}")

        try:
            transactions = response.json()
        except ValueError:
            raise UpstreamUnavailable("Transaction history", "explorer returned invalid JSON")

        if not isinstance(transactions, list):
            raise UpstreamUnavailable("Transaction history", "unexpected response shape")
        return transactions


def derive_public_key(address: str, provider: TransactionHistoryProvider,
                      extractor: PublicKeyExtractor = None, limit: int = DEFAULT_SCAN_LIMIT) -> str:
    """
    Recover an address's public key from its own past spends.

    Raises KeyExtractionFailed when the address never spent, or when none of
    its `limit` most recent transactions reveals a key.
    """
    if not address or not isinstance(address, str):
        raise InvalidInput("Invalid address")

    extractor = extractor or PublicKeyExtractor()
    transactions = provider.fetch_transactions(address)

    if not transactions:
        raise KeyExtractionFailed(
            "Address has no transactions. Please send funds from this address first "
            "to reveal its public key.")

    pubkey = extractor.find_in_transactions(transactions, limit)
    if pubkey is None:
        raise KeyExtractionFailed(
            "Could not extract public key from transaction history. "
            "Try with an address that has spent funds.")
    return pubkey
