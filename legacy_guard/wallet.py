"""
Wallet boundary. The host application (browser extension, hardware wallet)
supplies accounts, keys and payments; the engine never talks to one directly.
"""

import hashlib
import logging
from typing import List

from .bitcoin_integration import BitcoinKey, is_valid_address
from .errors import InvalidInput

log = logging.getLogger(__name__)


class WalletProvider:

    def get_address(self) -> str:
        raise NotImplementedError

    def get_public_key(self) -> str:
        raise NotImplementedError

    def get_balance(self) -> int:
        """Confirmed balance in satoshis"""
        raise NotImplementedError

    def send_funds(self, address: str, amount: int) -> str:
        """Pay `amount` satoshis to `address` and return the transaction ID"""
        raise NotImplementedError


class LocalWallet(WalletProvider):
    """Key-backed wallet with a local balance ledger, for demos and tests"""

    def __init__(self, address: str, key: BitcoinKey = None, balance: int = 0):
        if not is_valid_address(address):
            raise InvalidInput("Invalid Bitcoin address format")
        self.address = address
        self.key = key or BitcoinKey()
        self.balance = balance
        self._payments: List[dict] = []

    def get_address(self):
        return self.address

    def get_public_key(self):
        return self.key.get_public_key_hex()

    def get_balance(self):
        return self.balance

    def send_funds(self, address, amount):
        if not is_valid_address(address):
            raise InvalidInput("Invalid Bitcoin address format")
        if amount <= 0:
            raise InvalidInput("Amount must be greater than 0")
        if amount > self.balance:
            raise InvalidInput(f"Insufficient balance: need {amount}, have {self.balance}")

        self.balance -= amount
        txid = hashlib.sha256(
            f"{self.address}:{address}:{amount}:{len(self._payments)}".encode()
        ).hexdigest()
        self._payments.append({'txid': txid, 'to': address, 'amount': amount})

        log.info("Sent %d sats from %s to %s in %s", amount, self.address, address, txid[:16])
        return txid

    def get_payment_history(self) -> List[dict]:
        return self._payments.copy()
