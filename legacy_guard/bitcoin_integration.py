"""
Bitcoin integration utilities
"""

import hashlib
import re
from typing import Tuple

from ecdsa import SigningKey, SECP256k1

from .errors import InvalidInput, InvalidPublicKeyFormat

_HEX64 = re.compile(r"^[0-9a-f]{64}$")
_ADDRESS = re.compile(r"^(bc1|tb1|bcrt1|tc1)[a-z0-9]{39,87}$")


def normalize_public_key(pubkey_hex: str) -> str:
    """
    Canonicalize a public key to its 32-byte x-coordinate (64 lowercase hex).

    Accepts x-only, compressed (02/03) and uncompressed (04) encodings, with
    or without a 0x prefix. Short values are left-padded with zeros; an empty
    value is rejected rather than padded to the all-zero key.
    """
    if not isinstance(pubkey_hex, str):
        raise InvalidPublicKeyFormat(0)

    cleaned = pubkey_hex[2:] if pubkey_hex[:2].lower() == "0x" else pubkey_hex
    cleaned = cleaned.lower()
    given_length = len(cleaned)
    if given_length == 0:
        raise InvalidPublicKeyFormat(0)

    if len(cleaned) == 66 and cleaned[:2] in ("02", "03"):
        cleaned = cleaned[2:]
    elif len(cleaned) == 130 and cleaned[:2] == "04":
        cleaned = cleaned[2:66]
    elif len(cleaned) < 64:
        cleaned = cleaned.rjust(64, "0")

    if not _HEX64.match(cleaned):
        raise InvalidPublicKeyFormat(given_length)

    return cleaned


def is_valid_address(address: str) -> bool:
    """Check the address carries a recognised segwit prefix (bc1, tb1, bcrt1, tc1)"""
    return isinstance(address, str) and bool(_ADDRESS.match(address))


def is_testnet_address(address: str) -> bool:
    return address.startswith(("tb1", "tc1", "bcrt1", "2", "m", "n"))


def parse_utxo_ref(utxo: str, default_index: int = 0) -> Tuple[str, int]:
    """Split a "txid:vout" reference; a bare txid means output default_index"""
    if not isinstance(utxo, str) or not utxo.strip():
        raise InvalidInput("Invalid UTXO format. Expected: txid:vout")

    txid, sep, vout = utxo.strip().rpartition(":")
    if not sep:
        return vout, default_index

    if not txid or not vout.isdigit():
        raise InvalidInput(f"Invalid UTXO format {utxo!r}. Expected: txid:vout")

    return txid, int(vout)


def format_utxo_ref(utxo: str, default_index: int = 0) -> str:
    txid, vout = parse_utxo_ref(utxo, default_index)
    return f"{txid}:{vout}"


def double_sha256(data: bytes) -> bytes:
    """Bitcoin double SHA256"""
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


class BitcoinKey:
    """secp256k1 key pair with the encodings the vault engine accepts"""

    def __init__(self, private_key: bytes = None):
        if private_key:
            self.private_key = SigningKey.from_string(private_key, curve=SECP256k1)
        else:
            self.private_key = SigningKey.generate(curve=SECP256k1)

        self.public_key = self.private_key.get_verifying_key()

    @classmethod
    def from_hex(cls, private_hex: str) -> 'BitcoinKey':
        return cls(bytes.fromhex(private_hex))

    def _point(self) -> Tuple[int, int]:
        point = self.public_key.pubkey.point
        return point.x(), point.y()

    def get_x_only_hex(self) -> str:
        """32-byte x-coordinate"""
        x, _ = self._point()
        return x.to_bytes(32, 'big').hex()

    def get_public_key_hex(self) -> str:
        """Get compressed public key in hex format"""
        x, y = self._point()

        # Determine prefix (02 for even y, 03 for odd y)
        prefix = b'\x02' if y % 2 == 0 else b'\x03'

        return (prefix + x.to_bytes(32, 'big')).hex()

    def get_uncompressed_hex(self) -> str:
        x, y = self._point()
        return (b'\x04' + x.to_bytes(32, 'big') + y.to_bytes(32, 'big')).hex()

    def get_private_key_hex(self) -> str:
        return self.private_key.to_string().hex()

    @staticmethod
    def generate_key_pair() -> Tuple[str, str]:
        """Generate new key pair and return (private_key_hex, public_key_hex)"""
        key = BitcoinKey()
        return key.get_private_key_hex(), key.get_public_key_hex()
