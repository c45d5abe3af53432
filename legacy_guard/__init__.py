"""
Legacy Guard - dead man's switch vaults for Bitcoin
Vault lifecycle and Charms spell generation
"""

from .bitcoin_integration import BitcoinKey, normalize_public_key
from .config import LegacyGuardConfig
from .extractor import PublicKeyExtractor
from .repository import InMemoryVaultRepository, VaultRepository
from .rules import TimeoutPolicy
from .service import VaultService
from .vault import ClaimRequest, Vault, VaultParams, VaultStateMachine, VaultStatus

__version__ = "0.1.0"
__all__ = [
    "BitcoinKey",
    "normalize_public_key",
    "LegacyGuardConfig",
    "PublicKeyExtractor",
    "VaultRepository",
    "InMemoryVaultRepository",
    "TimeoutPolicy",
    "VaultService",
    "Vault",
    "VaultParams",
    "ClaimRequest",
    "VaultStateMachine",
    "VaultStatus",
]
