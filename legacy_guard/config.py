import os
from dataclasses import dataclass, field
from typing import Dict, Optional

DEFAULT_APP_VK = "c78f9360ba4bc547be980aeb7c55e799184b8a6171d267cc53e1a427cdef7337"

TESTNET_API_URL = "https://blockstream.info/testnet/api"
MAINNET_API_URL = "https://blockstream.info/api"
SIGNET_API_URL = "https://blockstream.info/signet/api"

NETWORK_API_URLS = {
    "testnet": TESTNET_API_URL,
    "signet": SIGNET_API_URL,
    "livenet": MAINNET_API_URL,
}
NETWORKS = tuple(NETWORK_API_URLS)


def default_timeout_options() -> Dict[str, int]:
    # ~10 minute blocks; shorter selectors map to fewer blocks
    return {
        "3-months": 26_000,
        "6-months": 52_000,
        "1-year": 104_000,
        "5-years": 520_000,
    }


@dataclass
class LegacyGuardConfig:
    """Deployment configuration for the vault engine"""

    network: str = "testnet"
    app_verification_key: str = DEFAULT_APP_VK
    spell_version: int = 1

    # Amount limits
    dust_limit_satoshis: int = 546
    max_amount_satoshis: int = 2_100_000_000  # 21 BTC

    # Timeout selectors
    timeout_options: Dict[str, int] = field(default_factory=default_timeout_options)
    default_timeout_blocks: int = 52_000

    # Public key discovery
    key_scan_limit: int = 20
    history_api_url: Optional[str] = None
    history_request_timeout: float = 10.0

    # Charms prover CLI
    charms_cli_path: str = "charms"
    contract_path: Optional[str] = None

    def __post_init__(self):
        if self.network not in NETWORKS:
            raise ValueError(f"Network must be one of {', '.join(NETWORKS)}, got {self.network!r}")
        if self.dust_limit_satoshis <= 0:
            raise ValueError("Dust limit must be positive")
        if self.max_amount_satoshis < self.dust_limit_satoshis:
            raise ValueError("Maximum amount must not be below the dust limit")
        if self.default_timeout_blocks <= 0:
            raise ValueError("Default timeout blocks must be positive")
        if self.key_scan_limit <= 0:
            raise ValueError("Key scan limit must be positive")
        if self.history_api_url is None:
            self.history_api_url = NETWORK_API_URLS[self.network]

    @classmethod
    def testnet(cls) -> 'LegacyGuardConfig':
        return cls(network="testnet")

    @classmethod
    def signet(cls) -> 'LegacyGuardConfig':
        return cls(network="signet")

    @classmethod
    def mainnet(cls) -> 'LegacyGuardConfig':
        return cls(network="livenet")

    @classmethod
    def from_env(cls, environ=None) -> 'LegacyGuardConfig':
        """Build configuration from LEGACY_GUARD_* / charms environment variables"""
        env = os.environ if environ is None else environ
        return cls(
            network=env.get("LEGACY_GUARD_NETWORK", "testnet"),
            app_verification_key=env.get("APP_VK", DEFAULT_APP_VK),
            history_api_url=env.get("LEGACY_GUARD_HISTORY_API_URL") or None,
            charms_cli_path=env.get("CHARMS_CLI_PATH", "charms"),
            contract_path=env.get("CONTRACT_PATH") or None,
        )
