"""
Deployment helpers: unit conversion, environment bundles for the charms CLI,
human-readable reports and on-chain state display.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Union

from .bitcoin_integration import normalize_public_key
from .config import LegacyGuardConfig
from .rules import TimeoutPolicy

SATOSHIS_PER_BTC = 100_000_000


def btc_to_satoshis(btc: Union[int, float, str, Decimal]) -> int:
    """Convert Bitcoin amount (BTC) to satoshis"""
    amount = Decimal(str(btc)) * SATOSHIS_PER_BTC
    return int(amount.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def satoshis_to_btc(satoshis: int) -> Decimal:
    return Decimal(satoshis) / SATOSHIS_PER_BTC


def deployment_env(owner_pubkey: str, heir_pubkey: str, heir_address: str,
                   amount_satoshis: int, timeout_blocks: int,
                   config: LegacyGuardConfig = None) -> Dict[str, str]:
    """Environment variables the charms CLI spell workflow expects"""
    config = config or LegacyGuardConfig()
    return {
        'APP_VK': config.app_verification_key,
        'OWNER_PUBKEY': normalize_public_key(owner_pubkey),
        'HEIR_PUBKEY': normalize_public_key(heir_pubkey),
        'HEIR_ADDRESS': heir_address,
        'VAULT_VALUE': str(amount_satoshis),
        'VAULT_AMOUNT_BTC': str(satoshis_to_btc(amount_satoshis)),
        'TIMEOUT_BLOCKS': str(timeout_blocks),
        'NETWORK': config.network,
    }


def deployment_report(owner_pubkey: str, heir_pubkey: str, heir_address: str,
                      amount_satoshis: int, timeout_blocks: int,
                      config: LegacyGuardConfig = None) -> str:
    config = config or LegacyGuardConfig()
    env = deployment_env(owner_pubkey, heir_pubkey, heir_address, amount_satoshis, timeout_blocks, config)

    lines = [
        "Vault Deployment Report",
        "",
        "Configuration:",
        f"  Network: {config.network}",
        f"  Owner Pubkey: {env['OWNER_PUBKEY'][:16]}...",
        f"  Heir Pubkey: {env['HEIR_PUBKEY'][:16]}...",
        f"  Heir Address: {heir_address}",
        "",
        "Amount:",
        f"  BTC: {env['VAULT_AMOUNT_BTC']}",
        f"  Satoshis: {amount_satoshis:,}",
        "",
        "Timeout:",
        f"  Blocks: {timeout_blocks:,}",
        f"  Est. Time: ~{TimeoutPolicy.estimated_days(timeout_blocks)} days",
        "",
        "Contract:",
        f"  Verification Key: {config.app_verification_key}",
    ]
    return "\n".join(lines)


def contract_info(config: LegacyGuardConfig = None) -> dict:
    config = config or LegacyGuardConfig()
    return {
        'verification_key': config.app_verification_key,
        'name': "Legacy Guard",
        'description': "Dead Man's Switch for Bitcoin Inheritance",
        'type': "Charms Application",
        'network': config.network,
        'actions': ["Initialize", "Pulse", "Claim"],
        'timeout_options': dict(config.timeout_options),
        'limits': {
            'dust_limit_satoshis': config.dust_limit_satoshis,
            'max_amount_satoshis': config.max_amount_satoshis,
        },
    }


@dataclass
class ContractVaultState:
    """Vault state as stored in the enchanted UTXO"""
    owner_pubkey: str
    heir_pubkey: str
    last_heartbeat: int  # block height
    timeout_blocks: int


@dataclass
class VaultDisplay:
    address: str
    owner: str
    heir: str
    amount_satoshis: int
    timeout_blocks: int
    last_heartbeat: int
    status: str  # "active" or "expired"
    blocks_remaining: int
    days_remaining: float


def vault_display(vault_address: str, state: ContractVaultState, amount_satoshis: int,
                  current_height: int) -> VaultDisplay:
    """Summarize an on-chain vault relative to the current block height"""
    blocks_remaining = max(0, state.last_heartbeat + state.timeout_blocks - current_height)

    return VaultDisplay(
        address=vault_address,
        owner=state.owner_pubkey[:16] + "...",
        heir=state.heir_pubkey[:16] + "...",
        amount_satoshis=amount_satoshis,
        timeout_blocks=state.timeout_blocks,
        last_heartbeat=state.last_heartbeat,
        status="expired" if blocks_remaining <= 0 else "active",
        blocks_remaining=blocks_remaining,
        days_remaining=TimeoutPolicy.estimated_days(blocks_remaining),
    )
