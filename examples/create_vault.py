#!/usr/bin/env python3
"""
Example: Generating the spells for a Legacy Guard vault
"""

from legacy_guard.bitcoin_integration import BitcoinKey
from legacy_guard.charms.spells import SpellGenerator
from legacy_guard.config import LegacyGuardConfig
from legacy_guard.deployment import btc_to_satoshis, deployment_env
from legacy_guard.rules import TimeoutPolicy

HEIR_ADDRESS = "tb1qheir00000000000000000000000000000000000"


def main():
    print("=== Creating Legacy Guard Vault Spells ===")
    print()

    config = LegacyGuardConfig.testnet()
    policy = TimeoutPolicy.from_config(config)
    spells = SpellGenerator(config)

    owner = BitcoinKey()
    heir = BitcoinKey()
    amount = btc_to_satoshis("0.001")
    timeout_blocks = policy.timeout_blocks("1-year")

    print("🔑 Keys")
    print(f"   Owner: {owner.get_public_key_hex()[:16]}...")
    print(f"   Heir:  {heir.get_public_key_hex()[:16]}...")
    print(f"   Timeout: {timeout_blocks:,} blocks (~{policy.estimated_days(timeout_blocks)} days)")
    print()

    print("📜 Initialize (funds locked in contract):")
    print(spells.initialize(owner.get_public_key_hex(), heir.get_x_only_hex(), HEIR_ADDRESS,
                            amount, timeout_blocks, "<funding txid>:0"))
    print()

    print("💓 Pulse (owner heartbeat):")
    print(spells.pulse("<vault txid>:0", amount))
    print()

    print("🏁 Claim (heir after timeout):")
    print(spells.claim("<vault txid>:0", amount, HEIR_ADDRESS))
    print()

    print("🌍 Deployment environment:")
    env = deployment_env(owner.get_public_key_hex(), heir.get_public_key_hex(), HEIR_ADDRESS,
                         amount, timeout_blocks, config)
    for name, value in env.items():
        print(f"   export {name}=\"{value}\"")


if __name__ == "__main__":
    main()
