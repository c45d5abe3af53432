#!/usr/bin/env python3
"""
Complete demo of the Legacy Guard vault lifecycle
"""

import logging
import os
from datetime import datetime, timedelta, timezone

from legacy_guard.bitcoin_integration import BitcoinKey
from legacy_guard.charms.prover import MockSpellProver
from legacy_guard.config import LegacyGuardConfig
from legacy_guard.deployment import deployment_report
from legacy_guard.errors import NotClaimable, Unauthorized
from legacy_guard.service import VaultService
from legacy_guard.vault import ClaimRequest, VaultParams
from legacy_guard.wallet import LocalWallet

OWNER_ADDRESS = "tb1qowner0000000000000000000000000000000000"
HEIR_ADDRESS = "tb1qheir00000000000000000000000000000000000"
STRANGER_ADDRESS = "tb1qstranger000000000000000000000000000000"


class DemoClock:
    """Manually advanced clock so the timeout can elapse instantly"""

    def __init__(self):
        self.now = datetime.now(timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds: int):
        self.now += timedelta(seconds=seconds)


def main():
    logging.basicConfig(level=os.environ.get("LEGACY_GUARD_LOG_LEVEL", "WARNING"))

    print("=" * 60)
    print("🛡️  LEGACY GUARD - DEAD MAN'S SWITCH DEMO")
    print("=" * 60)
    print()

    config = LegacyGuardConfig.testnet()
    clock = DemoClock()
    prover = MockSpellProver(config)
    service = VaultService(config=config, prover=prover, clock=clock)
    service.start()

    # Step 1: Wallets
    print("🔧 STEP 1: Owner and heir wallets")
    print("-" * 40)
    owner = LocalWallet(OWNER_ADDRESS, BitcoinKey(), balance=500_000)
    heir = LocalWallet(HEIR_ADDRESS, BitcoinKey())
    print(f"✅ Owner: {owner.get_address()} ({owner.get_public_key()[:16]}...)")
    print(f"✅ Heir:  {heir.get_address()} ({heir.get_public_key()[:16]}...)")
    print()

    # Step 2: Initialize spell
    print("📜 STEP 2: Initialize spell")
    print("-" * 40)
    funding_txid = owner.send_funds(OWNER_ADDRESS, 100_000)
    result = service.prepare_vault_spell(
        owner.get_public_key(), heir.get_public_key(), heir.get_address(),
        100_000, config.timeout_options["6-months"], f"{funding_txid}:0")
    print(result['spell'])
    print(f"✅ Validation: {result['validation']['valid']}")
    signed = prover.prove(result['spell'])
    print(f"✅ Proved vault transaction {signed.txid[:16]}...")
    print()
    print(deployment_report(owner.get_public_key(), heir.get_public_key(), heir.get_address(),
                            100_000, config.timeout_options["6-months"], config))
    print()

    # Step 3: Record the vault
    print("🏗️  STEP 3: Recording vault")
    print("-" * 40)
    vault = service.create_vault(VaultParams(
        tx_id=f"{signed.txid}:0",
        owner_address=owner.get_address(),
        owner_pubkey=owner.get_public_key(),
        nominee_address=heir.get_address(),
        nominee_pubkey=heir.get_public_key(),
        locked_amount_satoshis=100_000,
        inactivity_timeout="60-seconds",
        spell=result['spell'],
    ))
    print(f"✅ Vault ID: {vault.id}")
    print(f"✅ Status: {vault.status.value}")
    print()

    # Step 4: Early claim
    print("⏳ STEP 4: Heir claims too early")
    print("-" * 40)
    try:
        service.claim_vault(vault.id, ClaimRequest(heir.get_address(), "early-claim"))
        print("   ❌ UNEXPECTED: Should have failed")
    except NotClaimable as e:
        print(f"   ✅ EXPECTED FAILURE: {e}")
    print()

    # Step 5: Timeout elapses
    print("⌛ STEP 5: 61 seconds of owner inactivity")
    print("-" * 40)
    clock.advance(61)
    vaults = service.list_vaults(heir.get_address(), "CLAIMABLE")
    print(f"✅ Claimable vaults for heir: {len(vaults)}")
    print()

    # Step 6: Claims
    print("💰 STEP 6: Claiming")
    print("-" * 40)
    try:
        service.claim_vault(vault.id, ClaimRequest(STRANGER_ADDRESS, "theft-attempt"))
        print("   ❌ UNEXPECTED: Stranger claim should have failed")
    except Unauthorized as e:
        print(f"   ✅ EXPECTED FAILURE: {e}")

    claim_spell = service.claim_spell(vault.id, f"{signed.txid}:0")
    claim_tx = prover.prove(claim_spell)
    claimed = service.claim_vault(vault.id, ClaimRequest(heir.get_address(), claim_tx.txid))
    print(f"   ✅ SUCCESS: {claimed.status.value} in {claimed.claimed_tx_id[:16]}...")
    print()

    service.stop()
    print("✅ Demo complete!")


if __name__ == "__main__":
    main()
