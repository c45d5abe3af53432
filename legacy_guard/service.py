import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from .charms.prover import MANUAL_INSTRUCTIONS, SpellProver
from .charms.spells import SpellAction, SpellGenerator
from .config import LegacyGuardConfig
from .errors import InvalidInput, UpstreamUnavailable
from .history import TransactionHistoryProvider, derive_public_key
from .repository import InMemoryVaultRepository, VaultRepository
from .rules import TimeoutPolicy
from .vault import ClaimRequest, Vault, VaultParams, VaultStateMachine, VaultStatus

log = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class VaultService:
    """High-level interface for vault operations, one call per request"""

    def __init__(self, repository: VaultRepository = None, config: LegacyGuardConfig = None,
                 history_provider: TransactionHistoryProvider = None,
                 prover: SpellProver = None, clock: Callable[[], datetime] = utc_now):
        self.config = config or LegacyGuardConfig()
        self.repository = repository or InMemoryVaultRepository()
        self.history_provider = history_provider
        self.prover = prover
        self.clock = clock

        self.timeout_policy = TimeoutPolicy.from_config(self.config)
        self.spells = SpellGenerator(self.config)
        self.state_machine = VaultStateMachine(
            self.repository, self.config, self.timeout_policy, self.spells)

    def start(self):
        self.repository.open()

    def stop(self):
        self.repository.close()

    # Vault records

    def create_vault(self, params: VaultParams) -> Vault:
        return self.state_machine.create(params, self.clock())

    def get_vault(self, vault_id: str) -> Vault:
        vault = self.repository.get(vault_id)
        return self.state_machine.refresh_status(vault, self.clock())

    def list_vaults(self, nominee_address: str, status: Optional[str] = None) -> List[Vault]:
        """Vaults naming this heir, after promoting any whose timeout has elapsed"""
        if not nominee_address:
            raise InvalidInput("Missing required query parameter: address")
        wanted = VaultStatus.parse(status) if status else None

        now = self.clock()
        for vault in self.repository.list_by_nominee(nominee_address, VaultStatus.ACTIVE):
            self.state_machine.refresh_status(vault, now)

        return self.repository.list_by_nominee(nominee_address, wanted)

    def claim_vault(self, vault_id: str, request: ClaimRequest) -> Vault:
        request.validate()
        vault = self.repository.get(vault_id)
        return self.state_machine.claim(vault, request.heir_address, request.claim_tx_id, self.clock())

    # Spells

    def prepare_vault_spell(self, owner_pubkey: str, heir_pubkey: str, heir_address: str,
                            amount_satoshis: int, timeout_blocks: int,
                            input_utxo: Optional[str] = None) -> dict:
        """
        Render the Initialize spell and, when a prover is reachable, check it.
        Without one the spell is returned with manual CLI instructions.
        """
        spell = self.spells.initialize(owner_pubkey, heir_pubkey, heir_address,
                                       amount_satoshis, timeout_blocks, input_utxo)

        if self.prover is None or not self.prover.is_available():
            return {
                'success': True,
                'spell': spell,
                'note': "Charms CLI not available on server. Please use the CLI manually "
                        "to prove and broadcast this spell.",
                'instructions': MANUAL_INSTRUCTIONS,
            }

        try:
            validation = self.prover.validate(spell)
        except UpstreamUnavailable as e:
            log.error("Spell validation unavailable: %s", e)
            raise

        return {
            'success': validation.valid,
            'spell': spell,
            'validation': validation.to_dict(),
        }

    def spell_for(self, vault_id: str, action, vault_utxo: str) -> str:
        """Render one of the vault's spells against the UTXO currently holding it"""
        action = SpellAction.parse(action)
        vault = self.repository.get(vault_id)
        if vault.status == VaultStatus.CLAIMED:
            raise InvalidInput(f"Vault {vault_id} is CLAIMED and has no spendable UTXO")

        return self.spells.for_action(
            action, vault_utxo, vault.locked_amount_satoshis, vault.nominee_address,
            owner_pubkey=vault.owner_pubkey,
            heir_pubkey=vault.nominee_pubkey,
            timeout_blocks=vault.inactivity_timeout_blocks,
        )

    def pulse_spell(self, vault_id: str, vault_utxo: str) -> str:
        return self.spell_for(vault_id, SpellAction.PULSE, vault_utxo)

    def claim_spell(self, vault_id: str, vault_utxo: str) -> str:
        return self.spell_for(vault_id, SpellAction.CLAIM, vault_utxo)

    def remaining_milliseconds(self, vault: Vault) -> Optional[int]:
        """Wall-clock time until the heir may claim; None if the timeout never elapses"""
        if vault.status != VaultStatus.ACTIVE:
            return 0
        return self.timeout_policy.remaining_milliseconds(
            vault.inactivity_timeout, vault.created_at, self.clock())

    # Keys

    def derive_public_key(self, address: str) -> str:
        if self.history_provider is None:
            raise UpstreamUnavailable("Transaction history", "no provider configured")
        return derive_public_key(address, self.history_provider, limit=self.config.key_scan_limit)
