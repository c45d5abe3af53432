import hashlib
import logging
from dataclasses import dataclass, asdict
from datetime import datetime
from enum import Enum
from typing import List, Optional

from .bitcoin_integration import format_utxo_ref, normalize_public_key
from .charms.spells import SpellGenerator
from .config import LegacyGuardConfig
from .errors import AlreadyClaimed, InvalidInput, NotClaimable, Unauthorized
from .rules import TimeoutPolicy

log = logging.getLogger(__name__)


class VaultStatus(Enum):
    ACTIVE = "ACTIVE"
    CLAIMABLE = "CLAIMABLE"
    CLAIMED = "CLAIMED"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)

    @classmethod
    def parse(cls, value: str) -> 'VaultStatus':
        try:
            return cls(value)
        except ValueError:
            raise InvalidInput("Invalid status. Must be ACTIVE, CLAIMABLE, or CLAIMED")


_STATUS_ORDER = [VaultStatus.ACTIVE, VaultStatus.CLAIMABLE, VaultStatus.CLAIMED]


@dataclass
class Vault:
    """A funds-locking record binding owner, heir, amount and inactivity timeout"""
    id: str
    tx_id: str
    owner_address: str
    owner_pubkey: str
    nominee_address: str
    nominee_pubkey: str
    locked_amount_satoshis: int
    inactivity_timeout: str
    inactivity_timeout_blocks: int
    app_verification_key: str
    spell: str
    created_at: datetime
    status: VaultStatus = VaultStatus.ACTIVE
    claimed_at: Optional[datetime] = None
    claimed_tx_id: Optional[str] = None

    @staticmethod
    def generate_id(tx_id: str) -> str:
        """Derive the vault ID from its (unique) funding transaction ID"""
        hasher = hashlib.sha256()
        hasher.update(b"LEGACY_GUARD_VAULT_V1")
        hasher.update(tx_id.encode())
        return hasher.hexdigest()[:32]

    def to_dict(self) -> dict:
        """Serialize vault to a JSON-friendly dictionary"""
        data = asdict(self)
        data['status'] = self.status.value
        data['created_at'] = self.created_at.isoformat()
        data['claimed_at'] = self.claimed_at.isoformat() if self.claimed_at else None
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'Vault':
        """Deserialize vault from dictionary"""
        fields = dict(data)
        fields['status'] = VaultStatus(fields.get('status', VaultStatus.ACTIVE.value))
        fields['created_at'] = datetime.fromisoformat(fields['created_at'])
        if fields.get('claimed_at'):
            fields['claimed_at'] = datetime.fromisoformat(fields['claimed_at'])
        return cls(**fields)


@dataclass
class VaultParams:
    """Owner-supplied parameters for a new vault"""
    tx_id: str
    owner_address: str
    owner_pubkey: str
    nominee_address: str
    nominee_pubkey: str
    locked_amount_satoshis: int
    inactivity_timeout: str
    inactivity_timeout_blocks: Optional[int] = None
    funding_utxo: Optional[str] = None  # txid:vout spent by the Initialize spell
    spell: Optional[str] = None

    REQUIRED = ('tx_id', 'owner_address', 'owner_pubkey', 'nominee_address',
                'nominee_pubkey', 'locked_amount_satoshis', 'inactivity_timeout')

    TEXT = ('tx_id', 'owner_address', 'nominee_address', 'inactivity_timeout')

    def missing_fields(self) -> List[str]:
        return [name for name in self.REQUIRED if getattr(self, name) in (None, "")]

    def non_text_fields(self) -> List[str]:
        names = [name for name in self.TEXT if not isinstance(getattr(self, name), str)]
        if self.spell is not None and not isinstance(self.spell, str):
            names.append('spell')
        return names

    @classmethod
    def from_request(cls, body: dict) -> 'VaultParams':
        """Build params from a camelCase API request body"""
        if not isinstance(body, dict):
            raise InvalidInput("Request body must be a JSON object")

        amount = body.get('lockedAmountSatoshis')
        if isinstance(amount, str) and amount.isdigit():
            amount = int(amount)

        return cls(
            tx_id=body.get('txId'),
            owner_address=body.get('ownerAddress'),
            owner_pubkey=body.get('ownerPubkey'),
            nominee_address=body.get('nomineeAddress'),
            nominee_pubkey=body.get('nomineePubkey') or body.get('heirPubkey'),
            locked_amount_satoshis=amount,
            inactivity_timeout=body.get('inactivityTimeout'),
            inactivity_timeout_blocks=body.get('inactivityTimeoutBlocks'),
            funding_utxo=body.get('inputUtxo'),
            spell=body.get('spell'),
        )


@dataclass
class ClaimRequest:
    """Heir's request to release a claimable vault"""
    heir_address: Optional[str]
    claim_tx_id: Optional[str]

    def validate(self):
        if not self.heir_address or not self.claim_tx_id:
            raise InvalidInput("Missing required fields: heirAddress, claimTxId")
        if not isinstance(self.heir_address, str) or not isinstance(self.claim_tx_id, str):
            raise InvalidInput("heirAddress and claimTxId must be strings")

    @classmethod
    def from_request(cls, body: dict) -> 'ClaimRequest':
        body = body if isinstance(body, dict) else {}
        return cls(heir_address=body.get('heirAddress'), claim_tx_id=body.get('claimTxId'))


class VaultStateMachine:
    """
    Owns vault status transitions: ACTIVE -> CLAIMABLE -> CLAIMED.

    Every transition is applied through the repository's atomic update, so a
    refresh racing a claim on the same vault cannot both write, and status
    never moves backwards.
    """

    def __init__(self, repository, config: LegacyGuardConfig = None,
                 timeout_policy: TimeoutPolicy = None, spell_generator: SpellGenerator = None):
        self.repository = repository
        self.config = config or LegacyGuardConfig()
        self.timeout_policy = timeout_policy or TimeoutPolicy.from_config(self.config)
        self.spell_generator = spell_generator or SpellGenerator(self.config)

    def _validate(self, params: VaultParams) -> int:
        missing = params.missing_fields()
        if missing:
            raise InvalidInput(f"Missing required fields: {', '.join(missing)}")

        not_text = params.non_text_fields()
        if not_text:
            raise InvalidInput(f"Fields must be strings: {', '.join(not_text)}")

        amount = params.locked_amount_satoshis
        if isinstance(amount, int) and not isinstance(amount, bool) and 0 < amount < self.config.dust_limit_satoshis:
            raise InvalidInput(
                f"Amount must be at least {self.config.dust_limit_satoshis} satoshis (dust limit)")

        timeout_blocks = params.inactivity_timeout_blocks
        if timeout_blocks is None:
            timeout_blocks = self.timeout_policy.timeout_blocks(params.inactivity_timeout)

        errors = self.spell_generator.validate_vault_params(
            params.owner_pubkey, params.nominee_pubkey, params.nominee_address,
            amount, timeout_blocks)
        if errors:
            raise InvalidInput("; ".join(errors), errors)

        return timeout_blocks

    def create(self, params: VaultParams, now: datetime) -> Vault:
        """Validate params, record the Initialize spell and store a new ACTIVE vault"""
        timeout_blocks = self._validate(params)

        if params.spell:
            spell = params.spell
        else:
            spell = self.spell_generator.initialize(
                params.owner_pubkey, params.nominee_pubkey, params.nominee_address,
                params.locked_amount_satoshis, timeout_blocks,
                funding_utxo=params.funding_utxo or params.tx_id,
            )

        vault = Vault(
            id=Vault.generate_id(params.tx_id),
            tx_id=params.tx_id,
            owner_address=params.owner_address,
            owner_pubkey=normalize_public_key(params.owner_pubkey),
            nominee_address=params.nominee_address,
            nominee_pubkey=normalize_public_key(params.nominee_pubkey),
            locked_amount_satoshis=params.locked_amount_satoshis,
            inactivity_timeout=params.inactivity_timeout,
            inactivity_timeout_blocks=timeout_blocks,
            app_verification_key=self.config.app_verification_key,
            spell=spell,
            created_at=now,
        )

        stored = self.repository.insert(vault)
        log.info("Created vault %s for tx %s (%d sats, timeout %s)",
                 stored.id, stored.tx_id, stored.locked_amount_satoshis, stored.inactivity_timeout)
        return stored

    def _advance(self, vault: Vault, now: datetime) -> bool:
        if vault.status != VaultStatus.ACTIVE:
            return False
        if not self.timeout_policy.has_elapsed(vault.inactivity_timeout, vault.created_at, now):
            return False
        vault.status = VaultStatus.CLAIMABLE
        return True

    def refresh_status(self, vault: Vault, now: datetime) -> Vault:
        """Promote an ACTIVE vault to CLAIMABLE once its timeout has elapsed"""
        if vault.status != VaultStatus.ACTIVE:
            return vault

        def apply(current: Vault):
            if self._advance(current, now):
                log.info("Vault %s is now CLAIMABLE", current.id)

        return self.repository.update(vault.id, apply)

    def claim(self, vault: Vault, claimant_address: str, claim_tx_id: str, now: datetime) -> Vault:
        """Record the heir's claim; the vault must be CLAIMABLE and the claimant its nominee"""
        ClaimRequest(claimant_address, claim_tx_id).validate()

        self.refresh_status(vault, now)

        def apply(current: Vault):
            self._advance(current, now)

            if current.status == VaultStatus.CLAIMED:
                raise AlreadyClaimed(current.id, current.claimed_tx_id)
            if current.status != VaultStatus.CLAIMABLE:
                raise NotClaimable(current.id, current.status.value)
            if current.nominee_address != claimant_address:
                log.warning("Rejected claim on vault %s from %s...", current.id, claimant_address[:12])
                raise Unauthorized()

            current.status = VaultStatus.CLAIMED
            current.claimed_at = now
            current.claimed_tx_id = claim_tx_id

        claimed = self.repository.update(vault.id, apply)
        log.info("Vault %s CLAIMED in tx %s", claimed.id, claim_tx_id)
        return claimed

    def verify_spell(self, vault: Vault, funding_utxo: str = None) -> bool:
        """Re-derive the Initialize spell and compare it with the recorded one"""
        expected = self.spell_generator.initialize(
            vault.owner_pubkey, vault.nominee_pubkey, vault.nominee_address,
            vault.locked_amount_satoshis, vault.inactivity_timeout_blocks,
            funding_utxo=format_utxo_ref(funding_utxo or vault.tx_id),
        )
        return expected == vault.spell
