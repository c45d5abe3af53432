"""
Charms spells - declarative transaction templates for the vault contract

Initialize and Pulse outputs carry the app payload and no address, which keeps
the funds in a contract-controlled (enchanted) UTXO. Claim drops the payload and
pays a plain address, releasing the funds to the heir.
"""

from enum import Enum
from typing import List, Optional

from ..bitcoin_integration import format_utxo_ref, is_valid_address, normalize_public_key
from ..config import LegacyGuardConfig
from ..errors import InvalidInput, InvalidPublicKeyFormat

UTXO_PLACEHOLDER = "<UTXO_ID>:<UTXO_INDEX>"


class SpellAction(Enum):
    INITIALIZE = "Initialize"
    PULSE = "Pulse"
    CLAIM = "Claim"

    @classmethod
    def parse(cls, value) -> 'SpellAction':
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise InvalidInput("Invalid action. Must be Initialize, Pulse, or Claim")


class SpellGenerator:
    """Renders the three vault spells for one deployment's app verification key"""

    def __init__(self, config: LegacyGuardConfig = None):
        self.config = config or LegacyGuardConfig()

    @property
    def app_vk(self) -> str:
        return self.config.app_verification_key

    # Validation

    def _amount_errors(self, amount_satoshis) -> List[str]:
        if isinstance(amount_satoshis, bool) or not isinstance(amount_satoshis, int):
            return ["Amount must be an integer number of satoshis"]
        if amount_satoshis <= 0:
            return ["Amount must be greater than 0"]
        if amount_satoshis > self.config.max_amount_satoshis:
            return [f"Amount cannot exceed {self.config.max_amount_satoshis} satoshis"]
        return []

    @staticmethod
    def _address_errors(heir_address) -> List[str]:
        if not is_valid_address(heir_address):
            return ["Invalid Bitcoin address format"]
        return []

    def validate_vault_params(self, owner_pubkey, heir_pubkey, heir_address,
                              amount_satoshis, timeout_blocks) -> List[str]:
        """Collect every problem with a vault's parameters (empty list if valid)"""
        errors = self._amount_errors(amount_satoshis)

        if isinstance(timeout_blocks, bool) or not isinstance(timeout_blocks, int) or timeout_blocks <= 0:
            errors.append("Timeout blocks must be greater than 0")

        for label, key in (("owner", owner_pubkey), ("heir", heir_pubkey)):
            try:
                normalize_public_key(key)
            except InvalidPublicKeyFormat as e:
                errors.append(f"Invalid {label} public key: {e}")

        errors.extend(self._address_errors(heir_address))
        return errors

    @staticmethod
    def _raise_if(errors: List[str]):
        if errors:
            raise InvalidInput("; ".join(errors), errors)

    # Rendering

    def _app_line(self, indent: int) -> str:
        return " " * indent + f'- app: "{self.app_vk}"'

    def initialize(self, owner_pubkey: str, heir_pubkey: str, heir_address: str,
                   amount_satoshis: int, timeout_blocks: int,
                   funding_utxo: Optional[str] = None) -> str:
        """
        Initialize spell: funding UTXO in, one enchanted output carrying the
        vault state out. Without a funding UTXO a placeholder is rendered so the
        template can be shown before the owner picks a coin.
        """
        self._raise_if(self.validate_vault_params(
            owner_pubkey, heir_pubkey, heir_address, amount_satoshis, timeout_blocks))

        utxo = format_utxo_ref(funding_utxo) if funding_utxo else UTXO_PLACEHOLDER

        lines = [
            f"version: {self.config.spell_version}",
            "",
            "inputs:",
            f'  - utxo: "{utxo}"',
            "",
            "outputs:",
            f"  - value: {amount_satoshis}",
            "    charms:",
            self._app_line(6),
            "        data:",
            f"          action: {SpellAction.INITIALIZE.value}",
            f'          owner_pubkey: "{normalize_public_key(owner_pubkey)}"',
            f'          heir_pubkey: "{normalize_public_key(heir_pubkey)}"',
            f"          timeout_blocks: {timeout_blocks}",
            "    # NOTE: No 'address' field - creates Taproot address controlled by contract",
        ]
        return "\n".join(lines)

    def pulse(self, vault_utxo: str, amount_satoshis: int) -> str:
        """Pulse spell: spend the vault UTXO and re-lock the same value"""
        self._raise_if(self._amount_errors(amount_satoshis))

        lines = [
            f"version: {self.config.spell_version}",
            "",
            "inputs:",
            f'  - utxo: "{format_utxo_ref(vault_utxo)}"',
            "    charms:",
            self._app_line(6),
            "",
            "outputs:",
            f"  - value: {amount_satoshis}",
            "    charms:",
            self._app_line(6),
            "        data:",
            f"          action: {SpellAction.PULSE.value}",
            "    # Funds remain in enchanted UTXO controlled by contract",
        ]
        return "\n".join(lines)

    def claim(self, vault_utxo: str, amount_satoshis: int, heir_address: str) -> str:
        """Claim spell: spend the vault UTXO to the heir's plain address"""
        self._raise_if(self._amount_errors(amount_satoshis) + self._address_errors(heir_address))

        lines = [
            f"version: {self.config.spell_version}",
            "",
            "inputs:",
            f'  - utxo: "{format_utxo_ref(vault_utxo)}"',
            "    charms:",
            self._app_line(6),
            "",
            "outputs:",
            f'  - address: "{heir_address}"',
            f"    value: {amount_satoshis}",
            "    # NOTE: No charms - releases funds to heir's standard Bitcoin address",
        ]
        return "\n".join(lines)

    def for_action(self, action: SpellAction, vault_utxo: str, amount_satoshis: int,
                   heir_address: str, owner_pubkey: str = None, heir_pubkey: str = None,
                   timeout_blocks: int = None) -> str:
        """Generate spell for specific action"""
        if action == SpellAction.INITIALIZE:
            if not owner_pubkey or not heir_pubkey or not timeout_blocks:
                raise InvalidInput("Initialize requires owner_pubkey, heir_pubkey, and timeout_blocks")
            return self.initialize(owner_pubkey, heir_pubkey, heir_address,
                                   amount_satoshis, timeout_blocks, vault_utxo)
        if action == SpellAction.PULSE:
            return self.pulse(vault_utxo, amount_satoshis)
        if action == SpellAction.CLAIM:
            return self.claim(vault_utxo, amount_satoshis, heir_address)
        raise InvalidInput(f"Unknown action: {action}")
