"""
Spell provers - turn a rendered spell into a broadcastable transaction

The engine only produces spell text. Proving, signing and broadcasting belong
to an external prover; this module defines that boundary plus two adapters:
the charms CLI, and an offline mock used for demos and tests.
"""

import hashlib
import json
import logging
import subprocess
from dataclasses import dataclass, field
from typing import List, Optional

import yaml
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec

from ..bitcoin_integration import double_sha256
from ..config import LegacyGuardConfig
from ..errors import InvalidInput, UpstreamUnavailable
from .spells import UTXO_PLACEHOLDER, SpellAction

log = logging.getLogger(__name__)


@dataclass
class SpellValidation:
    """Outcome of checking a spell"""
    valid: bool
    action: Optional[str] = None
    output: str = ""
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'valid': self.valid,
            'action': self.action,
            'output': self.output,
            'errors': self.errors or None,
        }


@dataclass
class SignedTransaction:
    """Proven transaction ready for the owner's wallet to broadcast"""
    txid: str
    tx_hex: str
    spell: str
    action: Optional[str] = None


class SpellProver:
    """Interface to the external prover"""

    def validate(self, template: str) -> SpellValidation:
        raise NotImplementedError

    def prove(self, template: str) -> SignedTransaction:
        raise NotImplementedError

    def is_available(self) -> bool:
        return True


class MockSpellProver(SpellProver):
    """
    Offline prover: checks the spell's structure against the vault contract's
    rules and signs a digest of it with a throwaway secp256k1 key.
    """

    DOMAIN_TAG = b"LEGACY_GUARD_SPELL_V1"

    def __init__(self, config: LegacyGuardConfig = None):
        self.config = config or LegacyGuardConfig()
        self._private_key = ec.generate_private_key(ec.SECP256K1())
        self.public_key = self._private_key.public_key()

    def _has_app(self, entry: dict) -> bool:
        charms = entry.get('charms')
        return isinstance(charms, list) and any(
            isinstance(c, dict) and c.get('app') == self.config.app_verification_key for c in charms
        )

    def _check_output(self, output: dict, errors: List[str]) -> Optional[str]:
        value = output.get('value')
        if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
            errors.append("Output value must be a positive integer")

        charms = output.get('charms')
        if charms is None:
            if not output.get('address'):
                errors.append("Output must carry either charms or an address")
                return None
            return SpellAction.CLAIM.value

        if 'address' in output:
            errors.append("Enchanted output must not carry an address")
        if not isinstance(charms, list) or len(charms) != 1:
            errors.append("Enchanted output must carry exactly one charm")
            return None

        charm = charms[0]
        if not isinstance(charm, dict) or charm.get('app') != self.config.app_verification_key:
            errors.append("Charm is not bound to this app verification key")
            return None

        data = charm.get('data')
        if not isinstance(data, dict):
            data = {}
        action = data.get('action')
        if action == SpellAction.INITIALIZE.value:
            for key in ('owner_pubkey', 'heir_pubkey'):
                pubkey = data.get(key)
                if not isinstance(pubkey, str) or len(pubkey) != 64:
                    errors.append(f"Initialize {key} must be 32 bytes hex")
            timeout = data.get('timeout_blocks')
            if not isinstance(timeout, int) or timeout <= 0:
                errors.append("Initialize timeout_blocks must be positive")
        elif action != SpellAction.PULSE.value:
            errors.append(f"Unknown charm action: {action!r}")
            return None
        return action

    def validate(self, template: str) -> SpellValidation:
        try:
            spell = yaml.safe_load(template)
        except yaml.YAMLError as e:
            return SpellValidation(valid=False, errors=[f"Spell is not valid YAML: {e}"])

        if not isinstance(spell, dict):
            return SpellValidation(valid=False, errors=["Spell must be a mapping"])

        errors = []
        if spell.get('version') != self.config.spell_version:
            errors.append(f"Unsupported spell version: {spell.get('version')!r}")

        inputs = spell.get('inputs')
        outputs = spell.get('outputs')
        if not isinstance(inputs, list) or len(inputs) != 1 or not isinstance(inputs[0], dict):
            return SpellValidation(valid=False, errors=errors + ["Spell must have exactly one input"])
        if not isinstance(outputs, list) or len(outputs) != 1 or not isinstance(outputs[0], dict):
            return SpellValidation(valid=False, errors=errors + ["Spell must have exactly one output"])

        utxo = inputs[0].get('utxo')
        if not isinstance(utxo, str) or ':' not in utxo:
            errors.append("Input must reference a UTXO as txid:vout")
        elif utxo == UTXO_PLACEHOLDER:
            errors.append("Input UTXO is still a placeholder")

        action = self._check_output(outputs[0], errors)
        spends_vault = self._has_app(inputs[0])
        if action == SpellAction.INITIALIZE.value and spends_vault:
            errors.append("Initialize must spend a plain funding UTXO")
        if action in (SpellAction.PULSE.value, SpellAction.CLAIM.value) and not spends_vault:
            errors.append(f"{action} must spend the vault UTXO")

        return SpellValidation(valid=not errors, action=action, output="mock check", errors=errors)

    def _digest(self, template: str) -> bytes:
        return hashlib.sha256(self.DOMAIN_TAG + template.encode()).digest()

    def prove(self, template: str) -> SignedTransaction:
        validation = self.validate(template)
        if not validation.valid:
            raise InvalidInput("Spell failed validation: " + "; ".join(validation.errors), validation.errors)

        digest = self._digest(template)
        signature = self._private_key.sign(digest, ec.ECDSA(hashes.SHA256()))
        txid = double_sha256(digest + signature)[::-1].hex()

        log.info("Mock-proved %s spell as %s", validation.action, txid[:16])
        return SignedTransaction(
            txid=txid,
            tx_hex=(digest + signature).hex(),
            spell=template,
            action=validation.action,
        )

    def verify(self, signed: SignedTransaction) -> bool:
        """Verify a transaction produced by this prover"""
        raw = bytes.fromhex(signed.tx_hex)
        digest, signature = raw[:32], raw[32:]
        if digest != self._digest(signed.spell):
            return False
        if double_sha256(raw)[::-1].hex() != signed.txid:
            return False

        try:
            self.public_key.verify(signature, digest, ec.ECDSA(hashes.SHA256()))
        except InvalidSignature:
            return False
        return True


class CharmsCliProver(SpellProver):
    """Adapter around the `charms` command line tool"""

    def __init__(self, config: LegacyGuardConfig = None, timeout: float = 300):
        self.config = config or LegacyGuardConfig()
        self.cli = self.config.charms_cli_path
        self.contract_path = self.config.contract_path
        self.timeout = timeout
        self._app_bins = None

    def _run(self, args: List[str], stdin: str = None, cwd: str = None) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                [self.cli] + args,
                input=stdin,
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError:
            raise UpstreamUnavailable("charms CLI", f"{self.cli} not found")
        except subprocess.TimeoutExpired:
            raise UpstreamUnavailable("charms CLI", f"{' '.join(args[:2])} timed out after {self.timeout}s")

    def is_available(self) -> bool:
        try:
            return self._run(["--version"]).returncode == 0
        except UpstreamUnavailable:
            return False

    def app_bins(self) -> str:
        """Build the contract once and remember the binary path"""
        if self._app_bins is None:
            result = self._run(["app", "build"], cwd=self.contract_path)
            if result.returncode != 0:
                raise UpstreamUnavailable("charms CLI", f"app build failed: {result.stderr.strip()}")
            self._app_bins = result.stdout.strip()
        return self._app_bins

    def validate(self, template: str) -> SpellValidation:
        result = self._run(
            ["spell", "check", f"--app-bins={self.app_bins()}", "--mock"],
            stdin=template,
            cwd=self.contract_path,
        )
        if result.returncode != 0:
            log.warning("charms spell check rejected spell: %s", result.stderr.strip())
            return SpellValidation(valid=False, output=result.stdout, errors=[result.stderr.strip()])
        return SpellValidation(valid=True, output=result.stdout)

    def prove(self, template: str) -> SignedTransaction:
        result = self._run(
            ["spell", "prove", f"--app-bins={self.app_bins()}"],
            stdin=template,
            cwd=self.contract_path,
        )
        if result.returncode != 0:
            raise UpstreamUnavailable("charms CLI", f"spell prove failed: {result.stderr.strip()}")

        tx_hex = result.stdout.strip()
        # prove may print a JSON list of transactions; the spell tx comes last
        try:
            parsed = json.loads(tx_hex)
        except ValueError:
            parsed = None
        if isinstance(parsed, list) and parsed:
            tx_hex = str(parsed[-1])

        try:
            txid = double_sha256(bytes.fromhex(tx_hex))[::-1].hex()
        except ValueError:
            raise UpstreamUnavailable("charms CLI", "prove returned a non-hex transaction")

        return SignedTransaction(txid=txid, tx_hex=tx_hex, spell=template)


MANUAL_INSTRUCTIONS = [
    "1. Save the spell to a file (e.g., initialize.yaml)",
    "2. Run: charms spell check --app-bins=$(charms app build) --mock < initialize.yaml",
    "3. Run: charms spell prove --app-bins=$(charms app build) < initialize.yaml",
    "4. Sign and broadcast the resulting transaction",
]
