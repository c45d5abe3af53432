"""
Error taxonomy for the vault engine.

Every error carries the HTTP-equivalent status code the web layer answers with.
"""

from typing import List, Optional


class LegacyGuardError(Exception):
    """Base class for all caller-visible vault errors"""
    status_code = 500


class InvalidInput(LegacyGuardError, ValueError):
    """Malformed request fields"""
    status_code = 400

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = errors or [message]


class InvalidPublicKeyFormat(InvalidInput):
    """Public key could not be normalized to 32 bytes"""

    def __init__(self, length: int):
        super().__init__(
            f"Invalid public key format: got {length} hex characters, "
            "expected 32 bytes (64 hex characters)"
        )
        self.length = length


class KeyExtractionFailed(LegacyGuardError):
    """No historical spend revealed a public key"""
    status_code = 400


class DuplicateVault(LegacyGuardError):
    status_code = 409

    def __init__(self, tx_id: str):
        super().__init__(f"Vault with transaction ID {tx_id} already exists")
        self.tx_id = tx_id


class VaultNotFound(LegacyGuardError, LookupError):
    status_code = 404

    def __init__(self, vault_id: str):
        super().__init__(f"Vault {vault_id} not found")
        self.vault_id = vault_id


class NotClaimable(LegacyGuardError):
    status_code = 409

    def __init__(self, vault_id: str, status: str):
        super().__init__(f"Vault is {status} and cannot be claimed")
        self.vault_id = vault_id
        self.status = status


class Unauthorized(LegacyGuardError):
    status_code = 403

    def __init__(self, message: str = "Unauthorized: You are not the heir for this vault"):
        super().__init__(message)


class AlreadyClaimed(LegacyGuardError):
    status_code = 409

    def __init__(self, vault_id: str, claimed_tx_id: Optional[str]):
        super().__init__(f"Vault {vault_id} was already claimed in {claimed_tx_id}")
        self.vault_id = vault_id
        self.claimed_tx_id = claimed_tx_id


class UpstreamUnavailable(LegacyGuardError):
    """An external collaborator (explorer, prover) failed or is unreachable"""
    status_code = 502

    def __init__(self, service: str, detail: str):
        super().__init__(f"{service} unavailable: {detail}")
        self.service = service
        self.detail = detail
