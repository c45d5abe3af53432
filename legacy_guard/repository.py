"""
Vault persistence boundary.

`VaultRepository` is what the engine needs from a store; `InMemoryVaultRepository`
implements it with a single lock so that conditional updates are atomic.
"""

import logging
import threading
from dataclasses import replace
from typing import Callable, Dict, List, Optional

from .errors import DuplicateVault, VaultNotFound
from .vault import Vault, VaultStatus

log = logging.getLogger(__name__)


class VaultRepository:
    """Keyed store of vault records"""

    def open(self):
        pass

    def close(self):
        pass

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def insert(self, vault: Vault) -> Vault:
        """Insert if no vault uses the same tx_id, else raise DuplicateVault"""
        raise NotImplementedError

    def get(self, vault_id: str) -> Vault:
        raise NotImplementedError

    def get_by_tx_id(self, tx_id: str) -> Optional[Vault]:
        raise NotImplementedError

    def list_by_nominee(self, nominee_address: str, status: Optional[VaultStatus] = None) -> List[Vault]:
        """Vaults for a nominee, newest first"""
        raise NotImplementedError

    def update(self, vault_id: str, apply: Callable[[Vault], None]) -> Vault:
        """
        Atomically read, modify and write one vault. `apply` mutates a working
        copy and may raise to abort; nothing is written in that case.
        """
        raise NotImplementedError


class InMemoryVaultRepository(VaultRepository):

    def __init__(self):
        self._vaults: Dict[str, Vault] = {}
        self._by_tx_id: Dict[str, str] = {}
        self._lock = threading.RLock()
        self._open = False

    def open(self):
        self._open = True
        log.debug("Opened in-memory vault repository")

    def close(self):
        self._open = False
        log.debug("Closed in-memory vault repository (%d vaults)", len(self._vaults))

    @property
    def is_open(self) -> bool:
        return self._open

    def _require_open(self):
        if not self._open:
            raise RuntimeError("Vault repository is not open")

    def insert(self, vault: Vault) -> Vault:
        self._require_open()
        with self._lock:
            if vault.tx_id in self._by_tx_id or vault.id in self._vaults:
                raise DuplicateVault(vault.tx_id)
            self._vaults[vault.id] = replace(vault)
            self._by_tx_id[vault.tx_id] = vault.id
            return replace(vault)

    def get(self, vault_id: str) -> Vault:
        self._require_open()
        with self._lock:
            if vault_id not in self._vaults:
                raise VaultNotFound(vault_id)
            return replace(self._vaults[vault_id])

    def get_by_tx_id(self, tx_id: str) -> Optional[Vault]:
        self._require_open()
        with self._lock:
            vault_id = self._by_tx_id.get(tx_id)
            return replace(self._vaults[vault_id]) if vault_id else None

    def list_by_nominee(self, nominee_address, status=None):
        self._require_open()
        with self._lock:
            matches = [
                replace(v) for v in self._vaults.values()
                if v.nominee_address == nominee_address and (status is None or v.status == status)
            ]
        return sorted(matches, key=lambda v: v.created_at, reverse=True)

    def update(self, vault_id, apply):
        self._require_open()
        with self._lock:
            if vault_id not in self._vaults:
                raise VaultNotFound(vault_id)

            current = self._vaults[vault_id]
            working = replace(current)
            apply(working)

            if working.status.rank < current.status.rank:
                raise ValueError(
                    f"Vault {vault_id} status cannot move from {current.status.value} to {working.status.value}")
            if working.id != current.id or working.tx_id != current.tx_id or working.created_at != current.created_at:
                raise ValueError(f"Vault {vault_id} identity fields are immutable")

            self._vaults[vault_id] = working
            return replace(working)
