"""
Public key recovery from historical transaction inputs.

A key is only visible on-chain once its address has spent funds, so the
extractor looks at the witness and script data of past inputs. Strategies are
tried in a fixed priority order and the first hit wins.
"""

import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .bitcoin_integration import normalize_public_key
from .errors import InvalidPublicKeyFormat

log = logging.getLogger(__name__)

_HEX_RUN = re.compile(r"[0-9a-fA-F]+")

DEFAULT_SCAN_LIMIT = 20


def _hex_runs(text: str, lengths: Sequence[int]) -> List[str]:
    """Maximal hex runs of one of the given lengths, in text order"""
    return [m.group(0).lower() for m in _HEX_RUN.finditer(text) if len(m.group(0)) in lengths]


def _normalized_or_none(candidate: str) -> Optional[str]:
    try:
        return normalize_public_key(candidate)
    except InvalidPublicKeyFormat:
        log.debug("Skipping key candidate %s...: not a valid point encoding", candidate[:8])
        return None


class ExtractionStrategy:
    """Looks for a revealed public key in one field of a transaction input"""

    field_name = ""

    def extract(self, tx_input: Dict[str, Any]) -> Optional[str]:
        raise NotImplementedError


class WitnessListStrategy(ExtractionStrategy):
    field_name = "witness"

    def extract(self, tx_input):
        witness = tx_input.get(self.field_name)
        if not isinstance(witness, list):
            return None

        for item in witness:
            if not isinstance(item, str) or not _HEX_RUN.fullmatch(item):
                continue
            if len(item) == 64:
                return item.lower()
            if len(item) == 66:
                key = _normalized_or_none(item)
                if key:
                    return key
        return None


class InnerScriptStrategy(ExtractionStrategy):
    field_name = "inner_witnessscript_asm"

    def extract(self, tx_input):
        script = tx_input.get(self.field_name)
        if not isinstance(script, str):
            return None

        for match in _hex_runs(script, (64, 66)):
            if len(match) == 64:
                return match
            return match[2:]
        return None


class LegacyScriptStrategy(ExtractionStrategy):
    field_name = "scriptsig_asm"

    def extract(self, tx_input):
        script = tx_input.get(self.field_name)
        if not isinstance(script, str):
            return None

        for match in _hex_runs(script, (64, 66, 130)):
            if len(match) == 64:
                return match
            if len(match) == 66:
                return match[2:]
            key = _normalized_or_none(match)
            if key:
                return key
        return None


DEFAULT_STRATEGIES = (WitnessListStrategy(), InnerScriptStrategy(), LegacyScriptStrategy())


class PublicKeyExtractor:
    """Fixed-priority dispatcher over extraction strategies"""

    def __init__(self, strategies: Iterable[ExtractionStrategy] = DEFAULT_STRATEGIES):
        self.strategies = list(strategies)

    def extract(self, tx_input: Dict[str, Any]) -> Optional[str]:
        """Recover a key revealed by a single input, or None"""
        if not isinstance(tx_input, dict):
            return None

        for strategy in self.strategies:
            key = strategy.extract(tx_input)
            if key:
                return key
        return None

    def find_in_transactions(self, transactions: Sequence[Dict[str, Any]],
                             limit: int = DEFAULT_SCAN_LIMIT) -> Optional[str]:
        """First key revealed across the first `limit` transactions, in input order"""
        for tx in transactions[:limit]:
            inputs = tx.get("vin") if isinstance(tx, dict) else None
            if not isinstance(inputs, list):
                continue

            for tx_input in inputs:
                key = self.extract(tx_input)
                if key:
                    log.info("Found public key %s... in tx %s", key[:16], str(tx.get("txid", "?"))[:16])
                    return key
        return None
