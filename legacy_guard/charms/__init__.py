"""
Charms integration - spell rendering and the external prover boundary
"""

from .spells import SpellAction, SpellGenerator
from .prover import CharmsCliProver, MockSpellProver, SignedTransaction, SpellProver, SpellValidation

__all__ = [
    "SpellAction",
    "SpellGenerator",
    "SpellProver",
    "SpellValidation",
    "SignedTransaction",
    "MockSpellProver",
    "CharmsCliProver",
]
