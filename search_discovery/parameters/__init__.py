"""Search input handling: debounced parameter store and hybrid weight derivation."""

from .hybrid_weight import derive_hybrid_weight, BALANCED_WEIGHT, KEYWORD_WEIGHT
from .parameter_store import Debouncer, ParameterStore

__all__ = [
    'derive_hybrid_weight',
    'BALANCED_WEIGHT',
    'KEYWORD_WEIGHT',
    'Debouncer',
    'ParameterStore',
]
