# Services package
from .email import EmailResult
from .side_effects import SideEffectOutcome, SideEffects, get_side_effects

__all__ = [
    "EmailResult",
    "SideEffectOutcome",
    "SideEffects",
    "get_side_effects",
]
