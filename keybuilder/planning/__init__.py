"""Partition planning: sizing, validation of edited sizes and layout detection.

Main Functions:
    - compute_sizes(): Weighted distribution of the device space
    - plan_default_sizes(): compute_sizes() with the configured defaults
    - validate_sizes(): Reconcile user-edited sizes with the device
    - detect_layout(): Reuse check for an already partitioned device
"""

from .detection import detect_layout
from .sizing import compute_sizes, plan_default_sizes
from .validation import validate_sizes


__all__ = [
    "compute_sizes",
    "detect_layout",
    "plan_default_sizes",
    "validate_sizes",
]
