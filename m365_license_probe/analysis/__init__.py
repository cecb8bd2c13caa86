"""Analysis package — SKU selection and metric derivation."""

from .filters import filter_skus, NO_SKUS_MESSAGE, NO_MATCHING_SKUS_MESSAGE
from .metrics import DerivedMetrics, derive, hours_since, percentage

__all__ = [
    "filter_skus",
    "NO_SKUS_MESSAGE",
    "NO_MATCHING_SKUS_MESSAGE",
    "DerivedMetrics",
    "derive",
    "hours_since",
    "percentage",
]
