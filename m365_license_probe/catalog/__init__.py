"""SKU catalog package — static product-name data and the name resolver."""

from .sku_names import SKU_FRIENDLY_NAMES, resolve, strip_prefix

__all__ = [
    "SKU_FRIENDLY_NAMES",
    "resolve",
    "strip_prefix",
]
