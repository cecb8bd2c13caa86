"""
SKU listing — diagnostic dump of the raw SKU records, so an operator can pick
ids for the include / exclude lists.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Optional, Sequence

from .. import __version__
from ..catalog.sku_names import resolve
from ..models import SkuRecord


def export_sku_listing(
    skus: Sequence[SkuRecord],
    generated_at: Optional[datetime] = None,
) -> str:
    """
    Render all SKUs as a JSON document.

    Returns:
        The JSON text, newline-terminated.
    """
    generated_at = generated_at or datetime.now(timezone.utc)
    payload = {
        "metadata": {
            "probe": "M365 License & DirSync Probe",
            "version": __version__,
            "generated_utc": generated_at.isoformat(),
            "sku_count": len(skus),
        },
        "skus": [_sku_to_dict(s) for s in skus],
    }
    return json.dumps(payload, indent=2, ensure_ascii=False) + "\n"


def _sku_to_dict(sku: SkuRecord) -> dict:
    return {
        **sku.to_dict(),
        "friendly_name": resolve(sku.id),
    }
