"""
Metric derivation — turns raw SKU counts and sync timestamps into the numbers
the report channels carry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..models import SkuRecord, as_utc

logger = logging.getLogger("m365_license_probe.analysis.metrics")


@dataclass(frozen=True)
class DerivedMetrics:
    """Counts derived from one SKU. ``free`` may be negative."""
    free: int
    total: int
    consumed: int
    warning: int

    def available_pct(self) -> float:
        return percentage(self.free, self.total)

    def warning_pct(self) -> float:
        return percentage(self.warning, self.total)


def derive(sku: SkuRecord) -> DerivedMetrics:
    """
    Derive free / total / consumed / warning counts.

    Inconsistent upstream data (consumed > active) yields a negative free
    count, which is passed through so the channel limits can flag it.
    """
    free = sku.active_units - sku.consumed_units
    if free < 0:
        logger.warning(
            f"SKU {sku.id} reports more consumed ({sku.consumed_units}) "
            f"than active ({sku.active_units}) units"
        )
    return DerivedMetrics(
        free=free,
        total=sku.active_units,
        consumed=sku.consumed_units,
        warning=sku.warning_units,
    )


def percentage(part: int, whole: int) -> float:
    """``part / whole`` as a percentage rounded to 2 places; 0.0 when whole is 0."""
    if whole == 0:
        logger.warning("Percentage of a zero total requested; reporting 0.0")
        return 0.0
    return round(part / whole * 100, 2)


def hours_since(moment: Optional[datetime], now: datetime) -> Optional[float]:
    """Hours elapsed from ``moment`` to ``now`` (both taken as UTC), 2 decimals."""
    if moment is None:
        return None
    delta = as_utc(now) - as_utc(moment)
    return round(delta.total_seconds() / 3600, 2)
