"""
Data models — typed records passed between the probe stages.

Raw Graph payloads are validated once, here, and everything downstream works
on these frozen dataclasses instead of dictionaries.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union

from .errors import UpstreamError

logger = logging.getLogger("m365_license_probe.models")

Number = Union[int, float]


# ─── Upstream records ───────────────────────────────────────────────────────

def _units(raw: dict, key: str, sku_label: str) -> int:
    """
    Read a unit count.  A missing count is 0; a malformed one is logged and
    coerced (non-numbers and negatives to 0, fractions truncated) so one bad
    record never aborts the run.
    """
    value = raw.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        logger.warning(f"SKU {sku_label}: {key} is not a number ({value!r}); using 0")
        return 0
    if value < 0:
        logger.warning(f"SKU {sku_label}: negative {key} ({value!r}); using 0")
        return 0
    if value != int(value):
        logger.warning(f"SKU {sku_label}: fractional {key} ({value!r}); truncating")
    return int(value)


@dataclass(frozen=True)
class SkuRecord:
    """License counts for one subscribed SKU."""
    id: str                          # "<tenant>:<PRODUCT_CODE>"
    active_units: int = 0
    consumed_units: int = 0
    warning_units: int = 0
    suspended_units: int = 0
    sku_part_number: str = ""

    @property
    def product_code(self) -> str:
        return self.id.split(":", 1)[1] if ":" in self.id else self.id

    @classmethod
    def from_graph(cls, raw: dict[str, Any], account_name: str) -> "SkuRecord":
        """Build a record from a Graph ``subscribedSku`` payload."""
        part_number = raw.get("skuPartNumber")
        if not part_number or not isinstance(part_number, str):
            raise UpstreamError(f"subscribedSku without skuPartNumber: {raw.get('skuId', '?')}")
        account = raw.get("accountName") or account_name
        sku_id = f"{account}:{part_number}"

        prepaid = raw.get("prepaidUnits") or {}
        if not isinstance(prepaid, dict):
            logger.warning(f"SKU {sku_id}: prepaidUnits is not an object; counts taken as 0")
            prepaid = {}

        return cls(
            id=sku_id,
            active_units=_units(prepaid, "enabled", sku_id),
            consumed_units=_units(raw, "consumedUnits", sku_id),
            warning_units=_units(prepaid, "warning", sku_id),
            suspended_units=_units(prepaid, "suspended", sku_id),
            sku_part_number=part_number,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku_part_number": self.sku_part_number,
            "active_units": self.active_units,
            "consumed_units": self.consumed_units,
            "warning_units": self.warning_units,
            "suspended_units": self.suspended_units,
        }


def parse_graph_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse a Graph ISO-8601 timestamp into an aware UTC datetime."""
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    # Graph may send 7 fractional digits; fromisoformat accepts at most 6.
    if "." in text:
        head, _, tail = text.partition(".")
        digits = ""
        rest = ""
        for i, ch in enumerate(tail):
            if not ch.isdigit():
                rest = tail[i:]
                break
            digits += ch
        text = f"{head}.{digits[:6].ljust(6, '0')}{rest}" if digits else head + rest
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise UpstreamError(f"Unparseable timestamp from upstream: {value!r}")
    return as_utc(parsed)


def as_utc(moment: datetime) -> datetime:
    """Naive datetimes are taken as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


@dataclass(frozen=True)
class SyncStatus:
    """Directory / password synchronization state of the tenant."""
    dir_sync_enabled: bool = False
    last_dir_sync_time: Optional[datetime] = None
    password_sync_enabled: bool = False
    last_password_sync_time: Optional[datetime] = None

    def __post_init__(self):
        for name in ("last_dir_sync_time", "last_password_sync_time"):
            moment = getattr(self, name)
            if moment is not None:
                object.__setattr__(self, name, as_utc(moment))


@dataclass(frozen=True)
class ProvisioningError:
    """An on-premises object that failed to provision in the cloud directory."""
    display_name: str


# ─── Report records ─────────────────────────────────────────────────────────

class Unit(str, Enum):
    COUNT = "Count"
    TIME_HOURS = "TimeHours"
    PERCENT = "Percent"


@dataclass(frozen=True)
class Thresholds:
    """Channel limits; any bound left as None is not emitted."""
    min_warning: Optional[Number] = None
    min_error: Optional[Number] = None
    max_warning: Optional[Number] = None
    mode: int = 1


@dataclass(frozen=True)
class MetricRecord:
    """One channel of the report."""
    channel: str
    value: Number
    unit: Optional[Unit] = None
    thresholds: Optional[Thresholds] = None
    annotation: Optional[str] = None

    @property
    def is_float(self) -> bool:
        return isinstance(self.value, float)


@dataclass(frozen=True)
class Report:
    """Ordered collection of metric records."""
    records: tuple[MetricRecord, ...] = field(default_factory=tuple)

    @property
    def channels(self) -> list[str]:
        return [r.channel for r in self.records]

    def get(self, channel: str) -> Optional[MetricRecord]:
        for record in self.records:
            if record.channel == channel:
                return record
        return None

    def __len__(self) -> int:
        return len(self.records)


@dataclass(frozen=True)
class ErrorReport:
    """Replaces the whole report when the run fails."""
    message: str


ProbeOutcome = Union[Report, ErrorReport]
