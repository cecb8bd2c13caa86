"""
Report builder — assembles the ordered channel list from filtered SKUs,
sync status, and provisioning errors.

Pure: no I/O, and the current time is passed in.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Sequence

from ..analysis.metrics import derive, hours_since
from ..catalog.sku_names import resolve, strip_prefix
from ..config import REPORT_PROFILES, ReportProfile, ThresholdConfig
from ..models import (
    MetricRecord,
    ProvisioningError,
    Report,
    SkuRecord,
    SyncStatus,
    Thresholds,
    Unit,
)

logger = logging.getLogger("m365_license_probe.reporting.builder")

PROVISIONING_CHANNEL = "Provisioning Errors"
DIRSYNC_CHANNEL = "Hours since last DirSync"
PASSWORD_SYNC_CHANNEL = "Hours since last Password Sync"


def build_report(
    skus: Sequence[SkuRecord],
    sync_status: SyncStatus,
    provisioning_errors: Sequence[ProvisioningError],
    now: datetime,
    profile: Optional[ReportProfile] = None,
    thresholds: Optional[ThresholdConfig] = None,
) -> Report:
    """
    Build the report for one run.

    Order: provisioning errors, DirSync age, password sync age, then the
    per-SKU channels in the order the SKUs were given.
    """
    profile = profile or REPORT_PROFILES["default"]
    thresholds = thresholds or ThresholdConfig()

    records: list[MetricRecord] = [
        provisioning_record(provisioning_errors, thresholds),
    ]
    records.extend(sync_records(sync_status, now, thresholds))

    for label, sku in label_skus(skus):
        records.extend(sku_records(label, sku, profile, thresholds))

    return Report(records=tuple(records))


def provisioning_record(
    errors: Sequence[ProvisioningError],
    thresholds: ThresholdConfig,
) -> MetricRecord:
    annotation = None
    if errors:
        names = ", ".join(e.display_name for e in errors)
        annotation = f"Provisioning errors on: {names}"
    return MetricRecord(
        channel=PROVISIONING_CHANNEL,
        value=len(errors),
        unit=Unit.COUNT,
        thresholds=Thresholds(max_warning=thresholds.provisioning_max_warning),
        annotation=annotation,
    )


def sync_records(
    status: SyncStatus,
    now: datetime,
    thresholds: ThresholdConfig,
) -> list[MetricRecord]:
    """Sync-age channels; a disabled sync produces no channel at all."""
    records = []
    for enabled, last_sync, channel in (
        (status.dir_sync_enabled, status.last_dir_sync_time, DIRSYNC_CHANNEL),
        (status.password_sync_enabled, status.last_password_sync_time, PASSWORD_SYNC_CHANNEL),
    ):
        if not enabled:
            continue
        hours = hours_since(last_sync, now)
        if hours is None:
            logger.warning(f"{channel}: sync is enabled but has never completed; channel omitted")
            continue
        records.append(MetricRecord(
            channel=channel,
            value=float(hours),
            unit=Unit.TIME_HOURS,
            thresholds=Thresholds(max_warning=thresholds.sync_max_warning_hours),
        ))
    return records


def label_skus(skus: Sequence[SkuRecord]) -> list[tuple[str, SkuRecord]]:
    """
    Pair each SKU with its display label.

    Labels must be unique channel prefixes; a repeated friendly name gets the
    product code appended, then the full id if that still collides.
    """
    labelled = []
    seen: set[str] = set()
    for sku in skus:
        label = resolve(sku.id)
        for candidate in (label, f"{label} ({strip_prefix(sku.id)})", f"{label} ({sku.id})"):
            if candidate not in seen:
                label = candidate
                break
        else:
            suffix = 2
            while f"{label} #{suffix}" in seen:
                suffix += 1
            label = f"{label} #{suffix}"
        seen.add(label)
        labelled.append((label, sku))
    return labelled


def sku_records(
    label: str,
    sku: SkuRecord,
    profile: ReportProfile,
    thresholds: ThresholdConfig,
) -> list[MetricRecord]:
    metrics = derive(sku)
    records = []
    if profile.free:
        records.append(MetricRecord(
            channel=f"{label} - Free Licenses",
            value=metrics.free,
            unit=Unit.COUNT,
            thresholds=Thresholds(
                min_warning=thresholds.free_min_warning,
                min_error=thresholds.free_min_error,
            ),
        ))
    if profile.total:
        records.append(MetricRecord(
            channel=f"{label} - Total Licenses",
            value=metrics.total,
            unit=Unit.COUNT,
        ))
    if profile.consumed:
        records.append(MetricRecord(
            channel=f"{label} - Consumed Licenses",
            value=metrics.consumed,
            unit=Unit.COUNT,
        ))
    if profile.warning_units:
        records.append(MetricRecord(
            channel=f"{label} - Warning Licenses",
            value=metrics.warning,
            unit=Unit.COUNT,
            thresholds=Thresholds(max_warning=thresholds.warning_units_max_warning),
        ))
    if profile.percentages:
        records.append(MetricRecord(
            channel=f"{label} - Available %",
            value=metrics.available_pct(),
            unit=Unit.PERCENT,
            thresholds=Thresholds(
                min_warning=thresholds.available_pct_min_warning,
                min_error=thresholds.available_pct_min_error,
            ),
        ))
        records.append(MetricRecord(
            channel=f"{label} - Warning %",
            value=metrics.warning_pct(),
            unit=Unit.PERCENT,
        ))
    return records
