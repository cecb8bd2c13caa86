"""
Probe orchestration — one fetch, one transform, one document per run.

Stages hand their results to the next as return values:
fetch (DirectoryClient) → filter → build → render.  Any ProbeError raised
along the way replaces the whole report with a single error document.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import AsyncIterator, Optional

import httpx

from .analysis.filters import NO_SKUS_MESSAGE, filter_skus
from .auth.authenticator import Authenticator
from .config import ProbeConfig, ReportProfile, SkuSelection, ThresholdConfig
from .directory.client import DirectoryClient
from .errors import ModuleUnavailable, NoMatchingSkus, ProbeError
from .graph.client import GraphClient
from .models import ErrorReport, ProbeOutcome, ProvisioningError, SkuRecord, SyncStatus
from .reporting.builder import build_report
from .reporting.prtg_xml import render
from .reporting.sku_listing import export_sku_listing
from .safety.guardian import SafetyGuardian

logger = logging.getLogger("m365_license_probe.probe")

EXIT_OK = 0
EXIT_ERROR = 1


@dataclass(frozen=True)
class DirectorySnapshot:
    """Everything read from upstream in one run, SKUs already filtered."""
    skus: tuple[SkuRecord, ...]
    sync_status: SyncStatus
    provisioning_errors: tuple[ProvisioningError, ...]


async def collect(directory: DirectoryClient, selection: SkuSelection) -> DirectorySnapshot:
    """
    Fetch and filter the directory data.

    Raises:
        NoMatchingSkus: no SKU upstream, or none left after filtering.
        CompanyInfoUnavailable: sync metadata could not be read.
        UpstreamError: any other upstream failure.
    """
    all_skus = await directory.list_account_skus()
    if not all_skus:
        raise NoMatchingSkus(NO_SKUS_MESSAGE)
    skus = filter_skus(all_skus, selection.include, selection.exclude)

    sync_status = await directory.get_company_info()

    errors: list[ProvisioningError] = []
    if await directory.has_provisioning_errors():
        errors = await directory.list_provisioning_errors()

    return DirectorySnapshot(
        skus=tuple(skus),
        sync_status=sync_status,
        provisioning_errors=tuple(errors),
    )


async def run_probe(
    directory: DirectoryClient,
    selection: SkuSelection,
    now: Optional[datetime] = None,
    profile: Optional[ReportProfile] = None,
    thresholds: Optional[ThresholdConfig] = None,
) -> ProbeOutcome:
    """Run the pipeline against an open directory; never raises ProbeError."""
    try:
        snapshot = await collect(directory, selection)
    except ProbeError as e:
        logger.error(f"Probe failed: {type(e).__name__}: {e.message}")
        return ErrorReport(message=e.report_message())

    return build_report(
        snapshot.skus,
        snapshot.sync_status,
        snapshot.provisioning_errors,
        now=now or datetime.now(timezone.utc),
        profile=profile,
        thresholds=thresholds,
    )


@asynccontextmanager
async def open_directory(
    config: ProbeConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AsyncIterator[DirectoryClient]:
    """Authenticate, open the Graph client, and yield a DirectoryClient."""
    config.auth.resolve_secrets()
    token = await Authenticator(config.auth).acquire_token()

    guardian = SafetyGuardian()
    graph = GraphClient(access_token=token, guardian=guardian, settings=config.graph, transport=transport)
    try:
        await graph.__aenter__()
    except Exception as e:
        raise ModuleUnavailable(f"Could not initialize the Graph client: {type(e).__name__}: {e}") from e

    try:
        yield DirectoryClient(graph)
    finally:
        await graph.__aexit__(None, None, None)
        logger.debug(f"Graph client stats: {graph.get_stats()}")
        logger.debug(f"Safety audit: {guardian.get_audit_record()}")


async def execute(
    config: ProbeConfig,
    now: Optional[datetime] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> tuple[str, int]:
    """
    Run one probe cycle and return the document to print plus the exit code.

    In list-SKUs mode the document is the JSON SKU listing instead of the
    XML report.
    """
    now = now or datetime.now(timezone.utc)
    try:
        async with open_directory(config, transport) as directory:
            if config.list_skus:
                skus = await directory.list_account_skus()
                return export_sku_listing(skus, generated_at=now), EXIT_OK
            outcome = await run_probe(
                directory,
                config.selection,
                now=now,
                profile=config.profile,
                thresholds=config.thresholds,
            )
    except ProbeError as e:
        logger.error(f"Probe failed: {type(e).__name__}: {e.message}")
        outcome = ErrorReport(message=e.report_message())

    exit_code = EXIT_ERROR if isinstance(outcome, ErrorReport) else EXIT_OK
    return render(outcome), exit_code
