"""
Directory client — the probe's view of the tenant directory.

Reads subscribed SKUs, tenant sync metadata, and DirSync provisioning errors
from Microsoft Graph and returns them as typed records.  Every failure
surfaces as an UpstreamError (or a more specific ProbeError).
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from ..errors import CompanyInfoUnavailable, UpstreamError
from ..graph.client import GraphAPIError, GraphClient
from ..models import ProvisioningError, SkuRecord, SyncStatus, parse_graph_datetime

logger = logging.getLogger("m365_license_probe.directory")

SKU_SELECT = "skuId,skuPartNumber,accountName,capabilityStatus,prepaidUnits,consumedUnits"
ORG_SELECT = (
    "id,displayName,verifiedDomains,onPremisesSyncEnabled,"
    "onPremisesLastSyncDateTime,onPremisesLastPasswordSyncDateTime"
)

# Directory object collections that carry onPremisesProvisioningErrors.
PROVISIONING_ERROR_SOURCES = ("users", "groups", "contacts")
PROVISIONING_ERROR_FILTER = "onPremisesProvisioningErrors/any(o:o/category eq 'PropertyConflict')"

DEFAULT_ACCOUNT_NAME = "tenant"


class DirectoryClient:
    """Typed, read-only access to the directory data the probe reports on."""

    def __init__(self, graph: GraphClient):
        self.graph = graph
        self._organization: Optional[dict[str, Any]] = None

    # ── SKUs ────────────────────────────────────────────────────────────────

    async def list_account_skus(self) -> list[SkuRecord]:
        """All subscribed SKUs, in upstream order."""
        raw_skus = await self.graph.get_all_pages(
            "subscribedSkus", params={"$select": SKU_SELECT}
        )
        raw_skus = [s for s in raw_skus if isinstance(s, dict)]
        fallback = ""
        if any(not s.get("accountName") for s in raw_skus):
            fallback = await self._account_name()

        skus = []
        for raw in raw_skus:
            try:
                skus.append(SkuRecord.from_graph(raw, fallback))
            except UpstreamError as e:
                logger.warning(f"Skipping malformed SKU record: {e.message}")
        logger.info(f"Fetched {len(skus)} subscribed SKU(s)")
        return skus

    async def _account_name(self) -> str:
        """Tenant prefix of the initial *.onmicrosoft.com domain."""
        org = await self._get_organization()
        for domain in org.get("verifiedDomains") or []:
            if domain.get("isInitial") and domain.get("name"):
                return domain["name"].split(".", 1)[0]
        logger.warning("No initial domain on the organization; using a generic SKU prefix")
        return DEFAULT_ACCOUNT_NAME

    # ── Company info ────────────────────────────────────────────────────────

    async def get_company_info(self) -> SyncStatus:
        """DirSync / password sync state of the tenant."""
        try:
            org = await self._get_organization()
            last_dir_sync = parse_graph_datetime(org.get("onPremisesLastSyncDateTime"))
            last_password_sync = parse_graph_datetime(org.get("onPremisesLastPasswordSyncDateTime"))
        except UpstreamError as e:
            raise CompanyInfoUnavailable(e.message) from e

        password_sync_enabled = await self._password_sync_enabled()
        if password_sync_enabled is None:
            password_sync_enabled = last_password_sync is not None

        status = SyncStatus(
            dir_sync_enabled=bool(org.get("onPremisesSyncEnabled")),
            last_dir_sync_time=last_dir_sync,
            password_sync_enabled=password_sync_enabled,
            last_password_sync_time=last_password_sync,
        )
        logger.info(
            f"DirSync enabled={status.dir_sync_enabled}, "
            f"password sync enabled={status.password_sync_enabled}"
        )
        return status

    async def _get_organization(self) -> dict[str, Any]:
        if self._organization is None:
            data = await self.graph.get("organization", params={"$select": ORG_SELECT})
            orgs = data.get("value", [])
            if not orgs:
                raise UpstreamError("Graph returned no organization object")
            self._organization = orgs[0]
        return self._organization

    async def _password_sync_enabled(self) -> Optional[bool]:
        """Password hash sync flag, or None when the tenant setting is unreadable."""
        try:
            data = await self.graph.get("directory/onPremisesSynchronization")
        except GraphAPIError as e:
            if e.status_code in (400, 403, 404):
                logger.info(f"onPremisesSynchronization unavailable ({e.status_code}); inferring password sync")
                return None
            raise CompanyInfoUnavailable(e.message) from e
        except UpstreamError as e:
            raise CompanyInfoUnavailable(e.message) from e

        for entry in data.get("value", []):
            features = entry.get("features") or {}
            if "passwordSyncEnabled" in features:
                return bool(features["passwordSyncEnabled"])
        return None

    # ── Provisioning errors ─────────────────────────────────────────────────

    async def has_provisioning_errors(self) -> bool:
        """True when any directory object has a DirSync provisioning error."""
        for source in PROVISIONING_ERROR_SOURCES:
            found = await self.graph.get_all_pages(
                source, params=self._provisioning_params(), top=1, max_items=1,
            )
            if found:
                return True
        return False

    async def list_provisioning_errors(self) -> list[ProvisioningError]:
        """Objects with provisioning errors, users then groups then contacts."""
        errors = []
        for source in PROVISIONING_ERROR_SOURCES:
            for obj in await self.graph.get_all_pages(source, params=self._provisioning_params()):
                name = obj.get("displayName") or obj.get("id") or "(unnamed object)"
                errors.append(ProvisioningError(display_name=str(name)))
        logger.info(f"Found {len(errors)} object(s) with provisioning errors")
        return errors

    @staticmethod
    def _provisioning_params() -> dict[str, str]:
        return {
            "$filter": PROVISIONING_ERROR_FILTER,
            "$select": "id,displayName",
            "$count": "true",
        }
