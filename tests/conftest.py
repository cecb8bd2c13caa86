"""
Shared fixtures for the probe test suite.
"""
import os
import sys
from datetime import datetime, timezone
from typing import Optional

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from m365_license_probe.models import ProvisioningError, SkuRecord, SyncStatus


FIXED_NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_sku(
    code: str,
    active: int = 100,
    consumed: int = 50,
    warning: int = 0,
    tenant: str = "tenant",
) -> SkuRecord:
    """Create a SkuRecord for a product code under a tenant prefix."""
    return SkuRecord(
        id=f"{tenant}:{code}",
        active_units=active,
        consumed_units=consumed,
        warning_units=warning,
        sku_part_number=code,
    )


class FakeDirectory:
    """In-memory stand-in for DirectoryClient."""

    def __init__(
        self,
        skus: list,
        sync_status: Optional[SyncStatus] = None,
        provisioning_errors: Optional[list] = None,
        company_info_error: Optional[Exception] = None,
        sku_error: Optional[Exception] = None,
    ):
        self.skus = skus
        self.sync_status = sync_status or SyncStatus()
        self.provisioning_errors = provisioning_errors or []
        self.company_info_error = company_info_error
        self.sku_error = sku_error
        self.calls: list[str] = []

    async def list_account_skus(self):
        self.calls.append("list_account_skus")
        if self.sku_error:
            raise self.sku_error
        return list(self.skus)

    async def get_company_info(self):
        self.calls.append("get_company_info")
        if self.company_info_error:
            raise self.company_info_error
        return self.sync_status

    async def has_provisioning_errors(self):
        self.calls.append("has_provisioning_errors")
        return bool(self.provisioning_errors)

    async def list_provisioning_errors(self):
        self.calls.append("list_provisioning_errors")
        return [ProvisioningError(display_name=n) for n in self.provisioning_errors]


@pytest.fixture
def now():
    """Fixed 'current' time for deterministic sync-age values."""
    return FIXED_NOW


@pytest.fixture
def e3_sku():
    return make_sku("ENTERPRISEPACK", active=100, consumed=95)


@pytest.fixture
def synced_status():
    """Tenant with both DirSync and password sync enabled."""
    return SyncStatus(
        dir_sync_enabled=True,
        last_dir_sync_time=datetime(2024, 6, 1, 11, 30, tzinfo=timezone.utc),
        password_sync_enabled=True,
        last_password_sync_time=datetime(2024, 5, 31, 12, 0, tzinfo=timezone.utc),
    )
