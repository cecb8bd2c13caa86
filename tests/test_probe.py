"""
Tests for probe.py — the fetch → filter → build → render pipeline.

Covers:
- the documented end-to-end scenarios
- fatal conditions short-circuiting to the error document
- determinism of repeated runs
- execute() against a mocked Graph transport
"""
import asyncio
import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from conftest import FakeDirectory, make_sku
from m365_license_probe.config import ProbeConfig, SkuSelection
from m365_license_probe.errors import CompanyInfoUnavailable, UpstreamUnavailable
from m365_license_probe.models import ErrorReport, Report, SyncStatus
from m365_license_probe.probe import EXIT_ERROR, EXIT_OK, collect, execute, run_probe
from m365_license_probe.reporting import prtg_xml
from m365_license_probe.reporting.builder import DIRSYNC_CHANNEL, PASSWORD_SYNC_CHANNEL


def run(directory, selection=None, now=None, **kwargs):
    return asyncio.run(run_probe(directory, selection or SkuSelection(), now=now, **kwargs))


class TestScenarios:
    """End-to-end behaviour of run_probe with an in-memory directory."""

    def test_e3_no_filters(self, now):
        directory = FakeDirectory([make_sku("ENTERPRISEPACK", active=100, consumed=95, warning=0)])
        report = run(directory, now=now)
        assert isinstance(report, Report)
        assert report.get("OFFICE 365 E3 - Free Licenses").value == 5
        assert report.get("OFFICE 365 E3 - Total Licenses").value == 100

    def test_exclude_power_bi(self, now):
        directory = FakeDirectory([make_sku("ENTERPRISEPACK"), make_sku("POWER_BI_STANDARD")])
        report = run(directory, SkuSelection(exclude=["tenant:POWER_BI_STANDARD"]), now=now)
        sku_channels = [c for c in report.channels if " - " in c]
        assert sku_channels == [
            "OFFICE 365 E3 - Free Licenses",
            "OFFICE 365 E3 - Total Licenses",
        ]

    def test_include_overrides_exclude(self, now):
        directory = FakeDirectory([make_sku("ENTERPRISEPACK"), make_sku("X")])
        report = run(
            directory,
            SkuSelection(include=["tenant:X"], exclude=["tenant:X", "tenant:ENTERPRISEPACK"]),
            now=now,
        )
        sku_channels = [c for c in report.channels if " - " in c]
        assert sku_channels == ["X - Free Licenses", "X - Total Licenses"]

    def test_sync_disabled(self, now):
        directory = FakeDirectory(
            [make_sku("ENTERPRISEPACK")],
            sync_status=SyncStatus(dir_sync_enabled=False, password_sync_enabled=False),
        )
        report = run(directory, now=now)
        assert DIRSYNC_CHANNEL not in report.channels
        assert PASSWORD_SYNC_CHANNEL not in report.channels

    def test_nothing_left_after_filter(self, now):
        directory = FakeDirectory([make_sku("ENTERPRISEPACK")])
        outcome = run(directory, SkuSelection(exclude=["tenant:ENTERPRISEPACK"]), now=now)
        assert isinstance(outcome, ErrorReport)
        assert "No Skus found" in outcome.message
        document = prtg_xml.render(outcome)
        assert "<result>" not in document
        assert "<error>1</error>" in document

    def test_zero_skus_upstream(self, now):
        directory = FakeDirectory([])
        outcome = run(directory, now=now)
        assert outcome == ErrorReport("No Skus found")
        assert directory.calls == ["list_account_skus"]


class TestFatalConditions:
    """Any ProbeError replaces the report entirely."""

    def test_company_info_unavailable(self, now):
        directory = FakeDirectory(
            [make_sku("ENTERPRISEPACK")],
            company_info_error=CompanyInfoUnavailable("403 for organization"),
        )
        outcome = run(directory, now=now)
        assert isinstance(outcome, ErrorReport)
        assert "company information" in outcome.message
        assert "has_provisioning_errors" not in directory.calls

    def test_upstream_unavailable(self, now):
        directory = FakeDirectory([], sku_error=UpstreamUnavailable("Timed out"))
        outcome = run(directory, now=now)
        assert outcome == ErrorReport("Upstream unavailable: Timed out")

    def test_success_serializer_never_called_on_error(self, now):
        directory = FakeDirectory([], sku_error=UpstreamUnavailable("down"))
        with patch.object(prtg_xml, "serialize") as serialize:
            document = prtg_xml.render(run(directory, now=now))
        serialize.assert_not_called()
        assert "<channel>" not in document

    def test_provisioning_errors_only_listed_when_present(self, now):
        directory = FakeDirectory([make_sku("EMS")])
        snapshot = asyncio.run(collect(directory, SkuSelection()))
        assert snapshot.provisioning_errors == ()
        assert "list_provisioning_errors" not in directory.calls


class TestDeterminism:
    """Identical input produces byte-identical output."""

    def test_repeated_runs(self, now, synced_status):
        def document():
            directory = FakeDirectory(
                [make_sku("ENTERPRISEPACK", 100, 95), make_sku("EMS", 20, 3)],
                sync_status=synced_status,
                provisioning_errors=["Alice", "Bob & Co"],
            )
            return prtg_xml.render(run(directory, now=now))

        assert document() == document()


# =============================================================================
# execute() with a mocked Graph transport
# =============================================================================

def graph_handler(routes: dict):
    """Build a MockTransport handler serving JSON bodies keyed by URL path."""
    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path.replace("/v1.0/", "", 1)
        if path not in routes:
            return httpx.Response(404, json={"error": {"message": "not found"}})
        status, body = routes[path]
        return httpx.Response(status, json=body)
    return handler


GRAPH_ROUTES = {
    "subscribedSkus": (200, {"value": [
        {
            "skuPartNumber": "ENTERPRISEPACK",
            "accountName": "contoso",
            "consumedUnits": 95,
            "prepaidUnits": {"enabled": 100, "warning": 0, "suspended": 0},
        },
        {
            "skuPartNumber": "POWER_BI_STANDARD",
            "accountName": "contoso",
            "consumedUnits": 10,
            "prepaidUnits": {"enabled": 1000000, "warning": 0, "suspended": 0},
        },
    ]}),
    "organization": (200, {"value": [{
        "id": "org",
        "onPremisesSyncEnabled": True,
        "onPremisesLastSyncDateTime": "2024-06-01T11:00:00Z",
        "onPremisesLastPasswordSyncDateTime": None,
    }]}),
    "directory/onPremisesSynchronization": (200, {"value": [
        {"features": {"passwordSyncEnabled": False}},
    ]}),
    "users": (200, {"value": []}),
    "groups": (200, {"value": []}),
    "contacts": (200, {"value": []}),
}


@pytest.fixture
def probe_config():
    config = ProbeConfig()
    config.auth.tenant_id = "t"
    config.auth.client_id = "c"
    return config


@pytest.fixture
def token():
    with patch(
        "m365_license_probe.probe.Authenticator.acquire_token",
        new=AsyncMock(return_value="token"),
    ) as mock:
        yield mock


class TestExecute:
    """Tests for execute()."""

    def test_success_document(self, probe_config, token, now):
        probe_config.selection = SkuSelection(exclude=["contoso:POWER_BI_STANDARD"])
        transport = httpx.MockTransport(graph_handler(GRAPH_ROUTES))
        document, code = asyncio.run(execute(probe_config, now=now, transport=transport))
        assert code == EXIT_OK
        assert "<channel>OFFICE 365 E3 - Free Licenses</channel>" in document
        assert "POWER BI" not in document
        assert f"<channel>{DIRSYNC_CHANNEL}</channel>" in document
        assert PASSWORD_SYNC_CHANNEL not in document

    def test_list_skus_mode(self, probe_config, token, now):
        probe_config.list_skus = True
        transport = httpx.MockTransport(graph_handler(GRAPH_ROUTES))
        document, code = asyncio.run(execute(probe_config, now=now, transport=transport))
        assert code == EXIT_OK
        listing = json.loads(document)
        assert [s["id"] for s in listing["skus"]] == [
            "contoso:ENTERPRISEPACK", "contoso:POWER_BI_STANDARD",
        ]

    def test_malformed_sku_still_reports_the_rest(self, probe_config, token, now):
        routes = dict(GRAPH_ROUTES)
        routes["subscribedSkus"] = (200, {"value": [
            GRAPH_ROUTES["subscribedSkus"][1]["value"][0],
            {
                "skuPartNumber": "EMS",
                "accountName": "contoso",
                "consumedUnits": 3,
                "prepaidUnits": {"enabled": 20, "warning": -1},
            },
        ]})
        transport = httpx.MockTransport(graph_handler(routes))
        document, code = asyncio.run(execute(probe_config, now=now, transport=transport))
        assert code == EXIT_OK
        assert "<error>" not in document
        assert "<channel>OFFICE 365 E3 - Free Licenses</channel>" in document
        assert "<channel>ENTERPRISE MOBILITY + SECURITY E3 - Free Licenses</channel>" in document

    def test_company_info_failure(self, probe_config, token, now):
        routes = dict(GRAPH_ROUTES)
        routes["organization"] = (500, {"error": {"message": "internal"}})
        transport = httpx.MockTransport(graph_handler(routes))
        document, code = asyncio.run(execute(probe_config, now=now, transport=transport))
        assert code == EXIT_ERROR
        assert "<error>1</error>" in document
        assert "<result>" not in document

    def test_auth_failure(self, probe_config, now):
        probe_config.auth.tenant_id = ""
        document, code = asyncio.run(execute(probe_config, now=now))
        assert code == EXIT_ERROR
        assert "Authentication failed" in document

    def test_transport_timeout(self, probe_config, token, now):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)
        transport = httpx.MockTransport(handler)
        document, code = asyncio.run(execute(probe_config, now=now, transport=transport))
        assert code == EXIT_ERROR
        assert "Upstream unavailable" in document

    def test_client_init_failure(self, probe_config, token, now):
        with patch(
            "m365_license_probe.graph.client.httpx.AsyncClient",
            side_effect=OSError("no CA bundle"),
        ):
            document, code = asyncio.run(execute(probe_config, now=now))
        assert code == EXIT_ERROR
        assert "Directory client unavailable" in document
