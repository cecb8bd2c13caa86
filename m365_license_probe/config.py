"""
Configuration module for the M365 License & DirSync Probe.
Defines tunable thresholds, report profiles, Graph endpoints, and auth settings.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Any, Optional, Union


# ─── Tenant Authentication ───────────────────────────────────────────────────

AUTH_MODES = ("certificate", "secret", "password")

# Secrets are read from the environment, never from the command line.
ENV_CERT_PASSWORD = "M365_PROBE_CERT_PASSWORD"
ENV_CLIENT_SECRET = "M365_PROBE_CLIENT_SECRET"
ENV_PASSWORD = "M365_PROBE_PASSWORD"


@dataclass
class AuthConfig:
    """Credentials for app-only (certificate / secret) or user (password) auth."""
    mode: str = "certificate"
    tenant_id: str = ""
    client_id: str = ""
    certificate_path: str = "./base64.txt"   # Path to base64-encoded PFX
    certificate_password: str = ""
    client_secret: str = ""
    username: str = ""
    password: str = ""

    def resolve_secrets(self) -> None:
        """Fill blank secrets from the environment."""
        if not self.certificate_password:
            self.certificate_password = os.environ.get(ENV_CERT_PASSWORD, "")
        if not self.client_secret:
            self.client_secret = os.environ.get(ENV_CLIENT_SECRET, "")
        if not self.password:
            self.password = os.environ.get(ENV_PASSWORD, "")

    @property
    def authority(self) -> str:
        return f"{LOGIN_BASE_URL}/{self.tenant_id}"


# ─── Graph API Settings ─────────────────────────────────────────────────────

LOGIN_BASE_URL = "https://login.microsoftonline.com"
GRAPH_BASE_URL = "https://graph.microsoft.com"
GRAPH_API_VERSION = "v1.0"
GRAPH_SCOPES = ["https://graph.microsoft.com/.default"]

# Throttling: honour Retry-After on 429/503/504 a bounded number of times.
MAX_RETRIES = 2
INITIAL_BACKOFF_SECONDS = 2.0
MAX_BACKOFF_SECONDS = 30.0
BACKOFF_MULTIPLIER = 2.0

# Pagination
DEFAULT_PAGE_SIZE = 999
MAX_PAGES_PER_ENDPOINT = 100

DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass
class GraphSettings:
    """Transport settings for the Graph client."""
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    max_retries: int = MAX_RETRIES


# ─── SKU Selection ──────────────────────────────────────────────────────────

@dataclass
class SkuSelection:
    """Include / exclude lists of SKU ids ("tenant:PRODUCT_CODE")."""
    include: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)

    @staticmethod
    def split(values: Union[str, list[str], None]) -> list[str]:
        """Flatten repeated and comma-separated values, dropping blanks and duplicates."""
        if isinstance(values, str):
            values = [values]
        result: list[str] = []
        for value in values or []:
            if not isinstance(value, str):
                raise ValueError(f"SKU ids must be strings, got {value!r}")
            for part in value.split(","):
                part = part.strip()
                if part and part not in result:
                    result.append(part)
        return result


# ─── Thresholds ─────────────────────────────────────────────────────────────

@dataclass
class ThresholdConfig:
    """Limits attached to the report channels."""
    free_min_warning: int = 5
    free_min_error: int = 1
    sync_max_warning_hours: float = 12
    provisioning_max_warning: float = 0.5    # Any error count >= 1 trips it
    warning_units_max_warning: float = 0.5
    available_pct_min_warning: float = 20
    available_pct_min_error: float = 10


# ─── Report Profiles ────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ReportProfile:
    """Which derived per-SKU metrics are surfaced as channels."""
    name: str
    free: bool = True
    total: bool = True
    consumed: bool = False
    warning_units: bool = False
    percentages: bool = False


REPORT_PROFILES = {
    "default": ReportProfile(name="default"),
    "percent": ReportProfile(name="percent", free=False, percentages=True),
    "full": ReportProfile(
        name="full", consumed=True, warning_units=True, percentages=True,
    ),
}


def get_report_profile(name: str) -> ReportProfile:
    try:
        return REPORT_PROFILES[name]
    except KeyError:
        raise ValueError(
            f"Unknown report profile '{name}' (choose from {', '.join(REPORT_PROFILES)})"
        )


# ─── Master Configuration ───────────────────────────────────────────────────

@dataclass
class ProbeConfig:
    """Top-level configuration for one probe run."""
    auth: AuthConfig = field(default_factory=AuthConfig)
    selection: SkuSelection = field(default_factory=SkuSelection)
    thresholds: ThresholdConfig = field(default_factory=ThresholdConfig)
    graph: GraphSettings = field(default_factory=GraphSettings)
    report_profile: str = "default"
    list_skus: bool = False
    verbose: int = 0

    @property
    def profile(self) -> ReportProfile:
        return get_report_profile(self.report_profile)

    @classmethod
    def from_file(cls, path: str) -> "ProbeConfig":
        """Load configuration from a JSON file."""
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError("top level must be a JSON object")
        config = cls()
        for section, target in (
            ("auth", config.auth),
            ("thresholds", config.thresholds),
            ("graph", config.graph),
        ):
            for k, v in _section(data, section).items():
                if hasattr(target, k):
                    setattr(target, k, v)
        if "selection" in data:
            sel = _section(data, "selection")
            config.selection.include = SkuSelection.split(sel.get("include"))
            config.selection.exclude = SkuSelection.split(sel.get("exclude"))
        config.report_profile = data.get("report_profile", "default")
        get_report_profile(config.report_profile)
        config.verbose = int(data.get("verbose", 0))
        return config


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    """A config file section; absent means empty, anything but an object is an error."""
    value = data.get(name)
    if value is None and name not in data:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"section '{name}' must be a JSON object")
    return value


# ─── Required Graph API Permissions (Least Privilege, Read-Only) ─────────

REQUIRED_PERMISSIONS = {
    "Organization.Read.All": "Read subscribed SKUs and tenant sync settings",
    "Directory.Read.All": "Read provisioning errors on users, groups, contacts",
    "OnPremDirectorySynchronization.Read.All": "Read password hash sync feature flag",
}
