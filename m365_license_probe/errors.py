"""
Probe error kinds.

Every fatal condition of a probe run is a ProbeError.  The orchestrator turns
any of them into a single error document; nothing else is ever emitted
alongside it.
"""

from __future__ import annotations


class ProbeError(Exception):
    """Base class for all fatal probe conditions."""

    #: Prefix used when the error is rendered for the monitoring host.
    label: str = "Probe error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def report_message(self) -> str:
        return f"{self.label}: {self.message}"


class ModuleUnavailable(ProbeError):
    """The directory client or its runtime could not be initialized."""
    label = "Directory client unavailable"


class AuthenticationFailure(ProbeError):
    """Credentials were missing or rejected by the identity platform."""
    label = "Authentication failed"


class CompanyInfoUnavailable(ProbeError):
    """Sync metadata could not be read after the SKU fetch succeeded."""
    label = "Could not read company information"


class NoMatchingSkus(ProbeError):
    """No SKU exists upstream, or none survived the SKU filter."""

    def report_message(self) -> str:
        return self.message


class UpstreamError(ProbeError):
    """Generic upstream failure (transport or API)."""
    label = "Upstream error"


class UpstreamUnavailable(UpstreamError):
    """Upstream did not answer in time or could not be reached."""
    label = "Upstream unavailable"


class SafetyViolation(ProbeError):
    """A request outside the read-only allow list was attempted."""
    label = "Safety violation"
