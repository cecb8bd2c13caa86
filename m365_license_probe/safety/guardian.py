"""
Safety Guardian — Enforces strict read-only operation.
Only GET requests against the Graph resources the probe needs are let through.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import urlsplit

from ..errors import SafetyViolation

logger = logging.getLogger("m365_license_probe.safety")

# ─── Allowed Requests ────────────────────────────────────────────────────────

READ_METHODS = {"GET", "HEAD"}

# Graph resources the probe reads, matched against the URL path.
ALLOWED_PATHS = [
    re.compile(r"^/v1\.0/subscribedSkus/?$"),
    re.compile(r"^/v1\.0/organization/?$"),
    re.compile(r"^/v1\.0/directory/onPremisesSynchronization/?$"),
    re.compile(r"^/v1\.0/(users|groups|contacts)/?$"),
]


class SafetyGuardian:
    """
    Validates every outbound HTTP request to ensure read-only operation.
    Keeps an audit trail of checks and violations for the run.
    """

    def __init__(self):
        self.violations: list[dict] = []
        self.checks_performed: int = 0
        self.started_at: str = datetime.now(timezone.utc).isoformat()

    def validate_request(self, method: str, url: str, body: Optional[dict] = None) -> bool:
        """
        Validate that a request is a permitted read.
        Returns True if safe, raises SafetyViolation if not.
        """
        self.checks_performed += 1
        method_upper = method.upper()

        if method_upper not in READ_METHODS or body:
            self._record_violation(method_upper, url, "Write HTTP method blocked")
            raise SafetyViolation(f"Write method blocked: {method_upper} {url}")

        path = urlsplit(url).path
        if not any(pattern.match(path) for pattern in ALLOWED_PATHS):
            self._record_violation(method_upper, url, "Resource not on the probe allow list")
            raise SafetyViolation(f"Resource not allowed: {method_upper} {url}")

        return True

    def _record_violation(self, method: str, url: str, reason: str):
        """Record a safety violation for audit."""
        self.violations.append({
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "method": method,
            "url": url,
            "reason": reason,
        })
        logger.critical(f"SAFETY VIOLATION: {reason} — {method} {url}")

    def get_audit_record(self) -> dict:
        """Return the safety audit record for the run."""
        return {
            "mode": "READ-ONLY",
            "started_at": self.started_at,
            "checks_performed": self.checks_performed,
            "violations_detected": len(self.violations),
            "status": "CLEAN" if not self.violations else "VIOLATIONS_DETECTED",
        }
