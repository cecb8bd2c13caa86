"""
Tenant Profile Manager — Named profiles for multi-tenant monitoring.

Profiles are stored in:
    ~/.m365_license_probe/profiles.json

Each profile holds the non-secret half of a tenant credential (tenant id,
client id, auth mode, certificate path or username) plus the default SKU
include / exclude lists for that tenant.  Secrets stay in environment
variables.  A monitoring host can then run one sensor per tenant with
`--profile <name>`.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

logger = logging.getLogger("m365_license_probe.profiles")


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_CONFIG_DIR = Path.home() / ".m365_license_probe"
_PROFILES_FILE = _CONFIG_DIR / "profiles.json"


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------

@dataclass
class TenantProfile:
    """A single named tenant profile."""
    name: str                          # Unique short name (e.g. "contoso-prod")
    tenant_id: str                     # Entra tenant ID
    client_id: str                     # App registration client ID
    auth_mode: str = "certificate"     # certificate | secret | password
    cert_path: str = "./base64.txt"    # Base64-encoded PFX (certificate mode)
    username: str = ""                 # Account UPN (password mode)
    tenant_display_name: str = ""
    include_skus: list[str] = field(default_factory=list)
    exclude_skus: list[str] = field(default_factory=list)
    notes: str = ""

    def resolve_cert_path(self) -> str:
        """Return absolute cert path, resolving ~ and relative paths."""
        p = Path(self.cert_path).expanduser()
        if not p.is_absolute():
            p = Path.cwd() / p
        return str(p)

    def to_dict(self) -> dict:
        return {
            "tenant_id": self.tenant_id,
            "client_id": self.client_id,
            "auth_mode": self.auth_mode,
            "cert_path": self.cert_path,
            "username": self.username,
            "tenant_display_name": self.tenant_display_name,
            "include_skus": list(self.include_skus),
            "exclude_skus": list(self.exclude_skus),
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, name: str, data: dict) -> "TenantProfile":
        return cls(
            name=name,
            tenant_id=data["tenant_id"],
            client_id=data["client_id"],
            auth_mode=data.get("auth_mode", "certificate"),
            cert_path=data.get("cert_path", "./base64.txt"),
            username=data.get("username", ""),
            tenant_display_name=data.get("tenant_display_name", ""),
            include_skus=list(data.get("include_skus", [])),
            exclude_skus=list(data.get("exclude_skus", [])),
            notes=data.get("notes", ""),
        )


@dataclass
class ProfileStore:
    """Manages the collection of tenant profiles on disk."""
    profiles: dict[str, TenantProfile] = field(default_factory=dict)
    default_profile: str = ""

    # --- Persistence ---

    @classmethod
    def load(cls) -> "ProfileStore":
        """Load profiles from disk. Returns empty store if file doesn't exist."""
        if not _PROFILES_FILE.exists():
            return cls()
        try:
            data = json.loads(_PROFILES_FILE.read_text(encoding="utf-8"))
            store = cls()
            store.default_profile = data.get("default_profile", "")
            for name, pdata in data.get("profiles", {}).items():
                store.profiles[name] = TenantProfile.from_dict(name, pdata)
            return store
        except (json.JSONDecodeError, KeyError) as e:
            logger.warning(f"Failed to parse {_PROFILES_FILE}: {e}")
            return cls()

    def save(self) -> None:
        """Persist profiles to disk."""
        _PROFILES_FILE.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "default_profile": self.default_profile,
            "profiles": {name: p.to_dict() for name, p in self.profiles.items()},
        }
        _PROFILES_FILE.write_text(
            json.dumps(data, indent=2) + "\n", encoding="utf-8"
        )

    # --- CRUD ---

    def add(self, profile: TenantProfile, set_default: bool = False) -> None:
        """Add or overwrite a profile."""
        self.profiles[profile.name] = profile
        if set_default or not self.default_profile:
            self.default_profile = profile.name
        self.save()

    def remove(self, name: str) -> bool:
        """Remove a profile by name. Returns True if it existed."""
        if name not in self.profiles:
            return False
        del self.profiles[name]
        if self.default_profile == name:
            self.default_profile = next(iter(self.profiles), "")
        self.save()
        return True

    def get(self, name: str) -> Optional[TenantProfile]:
        """Get a profile by name (case-insensitive)."""
        key = name.lower()
        for pname, profile in self.profiles.items():
            if pname.lower() == key:
                return profile
        return None

    def get_default(self) -> Optional[TenantProfile]:
        """Get the default profile, or None if no profiles exist."""
        if self.default_profile:
            return self.profiles.get(self.default_profile)
        if self.profiles:
            return next(iter(self.profiles.values()))
        return None

    def set_default(self, name: str) -> bool:
        """Set the default profile. Returns True if profile exists."""
        if name not in self.profiles:
            return False
        self.default_profile = name
        self.save()
        return True

    def list_profiles(self) -> list[TenantProfile]:
        """Return all profiles sorted by name."""
        return sorted(self.profiles.values(), key=lambda p: p.name)


# ---------------------------------------------------------------------------
# Convenience: resolve profile for a run
# ---------------------------------------------------------------------------

def resolve_profile(
    profile_name: Optional[str] = None,
) -> Optional[TenantProfile]:
    """
    Look up a tenant profile by name.
    If no name given, returns the default profile.
    Returns None if no profiles are configured.
    """
    store = ProfileStore.load()
    if profile_name:
        return store.get(profile_name)
    return store.get_default()
