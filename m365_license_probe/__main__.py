"""
M365 License & DirSync Probe — command-line entry point

Usage:
    python -m m365_license_probe                              # use default profile
    python -m m365_license_probe --profile contoso-prod       # named profile
    python -m m365_license_probe --config probe.json          # JSON config file
    python -m m365_license_probe --exclude-sku contoso:POWER_BI_STANDARD
    python -m m365_license_probe --include-sku contoso:ENTERPRISEPACK,contoso:EMS
    python -m m365_license_probe --list-skus                  # dump SKU ids as JSON
    python -m m365_license_probe --report-profile full        # all derived channels

Profile management:
    python -m m365_license_probe profile add <name> --tenant-id ... --client-id ...
    python -m m365_license_probe profile list
    python -m m365_license_probe profile remove <name>
    python -m m365_license_probe profile set-default <name>
    python -m m365_license_probe permissions

Secrets are read from the environment:
    M365_PROBE_CERT_PASSWORD, M365_PROBE_CLIENT_SECRET, M365_PROBE_PASSWORD

The XML report (or the error document) goes to stdout; logs go to stderr.
Exit status is 0 for a report and 1 for an error document.

This tool is STRICTLY READ-ONLY. It will NEVER modify the tenant.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .auth.authenticator import Authenticator
from .config import AUTH_MODES, REPORT_PROFILES, ProbeConfig, SkuSelection
from .errors import AuthenticationFailure, ModuleUnavailable, ProbeError
from .probe import EXIT_ERROR, execute
from .profiles import ProfileStore, TenantProfile, resolve_profile
from .reporting.prtg_xml import serialize_error

logger = logging.getLogger("m365_license_probe")

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


# ---------------------------------------------------------------------------
# Profile management sub-commands
# ---------------------------------------------------------------------------

def _cmd_profile(args: argparse.Namespace) -> int:
    """Handle `profile add|list|remove|set-default` sub-commands."""
    action = args.profile_action

    if action == "list":
        return _profile_list()
    elif action == "add":
        return _profile_add(args)
    elif action == "remove":
        return _profile_remove(args)
    elif action == "set-default":
        return _profile_set_default(args)
    print("Usage: python -m m365_license_probe profile {add|list|remove|set-default}")
    return 0


def _profile_list() -> int:
    store = ProfileStore.load()
    profiles = store.list_profiles()
    if not profiles:
        print("No profiles configured. Add one with:\n")
        print("  python -m m365_license_probe profile add <name> \\")
        print("    --tenant-id <GUID> --client-id <GUID> --cert-path ./base64.txt")
        return 0

    print(f"\n  {'Name':<20s} {'Tenant ID':<38s} {'Client ID':<38s} {'Auth':<12s} {'Default'}")
    print(f"  {'-'*20} {'-'*38} {'-'*38} {'-'*12} {'-'*7}")
    for p in profiles:
        default_marker = "  *" if p.name == store.default_profile else ""
        display = p.tenant_display_name or ""
        name_col = f"{p.name}" + (f" ({display})" if display else "")
        print(f"  {name_col:<20s} {p.tenant_id:<38s} {p.client_id:<38s} {p.auth_mode:<12s}{default_marker}")
        if p.include_skus:
            print(f"      include: {', '.join(p.include_skus)}")
        elif p.exclude_skus:
            print(f"      exclude: {', '.join(p.exclude_skus)}")
    print()
    return 0


def _profile_add(args: argparse.Namespace) -> int:
    store = ProfileStore.load()
    name = args.profile_name
    if store.get(name):
        print(f"  Profile '{name}' already exists. It will be overwritten.")

    profile = TenantProfile(
        name=name,
        tenant_id=args.tenant_id,
        client_id=args.client_id,
        auth_mode=args.auth_mode,
        cert_path=args.cert_path or "./base64.txt",
        username=args.username or "",
        tenant_display_name=args.display_name or "",
        include_skus=SkuSelection.split(args.include_sku),
        exclude_skus=SkuSelection.split(args.exclude_sku),
        notes=args.notes or "",
    )
    set_as_default = args.set_default or not store.profiles
    store.add(profile, set_default=set_as_default)
    print(f"  Profile '{name}' saved.")
    if set_as_default:
        print("  Set as default profile.")
    return 0


def _profile_remove(args: argparse.Namespace) -> int:
    store = ProfileStore.load()
    if store.remove(args.profile_name):
        print(f"  Profile '{args.profile_name}' removed.")
    else:
        print(f"  Profile '{args.profile_name}' not found.")
    return 0


def _profile_set_default(args: argparse.Namespace) -> int:
    store = ProfileStore.load()
    if store.set_default(args.profile_name):
        print(f"  Default profile set to '{args.profile_name}'.")
    else:
        print(f"  Profile '{args.profile_name}' not found.")
    return 0


def _cmd_permissions() -> int:
    """Print the Graph application permissions the probe needs."""
    print("\nRequired Microsoft Graph permissions (application, read-only):\n")
    for permission, reason in Authenticator.list_required_permissions().items():
        print(f"  {permission:<42s} {reason}")
    print()
    return 0


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------

def _add_sku_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--include-sku",
        action="append",
        metavar="SKU_ID",
        help="Only report these SKU ids (repeatable or comma-separated; overrides --exclude-sku)",
    )
    parser.add_argument(
        "--exclude-sku",
        action="append",
        metavar="SKU_ID",
        help="Report every SKU except these ids (repeatable or comma-separated)",
    )


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="m365_license_probe",
        description="M365 License & DirSync Probe (READ-ONLY) — PRTG XML sensor output",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    # --- Sub-commands ---
    subparsers = parser.add_subparsers(dest="command", help="Management commands")
    subparsers.add_parser("permissions", help="List the Graph permissions the probe needs")

    prof_parser = subparsers.add_parser("profile", help="Manage tenant profiles")
    prof_sub = prof_parser.add_subparsers(dest="profile_action", help="Profile actions")

    # profile add
    add_p = prof_sub.add_parser("add", help="Add or update a tenant profile")
    add_p.add_argument("profile_name", help="Short name for the profile (e.g. 'contoso-prod')")
    add_p.add_argument("--tenant-id", required=True, help="Entra tenant ID (GUID)")
    add_p.add_argument("--client-id", required=True, help="App registration client ID (GUID)")
    add_p.add_argument("--auth-mode", choices=AUTH_MODES, default="certificate", help="Credential type")
    add_p.add_argument("--cert-path", default="./base64.txt", help="Path to base64-encoded PFX (default: ./base64.txt)")
    add_p.add_argument("--username", help="Account UPN for password auth")
    add_p.add_argument("--display-name", help="Friendly tenant display name")
    add_p.add_argument("--notes", help="Optional admin notes")
    add_p.add_argument("--set-default", action="store_true", help="Set as default profile")
    _add_sku_arguments(add_p)

    # profile list
    prof_sub.add_parser("list", help="List all configured profiles")

    # profile remove
    rm_p = prof_sub.add_parser("remove", help="Remove a profile")
    rm_p.add_argument("profile_name", help="Name of the profile to remove")

    # profile set-default
    sd_p = prof_sub.add_parser("set-default", help="Set the default profile")
    sd_p.add_argument("profile_name", help="Name of the profile to set as default")

    # --- Probe options ---
    parser.add_argument(
        "--profile", "-p",
        type=str,
        default=None,
        help="Tenant profile name to use (run 'profile list' to see available)",
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        help="Path to JSON configuration file",
    )
    parser.add_argument("--tenant-id", type=str, default=None, help="Tenant ID (overrides profile)")
    parser.add_argument("--client-id", type=str, default=None, help="Client ID (overrides profile)")
    parser.add_argument(
        "--auth-mode",
        choices=AUTH_MODES,
        default=None,
        help="Credential type (overrides profile; default: certificate)",
    )
    parser.add_argument(
        "--cert-path",
        type=Path,
        help="Path to base64-encoded certificate file (overrides profile)",
    )
    parser.add_argument("--username", type=str, default=None, help="Account UPN for password auth")
    _add_sku_arguments(parser)
    parser.add_argument(
        "--list-skus",
        action="store_true",
        help="Dump the tenant's SKU records as JSON instead of producing a report",
    )
    parser.add_argument(
        "--report-profile",
        choices=sorted(REPORT_PROFILES),
        default=None,
        help="Which derived license channels to emit (default: default)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Graph request timeout in seconds",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="count",
        default=0,
        help="Log to stderr at INFO (-v) or DEBUG (-vv)",
    )
    return parser.parse_args(argv)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

def build_config(args: argparse.Namespace) -> ProbeConfig:
    """Build the probe configuration: CLI flags > profile > config file > defaults."""
    if args.config:
        if not args.config.exists():
            raise ModuleUnavailable(f"Config file not found: {args.config}")
        try:
            config = ProbeConfig.from_file(str(args.config))
        except (ValueError, TypeError) as e:
            raise ModuleUnavailable(f"Invalid config file {args.config}: {e}")
    else:
        config = ProbeConfig()

    # --- Resolve tenant identity from profile ---
    profile = None
    if args.profile:
        profile = resolve_profile(args.profile)
        if not profile:
            raise AuthenticationFailure(f"Profile '{args.profile}' not found")
    elif not args.config and not args.tenant_id:
        profile = resolve_profile()

    auth = config.auth
    if profile:
        logger.info(f"Using tenant profile '{profile.name}'")
        auth.tenant_id = profile.tenant_id
        auth.client_id = profile.client_id
        auth.mode = profile.auth_mode
        auth.certificate_path = profile.resolve_cert_path()
        auth.username = profile.username
        if profile.include_skus or profile.exclude_skus:
            config.selection = SkuSelection(
                include=list(profile.include_skus),
                exclude=list(profile.exclude_skus),
            )

    # --- CLI overrides ---
    if args.tenant_id:
        auth.tenant_id = args.tenant_id
    if args.client_id:
        auth.client_id = args.client_id
    if args.auth_mode:
        auth.mode = args.auth_mode
    if args.cert_path:
        auth.certificate_path = str(args.cert_path)
    if args.username:
        auth.username = args.username

    include = SkuSelection.split(args.include_sku)
    exclude = SkuSelection.split(args.exclude_sku)
    if include or exclude:
        config.selection = SkuSelection(include=include, exclude=exclude)

    if args.report_profile:
        config.report_profile = args.report_profile
    if args.timeout:
        config.graph.timeout_seconds = args.timeout
    config.list_skus = args.list_skus
    config.verbose = max(config.verbose, args.verbose)
    return config


def configure_logging(verbosity: int) -> None:
    """Send logs to stderr; stdout carries only the probe document."""
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr, force=True)


def _utf8_stdout() -> None:
    """Friendly names and messages may be non-ASCII; never fail on encoding."""
    if hasattr(sys.stdout, "reconfigure"):
        try:
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")  # type: ignore[union-attr]
        except (ValueError, OSError):
            pass


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

async def main_async(argv: Optional[list[str]] = None) -> int:
    """Async entry point; returns the process exit code."""
    args = parse_args(argv)

    if args.command == "profile":
        return _cmd_profile(args)
    if args.command == "permissions":
        return _cmd_permissions()

    configure_logging(args.verbose)
    _utf8_stdout()

    try:
        config = build_config(args)
    except ProbeError as e:
        logger.error(f"Configuration failed: {e.message}")
        sys.stdout.write(serialize_error(e.report_message()))
        return EXIT_ERROR

    if config.verbose > args.verbose:
        configure_logging(config.verbose)

    document, exit_code = await execute(config)
    sys.stdout.write(document)
    sys.stdout.flush()
    return exit_code


def main():
    """Synchronous entry point for `python -m m365_license_probe`."""
    sys.exit(asyncio.run(main_async()))


if __name__ == "__main__":
    main()
