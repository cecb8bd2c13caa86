"""
M365 License & DirSync Probe
============================
A read-only monitoring probe for Microsoft 365 tenants.  Reads per-SKU license
counts and directory synchronization health from Microsoft Graph and prints a
PRTG XML sensor report.

WARNING: This tool operates in STRICT READ-ONLY mode.
         No write operations will be performed against the tenant.
"""

__version__ = "1.0.0"
__author__ = "M365 License Probe"
__mode__ = "READ-ONLY"
