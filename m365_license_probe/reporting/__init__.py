"""Reporting package — report assembly and output rendering."""

from .builder import build_report
from .prtg_xml import render, serialize, serialize_error
from .sku_listing import export_sku_listing

__all__ = [
    "build_report",
    "render",
    "serialize",
    "serialize_error",
    "export_sku_listing",
]
