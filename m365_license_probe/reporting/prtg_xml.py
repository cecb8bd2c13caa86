"""
PRTG XML serializer — renders a Report (or an error) as the document the
monitoring host reads from the sensor's standard output.
"""

from __future__ import annotations

import html
import math
import re
from typing import Any, Optional

from ..models import ErrorReport, MetricRecord, ProbeOutcome, Report

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'
INDENT = "\t"

# Characters XML 1.0 does not allow anywhere in a document.
_INVALID_XML_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\ufffe\uffff]")


def _esc(val: Any) -> str:
    """Escape markup characters and drop characters XML cannot carry."""
    return html.escape(_INVALID_XML_CHARS.sub("", str(val)), quote=True)


def format_number(value: Any) -> str:
    """Integers verbatim; floats with at most two decimals, no trailing zeros."""
    if isinstance(value, bool):
        return str(int(value))
    if isinstance(value, int):
        return str(value)
    number = float(value)
    if math.isnan(number) or math.isinf(number):
        return "0"
    text = f"{number:.2f}".rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


def _element(name: str, value: Any, depth: int) -> str:
    return f"{INDENT * depth}<{name}>{_esc(value)}</{name}>"


def _result_lines(record: MetricRecord) -> list[str]:
    lines = [
        f"{INDENT}<result>",
        _element("channel", record.channel, 2),
        _element("value", format_number(record.value), 2),
    ]
    if record.unit is not None:
        lines.append(_element("unit", record.unit.value, 2))
    if record.is_float:
        lines.append(_element("float", 1, 2))
        lines.append(_element("decimalmode", "All", 2))

    limits = record.thresholds
    if limits is not None:
        bounds: list[tuple[str, Optional[Any]]] = [
            ("limitminwarning", limits.min_warning),
            ("limitminerror", limits.min_error),
            ("limitmaxwarning", limits.max_warning),
        ]
        present = [(name, v) for name, v in bounds if v is not None]
        if present:
            lines.append(_element("limitmode", limits.mode, 2))
            for name, v in present:
                lines.append(_element(name, format_number(v), 2))

    if record.annotation:
        lines.append(_element("limitwarningmsg", record.annotation, 2))
    lines.append(f"{INDENT}</result>")
    return lines


def serialize(report: Report) -> str:
    """Render a success report: one <result> per metric record, in order."""
    lines = [XML_DECLARATION, "<prtg>"]
    for record in report.records:
        lines.extend(_result_lines(record))
    lines.append("</prtg>")
    return "\n".join(lines) + "\n"


def serialize_error(message: str) -> str:
    """Render the error form: an error flag and the message, nothing else."""
    lines = [
        XML_DECLARATION,
        "<prtg>",
        _element("error", 1, 1),
        _element("text", message, 1),
        "</prtg>",
    ]
    return "\n".join(lines) + "\n"


def render(outcome: ProbeOutcome) -> str:
    if isinstance(outcome, ErrorReport):
        return serialize_error(outcome.message)
    return serialize(outcome)
