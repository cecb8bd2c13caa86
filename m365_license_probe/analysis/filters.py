"""
SKU filter — applies the include / exclude selection to the upstream SKU set.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence

from ..errors import NoMatchingSkus
from ..models import SkuRecord

logger = logging.getLogger("m365_license_probe.analysis.filters")

NO_SKUS_MESSAGE = "No Skus found"
NO_MATCHING_SKUS_MESSAGE = "No Skus found matching the SKU filter"


def filter_skus(
    all_skus: Sequence[SkuRecord],
    include: Optional[Iterable[str]] = None,
    exclude: Optional[Iterable[str]] = None,
) -> list[SkuRecord]:
    """
    Select the SKUs to report on, keeping upstream order.

    A non-empty include list wins outright and the exclude list is ignored.
    Otherwise every SKU not named in the exclude list is kept.

    Raises:
        NoMatchingSkus: when nothing survives the selection.
    """
    include_set = set(include or ())
    exclude_set = set(exclude or ())

    if include_set:
        if exclude_set:
            logger.info(f"Include list given; ignoring {len(exclude_set)} excluded SKU(s)")
        selected = [sku for sku in all_skus if sku.id in include_set]
        missing = include_set.difference(sku.id for sku in all_skus)
        if missing:
            logger.warning(f"Included SKUs not present upstream: {', '.join(sorted(missing))}")
    else:
        selected = [sku for sku in all_skus if sku.id not in exclude_set]

    if not selected:
        raise NoMatchingSkus(NO_MATCHING_SKUS_MESSAGE)

    logger.debug(f"SKU filter kept {len(selected)} of {len(all_skus)} SKU(s)")
    return selected
