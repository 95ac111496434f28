"""
PPWR (Packaging and Packaging Waste Regulation) impact assessment.

The ratio starts at the configured base and every adjustment in
`rules.PPWR_ADJUSTMENTS` whose condition holds is applied in table order.
Adjustments that share a group are exclusive: the first applicable one wins.
"""
from __future__ import annotations

from typing import List, Optional, Set

from .models import PackagingType, PPWRAssessment, Row, Segmentation
from .rules import (
    BASE_DRIVER, IMPACT_BANDS, NEUTRAL_LABEL, PPWR_ADJUSTMENTS, PPWR_RELEVANCE,
    AdjustmentContext, PPWRConfig,
)
from .segmentation import company_haystack


DEFAULT_PPWR = PPWRConfig()


def is_ppwr_relevant(text: str) -> bool:
    return PPWR_RELEVANCE(text.lower())


def impact_label(ratio: int) -> str:
    for band, label in IMPACT_BANDS:
        if band(ratio):
            return label
    return NEUTRAL_LABEL


def assess_ppwr(row: Row, segmentation: Segmentation, cfg: Optional[PPWRConfig] = None) -> PPWRAssessment:
    cfg = cfg or DEFAULT_PPWR
    text = company_haystack(row)
    if not is_ppwr_relevant(text):
        return PPWRAssessment.not_applicable()

    ctx = AdjustmentContext(
        text=text,
        material=segmentation.material,
        packaging_type=segmentation.packaging_type,
    )

    ratio = cfg.base_ratio
    drivers: List[str] = [BASE_DRIVER]
    used_groups: Set[str] = set()
    for adj in PPWR_ADJUSTMENTS:
        if adj.group is not None and adj.group in used_groups:
            continue
        if not adj.applies(ctx):
            continue
        if adj.group is not None:
            used_groups.add(adj.group)
        ratio += cfg.delta(adj.name)
        drivers.append(adj.driver)

    ratio = max(cfg.min_ratio, min(cfg.max_ratio, ratio))

    return PPWRAssessment(
        is_relevant=True,
        is_service_manufacturer=segmentation.packaging_type is PackagingType.SERVICE,
        is_transport_manufacturer=segmentation.packaging_type is PackagingType.TRANSPORT,
        is_primary_manufacturer=segmentation.packaging_type is PackagingType.PRIMARY,
        impact_ratio=int(ratio),
        impact_label=impact_label(ratio),
        key_drivers=tuple(drivers),
    )
