"""
Batch transform: raw workbook rows -> enriched, scored, ranked companies + stats.

Single pass, no I/O. The caller's rows are never mutated; each output company
holds its own copy with monetary figures rescaled from millions to euros.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Sequence

from .aggregation import build_stats
from .models import (
    COL_COUNTRY, COL_EMAIL, COL_ID, COL_EMPLOYEES, COL_INVEST_CURRENT, COL_INVEST_FORWARD,
    COL_NAME, COL_SALES, COL_WEB, PipelineResult, ProcessedCompany, Row,
)
from .ppwr import assess_ppwr
from .preprocess import build_economic_index, build_index, dedupe_companies, normalize_company_name
from .rules import UNIT_SCALE, PPWRConfig, ScoringConfig
from .scoring import score_company
from .segmentation import segment_company
from .utils import company_key, safe_str, to_number


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineConfig:
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    ppwr: PPWRConfig = field(default_factory=PPWRConfig)

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "PipelineConfig":
        d = d or {}
        return cls(
            scoring=ScoringConfig.from_dict(d.get("scoring")),
            ppwr=PPWRConfig.from_dict(d.get("ppwr")),
        )


def process_company(
    row: Row,
    professionals: Sequence[Row] = (),
    economic_history: Sequence[Row] = (),
    config: Optional[PipelineConfig] = None,
) -> ProcessedCompany:
    cfg = config or PipelineConfig()

    sales = to_number(row.get(COL_SALES)) * UNIT_SCALE
    employees = to_number(row.get(COL_EMPLOYEES))
    inv_current = to_number(row.get(COL_INVEST_CURRENT)) * UNIT_SCALE
    inv_forward = to_number(row.get(COL_INVEST_FORWARD)) * UNIT_SCALE

    segmentation = segment_company(row, sales, employees)
    score = score_company(
        sales=sales,
        employees=employees,
        invest_current=inv_current,
        invest_forward=inv_forward,
        has_web=bool(safe_str(row.get(COL_WEB))),
        has_email=bool(safe_str(row.get(COL_EMAIL))),
        country=row.get(COL_COUNTRY),
        website=row.get(COL_WEB),
        cfg=cfg.scoring,
    )
    ppwr = assess_ppwr(row, segmentation, cfg.ppwr)

    out_row = dict(row)
    out_row[COL_SALES] = sales
    out_row[COL_INVEST_CURRENT] = inv_current
    out_row[COL_INVEST_FORWARD] = inv_forward

    return ProcessedCompany(
        company_id=company_key(row.get(COL_ID)),
        row=out_row,
        normalized_name=normalize_company_name(row.get(COL_NAME)),
        segmentation=segmentation,
        score=score,
        ppwr=ppwr,
        professionals=tuple(dict(p) for p in professionals),
        economic_history=tuple(dict(e) for e in economic_history),
    )


def process_dataset(
    companies: Iterable[Row],
    professionals: Iterable[Row] = (),
    economics: Iterable[Row] = (),
    config: Optional[PipelineConfig] = None,
) -> PipelineResult:
    professionals = list(professionals)
    prof_index = build_index(professionals)
    eco_index = build_economic_index(economics)

    dedup = dedupe_companies(companies)

    processed = [
        process_company(
            row,
            professionals=prof_index.get(company_key(row.get(COL_ID)), ()),
            economic_history=eco_index.get(company_key(row.get(COL_ID)), ()),
            config=config,
        )
        for row in dedup.rows
    ]

    stats = build_stats(
        processed,
        total_professionals=len(professionals),
        duplicates_removed=dedup.duplicates,
    )

    # stable: ties keep post-dedup order
    processed.sort(key=lambda c: c.score.total, reverse=True)

    logger.info(
        "Processed %d companies (%d duplicates removed, %d professionals)",
        stats.total_companies, stats.duplicates_removed, stats.total_professionals,
    )
    return PipelineResult(companies=processed, stats=stats)
