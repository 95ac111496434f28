from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, Tuple

from .models import COL_EMAIL, COL_WEB, DatasetStats, PPWRAssessment, PPWRBuckets, ProcessedCompany
from .utils import safe_str


HIGH_IMPACT_MAX = -2
OPPORTUNITY_MIN = 2


def ppwr_bucket(ppwr: PPWRAssessment) -> str:
    """'high_impact' / 'opportunity' / 'neutral' for relevant companies, '' otherwise."""
    if not ppwr.is_relevant:
        return ""
    if ppwr.impact_ratio <= HIGH_IMPACT_MAX:
        return "high_impact"
    if ppwr.impact_ratio >= OPPORTUNITY_MIN:
        return "opportunity"
    return "neutral"


@dataclass
class StatsAccumulator:
    """Run-level tallies; built fresh for every run and folded once."""
    total_professionals: int = 0
    duplicates_removed: int = 0
    total_companies: int = 0
    missing_websites: int = 0
    missing_emails: int = 0
    sectors: Counter = field(default_factory=Counter)
    provinces: Counter = field(default_factory=Counter)
    sizes: Counter = field(default_factory=Counter)
    materials: Counter = field(default_factory=Counter)
    types: Counter = field(default_factory=Counter)
    ppwr: Counter = field(default_factory=Counter)

    def add(self, company: ProcessedCompany) -> "StatsAccumulator":
        seg = company.segmentation
        self.total_companies += 1
        self.sectors[seg.primary_sector] += 1
        self.provinces[seg.province] += 1
        self.sizes[seg.size_label.value] += 1
        self.materials[seg.material.value] += 1
        self.types[seg.packaging_type.value] += 1

        if not safe_str(company.get(COL_WEB)):
            self.missing_websites += 1
        if not safe_str(company.get(COL_EMAIL)):
            self.missing_emails += 1

        bucket = ppwr_bucket(company.ppwr)
        if bucket:
            self.ppwr[bucket] += 1
        return self

    def build(self) -> DatasetStats:
        return DatasetStats(
            total_companies=self.total_companies,
            total_professionals=self.total_professionals,
            duplicates_removed=self.duplicates_removed,
            missing_websites=self.missing_websites,
            missing_emails=self.missing_emails,
            top_sectors=dict(self.sectors),
            top_provinces=dict(self.provinces),
            size_distribution=dict(self.sizes),
            material_distribution=dict(self.materials),
            type_distribution=dict(self.types),
            ppwr_stats=PPWRBuckets(
                high_impact=self.ppwr["high_impact"],
                neutral=self.ppwr["neutral"],
                opportunity=self.ppwr["opportunity"],
            ),
        )


def build_stats(
    companies: Iterable[ProcessedCompany],
    total_professionals: int = 0,
    duplicates_removed: int = 0,
) -> DatasetStats:
    acc = StatsAccumulator(total_professionals=total_professionals, duplicates_removed=duplicates_removed)
    for c in companies:
        acc.add(c)
    return acc.build()


def ranked(counts: dict, top_n: int = 0) -> Tuple[Tuple[str, int], ...]:
    items = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)
    return tuple(items[:top_n] if top_n else items)
