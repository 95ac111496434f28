from __future__ import annotations

from typing import Any, Optional

from .models import ScoreBreakdown
from .rules import ScoringConfig, Tiers
from .utils import safe_str


DEFAULT_SCORING = ScoringConfig()


def _tier_points(value: float, tiers: Tiers) -> int:
    for threshold, points in tiers:
        if value > threshold:
            return points
    return 0


def volume_points(sales: float, cfg: ScoringConfig = DEFAULT_SCORING) -> int:
    return _tier_points(sales, cfg.volume_tiers)


def human_capital_points(employees: float, cfg: ScoringConfig = DEFAULT_SCORING) -> int:
    return _tier_points(employees, cfg.human_capital_tiers)


def growth_points(invest_current: float, invest_forward: float, cfg: ScoringConfig = DEFAULT_SCORING) -> int:
    if invest_forward > 0:
        return cfg.growth_forward
    if invest_current > 0:
        return cfg.growth_current
    return 0


def digital_points(has_web: bool, has_email: bool, cfg: ScoringConfig = DEFAULT_SCORING) -> int:
    points = 0
    if has_web:
        points += cfg.digital_web
    if has_email:
        points += cfg.digital_email
    return points


def geo_points(country: Any, website: Any, cfg: ScoringConfig = DEFAULT_SCORING) -> int:
    c = safe_str(country).lower()
    if c and c not in cfg.home_countries:
        return cfg.geo_foreign
    w = safe_str(website)
    if any(d in w for d in cfg.international_domains):
        return cfg.geo_international_domain
    return cfg.geo_baseline


def score_company(
    sales: float,
    employees: float,
    invest_current: float,
    invest_forward: float,
    has_web: bool,
    has_email: bool,
    country: Any = None,
    website: Any = None,
    cfg: Optional[ScoringConfig] = None,
) -> ScoreBreakdown:
    cfg = cfg or DEFAULT_SCORING
    return ScoreBreakdown(
        volume=volume_points(sales, cfg),
        human_capital=human_capital_points(employees, cfg),
        growth=growth_points(invest_current, invest_forward, cfg),
        digital=digital_points(has_web, has_email, cfg),
        geo=geo_points(country, website, cfg),
    )
