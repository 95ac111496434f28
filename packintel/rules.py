"""
Rule tables and business constants.

Keyword rules are ordered (predicate, outcome) pairs. Classification walks a
table top to bottom and stops at the first rule whose predicate holds, so the
priority order is exactly the order of the tuples below.

Scoring tiers and PPWR magnitudes live in versioned config dataclasses that can
be overridden from config.yaml without touching control flow.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generic, Optional, Sequence, Tuple, TypeVar

from .models import Material, PackagingType, SizeLabel


T = TypeVar("T")
Predicate = Callable[[str], bool]

RULES_VERSION = "2024.1"

# Raw sales/investment figures are stored in millions of euros
UNIT_SCALE = 1_000_000


def contains_any(*keywords: str) -> Predicate:
    kws = tuple(keywords)

    def _pred(text: str) -> bool:
        return any(k in text for k in kws)

    return _pred


@dataclass(frozen=True)
class Rule(Generic[T]):
    name: str
    predicate: Predicate
    outcome: T

    def matches(self, text: str) -> bool:
        return self.predicate(text)


def first_match(rules: Sequence[Rule[T]], text: str, default: T) -> T:
    for rule in rules:
        if rule.matches(text):
            return rule.outcome
    return default


# ---------------------------
# Segmentation
# ---------------------------
MATERIAL_RULES: Tuple[Rule[Material], ...] = (
    Rule("paper", contains_any("cartón", "papel", "corrugado", "celulosa", "kraft"), Material.PAPER),
    Rule("wood", contains_any("madera", "palet"), Material.WOOD),
    Rule("flexible_plastic", contains_any("flexible", "film", "bolsa", "complejo"), Material.FLEXIBLE_PLASTIC),
    Rule(
        "rigid_plastic",
        contains_any("botella", "inyección", "soplado", "rígido", "pet", "hdpe", "tapón"),
        Material.RIGID_PLASTIC,
    ),
    Rule("metal", contains_any("metal", "lata", "aluminio", "hojalata"), Material.METAL),
    # generic plastic without a form hint is treated as rigid
    Rule("plastic_fallback", contains_any("plástico"), Material.RIGID_PLASTIC),
)

PACKAGING_TYPE_RULES: Tuple[Rule[PackagingType], ...] = (
    Rule(
        "transport",
        contains_any("palet", "caja", "logístic", "industrial", "contenedor", "agrícola"),
        PackagingType.TRANSPORT,
    ),
    Rule(
        "service",
        contains_any("take away", "vaso", "plato", "horeca", "un solo uso", "servicio"),
        PackagingType.SERVICE,
    ),
    Rule(
        "primary",
        contains_any("envase", "botella", "tarro", "estuche", "blister", "bandeja", "film", "bolsa"),
        PackagingType.PRIMARY,
    ),
)

# (label, sales strictly above, employees strictly above); either dimension is enough
SIZE_THRESHOLDS: Tuple[Tuple[SizeLabel, float, float], ...] = (
    (SizeLabel.LARGE, 50_000_000, 250),
    (SizeLabel.MEDIUM, 10_000_000, 50),
    (SizeLabel.SMALL, 2_000_000, 10),
)


# ---------------------------
# PPWR
# ---------------------------
PPWR_RELEVANCE = contains_any(
    "envase", "embalaje", "packaging", "plástico", "cartón", "papel",
    "vidrio", "metal", "pack", "bolsa", "film",
)


@dataclass(frozen=True)
class AdjustmentContext:
    text: str
    material: Material
    packaging_type: PackagingType


@dataclass(frozen=True)
class Adjustment:
    """One signed correction to the impact ratio.

    Adjustments sharing a `group` are mutually exclusive: only the first one
    that applies within the group is used.
    """
    name: str
    applies: Callable[[AdjustmentContext], bool]
    driver: str
    group: Optional[str] = None


PPWR_ADJUSTMENTS: Tuple[Adjustment, ...] = (
    Adjustment(
        "service",
        lambda c: c.packaging_type is PackagingType.SERVICE,
        "Negativo: Restricciones severas envase servicio",
    ),
    Adjustment(
        "transport",
        lambda c: c.packaging_type is PackagingType.TRANSPORT and "reutiliz" not in c.text,
        "Negativo: Objetivos reducción/reutilización transporte",
    ),
    Adjustment(
        "virgin_plastic",
        lambda c: c.material.is_plastic and "reciclado" not in c.text,
        "Riesgo: Plástico virgen bajo escrutinio",
        group="material",
    ),
    Adjustment(
        "paper",
        lambda c: c.material is Material.PAPER,
        "Oportunidad: Sustitución hacia fibra/papel",
        group="material",
    ),
    Adjustment(
        "reuse",
        lambda c: contains_any("reutiliz", "returnable", "rpc", "pooling")(c.text),
        "Estratégico: Modelo reutilizable alineado con PPWR",
    ),
    Adjustment(
        "recycled",
        lambda c: contains_any("100% reciclado", "pcr")(c.text),
        "Positivo: Uso de material reciclado",
    ),
)

BASE_DRIVER = "Base: Regulación implica adaptación"

# (predicate on clamped ratio, label), evaluated in order
IMPACT_BANDS: Tuple[Tuple[Callable[[int], bool], str], ...] = (
    (lambda r: r <= -6, "Crítico: Alta Responsabilidad"),
    (lambda r: r < 0, "Reto: Adaptación Requerida"),
    (lambda r: r > 6, "Liderazgo: Oportunidad Estratégica"),
    (lambda r: r > 0, "Positivo: Buena Posición"),
)
NEUTRAL_LABEL = "Neutral"


# ---------------------------
# Versioned constant tables
# ---------------------------
Tiers = Tuple[Tuple[float, int], ...]

# Per-component maxima; they sum to 100.
COMPONENT_CAPS: Dict[str, int] = {
    "volume": 40,
    "human_capital": 20,
    "growth": 15,
    "digital": 15,
    "geo": 10,
}
RATIO_FLOOR = -10
RATIO_CEILING = 10


def _tiers(value: Any, default: Tiers) -> Tiers:
    if not value:
        return default
    out = tuple((float(t[0]), int(t[1])) for t in value)
    return tuple(sorted(out, key=lambda t: t[0], reverse=True))


@dataclass(frozen=True)
class ScoringConfig:
    # (strictly above, points); highest threshold first
    volume_tiers: Tiers = (
        (100_000_000, 40),
        (50_000_000, 35),
        (10_000_000, 30),
        (5_000_000, 20),
        (1_000_000, 10),
        (0, 5),
    )
    human_capital_tiers: Tiers = (
        (500, 20),
        (100, 15),
        (50, 10),
        (10, 5),
    )
    growth_forward: int = 15
    growth_current: int = 10
    digital_web: int = 10
    digital_email: int = 5
    geo_foreign: int = 10
    geo_international_domain: int = 5
    geo_baseline: int = 2
    home_countries: Tuple[str, ...] = ("españa", "spain")
    international_domains: Tuple[str, ...] = (".com", ".eu")

    def validate(self) -> "ScoringConfig":
        """Raise ValueError if any configured points escape their component cap."""
        checks = [
            ("volume_tiers", [p for _, p in self.volume_tiers], COMPONENT_CAPS["volume"]),
            ("human_capital_tiers", [p for _, p in self.human_capital_tiers], COMPONENT_CAPS["human_capital"]),
            ("growth_forward", [self.growth_forward], COMPONENT_CAPS["growth"]),
            ("growth_current", [self.growth_current], COMPONENT_CAPS["growth"]),
            ("digital_web + digital_email", [self.digital_web, self.digital_email,
                                             self.digital_web + self.digital_email], COMPONENT_CAPS["digital"]),
            ("geo_foreign", [self.geo_foreign], COMPONENT_CAPS["geo"]),
            ("geo_international_domain", [self.geo_international_domain], COMPONENT_CAPS["geo"]),
            ("geo_baseline", [self.geo_baseline], COMPONENT_CAPS["geo"]),
        ]
        for name, values, cap in checks:
            for v in values:
                if v < 0 or v > cap:
                    raise ValueError(f"scoring.{name}: {v} points outside 0..{cap}")
        return self

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "ScoringConfig":
        d = d or {}
        base = cls()
        cfg = cls(
            volume_tiers=_tiers(d.get("volume_tiers"), base.volume_tiers),
            human_capital_tiers=_tiers(d.get("human_capital_tiers"), base.human_capital_tiers),
            growth_forward=int(d.get("growth_forward", base.growth_forward)),
            growth_current=int(d.get("growth_current", base.growth_current)),
            digital_web=int(d.get("digital_web", base.digital_web)),
            digital_email=int(d.get("digital_email", base.digital_email)),
            geo_foreign=int(d.get("geo_foreign", base.geo_foreign)),
            geo_international_domain=int(d.get("geo_international_domain", base.geo_international_domain)),
            geo_baseline=int(d.get("geo_baseline", base.geo_baseline)),
            home_countries=tuple(str(x).lower() for x in d.get("home_countries", base.home_countries)),
            international_domains=tuple(d.get("international_domains", base.international_domains)),
        )
        return cfg.validate()


_DEFAULT_DELTAS: Dict[str, int] = {
    "service": -5,
    "transport": -3,
    "virgin_plastic": -2,
    "paper": 3,
    "reuse": 8,
    "recycled": 4,
}


@dataclass(frozen=True)
class PPWRConfig:
    base_ratio: int = -2
    min_ratio: int = -10
    max_ratio: int = 10
    deltas: Dict[str, int] = field(default_factory=lambda: dict(_DEFAULT_DELTAS))

    def delta(self, name: str) -> int:
        return int(self.deltas.get(name, _DEFAULT_DELTAS.get(name, 0)))

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "PPWRConfig":
        d = d or {}
        base = cls()
        deltas = dict(_DEFAULT_DELTAS)
        unknown = set((d.get("deltas") or {}).keys()) - set(deltas)
        if unknown:
            raise ValueError(f"Unknown PPWR adjustment(s) in config: {sorted(unknown)}")
        deltas.update({k: int(v) for k, v in (d.get("deltas") or {}).items()})
        cfg = cls(
            base_ratio=int(d.get("base_ratio", base.base_ratio)),
            min_ratio=int(d.get("min_ratio", base.min_ratio)),
            max_ratio=int(d.get("max_ratio", base.max_ratio)),
            deltas=deltas,
        )
        if cfg.min_ratio < RATIO_FLOOR:
            raise ValueError(f"ppwr.min_ratio must be >= {RATIO_FLOOR}")
        if cfg.max_ratio > RATIO_CEILING:
            raise ValueError(f"ppwr.max_ratio must be <= {RATIO_CEILING}")
        if cfg.min_ratio > cfg.max_ratio:
            raise ValueError("ppwr.min_ratio must not exceed ppwr.max_ratio")
        return cfg

