"""
Data model for the packaging market-intelligence pipeline.

Raw rows (companies, professionals, economic history) stay plain dicts keyed by
the workbook's column headers. Everything the pipeline derives from them is a
frozen dataclass so a processed run can be shared with the UI without copies.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Tuple


Row = Dict[str, Any]


# Column headers of the source workbook
COL_ID = "Id. Empresa"
COL_NAME = "Razón Social"
COL_PROVINCE = "Provincia"
COL_MUNICIPALITY = "Municipio"
COL_COUNTRY = "País"
COL_SALES = "Ventas 2024"
COL_INVEST_CURRENT = "Inversión 2024"
COL_INVEST_FORWARD = "Inversión 2025"
COL_EMPLOYEES = "Empleo"
COL_CAPITAL = "Capital"
COL_ACTIVITY = "Actividad"
COL_SECTORS = "Sectores"
COL_WEB = "Web"
COL_EMAIL = "Email"

ECO_YEAR = "Año"
ECO_SALES = "Ventas"
ECO_INVEST_DONE = "Inversión Realizada"
ECO_INVEST_PLANNED = "Inversión Prevista"


class SizeLabel(str, Enum):
    LARGE = "Grande"
    MEDIUM = "Mediana"
    SMALL = "Pequeña"
    MICRO = "Micro"


class Material(str, Enum):
    RIGID_PLASTIC = "Plástico Rígido"
    FLEXIBLE_PLASTIC = "Plástico Flexible"
    PAPER = "Papel/Cartón"
    WOOD = "Madera"
    METAL = "Metal"
    MULTIMATERIAL = "Multimaterial"
    UNKNOWN = "Otros/Desconocido"

    @property
    def is_plastic(self) -> bool:
        return "Plástico" in self.value


class PackagingType(str, Enum):
    PRIMARY = "Primario"
    SERVICE = "Servicio/Horeca"
    TRANSPORT = "Transporte/Logística"
    OTHER = "Maquinaria/Otros"


SECTOR_UNKNOWN = "Otros / No definido"
PROVINCE_UNKNOWN = "Desconocida"
ACTIVITY_UNKNOWN = "Sin actividad detallada"
LABEL_NOT_APPLICABLE = "No Aplica"


@dataclass(frozen=True)
class Segmentation:
    primary_sector: str
    activity: str
    province: str
    size_label: SizeLabel
    material: Material
    packaging_type: PackagingType

    def to_dict(self) -> Dict[str, str]:
        return {
            "primary_sector": self.primary_sector,
            "activity": self.activity,
            "province": self.province,
            "size_label": self.size_label.value,
            "material": self.material.value,
            "packaging_type": self.packaging_type.value,
        }


@dataclass(frozen=True)
class ScoreBreakdown:
    volume: int = 0          # 0-40
    human_capital: int = 0   # 0-20
    growth: int = 0          # 0-15
    digital: int = 0         # 0-15
    geo: int = 0             # 0-10

    @property
    def total(self) -> int:
        return self.volume + self.human_capital + self.growth + self.digital + self.geo

    def to_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "volume": self.volume,
            "human_capital": self.human_capital,
            "growth": self.growth,
            "digital": self.digital,
            "geo": self.geo,
        }


@dataclass(frozen=True)
class PPWRAssessment:
    is_relevant: bool
    is_service_manufacturer: bool = False
    is_transport_manufacturer: bool = False
    is_primary_manufacturer: bool = False
    impact_ratio: int = 0
    impact_label: str = LABEL_NOT_APPLICABLE
    key_drivers: Tuple[str, ...] = ()

    @classmethod
    def not_applicable(cls) -> "PPWRAssessment":
        return cls(is_relevant=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_relevant": self.is_relevant,
            "roles": {
                "is_service_manufacturer": self.is_service_manufacturer,
                "is_transport_manufacturer": self.is_transport_manufacturer,
                "is_primary_manufacturer": self.is_primary_manufacturer,
            },
            "impact_ratio": self.impact_ratio,
            "impact_label": self.impact_label,
            "key_drivers": list(self.key_drivers),
        }


@dataclass(frozen=True)
class ProcessedCompany:
    """One enriched company.

    `row` is a copy of the raw company row with sales and investment figures
    rescaled to absolute euros; the caller's row is left untouched.
    """
    company_id: str
    row: Row
    normalized_name: str
    segmentation: Segmentation
    score: ScoreBreakdown
    ppwr: PPWRAssessment
    professionals: Tuple[Row, ...] = ()
    economic_history: Tuple[Row, ...] = ()

    @property
    def sales(self) -> float:
        return float(self.row.get(COL_SALES) or 0.0)

    def get(self, column: str, default: Any = None) -> Any:
        return self.row.get(column, default)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "company_id": self.company_id,
            "normalized_name": self.normalized_name,
            "segmentation": self.segmentation.to_dict(),
            "score": self.score.to_dict(),
            "ppwr": self.ppwr.to_dict(),
            "n_professionals": len(self.professionals),
            "n_economic_years": len(self.economic_history),
        }


@dataclass(frozen=True)
class PPWRBuckets:
    high_impact: int = 0
    neutral: int = 0
    opportunity: int = 0


@dataclass(frozen=True)
class DatasetStats:
    total_companies: int = 0
    total_professionals: int = 0
    duplicates_removed: int = 0
    missing_websites: int = 0
    missing_emails: int = 0
    top_sectors: Dict[str, int] = field(default_factory=dict)
    top_provinces: Dict[str, int] = field(default_factory=dict)
    size_distribution: Dict[str, int] = field(default_factory=dict)
    material_distribution: Dict[str, int] = field(default_factory=dict)
    type_distribution: Dict[str, int] = field(default_factory=dict)
    ppwr_stats: PPWRBuckets = field(default_factory=PPWRBuckets)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_companies": self.total_companies,
            "total_professionals": self.total_professionals,
            "duplicates_removed": self.duplicates_removed,
            "missing_websites": self.missing_websites,
            "missing_emails": self.missing_emails,
            "top_sectors": dict(self.top_sectors),
            "top_provinces": dict(self.top_provinces),
            "size_distribution": dict(self.size_distribution),
            "material_distribution": dict(self.material_distribution),
            "type_distribution": dict(self.type_distribution),
            "ppwr_stats": {
                "high_impact": self.ppwr_stats.high_impact,
                "neutral": self.ppwr_stats.neutral,
                "opportunity": self.ppwr_stats.opportunity,
            },
        }


@dataclass(frozen=True)
class PipelineResult:
    companies: List[ProcessedCompany]
    stats: DatasetStats
