from __future__ import annotations

from typing import Any, Dict, Iterable, List, Sequence

import pandas as pd
from rapidfuzz.fuzz import partial_ratio

from .models import (
    COL_CAPITAL, COL_COUNTRY, COL_EMAIL, COL_EMPLOYEES, COL_INVEST_CURRENT, COL_INVEST_FORWARD,
    COL_MUNICIPALITY, COL_NAME, COL_SALES, COL_WEB, ProcessedCompany,
)
from .utils import safe_str, to_number


ALL = "Todos"
FUZZY_MIN_SCORE = 85


def flatten_company(c: ProcessedCompany) -> Dict[str, Any]:
    seg = c.segmentation
    return {
        "company_id": c.company_id,
        "legal_name": safe_str(c.get(COL_NAME)),
        "normalized_name": c.normalized_name,
        "primary_sector": seg.primary_sector,
        "activity": seg.activity,
        "municipality": safe_str(c.get(COL_MUNICIPALITY)),
        "province": seg.province,
        "country": safe_str(c.get(COL_COUNTRY)),
        "size_label": seg.size_label.value,
        "material": seg.material.value,
        "packaging_type": seg.packaging_type.value,
        "score_total": c.score.total,
        "score_volume": c.score.volume,
        "score_human_capital": c.score.human_capital,
        "score_growth": c.score.growth,
        "score_digital": c.score.digital,
        "score_geo": c.score.geo,
        "ppwr_relevant": c.ppwr.is_relevant,
        "ppwr_impact_ratio": c.ppwr.impact_ratio,
        "ppwr_impact_label": c.ppwr.impact_label,
        "ppwr_key_drivers": " | ".join(c.ppwr.key_drivers),
        "sales_eur": to_number(c.get(COL_SALES)),
        "investment_current_eur": to_number(c.get(COL_INVEST_CURRENT)),
        "investment_forward_eur": to_number(c.get(COL_INVEST_FORWARD)),
        "employees": to_number(c.get(COL_EMPLOYEES)),
        "capital": to_number(c.get(COL_CAPITAL)),
        "website": safe_str(c.get(COL_WEB)),
        "email": safe_str(c.get(COL_EMAIL)),
        "n_professionals": len(c.professionals),
        "n_economic_years": len(c.economic_history),
    }


def companies_to_frame(companies: Iterable[ProcessedCompany]) -> pd.DataFrame:
    rows = [flatten_company(c) for c in companies]
    if not rows:
        return pd.DataFrame(columns=list(DATA_DICTIONARY_COLUMNS))
    return pd.DataFrame(rows)


def _matches_search(c: ProcessedCompany, needle: str, fuzzy: bool) -> bool:
    hay = (c.normalized_name.lower(), c.segmentation.primary_sector.lower())
    if any(needle in h for h in hay):
        return True
    if fuzzy and len(needle) >= 3:
        return any(partial_ratio(needle, h) >= FUZZY_MIN_SCORE for h in hay if h)
    return False


def filter_companies(
    companies: Sequence[ProcessedCompany],
    search: str = "",
    material: str = ALL,
    packaging_type: str = ALL,
    province: str = ALL,
    fuzzy: bool = False,
) -> List[ProcessedCompany]:
    needle = safe_str(search).lower()
    out = []
    for c in companies:
        seg = c.segmentation
        if needle and not _matches_search(c, needle, fuzzy):
            continue
        if material != ALL and seg.material != material:
            continue
        if packaging_type != ALL and seg.packaging_type != packaging_type:
            continue
        if province != ALL and seg.province != province:
            continue
        out.append(c)
    return out


def _resolve(obj: Any, path: str) -> Any:
    value = obj
    for part in path.split("."):
        if value is None:
            return 0
        value = getattr(value, part, None)
    if hasattr(value, "value") and isinstance(value, str):
        value = value.value
    if isinstance(value, str):
        return value.lower()
    return 0 if value is None else value


def sort_companies(
    companies: Sequence[ProcessedCompany],
    key: str = "score.total",
    descending: bool = True,
) -> List[ProcessedCompany]:
    return sorted(companies, key=lambda c: _resolve(c, key), reverse=descending)


def filter_options(values: Iterable[str]) -> List[str]:
    return [ALL] + sorted(set(values))


def format_millions(value: Any) -> str:
    if value is None:
        return "-"
    millions = to_number(value) / 1_000_000
    return f"{millions:,.1f}".replace(",", "_").replace(".", ",").replace("_", ".") + " M€"


DATA_DICTIONARY = [
    ("company_id", "Company identifier (Id. Empresa).", "string"),
    ("legal_name", "Legal name as in the source workbook.", "string"),
    ("normalized_name", "Upper-cased display name without periods or SL/SA fragments.", "string"),
    ("primary_sector", "First entry of the sector list, capitalised ('Otros / No definido' if empty).", "string"),
    ("activity", "Activity description ('Sin actividad detallada' if empty).", "string"),
    ("municipality", "Municipality.", "string/blank"),
    ("province", "Province ('Desconocida' if empty).", "string"),
    ("country", "Country.", "string/blank"),
    ("size_label", "Grande / Mediana / Pequeña / Micro by sales or headcount.", "categorical"),
    ("material", "Inferred main packaging material.", "categorical"),
    ("packaging_type", "Inferred packaging type (Transporte/Logística, Servicio/Horeca, Primario, Maquinaria/Otros).", "categorical"),
    ("score_total", "Composite score 0–100 (sum of the five components).", "int"),
    ("score_volume", "Sales volume component (0–40).", "int"),
    ("score_human_capital", "Headcount component (0–20).", "int"),
    ("score_growth", "Investment component (0–15).", "int"),
    ("score_digital", "Website/email component (0–15).", "int"),
    ("score_geo", "International reach component (0–10).", "int"),
    ("ppwr_relevant", "Whether the company belongs to the packaging value chain.", "bool"),
    ("ppwr_impact_ratio", "PPWR exposure, −10 (risk) to +10 (opportunity).", "int"),
    ("ppwr_impact_label", "Band label for the impact ratio ('No Aplica' when not relevant).", "string"),
    ("ppwr_key_drivers", "Ordered rationale for the impact ratio, ' | '-separated.", "string"),
    ("sales_eur", "Current-year sales in euros.", "float"),
    ("investment_current_eur", "Current-year investment in euros.", "float"),
    ("investment_forward_eur", "Planned next-year investment in euros.", "float"),
    ("employees", "Employee count.", "float"),
    ("capital", "Share capital as reported.", "float"),
    ("website", "Website.", "string/blank"),
    ("email", "Contact email.", "string/blank"),
    ("n_professionals", "Number of linked professionals.", "int"),
    ("n_economic_years", "Number of linked economic-history years.", "int"),
]

DATA_DICTIONARY_COLUMNS = tuple(col for col, _, _ in DATA_DICTIONARY)
