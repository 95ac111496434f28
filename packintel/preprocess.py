from __future__ import annotations

import logging
import re
import zipfile
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Tuple

import pandas as pd

from .models import COL_ID, COL_NAME, ECO_INVEST_DONE, ECO_INVEST_PLANNED, ECO_SALES, ECO_YEAR, Row
from .rules import UNIT_SCALE
from .utils import company_key, safe_str, to_number


logger = logging.getLogger(__name__)

# Known risk: removed as raw substrings, so "ISLAS" loses its "SL" too.
LEGAL_SUFFIXES = ("SL", "SA")

_WS_RE = re.compile(r"\s+")

RowIndex = Mapping[str, Tuple[Row, ...]]


def normalize_company_name(name: Any) -> str:
    s = safe_str(name).upper()
    if not s:
        return ""

    s = s.replace(".", "")
    s = _WS_RE.sub(" ", s)
    for suffix in LEGAL_SUFFIXES:
        s = s.replace(suffix, "")
    return s.strip()


@dataclass
class DedupResult:
    rows: List[Row]
    duplicates: int = 0


def dedupe_companies(rows: Iterable[Row]) -> DedupResult:
    """Keep the first row per identifier, in input order; count the rest."""
    seen = set()
    out = DedupResult(rows=[])
    for row in rows:
        cid = company_key(row.get(COL_ID))
        if cid in seen:
            out.duplicates += 1
            logger.debug("Dropping duplicate company id=%s", cid)
            continue
        seen.add(cid)
        out.rows.append(row)
    return out


def build_index(rows: Iterable[Row]) -> RowIndex:
    grouped: Dict[str, List[Row]] = {}
    for r in rows:
        grouped.setdefault(company_key(r.get(COL_ID)), []).append(dict(r))
    return MappingProxyType({k: tuple(v) for k, v in grouped.items()})


def rescale_economic_row(row: Row) -> Row:
    out = dict(row)
    for col in (ECO_SALES, ECO_INVEST_DONE, ECO_INVEST_PLANNED):
        out[col] = to_number(row.get(col)) * UNIT_SCALE
    return out


def build_economic_index(rows: Iterable[Row]) -> RowIndex:
    """Economic history per company: rescaled copies, oldest year first."""
    grouped: Dict[str, List[Row]] = {}
    for r in rows:
        grouped.setdefault(company_key(r.get(COL_ID)), []).append(rescale_economic_row(r))
    return MappingProxyType({
        k: tuple(sorted(v, key=lambda e: to_number(e.get(ECO_YEAR))))
        for k, v in grouped.items()
    })


# ---------------------------
# Ingestion helpers
# ---------------------------
def rows_from_frame(df: pd.DataFrame) -> List[Row]:
    df = df.rename(columns={c: str(c).strip() for c in df.columns})
    clean = df.astype(object).where(pd.notna(df), None)
    return clean.to_dict(orient="records")


@dataclass
class WorkbookRows:
    companies: List[Row]
    professionals: List[Row]
    economics: List[Row]
    sheet_names: List[str] = field(default_factory=list)

    @property
    def n_missing_name(self) -> int:
        return sum(1 for r in self.companies if not safe_str(r.get(COL_NAME)))


def load_workbook(source: Any) -> WorkbookRows:
    """Read companies / professionals / economic history from the first three sheets."""
    try:
        sheets = pd.read_excel(source, sheet_name=None)
    except (OSError, ValueError, zipfile.BadZipFile) as e:
        raise ValueError(f"Could not read workbook: {e}") from e

    if not sheets:
        raise ValueError("Workbook has no sheets.")

    names = list(sheets.keys())
    frames = [sheets[n] for n in names]
    companies = rows_from_frame(frames[0])
    if companies and COL_ID not in companies[0]:
        raise ValueError(f"First sheet must contain an '{COL_ID}' column.")

    professionals = rows_from_frame(frames[1]) if len(frames) > 1 else []
    economics = rows_from_frame(frames[2]) if len(frames) > 2 else []
    return WorkbookRows(
        companies=companies,
        professionals=professionals,
        economics=economics,
        sheet_names=names,
    )
