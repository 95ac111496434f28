from __future__ import annotations

import re

from .models import (
    ACTIVITY_UNKNOWN, COL_ACTIVITY, COL_NAME, COL_PROVINCE, COL_SECTORS,
    PROVINCE_UNKNOWN, SECTOR_UNKNOWN, Material, PackagingType, Row, Segmentation, SizeLabel,
)
from .rules import MATERIAL_RULES, PACKAGING_TYPE_RULES, SIZE_THRESHOLDS, first_match
from .utils import safe_str


_SECTOR_SPLIT_RE = re.compile(r"[;,]")


def primary_sector(raw_sectors: str) -> str:
    s = _SECTOR_SPLIT_RE.split(safe_str(raw_sectors), maxsplit=1)[0].strip()
    if not s:
        return SECTOR_UNKNOWN
    return s[:1].upper() + s[1:].lower()


def size_label(sales: float, employees: float) -> SizeLabel:
    for label, min_sales, min_employees in SIZE_THRESHOLDS:
        if sales > min_sales or employees > min_employees:
            return label
    return SizeLabel.MICRO


def company_haystack(row: Row) -> str:
    """Lower-cased sector + activity + legal name, the text every keyword rule looks at."""
    parts = [safe_str(row.get(COL_SECTORS)), safe_str(row.get(COL_ACTIVITY)), safe_str(row.get(COL_NAME))]
    return " ".join(parts).lower()


def infer_material(text: str) -> Material:
    return first_match(MATERIAL_RULES, text.lower(), Material.UNKNOWN)


def infer_packaging_type(text: str) -> PackagingType:
    return first_match(PACKAGING_TYPE_RULES, text.lower(), PackagingType.OTHER)


def segment_company(row: Row, sales: float, employees: float) -> Segmentation:
    text = company_haystack(row)
    return Segmentation(
        primary_sector=primary_sector(row.get(COL_SECTORS)),
        activity=safe_str(row.get(COL_ACTIVITY)) or ACTIVITY_UNKNOWN,
        province=safe_str(row.get(COL_PROVINCE)) or PROVINCE_UNKNOWN,
        size_label=size_label(sales, employees),
        material=infer_material(text),
        packaging_type=infer_packaging_type(text),
    )
