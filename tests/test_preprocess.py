from __future__ import annotations

import logging

import pandas as pd
import pytest

from packintel.preprocess import (
    build_economic_index, build_index, dedupe_companies, load_workbook,
    normalize_company_name, rows_from_frame,
)
from packintel.utils import company_key, safe_str, to_number
from tests.factories import make_company, make_economic, make_professional


@pytest.mark.parametrize("raw, expected", [
    (None, ""),
    ("", ""),
    ("  hola  ", "hola"),
    (float("nan"), ""),
    ("null", ""),
    (42, "42"),
])
def test_safe_str(raw, expected):
    assert safe_str(raw) == expected


@pytest.mark.parametrize("raw, expected", [
    (None, 0.0),
    ("", 0.0),
    ("abc", 0.0),
    ("12.5", 12.5),
    (3, 3.0),
    (float("nan"), 0.0),
    (True, 0.0),
])
def test_to_number_coerces_missing_to_zero(raw, expected):
    assert to_number(raw) == expected


def test_company_key_renders_integral_floats_like_ints():
    assert company_key(7.0) == "7"
    assert company_key(7) == "7"
    assert company_key("7") == "7"
    assert company_key(7.5) == "7.5"


def test_normalize_name_uppercases_and_strips_periods_and_legal_forms():
    assert normalize_company_name("Envases  Ibéricos, S.L.") == "ENVASES IBÉRICOS,"
    assert normalize_company_name("grupo  p.a.c.k   s.a.") == "GRUPO PACK"
    assert normalize_company_name(None) == ""
    assert normalize_company_name("   ") == ""


def test_normalize_name_removes_legal_fragments_inside_words():
    # raw substring removal: "ISLAS" loses its "SL", "CASA" loses its "SA"
    assert normalize_company_name("Islas Packaging") == "IAS PACKAGING"
    assert normalize_company_name("Casa Envases") == "CA ENVASES"


def test_dedupe_keeps_first_occurrence_in_order(caplog):
    rows = [
        make_company(1, **{"Razón Social": "first"}),
        make_company(2),
        make_company("1", **{"Razón Social": "second"}),
        make_company(1.0),
        make_company(3),
    ]
    with caplog.at_level(logging.DEBUG, logger="packintel.preprocess"):
        res = dedupe_companies(rows)

    assert [r["Id. Empresa"] for r in res.rows] == [1, 2, 3]
    assert res.rows[0]["Razón Social"] == "first"
    assert res.duplicates == 2
    assert [r.getMessage() for r in caplog.records] == ["Dropping duplicate company id=1"] * 2


def test_build_index_groups_rows_by_company():
    idx = build_index([make_professional(1, "Ana"), make_professional(2, "Luis"), make_professional("1", "Eva")])

    assert [p["Nombre"] for p in idx["1"]] == ["Ana", "Eva"]
    assert len(idx["2"]) == 1
    assert "3" not in idx
    with pytest.raises(TypeError):
        idx["9"] = ()  # type: ignore[index]


def test_economic_index_rescales_copies_and_sorts_by_year():
    raw = [
        make_economic(1, 2024, **{"Ventas": 12, "Inversión Realizada": None, "Inversión Prevista": "x"}),
        make_economic(1, 2022, **{"Ventas": 8}),
    ]
    idx = build_economic_index(raw)

    years = [e["Año"] for e in idx["1"]]
    assert years == [2022, 2024]
    latest = idx["1"][1]
    assert latest["Ventas"] == 12_000_000
    assert latest["Inversión Realizada"] == 0
    assert latest["Inversión Prevista"] == 0
    # caller rows untouched
    assert raw[0]["Ventas"] == 12
    assert raw[0]["Inversión Prevista"] == "x"


def test_rows_from_frame_turns_nan_into_none():
    df = pd.DataFrame([{"Id. Empresa": 1, " Web ": float("nan")}])
    rows = rows_from_frame(df)
    assert rows == [{"Id. Empresa": 1, "Web": None}]


def test_load_workbook_reads_three_sheets(tmp_path):
    path = tmp_path / "export.xlsx"
    with pd.ExcelWriter(path, engine="openpyxl") as xw:
        pd.DataFrame([make_company(1), make_company(2)]).to_excel(xw, sheet_name="Empresas", index=False)
        pd.DataFrame([make_professional(1)]).to_excel(xw, sheet_name="Profesionales", index=False)
        pd.DataFrame([make_economic(1)]).to_excel(xw, sheet_name="Datos", index=False)

    wb = load_workbook(str(path))

    assert wb.sheet_names == ["Empresas", "Profesionales", "Datos"]
    assert len(wb.companies) == 2
    assert len(wb.professionals) == 1
    assert len(wb.economics) == 1
    assert wb.companies[0]["Web"] is None


def test_load_workbook_with_only_companies_sheet(tmp_path):
    path = tmp_path / "only.xlsx"
    with pd.ExcelWriter(path, engine="openpyxl") as xw:
        pd.DataFrame([make_company(1)]).to_excel(xw, sheet_name="Empresas", index=False)

    wb = load_workbook(str(path))
    assert wb.professionals == []
    assert wb.economics == []


def test_load_workbook_rejects_missing_file(tmp_path):
    with pytest.raises(ValueError):
        load_workbook(str(tmp_path / "missing.xlsx"))


def test_load_workbook_requires_identifier_column(tmp_path):
    path = tmp_path / "bad.xlsx"
    with pd.ExcelWriter(path, engine="openpyxl") as xw:
        pd.DataFrame([{"Nombre": "x"}]).to_excel(xw, sheet_name="Empresas", index=False)
    with pytest.raises(ValueError, match="Id. Empresa"):
        load_workbook(str(path))
