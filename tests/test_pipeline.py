from __future__ import annotations

import copy

from packintel.models import COL_NAME, Material, PackagingType, SizeLabel
from packintel.pipeline import PipelineConfig, process_company, process_dataset
from tests.factories import make_company, make_economic, make_professional


def _dataset():
    companies = [
        make_company(1, **{"Sectores": "Envases de plástico", "Actividad": "Vasos horeca", "Ventas 2024": 5}),
        make_company(2, **{"Sectores": "Envases de cartón", "Ventas 2024": 120, "Empleo": 600, "Web": "b.com"}),
        make_company(3, **{"Sectores": "Consultoría", "Ventas 2024": "n/d"}),
        make_company(1, **{"Sectores": "Duplicado"}),
        make_company(4, **{"Sectores": "Palets de madera", "Ventas 2024": 5, "Inversión 2025": 1}),
        make_company(1),
    ]
    professionals = [make_professional(1, "Ana"), make_professional(2, "Luis"), make_professional(1, "Eva")]
    economics = [make_economic(2, 2023), make_economic(2, 2022), make_economic(9, 2023)]
    return companies, professionals, economics


def test_carton_box_maker_scenario(carton_company):
    c = process_company(carton_company)

    assert c.segmentation.material is Material.PAPER
    assert c.segmentation.size_label is SizeLabel.LARGE
    # "cajas" makes it a transport packaging maker
    assert c.segmentation.packaging_type is PackagingType.TRANSPORT
    # 35 volume + 15 headcount + 0 growth + 10 web + 5 (.com domain)
    assert c.score.to_dict() == {
        "total": 65, "volume": 35, "human_capital": 15, "growth": 0, "digital": 10, "geo": 5,
    }
    assert c.ppwr.is_relevant
    # -2 base -3 transport +3 paper
    assert c.ppwr.impact_ratio == -2
    assert c.ppwr.impact_label == "Reto: Adaptación Requerida"


def test_carton_primary_packaging_is_positive(carton_company):
    row = dict(carton_company, **{"Actividad": "Fabricación de envases"})
    c = process_company(row)

    assert c.segmentation.packaging_type is PackagingType.PRIMARY
    assert c.ppwr.impact_ratio == 1
    assert c.ppwr.impact_label == "Positivo: Buena Posición"


def test_company_without_ppwr_keywords():
    c = process_company(make_company(5, **{"Sectores": "Software", "Actividad": "Consultoría", "Razón Social": "Datos Lógicos"}))
    assert c.ppwr.is_relevant is False
    assert c.ppwr.impact_ratio == 0
    assert c.ppwr.impact_label == "No Aplica"
    assert c.ppwr.key_drivers == ()


def test_rescales_monetary_fields_without_touching_input(carton_company):
    raw = dict(carton_company, **{"Inversión 2024": 2, "Inversión 2025": None})
    before = copy.deepcopy(raw)
    c = process_company(raw)

    assert c.get("Ventas 2024") == 60_000_000
    assert c.get("Inversión 2024") == 2_000_000
    assert c.get("Inversión 2025") == 0
    assert c.sales == 60_000_000
    assert raw == before


def test_dataset_dedup_linking_and_stats():
    companies, professionals, economics = _dataset()
    result = process_dataset(companies, professionals, economics)

    ids = [c.company_id for c in result.companies]
    assert sorted(ids) == ["1", "2", "3", "4"]
    assert result.stats.duplicates_removed == 2
    assert result.stats.total_companies == 4
    assert result.stats.total_professionals == 3

    by_id = {c.company_id: c for c in result.companies}
    assert by_id["1"].segmentation.primary_sector == "Envases de plástico"
    assert [p["Nombre"] for p in by_id["1"].professionals] == ["Ana", "Eva"]
    assert [e["Año"] for e in by_id["2"].economic_history] == [2022, 2023]
    assert by_id["2"].economic_history[0]["Ventas"] == 10_000_000
    assert by_id["3"].professionals == ()
    assert by_id["3"].economic_history == ()
    # economic input rows untouched
    assert economics[0]["Ventas"] == 10


def test_output_sorted_by_score_descending_and_stable():
    companies = [make_company(i, **{"Razón Social": f"Empresa {i}"}) for i in range(10, 15)]
    companies.append(make_company(99, **{"Ventas 2024": 200}))
    result = process_dataset(companies)

    totals = [c.score.total for c in result.companies]
    assert totals == sorted(totals, reverse=True)
    assert result.companies[0].company_id == "99"
    # ties keep input order
    assert [c.company_id for c in result.companies[1:]] == ["10", "11", "12", "13", "14"]


def test_invariants_hold_for_every_company():
    companies, professionals, economics = _dataset()
    result = process_dataset(companies, professionals, economics)

    for c in result.companies:
        s = c.score
        assert 0 <= s.total <= 100
        assert s.total == s.volume + s.human_capital + s.growth + s.digital + s.geo
        assert -10 <= c.ppwr.impact_ratio <= 10
        if c.ppwr.is_relevant:
            assert c.ppwr.key_drivers

    stats = result.stats
    assert sum(stats.top_sectors.values()) == stats.total_companies
    assert sum(stats.top_provinces.values()) == stats.total_companies


def test_pipeline_is_pure():
    companies, professionals, economics = _dataset()
    snapshot = copy.deepcopy((companies, professionals, economics))

    first = process_dataset(companies, professionals, economics)
    second = process_dataset(companies, professionals, economics)

    assert [c.to_dict() for c in first.companies] == [c.to_dict() for c in second.companies]
    assert first.stats == second.stats
    assert (companies, professionals, economics) == snapshot


def test_output_rows_do_not_alias_caller_rows():
    companies, professionals, economics = _dataset()
    result = process_dataset(companies, professionals, economics)
    by_id = {c.company_id: c for c in result.companies}

    by_id["1"].professionals[0]["Nombre"] = "X"
    by_id["2"].economic_history[0]["Año"] = 1900
    by_id["1"].row[COL_NAME] = "X"

    assert professionals[0]["Nombre"] == "Ana"
    assert all(e["Año"] != 1900 for e in economics)
    assert companies[0][COL_NAME] != "X"


def test_empty_input():
    result = process_dataset([])
    assert result.companies == []
    assert result.stats.total_companies == 0
    assert result.stats.top_sectors == {}


def test_config_from_dict_changes_constants_not_flow():
    cfg = PipelineConfig.from_dict({"scoring": {"geo_baseline": 0}, "ppwr": {"base_ratio": 0}})
    c = process_company(make_company(1, **{"Sectores": "Vidrio"}), config=cfg)
    assert c.score.geo == 0
    assert c.ppwr.impact_ratio == 0
    assert c.ppwr.impact_label == "Neutral"
