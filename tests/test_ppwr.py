from __future__ import annotations

import pytest

from packintel.models import Material, PackagingType, Segmentation, SizeLabel
from packintel.ppwr import assess_ppwr, impact_label, is_ppwr_relevant
from packintel.rules import PPWR_ADJUSTMENTS, PPWRConfig
from tests.factories import make_company


def _seg(material=Material.UNKNOWN, ptype=PackagingType.OTHER) -> Segmentation:
    return Segmentation(
        primary_sector="Envases",
        activity="-",
        province="Madrid",
        size_label=SizeLabel.MICRO,
        material=material,
        packaging_type=ptype,
    )


def _row(sector="", activity="", name="ACME"):
    return make_company(1, **{"Sectores": sector, "Actividad": activity, "Razón Social": name})


def test_not_relevant_returns_neutral_assessment():
    a = assess_ppwr(_row("Consultoría", "Servicios jurídicos", "Bufete"), _seg())

    assert a.is_relevant is False
    assert a.impact_ratio == 0
    assert a.impact_label == "No Aplica"
    assert a.key_drivers == ()
    assert not (a.is_service_manufacturer or a.is_transport_manufacturer or a.is_primary_manufacturer)


@pytest.mark.parametrize("text", ["Envases", "EMBALAJE", "vidrio", "packaging", "bolsas", "compack"])
def test_relevance_keywords(text):
    assert is_ppwr_relevant(text)


def test_base_only():
    a = assess_ppwr(_row("Vidrio"), _seg())
    assert a.impact_ratio == -2
    assert a.impact_label == "Reto: Adaptación Requerida"
    assert a.key_drivers == ("Base: Regulación implica adaptación",)


def test_paper_primary_is_positive():
    a = assess_ppwr(_row("Envases de cartón"), _seg(Material.PAPER, PackagingType.PRIMARY))

    assert a.is_primary_manufacturer
    assert a.impact_ratio == 1
    assert a.impact_label == "Positivo: Buena Posición"
    assert a.key_drivers[-1] == "Oportunidad: Sustitución hacia fibra/papel"


def test_service_virgin_plastic_is_critical():
    a = assess_ppwr(_row("Vasos de plástico", "horeca"), _seg(Material.RIGID_PLASTIC, PackagingType.SERVICE))

    assert a.is_service_manufacturer
    assert a.impact_ratio == -9
    assert a.impact_label == "Crítico: Alta Responsabilidad"
    assert a.key_drivers == (
        "Base: Regulación implica adaptación",
        "Negativo: Restricciones severas envase servicio",
        "Riesgo: Plástico virgen bajo escrutinio",
    )


def test_recycled_plastic_skips_virgin_penalty_and_does_not_fall_to_paper():
    a = assess_ppwr(
        _row("Envases plástico reciclado"),
        _seg(Material.RIGID_PLASTIC, PackagingType.PRIMARY),
    )
    assert a.impact_ratio == -2
    assert len(a.key_drivers) == 1


def test_transport_with_reuse_is_leadership():
    a = assess_ppwr(
        _row("Embalaje industrial", "pooling de cajas reutilizables"),
        _seg(Material.RIGID_PLASTIC, PackagingType.TRANSPORT),
    )
    # -2 base, transport skipped (reutiliz), -2 virgin plastic, +8 reuse
    assert a.is_transport_manufacturer
    assert a.impact_ratio == 4
    assert a.impact_label == "Positivo: Buena Posición"


def test_transport_without_reuse_is_penalised():
    a = assess_ppwr(_row("Embalaje industrial"), _seg(Material.WOOD, PackagingType.TRANSPORT))
    assert a.impact_ratio == -5
    assert a.key_drivers[1] == "Negativo: Objetivos reducción/reutilización transporte"


def test_ratio_is_clamped_at_upper_bound():
    a = assess_ppwr(
        _row("Envases de papel 100% reciclado", "returnable pcr"),
        _seg(Material.PAPER, PackagingType.PRIMARY),
    )
    # -2 + 3 + 8 + 4 = 13 -> 10
    assert a.impact_ratio == 10
    assert a.impact_label == "Liderazgo: Oportunidad Estratégica"
    assert len(a.key_drivers) == 4


def test_ratio_is_clamped_at_lower_bound_with_custom_magnitudes():
    cfg = PPWRConfig.from_dict({"deltas": {"service": -20}})
    a = assess_ppwr(_row("Vasos de papel"), _seg(Material.PAPER, PackagingType.SERVICE), cfg)
    assert a.impact_ratio == -10


def test_roles_come_from_segmentation_not_text():
    # text mentions trays (primary) but segmentation says service
    a = assess_ppwr(_row("Bandejas envase"), _seg(Material.UNKNOWN, PackagingType.SERVICE))
    assert a.is_service_manufacturer
    assert not a.is_primary_manufacturer


@pytest.mark.parametrize("ratio, label", [
    (-10, "Crítico: Alta Responsabilidad"),
    (-6, "Crítico: Alta Responsabilidad"),
    (-5, "Reto: Adaptación Requerida"),
    (-1, "Reto: Adaptación Requerida"),
    (0, "Neutral"),
    (1, "Positivo: Buena Posición"),
    (6, "Positivo: Buena Posición"),
    (7, "Liderazgo: Oportunidad Estratégica"),
])
def test_impact_bands(ratio, label):
    assert impact_label(ratio) == label


def test_adjustment_table_order():
    assert [a.name for a in PPWR_ADJUSTMENTS] == [
        "service", "transport", "virgin_plastic", "paper", "reuse", "recycled",
    ]


def test_config_rejects_unknown_adjustment():
    with pytest.raises(ValueError):
        PPWRConfig.from_dict({"deltas": {"glass": 3}})


@pytest.mark.parametrize("override", [
    {"min_ratio": -50},
    {"max_ratio": 11},
    {"min_ratio": 5, "max_ratio": 4},
])
def test_config_rejects_ratio_bounds_outside_range(override):
    with pytest.raises(ValueError):
        PPWRConfig.from_dict(override)


def test_large_deltas_still_land_inside_ratio_range():
    cfg = PPWRConfig.from_dict({"deltas": {"service": -30, "reuse": 40}})
    low = assess_ppwr(_row("Envases para vasos"), _seg(Material.UNKNOWN, PackagingType.SERVICE), cfg)
    high = assess_ppwr(_row("Envases reutilizables"), _seg(Material.UNKNOWN, PackagingType.PRIMARY), cfg)
    assert low.impact_ratio == -10
    assert high.impact_ratio == 10
