from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from tests.factories import make_company  # noqa: E402


@pytest.fixture
def carton_company() -> Dict[str, Any]:
    return make_company(
        1,
        **{
            "Razón Social": "Cartonajes del Norte, S.L.",
            "Ventas 2024": 60,
            "Empleo": 300,
            "Sectores": "Envases de cartón",
            "Actividad": "Fabricación cajas",
            "Web": "x.com",
            "País": "España",
        },
    )
