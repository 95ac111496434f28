from __future__ import annotations

import hashlib
import json
import logging
import os
from typing import Any, Dict, Optional, Sequence, Tuple

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .aggregation import ranked
from .explorer import format_millions
from .models import COL_SALES, DatasetStats, ProcessedCompany
from .utils import RateLimiter, SimpleJsonCache


logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
DEFAULT_TOP_N = 5

OFFLINE_MESSAGE = """### 📡 Módulo de Inteligencia Artificial Desactivado

Estás utilizando la versión **Offline** del Dashboard.

* ✅ **Todos los cálculos son correctos:** el scoring, la segmentación y los gráficos se han generado localmente.
* ✅ **Tus datos están seguros:** ningún dato ha salido de tu ordenador.
* ❌ **Sin Resumen Narrativo:** el análisis redactado requiere una API Key configurada (`GEMINI_API_KEY`).
"""

ERROR_MESSAGE = """### ⚠️ Error de Conexión

Hubo un problema al intentar conectar con el servicio de IA.

1. Verifica tu conexión a internet.
2. Si has configurado una API Key, verifica que tenga cuota disponible.

*El resto del Dashboard sigue funcionando con normalidad.*
"""

EMPTY_MESSAGE = "No se pudo generar el análisis."


def api_key_from_env() -> str:
    return (os.environ.get("GEMINI_API_KEY") or os.environ.get("API_KEY") or "").strip()


def build_prompt(stats: DatasetStats, top_companies: Sequence[ProcessedCompany], top_n: int = DEFAULT_TOP_N) -> str:
    leaders = "\n".join(
        f"- {c.normalized_name} (Sector: {c.segmentation.primary_sector}, Prov: {c.segmentation.province}): "
        f"Score {c.score.total}. Sales: {format_millions(c.get(COL_SALES)) if c.sales else 'N/A'}"
        for c in list(top_companies)[:top_n]
    )
    top_sectors = json.dumps(ranked(stats.top_sectors, 5), ensure_ascii=False)
    top_provinces = json.dumps(ranked(stats.top_provinces, 5), ensure_ascii=False)
    ppwr = stats.ppwr_stats

    return f"""You are an expert Market Intelligence Analyst.
You are provided with a summary of a dataset of packaging-sector companies.

**Dataset Overview:**
- Total Companies: {stats.total_companies}
- Top Sectors/Activities: {top_sectors}
- Top Regions/Provinces: {top_provinces}
- Size Distribution: {json.dumps(stats.size_distribution, ensure_ascii=False)}
- Material Distribution: {json.dumps(stats.material_distribution, ensure_ascii=False)}
- PPWR exposure: high impact={ppwr.high_impact}, neutral={ppwr.neutral}, opportunity={ppwr.opportunity}

**Top {min(top_n, len(top_companies))} Market Leaders (Shortlist):**
{leaders}

**Objective:**
1. **Identify the Industry:** Based on the sector names and companies, state what industry this dataset represents.
2. **Strategic Analysis:** Market concentration (by region/sector), market leaders, data maturity and PPWR exposure.
3. **Actionable Insights:** Trends based on the top sectors and size distribution.

Return the response in **Spanish**, formatted in **Markdown**. Keep it professional and executive.
"""


class NarrativeClient:
    """
    Optional narrative summary of a run.

    Only ever sees the stats and a top-N slice of the ranking. Every failure
    (no key, network, HTTP error, malformed body) is turned into a canned
    markdown message; generate() never raises.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        endpoint: str = DEFAULT_ENDPOINT,
        cache: Optional[SimpleJsonCache] = None,
        connect_timeout_s: float = 10.0,
        read_timeout_s: float = 60.0,
        retries_total: int = 2,
        backoff_factor: float = 1.5,
        throttle_seconds: float = 0.0,
    ):
        self.api_key = (api_key if api_key is not None else api_key_from_env()).strip()
        self.model = model
        self.endpoint = endpoint
        self.cache = cache

        self.session = requests.Session()
        retry = Retry(
            total=retries_total,
            connect=retries_total,
            read=retries_total,
            backoff_factor=backoff_factor,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["POST"],
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)

        self.limiter = RateLimiter(min_interval_s=float(throttle_seconds))
        self._timeout: Tuple[float, float] = (float(connect_timeout_s), float(read_timeout_s))

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def _post_json(self, prompt: str) -> Optional[Dict[str, Any]]:
        self.limiter.wait()
        url = self.endpoint.format(model=self.model)
        payload = {"contents": [{"parts": [{"text": prompt}]}]}
        try:
            r = self.session.post(
                url,
                params={"key": self.api_key},
                json=payload,
                timeout=self._timeout,
            )
            if r.status_code >= 400:
                logger.warning("Narrative service returned HTTP %s", r.status_code)
                return None
            return r.json()
        except requests.RequestException as e:
            logger.warning("Narrative service unreachable: %s", e)
            return None
        except ValueError:
            logger.warning("Narrative service returned a non-JSON body")
            return None

    @staticmethod
    def _extract_text(data: Dict[str, Any]) -> str:
        parts = []
        for cand in data.get("candidates") or []:
            for part in ((cand or {}).get("content") or {}).get("parts") or []:
                text = (part or {}).get("text")
                if text:
                    parts.append(str(text))
            if parts:
                break
        return "\n".join(parts).strip()

    def generate(
        self,
        stats: DatasetStats,
        top_companies: Sequence[ProcessedCompany],
        top_n: int = DEFAULT_TOP_N,
    ) -> str:
        if not self.enabled:
            return OFFLINE_MESSAGE

        prompt = build_prompt(stats, top_companies, top_n=top_n)
        cache_key = "narrative::" + self.model + "::" + hashlib.sha256(prompt.encode("utf-8")).hexdigest()
        if self.cache is not None:
            cached = self.cache.get(cache_key)
            if cached:
                return cached

        data = self._post_json(prompt)
        if not isinstance(data, dict):
            return ERROR_MESSAGE

        try:
            text = self._extract_text(data)
        except (AttributeError, TypeError):
            logger.warning("Narrative service returned an unexpected payload")
            return ERROR_MESSAGE
        if not text:
            return EMPTY_MESSAGE

        if self.cache is not None:
            self.cache.set(cache_key, text)
            try:
                self.cache.save()
            except OSError as e:
                logger.warning("Could not persist narrative cache: %s", e)
        return text
