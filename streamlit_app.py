from __future__ import annotations

import time
from pathlib import Path
from typing import Optional

import pandas as pd
import streamlit as st
import yaml

from packintel.aggregation import ranked
from packintel.explorer import (
    companies_to_frame, filter_companies, filter_options, format_millions, sort_companies,
)
from packintel.models import COL_COUNTRY, COL_EMAIL, COL_MUNICIPALITY, COL_WEB, ProcessedCompany
from packintel.narrative import NarrativeClient
from packintel.pipeline import PipelineConfig, process_dataset
from packintel.preprocess import load_workbook
from packintel.utils import SimpleJsonCache, safe_str


APP_DIR = Path(__file__).resolve().parent
CONFIG_PATH = APP_DIR / "config.yaml"
DEFAULT_CACHE_PATH = str(APP_DIR / ".cache_narrative.json")

SORT_KEYS = {
    "Score": "score.total",
    "Nombre": "normalized_name",
    "Ventas": "sales",
    "Impacto PPWR": "ppwr.impact_ratio",
    "Provincia": "segmentation.province",
}

TABLE_COLUMNS = [
    "normalized_name",
    "primary_sector",
    "province",
    "size_label",
    "material",
    "packaging_type",
    "score_total",
    "ppwr_impact_ratio",
    "ppwr_impact_label",
    "sales_eur",
    "website",
]


def _load_config() -> dict:
    if not CONFIG_PATH.exists():
        return {}
    with open(CONFIG_PATH, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _chart(counts: dict, top_n: int = 8) -> pd.DataFrame:
    items = ranked(counts, top_n)
    return pd.DataFrame(items, columns=["label", "count"]).set_index("label")


def _download_bytes(df: pd.DataFrame) -> bytes:
    return df.to_csv(index=False).encode("utf-8")


def _render_detail(c: ProcessedCompany) -> None:
    seg = c.segmentation
    st.markdown(f"### {c.normalized_name} — Score {c.score.total}/100")
    st.caption(f"{seg.primary_sector} • {seg.province}")

    c1, c2, c3 = st.columns(3)
    with c1:
        st.markdown("**Segmentación**")
        st.write(f"Material: {seg.material.value}")
        st.write(f"Tipo envase: {seg.packaging_type.value}")
        st.write(f"Tamaño: {seg.size_label.value}")
        st.write(f"Actividad: {seg.activity}")
    with c2:
        st.markdown("**Análisis PPWR**")
        if c.ppwr.is_relevant:
            st.metric("Impacto", f"{c.ppwr.impact_ratio:+d}", help=c.ppwr.impact_label)
            st.progress((c.ppwr.impact_ratio + 10) / 20)
            st.write(c.ppwr.impact_label)
            for driver in c.ppwr.key_drivers:
                icon = "⚠️" if driver.startswith(("Negativo", "Riesgo")) else "✅"
                st.write(f"{icon} {driver}")
        else:
            st.info("Esta empresa no pertenece al sector del envase.")
    with c3:
        st.markdown("**Datos corporativos**")
        web = safe_str(c.get(COL_WEB))
        st.write(web or "Web no disponible")
        st.write(safe_str(c.get(COL_EMAIL)) or "Email no disponible")
        st.write(", ".join(x for x in [safe_str(c.get(COL_MUNICIPALITY)), safe_str(c.get(COL_COUNTRY))] if x) or "-")
        st.write(f"Ventas: {format_millions(c.sales)}")

    st.markdown("**Score**")
    st.bar_chart(pd.DataFrame(
        {"points": [c.score.volume, c.score.human_capital, c.score.growth, c.score.digital, c.score.geo]},
        index=["volume", "human_capital", "growth", "digital", "geo"],
    ))

    if c.professionals:
        st.markdown(f"**Profesionales ({len(c.professionals)})**")
        st.dataframe(pd.DataFrame(list(c.professionals)), use_container_width=True)
    if c.economic_history:
        st.markdown("**Histórico económico**")
        st.dataframe(pd.DataFrame(list(c.economic_history)), use_container_width=True)


def main() -> None:
    st.set_page_config(page_title="Packaging Market Intelligence", layout="wide")
    st.title("Packaging Market Intelligence")
    st.caption("Upload the three-sheet company export (Empresas, Profesionales, Datos Económicos).")

    st.session_state.setdefault("pmi_result", None)
    cfg = _load_config()
    n_cfg = cfg.get("narrative") or {}

    with st.sidebar:
        st.header("Input")
        up = st.file_uploader("Excel workbook", type=["xlsx", "xls"])

        st.divider()
        st.header("Narrative")
        top_n = st.slider("Companies sent to the narrative service", 1, 20, int(n_cfg.get("top_n", 5)), 1)
        cache_enabled = st.checkbox("Cache narrative answers", value=True)

        st.divider()
        if st.button("Clear last result"):
            st.session_state.pmi_result = None
            st.rerun()

    if up is not None and st.button("▶ Process workbook", type="primary"):
        t0 = time.time()
        try:
            wb = load_workbook(up)
            pipeline_cfg = PipelineConfig.from_dict(cfg)
        except ValueError as e:
            st.error(str(e))
            st.stop()

        with st.spinner("Processing..."):
            result = process_dataset(wb.companies, wb.professionals, wb.economics, config=pipeline_cfg)
        st.session_state.pmi_result = {"result": result, "elapsed": time.time() - t0, "narrative": None}

    state = st.session_state.pmi_result
    if state is None:
        st.info("No data processed yet.")
        return

    result = state["result"]
    stats = result.stats
    companies = result.companies

    tab_overview, tab_explorer, tab_top = st.tabs(["Panorama", "Explorador", "Top Leaders"])

    with tab_overview:
        cols = st.columns(5)
        cols[0].metric("Empresas", stats.total_companies)
        cols[1].metric("Profesionales", stats.total_professionals)
        cols[2].metric("Duplicados", stats.duplicates_removed)
        cols[3].metric("Sin web", stats.missing_websites)
        cols[4].metric("Sin email", stats.missing_emails)

        ppwr = stats.ppwr_stats
        p1, p2, p3 = st.columns(3)
        p1.metric("PPWR alto impacto", ppwr.high_impact)
        p2.metric("PPWR neutral", ppwr.neutral)
        p3.metric("PPWR oportunidad", ppwr.opportunity)
        st.caption(f"Processed in {state['elapsed']:.1f}s")

        g1, g2 = st.columns(2)
        with g1:
            st.markdown("**Material**")
            st.bar_chart(_chart(stats.material_distribution))
            st.markdown("**Tamaño**")
            st.bar_chart(_chart(stats.size_distribution))
        with g2:
            st.markdown("**Tipo de envase**")
            st.bar_chart(_chart(stats.type_distribution))
            st.markdown("**Provincias**")
            st.bar_chart(_chart(stats.top_provinces, 10))

        st.subheader("Análisis IA")
        if st.button("Generar análisis"):
            cache: Optional[SimpleJsonCache] = SimpleJsonCache(
                path=str(n_cfg.get("cache_path", DEFAULT_CACHE_PATH)), enabled=bool(cache_enabled)
            )
            client = NarrativeClient(
                model=str(n_cfg.get("model", "gemini-2.5-flash")),
                throttle_seconds=float(n_cfg.get("throttle_seconds", 0)),
                cache=cache,
            )
            with st.spinner("Consultando servicio de IA..."):
                state["narrative"] = client.generate(stats, companies[:top_n], top_n=top_n)
        if state.get("narrative"):
            st.markdown(state["narrative"])

    with tab_explorer:
        f1, f2, f3, f4 = st.columns([2, 1, 1, 1])
        with f1:
            search = st.text_input("Buscar por nombre o sector")
            fuzzy = st.checkbox("Búsqueda aproximada", value=False)
        with f2:
            material = st.selectbox("Material", filter_options(stats.material_distribution))
        with f3:
            ptype = st.selectbox("Tipo", filter_options(stats.type_distribution))
        with f4:
            province = st.selectbox("Provincia", filter_options(stats.top_provinces))

        s1, s2 = st.columns([1, 1])
        with s1:
            sort_label = st.selectbox("Ordenar por", list(SORT_KEYS))
        with s2:
            descending = st.radio("Orden", ["desc", "asc"], horizontal=True) == "desc"

        view = filter_companies(companies, search, material, ptype, province, fuzzy=fuzzy)
        view = sort_companies(view, SORT_KEYS[sort_label], descending=descending)
        df_view = companies_to_frame(view)

        st.caption(f"{len(view)} of {len(companies)} companies")
        st.dataframe(df_view[TABLE_COLUMNS], use_container_width=True, height=480)
        st.download_button(
            "⬇ Download filtered CSV",
            data=_download_bytes(df_view),
            file_name="packaging_companies.csv",
            mime="text/csv",
        )

        if view:
            names = {f"{c.normalized_name} ({c.company_id})": c for c in view}
            pick = st.selectbox("Detalle de empresa", list(names))
            _render_detail(names[pick])

    with tab_top:
        top = companies[:top_n]
        st.dataframe(companies_to_frame(top)[TABLE_COLUMNS], use_container_width=True)


if __name__ == "__main__":
    main()
