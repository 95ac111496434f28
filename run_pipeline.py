from __future__ import annotations

import json
import logging
import os
import time
from typing import Any, Dict, List

import yaml

from packintel.aggregation import ranked
from packintel.explorer import DATA_DICTIONARY, companies_to_frame
from packintel.models import DatasetStats, ProcessedCompany
from packintel.narrative import NarrativeClient
from packintel.pipeline import PipelineConfig, process_dataset
from packintel.rules import RULES_VERSION
from packintel.preprocess import load_workbook
from packintel.utils import SimpleJsonCache, now_iso


def write_data_dictionary(path: str) -> None:
    lines = []
    lines.append("# Output Data Dictionary (enriched.csv)\n\n")
    lines.append("| Column | Type | Description |\n")
    lines.append("|---|---|---|\n")
    for col, desc, typ in DATA_DICTIONARY:
        lines.append(f"| {col} | {typ} | {desc} |\n")

    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.writelines(lines)


def audit_record(c: ProcessedCompany) -> Dict[str, Any]:
    rec = c.to_dict()
    rec["rules_version"] = RULES_VERSION
    rec["generated_at"] = now_iso()
    return rec


def _distribution_lines(title: str, counts: Dict[str, int], top_n: int = 0) -> List[str]:
    out = [f"\n## {title}\n"]
    items = ranked(counts, top_n)
    if not items:
        out.append("- (none)\n")
    for label, n in items:
        out.append(f"- {label}: {n}\n")
    return out


def summary_markdown(stats: DatasetStats, outputs: Dict[str, str]) -> List[str]:
    ppwr = stats.ppwr_stats
    md = []
    md.append("# Packaging Market Intelligence Run Summary\n\n")
    md.append(f"- Companies: {stats.total_companies}\n")
    md.append(f"- Professionals: {stats.total_professionals}\n")
    md.append(f"- Duplicates removed: {stats.duplicates_removed}\n")
    md.append(f"- Missing website: {stats.missing_websites} | Missing email: {stats.missing_emails}\n")
    md.append(
        f"- PPWR high impact: {ppwr.high_impact} | neutral: {ppwr.neutral} | opportunity: {ppwr.opportunity}\n"
    )
    md.extend(_distribution_lines("Top sectors", stats.top_sectors, 10))
    md.extend(_distribution_lines("Top provinces", stats.top_provinces, 10))
    md.extend(_distribution_lines("Size", stats.size_distribution))
    md.extend(_distribution_lines("Material", stats.material_distribution))
    md.extend(_distribution_lines("Packaging type", stats.type_distribution))
    md.append("\n## Outputs\n")
    for label, path in outputs.items():
        md.append(f"- {label}: `{path}`\n")
    return md


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    with open("config.yaml", "r", encoding="utf-8") as f:
        cfg = yaml.safe_load(f) or {}

    io_cfg = cfg["io"]
    input_xlsx = io_cfg["input_xlsx"]
    out_csv = io_cfg["enriched_csv"]
    out_audit = io_cfg["audit_jsonl"]
    out_summary = io_cfg["summary_md"]
    out_dict = io_cfg.get("data_dictionary_md", "outputs/data_dictionary.md")

    for p in (out_csv, out_audit, out_summary):
        os.makedirs(os.path.dirname(p) or ".", exist_ok=True)

    pipeline_cfg = PipelineConfig.from_dict(cfg)

    t0 = time.time()
    print("Starting pipeline...", flush=True)

    wb = load_workbook(input_xlsx)
    print(
        f"Loaded {len(wb.companies)} company rows, {len(wb.professionals)} professionals, "
        f"{len(wb.economics)} economic rows from {len(wb.sheet_names)} sheet(s)",
        flush=True,
    )
    if wb.n_missing_name:
        print(f"Warning: {wb.n_missing_name} company row(s) without a legal name", flush=True)

    result = process_dataset(wb.companies, wb.professionals, wb.economics, config=pipeline_cfg)
    stats = result.stats
    print(f"Processed {stats.total_companies} companies in {time.time() - t0:.1f}s", flush=True)

    companies_to_frame(result.companies).to_csv(out_csv, index=False)

    with open(out_audit, "w", encoding="utf-8") as audit_f:
        for c in result.companies:
            audit_f.write(json.dumps(audit_record(c), ensure_ascii=False) + "\n")

    md = summary_markdown(stats, {
        "Enriched CSV": out_csv,
        "Audit trail (JSONL)": out_audit,
        "Data dictionary": out_dict,
    })

    n_cfg = cfg.get("narrative") or {}
    if n_cfg.get("enabled"):
        client = NarrativeClient(
            model=str(n_cfg.get("model", "gemini-2.5-flash")),
            read_timeout_s=float(n_cfg.get("timeout_seconds", 60)),
            throttle_seconds=float(n_cfg.get("throttle_seconds", 0)),
            cache=SimpleJsonCache(path=str(n_cfg.get("cache_path", ".cache_narrative.json"))),
        )
        md.append("\n## Narrative analysis\n\n")
        top_n = int(n_cfg.get("top_n", 5))
        md.append(client.generate(stats, result.companies[:top_n], top_n=top_n) + "\n")

    with open(out_summary, "w", encoding="utf-8") as f:
        f.writelines(md)

    write_data_dictionary(out_dict)

    print("✅ Done")
    print(f"Saved: {out_csv}")
    print(f"Saved: {out_audit}")
    print(f"Saved: {out_summary}")
    print(f"Saved: {out_dict}")


if __name__ == "__main__":
    main()
