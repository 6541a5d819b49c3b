from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any

from fpdf import FPDF

from dashverdict.schemas.analysis import Report, SectionStatus


SECTION_LABELS = {"ante": "Before the collision", "event": "Collision", "post": "After the collision"}


def _latin1(text: str) -> str:
    # core PDF fonts only cover latin-1
    return text.encode("latin-1", "replace").decode("latin-1")


def report_payload(report: Report, meta: dict[str, Any] | None = None) -> dict[str, Any]:
    return {
        "generated_at": datetime.utcnow().isoformat(),
        **(meta or {}),
        **report.model_dump(mode="json"),
    }


def write_report_json(report: Report, out_path: Path, meta: dict[str, Any] | None = None) -> Path:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(json.dumps(report_payload(report, meta), indent=2), encoding="utf-8")
    return out_path


def write_report_pdf(report: Report, out_path: Path, title: str = "Collision Report") -> Path:
    aggregated = report.aggregated
    pdf = FPDF()
    pdf.add_page()
    pdf.set_font("Helvetica", "B", 16)
    pdf.cell(0, 10, _latin1(title), new_x="LMARGIN", new_y="NEXT")

    pdf.set_font("Helvetica", size=11)
    pdf.cell(0, 8, f"Verdict (POV vehicle): {aggregated.verdict}", new_x="LMARGIN", new_y="NEXT")
    pdf.cell(0, 8, f"Collision time: {aggregated.robust_time:.1f} s", new_x="LMARGIN", new_y="NEXT")
    start, end = aggregated.robust_window
    pdf.cell(0, 8, f"Contact window: {start:.1f} s - {end:.1f} s", new_x="LMARGIN", new_y="NEXT")
    pdf.cell(0, 8, f"Samples used: {len(aggregated.samples)}", new_x="LMARGIN", new_y="NEXT")

    descriptions = {d.section: d for d in report.descriptions}
    for section in report.sections:
        pdf.ln(4)
        pdf.set_font("Helvetica", "B", 13)
        label = SECTION_LABELS.get(section.name, section.name)
        pdf.cell(
            0, 8, f"{label} ({section.start:.1f} s - {section.end:.1f} s)", new_x="LMARGIN", new_y="NEXT"
        )

        desc = descriptions.get(section.name)
        if desc is None or desc.status is SectionStatus.PENDING:
            pdf.set_font("Helvetica", "I", 10)
            pdf.cell(0, 6, "No description yet.", new_x="LMARGIN", new_y="NEXT")
            continue
        if desc.status is SectionStatus.FAILED:
            pdf.set_font("Helvetica", "I", 10)
            pdf.multi_cell(0, 6, _latin1(f"Description failed: {desc.error_detail or 'unknown error'}"),
                           new_x="LMARGIN", new_y="NEXT")
            continue
        for heading, body in desc.content.items():
            pdf.set_font("Helvetica", "B", 10)
            pdf.cell(0, 6, _latin1(heading)[:110], new_x="LMARGIN", new_y="NEXT")
            pdf.set_font("Helvetica", size=10)
            pdf.multi_cell(0, 6, _latin1(body) or "-", new_x="LMARGIN", new_y="NEXT")

    out_path.parent.mkdir(parents=True, exist_ok=True)
    pdf.output(str(out_path))
    return out_path
