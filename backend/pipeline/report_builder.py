"""
Plain-text report export for sharing a verdict with a clinician.
"""

from typing import Sequence

from models.schemas import InteractionFinding, RiskVerdict


def _section(findings: Sequence[InteractionFinding]) -> str:
    if not findings:
        return "None detected"
    return "\n".join(f.description for f in findings)


def render_report(verdict: RiskVerdict) -> str:
    recommendations = "\n".join(
        f"{i}. {item}" for i, item in enumerate(verdict.recommendations, start=1)
    )
    generated = verdict.timestamp.strftime("%Y-%m-%d %H:%M %Z").strip()

    lines = [
        "MedGuard Drug Interaction Report",
        f"Generated: {generated}",
        "",
        f"RISK LEVEL: {verdict.risk_level.value.upper()} - {verdict.risk_level.description}",
        f"Metabolic Activity Score: {verdict.activity_score:.2f}",
        "",
        "SUMMARY:",
        verdict.summary,
        "",
        "DETAILED ANALYSIS:",
        verdict.detailed_report,
        "",
        "GENE-DRUG INTERACTIONS:",
        _section(verdict.gene_interactions),
        "",
        "DRUG-DRUG INTERACTIONS:",
        _section(verdict.drug_interactions),
        "",
        "RECOMMENDATIONS:",
        recommendations,
    ]
    if verdict.monitoring_recommendation:
        lines += ["", f"MONITORING: {verdict.monitoring_recommendation}"]
    return "\n".join(lines) + "\n"
