"""
Interaction analysis orchestration.

Gate inputs -> activity score -> DDI scan -> GDI scan -> classify -> narrative -> verdict.
The narrative is the only step that can fail; when it does, no verdict is produced.
"""

import logging
from typing import Awaitable, Callable, List, Optional

from models.schemas import (
    Demographics,
    GeneticProfile,
    Medication,
    NarrativeReport,
    RiskVerdict,
    VitalsSample,
)
from pipeline.errors import InsufficientDataError
from pipeline.llm_explainer import generate_narrative
from pipeline.risk_engine import (
    calculate_activity_score,
    determine_risk_level,
    find_drug_drug_interactions,
    find_gene_drug_interactions,
)
from pipeline.rules_loader import get_rules

logger = logging.getLogger(__name__)
_RULES = get_rules()

Narrator = Callable[..., Awaitable[NarrativeReport]]


def check_inputs(
    profile: Optional[GeneticProfile],
    medications: List[Medication],
    baseline_vitals: Optional[VitalsSample],
) -> None:
    """Raise InsufficientDataError naming every missing step."""
    missing = []
    if profile is None:
        missing.append("DNA profile")
    if not medications:
        missing.append("medication list")
    if baseline_vitals is None or not baseline_vitals.is_valid:
        missing.append("valid baseline vitals")
    if missing:
        raise InsufficientDataError(
            f"Please complete all steps before analysis (missing: {', '.join(missing)})"
        )


async def analyze_interactions(
    profile: Optional[GeneticProfile],
    medications: List[Medication],
    demographics: Optional[Demographics],
    baseline_vitals: Optional[VitalsSample],
    narrator: Optional[Narrator] = None,
) -> RiskVerdict:
    check_inputs(profile, medications, baseline_vitals)
    demographics = demographics or Demographics()
    narrator = narrator or generate_narrative

    activity_score = calculate_activity_score(profile, demographics)
    ddi_findings = find_drug_drug_interactions(medications)
    gdi_findings = find_gene_drug_interactions(profile, medications)
    risk_level = determine_risk_level(len(ddi_findings), len(gdi_findings), activity_score)

    ignored = sorted(set(profile.cytochrome_data) - set(_RULES.recognized_genes))
    logger.info(
        "Local analysis: score=%.3f ddi=%d gdi=%d level=%s meds=%d ignored_genes=%s",
        activity_score,
        len(ddi_findings),
        len(gdi_findings),
        risk_level.value,
        len(medications),
        ",".join(ignored) or "-",
    )

    narrative = await narrator(
        profile=profile,
        medications=medications,
        demographics=demographics,
        activity_score=activity_score,
        ddi_findings=ddi_findings,
        gdi_findings=gdi_findings,
        risk_level=risk_level,
        baseline_vitals=baseline_vitals,
    )

    return RiskVerdict(
        risk_level=risk_level,
        activity_score=activity_score,
        summary=narrative.summary,
        detailed_report=narrative.detailed,
        gene_interactions=gdi_findings,
        drug_interactions=ddi_findings,
        recommendations=narrative.recommendations,
        monitoring_recommendation=risk_level.monitoring_recommendation,
    )
