"""
Risk Engine
Activity score, drug-drug / gene-drug interaction scans, and traffic-light classification.

All functions are pure lookups against the loaded rule tables and cannot fail for well-typed input.
"""

import logging
from typing import List

from models.schemas import (
    Demographics,
    GeneticProfile,
    InteractionFinding,
    Medication,
    RiskLevel,
)
from pipeline.rules_loader import get_rules

logger = logging.getLogger(__name__)
_RULES = get_rules()


def calculate_activity_score(profile: GeneticProfile, demographics: Demographics) -> float:
    """
    Estimate overall metabolic activity relative to a population baseline of 1.0.

    Args:
        profile: Genotype calls
        demographics: Optional age/sex/lifestyle modifiers

    Returns:
        Strictly positive multiplier
    """
    score = 1.0

    # Genotype multipliers; unrecognized genotypes fall through.
    for gene, multipliers in _RULES.genotype_multipliers:
        genotype = profile.genotype(gene)
        if genotype is not None and genotype in multipliers:
            score *= multipliers[genotype]

    modifiers = _RULES.demographic_modifiers
    if demographics.age is not None:
        if demographics.age > modifiers["age_over"]["threshold"]:
            score *= modifiers["age_over"]["multiplier"]
        elif demographics.age < modifiers["age_under"]["threshold"]:
            score *= modifiers["age_under"]["multiplier"]

    for field in ("sex", "smoking_status", "alcohol_use"):
        value = getattr(demographics, field)
        if value is not None and value in modifiers.get(field, {}):
            score *= float(modifiers[field][value])

    return score


def find_drug_drug_interactions(medications: List[Medication]) -> List[InteractionFinding]:
    """
    Pairwise substring scan against the drug-drug table.

    Each unordered pair is visited once; both directions are checked per rule, so one
    pair can yield several findings. Duplicates are kept.
    """
    findings: List[InteractionFinding] = []
    phrase = _RULES.drug_drug_risk_phrase

    for index, first in enumerate(medications):
        for second in medications[index + 1:]:
            name1 = first.name.lower()
            name2 = second.name.lower()

            for trigger, interacts_with in _RULES.drug_drug_interactions:
                if trigger in name1 and any(d in name2 for d in interacts_with):
                    findings.append(
                        InteractionFinding(
                            description=f"{first.name} + {second.name}: {phrase}",
                            category="drug-drug",
                        )
                    )
                if trigger in name2 and any(d in name1 for d in interacts_with):
                    findings.append(
                        InteractionFinding(
                            description=f"{second.name} + {first.name}: {phrase}",
                            category="drug-drug",
                        )
                    )

    return findings


def find_gene_drug_interactions(
    profile: GeneticProfile,
    medications: List[Medication],
) -> List[InteractionFinding]:
    """
    Check each medication against the genotype-gated gene-drug rules.
    """
    findings: List[InteractionFinding] = []

    for medication in medications:
        med_name = medication.name.lower()
        for rule in _RULES.gene_drug_interactions:
            if not rule.applies_to(profile.genotype(rule.gene)):
                continue
            if any(drug in med_name for drug in rule.drugs):
                findings.append(
                    InteractionFinding(
                        description=f"{medication.name}: {rule.message}",
                        category="gene-drug",
                    )
                )

    return findings


def determine_risk_level(ddi_count: int, gdi_count: int, activity_score: float) -> RiskLevel:
    """
    Ordered threshold ladder. Scores in (0.7, 0.8) or (1.2, 1.3) with no findings
    land in UNKNOWN.
    """
    t = _RULES.risk_thresholds
    total = ddi_count + gdi_count

    if (
        total >= t["danger_min_interactions"]
        or activity_score < t["danger_score_low"]
        or activity_score > t["danger_score_high"]
    ):
        return RiskLevel.DANGER

    if (
        total >= t["caution_min_interactions"]
        or activity_score < t["caution_score_low"]
        or activity_score > t["caution_score_high"]
    ):
        return RiskLevel.CAUTION

    if total == 0 and t["safe_score_low"] <= activity_score <= t["safe_score_high"]:
        return RiskLevel.SAFE

    return RiskLevel.UNKNOWN
