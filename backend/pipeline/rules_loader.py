"""
Interaction rules loader.
Loads versioned, externalized lookup tables (SNPs, multipliers, interaction rules) from JSON.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeneDrugRule:
    gene: str
    genotype: str
    match: str  # "equals" | "not_equals"
    drugs: Tuple[str, ...]
    message: str

    def applies_to(self, genotype: Optional[str]) -> bool:
        # A gene with no call never triggers a rule.
        if genotype is None:
            return False
        if self.match == "not_equals":
            return genotype != self.genotype
        return genotype == self.genotype


@dataclass(frozen=True)
class LoadedRules:
    rules_version: str
    recognized_genes: Tuple[str, ...]
    target_snps: Dict[str, str]
    genotype_multipliers: Tuple[Tuple[str, Dict[str, float]], ...]
    demographic_modifiers: Dict[str, Any]
    drug_drug_risk_phrase: str
    drug_drug_interactions: Tuple[Tuple[str, Tuple[str, ...]], ...]
    gene_drug_interactions: Tuple[GeneDrugRule, ...]
    risk_thresholds: Dict[str, float]
    fallback_recommendations: Tuple[str, ...]


_RULES: Optional[LoadedRules] = None


def _rules_path() -> Path:
    configured = os.getenv("INTERACTION_RULES_PATH", "").strip()
    if configured:
        return Path(configured)
    return Path(__file__).resolve().parent.parent / "data" / "interaction_rules" / "rules.v1.json"


def _normalize_multipliers(raw: List[Dict[str, Any]]) -> Tuple[Tuple[str, Dict[str, float]], ...]:
    out = []
    for row in raw:
        multipliers = {str(k): float(v) for k, v in row["multipliers"].items()}
        for genotype, value in multipliers.items():
            if value <= 0:
                raise ValueError(f"Multiplier for {row['gene']} {genotype} must be positive, got {value}")
        out.append((str(row["gene"]), multipliers))
    return tuple(out)


def _normalize_ddi(raw: List[Dict[str, Any]]) -> Tuple[Tuple[str, Tuple[str, ...]], ...]:
    return tuple(
        (str(row["trigger"]).lower(), tuple(str(d).lower() for d in row["interacts_with"]))
        for row in raw
    )


def _normalize_gdi(raw: List[Dict[str, Any]]) -> Tuple[GeneDrugRule, ...]:
    rules = []
    for row in raw:
        match = row.get("match", "equals")
        if match not in ("equals", "not_equals"):
            raise ValueError(f"Unsupported gene-drug match mode: {match}")
        rules.append(
            GeneDrugRule(
                gene=str(row["gene"]),
                genotype=str(row["genotype"]),
                match=match,
                drugs=tuple(str(d).lower() for d in row["drugs"]),
                message=str(row["message"]),
            )
        )
    return tuple(rules)


def _validate_required(data: Dict[str, Any]) -> None:
    required = [
        "rules_version",
        "recognized_genes",
        "target_snps",
        "genotype_multipliers",
        "demographic_modifiers",
        "drug_drug_risk_phrase",
        "drug_drug_interactions",
        "gene_drug_interactions",
        "risk_thresholds",
        "fallback_recommendations",
    ]
    missing = [k for k in required if k not in data]
    if missing:
        raise ValueError(f"Interaction rules file missing keys: {missing}")
    if len(data["fallback_recommendations"]) != 3:
        raise ValueError("Interaction rules file must define exactly 3 fallback recommendations")


def load_rules(force_reload: bool = False) -> LoadedRules:
    global _RULES
    if _RULES is not None and not force_reload:
        return _RULES

    path = _rules_path()
    if not path.exists():
        raise FileNotFoundError(f"Interaction rules file not found: {path}")

    with open(path, "r", encoding="utf-8") as fh:
        data = json.load(fh)

    _validate_required(data)

    _RULES = LoadedRules(
        rules_version=str(data["rules_version"]),
        recognized_genes=tuple(data["recognized_genes"]),
        target_snps=dict(data["target_snps"]),
        genotype_multipliers=_normalize_multipliers(list(data["genotype_multipliers"])),
        demographic_modifiers=dict(data["demographic_modifiers"]),
        drug_drug_risk_phrase=str(data["drug_drug_risk_phrase"]),
        drug_drug_interactions=_normalize_ddi(list(data["drug_drug_interactions"])),
        gene_drug_interactions=_normalize_gdi(list(data["gene_drug_interactions"])),
        risk_thresholds={k: float(v) for k, v in data["risk_thresholds"].items()},
        fallback_recommendations=tuple(str(r) for r in data["fallback_recommendations"]),
    )
    logger.info(f"Loaded interaction rules version {_RULES.rules_version} from {path}")
    return _RULES


def get_rules() -> LoadedRules:
    return load_rules()
