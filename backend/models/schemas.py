"""
Pydantic models for MedGuard interaction analysis.
These schemas define the engine inputs, the risk verdict, and the API request/response shapes.
"""

from pydantic import BaseModel, Field, field_validator, ConfigDict
from typing import Literal, List, Optional, Dict, Tuple
from datetime import datetime, UTC
from enum import Enum
from uuid import UUID, uuid4

from models.constants import (
    DEFAULT_FREQUENCY,
    MONITORING_RECOMMENDATIONS,
    RISK_LEVEL_COLORS,
    RISK_LEVEL_DESCRIPTIONS,
)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class RiskLevel(str, Enum):
    """Traffic-light risk classification."""
    SAFE = "safe"
    CAUTION = "caution"
    DANGER = "danger"
    UNKNOWN = "unknown"

    @property
    def color(self) -> str:
        return RISK_LEVEL_COLORS[self.value]

    @property
    def description(self) -> str:
        return RISK_LEVEL_DESCRIPTIONS[self.value]

    @property
    def needs_monitoring(self) -> bool:
        return self in (RiskLevel.CAUTION, RiskLevel.DANGER)

    @property
    def monitoring_recommendation(self) -> Optional[str]:
        return MONITORING_RECOMMENDATIONS.get(self.value)


class StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


# =============================================================================
# Engine Inputs
# =============================================================================

class GeneticProfile(StrictModel):
    """Genotype calls for the metabolism genes, keyed by gene symbol."""
    cytochrome_data: Dict[str, str] = Field(default_factory=dict, description="Gene -> genotype")
    upload_date: datetime = Field(default_factory=_utcnow)

    @property
    def cyp2d6(self) -> Optional[str]:
        return self.cytochrome_data.get("CYP2D6")

    @property
    def cyp2c19(self) -> Optional[str]:
        return self.cytochrome_data.get("CYP2C19")

    @property
    def cyp2c9(self) -> Optional[str]:
        return self.cytochrome_data.get("CYP2C9")

    @property
    def cyp3a4(self) -> Optional[str]:
        return self.cytochrome_data.get("CYP3A4")

    @property
    def cyp3a5(self) -> Optional[str]:
        return self.cytochrome_data.get("CYP3A5")

    @property
    def cyp1a2(self) -> Optional[str]:
        return self.cytochrome_data.get("CYP1A2")

    def genotype(self, gene: str) -> Optional[str]:
        return self.cytochrome_data.get(gene)


class Medication(StrictModel):
    """A drug entry supplied by the user."""
    id: UUID = Field(default_factory=uuid4)
    name: str
    dosage: str
    frequency: str = DEFAULT_FREQUENCY

    @field_validator("name", "dosage")
    @classmethod
    def require_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must be a non-empty string")
        return v


class Demographics(StrictModel):
    """Non-genetic risk modifiers. Every field is optional; absence is neutral."""
    age: Optional[int] = Field(default=None, ge=0, le=130)
    sex: Optional[str] = None
    weight: Optional[float] = Field(default=None, gt=0, description="kg")
    height: Optional[float] = Field(default=None, gt=0, description="cm")
    smoking_status: Optional[str] = None
    alcohol_use: Optional[str] = None
    medical_conditions: List[str] = Field(default_factory=list)
    allergies: List[str] = Field(default_factory=list)
    surgery_history: List[str] = Field(default_factory=list)


class VitalsSample(StrictModel):
    """One heart-rate / breathing-rate reading."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    heart_rate: int = Field(..., ge=0, description="BPM")
    breathing_rate: int = Field(..., ge=0, description="Breaths per minute")
    timestamp: datetime = Field(default_factory=_utcnow)
    is_pulse_valid: bool
    is_breathing_valid: bool

    @property
    def is_valid(self) -> bool:
        return self.is_pulse_valid and self.is_breathing_valid


# =============================================================================
# Engine Outputs
# =============================================================================

class InteractionFinding(StrictModel):
    """One detected drug-drug or gene-drug conflict."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    description: str
    category: Literal["drug-drug", "gene-drug"]


class NarrativeReport(StrictModel):
    """Narrative portion of a verdict, produced by the text service."""
    summary: str = Field(..., min_length=1)
    detailed: str = Field(..., min_length=1)
    recommendations: List[str] = Field(..., min_length=3, max_length=3)

    @field_validator("summary", "detailed")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("recommendations")
    @classmethod
    def strip_items(cls, v: List[str]) -> List[str]:
        items = [item.strip() for item in v]
        if any(not item for item in items):
            raise ValueError("recommendations must not be blank")
        return items


class RiskVerdict(StrictModel):
    """Final, immutable analysis result."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    id: UUID = Field(default_factory=uuid4)
    risk_level: RiskLevel
    activity_score: float = Field(..., gt=0)
    summary: str
    detailed_report: str
    gene_interactions: Tuple[InteractionFinding, ...] = ()
    drug_interactions: Tuple[InteractionFinding, ...] = ()
    recommendations: Tuple[str, ...]
    monitoring_recommendation: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)

    @field_validator("activity_score")
    @classmethod
    def round_score(cls, v):
        return round(v, 4)


class VitalsComparison(StrictModel):
    """Baseline vs. follow-up vitals comparison."""
    baseline: VitalsSample
    latest: VitalsSample
    heart_rate_change: int
    breathing_rate_change: int
    status: Literal["stable", "moderate", "significant"]
    significant_change: bool
    report: str


# =============================================================================
# API Request/Response Models
# =============================================================================

class AnalyzeRequest(StrictModel):
    """Request body for /analyze."""
    genetic_profile: Optional[GeneticProfile] = None
    medications: List[Medication] = Field(default_factory=list)
    demographics: Demographics = Field(default_factory=Demographics)
    baseline_vitals: Optional[VitalsSample] = None


class VitalsCompareRequest(StrictModel):
    baseline: VitalsSample
    latest: VitalsSample


class HealthResponse(StrictModel):
    """Health check response."""
    status: Literal["healthy", "degraded", "unhealthy"]
    version: str
    rules_version: str
    timestamp: str


class ReferenceOptionsResponse(StrictModel):
    frequencies: List[str]
    sex_options: List[str]
    smoking_status_options: List[str]
    alcohol_use_options: List[str]
    recognized_genes: List[str]
