"""
Constants and fixed option lists for MedGuard.
Clinical lookup tables live in data/interaction_rules; this module holds UI-facing choices and limits.
"""

from typing import Dict, List

# Medication frequency options offered by the client
MEDICATION_FREQUENCIES: List[str] = [
    "Once daily",
    "Twice daily",
    "Three times daily",
    "As needed",
    "Every other day",
    "Weekly",
]

DEFAULT_FREQUENCY = "Once daily"

SEX_OPTIONS: List[str] = ["Female", "Male", "Other"]

SMOKING_STATUS_OPTIONS: List[str] = ["Never smoked", "Former smoker", "Current smoker"]

ALCOHOL_USE_OPTIONS: List[str] = ["None", "Light", "Moderate", "Heavy"]

# Raw DNA export limit (23andMe raw files are typically 15-30 MB)
MAX_DNA_UPLOAD_BYTES = 50 * 1024 * 1024

# Text-service error preview cap
ERROR_PREVIEW_CHARS = 300

# Vitals comparison bands (absolute deltas, BPM)
VITALS_STABLE_HR_DELTA = 10
VITALS_STABLE_BR_DELTA = 3
VITALS_MODERATE_HR_DELTA = 20
VITALS_MODERATE_BR_DELTA = 5

# Risk level -> follow-up vitals guidance
MONITORING_RECOMMENDATIONS: Dict[str, str] = {
    "caution": "Monitor vitals in 2-4 hours",
    "danger": "Monitor vitals immediately and every 30 minutes",
}

RISK_LEVEL_COLORS: Dict[str, str] = {
    "safe": "green",
    "caution": "yellow",
    "danger": "red",
    "unknown": "gray",
}

RISK_LEVEL_DESCRIPTIONS: Dict[str, str] = {
    "safe": "No significant interactions detected",
    "caution": "Potential interaction - monitoring recommended",
    "danger": "High risk interaction - consult physician immediately",
    "unknown": "Insufficient data for analysis",
}
