"""
Narrative generator - Gemini generateContent over REST.

The verdict itself is computed locally; this module only turns it into a patient-facing
summary, a detailed explanation, and exactly three recommendations.

Two response paths:
  1. Structured output (responseMimeType=application/json + responseSchema), validated
     into NarrativeReport.
  2. Sectioned text (SUMMARY: / DETAILED: / RECOMMENDATIONS:) parsed leniently, with
     silent fallbacks for any section that never appears.

Transport and HTTP failures are NOT swallowed: they raise and abort the analysis.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

import requests as _requests
from pydantic import ValidationError

from models.constants import ERROR_PREVIEW_CHARS
from models.schemas import (
    Demographics,
    GeneticProfile,
    InteractionFinding,
    Medication,
    NarrativeReport,
    RiskLevel,
    VitalsSample,
)
from pipeline.errors import InvalidResponseError, TransportFailureError
from pipeline.rules_loader import get_rules
from pipeline.settings import NarrativeSettings, get_settings

logger = logging.getLogger(__name__)
_RULES = get_rules()

_SECTION_SUMMARY = "SUMMARY:"
_SECTION_DETAILED = "DETAILED:"
_SECTION_RECOMMENDATIONS = "RECOMMENDATIONS:"
_BULLETS = ("-", "*", "•")

_RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "summary": {"type": "STRING"},
        "detailed": {"type": "STRING"},
        "recommendations": {"type": "ARRAY", "items": {"type": "STRING"}},
    },
    "required": ["summary", "detailed", "recommendations"],
}


# ---------------------------------------------------------------------------
# HTTP call
# ---------------------------------------------------------------------------

def _error_preview(body: Optional[str]) -> str:
    trimmed = (body or "").strip()
    if not trimmed:
        return "Empty response body"
    return trimmed[:ERROR_PREVIEW_CHARS]


def _extract_text(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    candidates = payload.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return None
    content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        return None
    texts = [p["text"] for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str)]
    if not texts:
        return None
    return "".join(texts)


def request_generation(settings: NarrativeSettings, body: Dict[str, Any]) -> str:
    """POST a generateContent request and return the generated text."""
    headers = {
        "x-goog-api-key": settings.api_key,
        "Content-Type": "application/json",
    }
    try:
        resp = _requests.post(
            settings.generate_url, headers=headers, json=body, timeout=settings.timeout_seconds
        )
    except _requests.RequestException as exc:
        logger.error(f"Text service unreachable (model={settings.model}): {exc}")
        raise TransportFailureError(f"Network connection failed: {exc}") from exc

    if not 200 <= resp.status_code < 300:
        preview = _error_preview(resp.text)
        logger.error(
            "Text service request failed "
            f"(status={resp.status_code}, model={settings.model}). Response body: {preview}"
        )
        raise InvalidResponseError(resp.status_code, preview)

    try:
        payload = resp.json()
    except ValueError as exc:
        logger.error(f"Text service returned malformed JSON (status={resp.status_code})")
        raise InvalidResponseError(resp.status_code, "Malformed JSON in response body") from exc

    text = _extract_text(payload)
    if text is None:
        raise InvalidResponseError(resp.status_code, "Response did not contain generated text")
    return text


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------

def _format_findings(findings: List[InteractionFinding]) -> str:
    if not findings:
        return "None detected"
    return "\n".join(f.description for f in findings)


def _format_vitals(vitals: Optional[VitalsSample]) -> str:
    if vitals is None:
        return "Not recorded"
    return f"Heart rate {vitals.heart_rate} BPM, breathing rate {vitals.breathing_rate} BPM"


def build_prompt(
    profile: GeneticProfile,
    medications: List[Medication],
    demographics: Demographics,
    activity_score: float,
    ddi_findings: List[InteractionFinding],
    gdi_findings: List[InteractionFinding],
    risk_level: RiskLevel,
    baseline_vitals: Optional[VitalsSample] = None,
    structured: bool = False,
) -> str:
    age = str(demographics.age) if demographics.age is not None else "Unknown"
    conditions = ", ".join(demographics.medical_conditions) or "None reported"
    meds = "\n".join(f"- {m.name} ({m.dosage}, {m.frequency})" for m in medications)
    genes = "\n".join(
        f"- {gene}: {profile.genotype(gene) or 'Unknown'}" for gene in _RULES.recognized_genes
    )

    prompt = (
        "You are a clinical pharmacogenomics expert. Analyze this patient's drug interaction profile:\n\n"
        "PATIENT PROFILE:\n"
        f"- Age: {age}\n"
        f"- Sex: {demographics.sex or 'Unknown'}\n"
        f"- Smoking status: {demographics.smoking_status or 'Unknown'}\n"
        f"- Alcohol use: {demographics.alcohol_use or 'Unknown'}\n"
        f"- Medical Conditions: {conditions}\n"
        f"- Baseline vitals: {_format_vitals(baseline_vitals)}\n\n"
        f"MEDICATIONS:\n{meds}\n\n"
        f"GENETIC PROFILE:\n{genes}\n"
        f"- Metabolic Activity Score: {activity_score:.2f}\n\n"
        f"DRUG-DRUG INTERACTIONS:\n{_format_findings(ddi_findings)}\n\n"
        f"GENE-DRUG INTERACTIONS:\n{_format_findings(gdi_findings)}\n\n"
        f"RISK LEVEL: {risk_level.value.upper()} ({risk_level.color})\n\n"
        "Please provide:\n"
        "1. A concise 2-3 sentence summary for the patient\n"
        "2. A detailed clinical explanation (5-7 sentences)\n"
        "3. Exactly 3 specific, actionable recommendations\n\n"
    )
    if structured:
        prompt += (
            'Respond with ONLY a JSON object with exactly these keys: '
            '{"summary": "...", "detailed": "...", "recommendations": ["...", "...", "..."]}'
        )
    else:
        prompt += (
            "Format your response as:\n"
            "SUMMARY: [your summary]\n"
            "DETAILED: [your detailed explanation]\n"
            "RECOMMENDATIONS:\n"
            "- [recommendation 1]\n"
            "- [recommendation 2]\n"
            "- [recommendation 3]"
        )
    return prompt


def build_request_body(prompt: str, settings: NarrativeSettings) -> Dict[str, Any]:
    generation_config: Dict[str, Any] = {
        "temperature": settings.temperature,
        "maxOutputTokens": settings.max_output_tokens,
    }
    if settings.structured_output:
        generation_config["responseMimeType"] = "application/json"
        generation_config["responseSchema"] = _RESPONSE_SCHEMA
    return {
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": generation_config,
    }


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------

def _parse_json(text: str) -> Optional[Dict]:
    text = text.strip()
    if text.startswith("```"):
        parts = text.split("```")
        text = parts[1][4:] if parts[1].startswith("json") else parts[1]
    try:
        s, e = text.find("{"), text.rfind("}") + 1
        if s >= 0 and e > s:
            parsed = json.loads(text[s:e])
            return parsed if isinstance(parsed, dict) else None
    except (json.JSONDecodeError, ValueError):
        pass
    return None


def normalize_recommendations(items: List[Any]) -> List[str]:
    """Trim to three items, padding from the generic fallback list when short."""
    cleaned = [item.strip() for item in items if isinstance(item, str) and item.strip()][:3]
    for fallback in _RULES.fallback_recommendations:
        if len(cleaned) >= 3:
            break
        if fallback not in cleaned:
            cleaned.append(fallback)
    return cleaned


def _fallback_summary(text: str) -> str:
    if "high" in text:
        level = "High"
    elif "moderate" in text:
        level = "Moderate"
    else:
        level = "Low"
    return f"Analysis complete. Risk level: {level}"


def parse_sectioned_response(text: str) -> NarrativeReport:
    """
    Lenient parse of SUMMARY / DETAILED / RECOMMENDATIONS sections.
    Never fails: missing sections are replaced with fallbacks.
    """
    summary = ""
    detailed = ""
    recommendations: List[str] = []
    current_section = ""

    for line in text.splitlines():
        trimmed = line.strip()

        if trimmed.startswith(_SECTION_SUMMARY):
            current_section = "summary"
            summary = trimmed[len(_SECTION_SUMMARY):].strip()
        elif trimmed.startswith(_SECTION_DETAILED):
            current_section = "detailed"
            detailed = trimmed[len(_SECTION_DETAILED):].strip()
        elif trimmed.startswith(_SECTION_RECOMMENDATIONS):
            current_section = "recommendations"
        elif trimmed.startswith(_BULLETS) and current_section == "recommendations":
            item = trimmed[1:].strip()
            if item:
                recommendations.append(item)
        elif trimmed:
            if current_section == "summary":
                summary = f"{summary} {trimmed}".strip()
            elif current_section == "detailed":
                detailed = f"{detailed} {trimmed}".strip()

    if not summary:
        summary = _fallback_summary(text)
    if not detailed:
        detailed = text.strip() or summary

    return NarrativeReport(
        summary=summary,
        detailed=detailed,
        recommendations=normalize_recommendations(recommendations),
    )


def parse_structured_response(text: str) -> Optional[NarrativeReport]:
    """Validate a JSON narrative; returns None if the text does not fit the schema."""
    data = _parse_json(text)
    if data is None:
        return None
    recommendations = data.get("recommendations")
    if not isinstance(recommendations, list):
        return None
    try:
        return NarrativeReport(
            summary=data.get("summary") or "",
            detailed=data.get("detailed") or "",
            recommendations=normalize_recommendations(recommendations),
        )
    except (ValidationError, TypeError) as exc:
        logger.warning(f"Structured narrative failed validation: {exc}")
        return None


def parse_narrative(text: str, structured: bool) -> NarrativeReport:
    if structured:
        report = parse_structured_response(text)
        if report is not None:
            return report
        logger.warning("Structured narrative parse failed; falling back to sectioned parse.")
    return parse_sectioned_response(text)


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------

class NarrativeGenerator:
    def __init__(self, settings: Optional[NarrativeSettings] = None) -> None:
        self.settings = settings or get_settings()

    async def generate_narrative(
        self,
        profile: GeneticProfile,
        medications: List[Medication],
        demographics: Demographics,
        activity_score: float,
        ddi_findings: List[InteractionFinding],
        gdi_findings: List[InteractionFinding],
        risk_level: RiskLevel,
        baseline_vitals: Optional[VitalsSample] = None,
    ) -> NarrativeReport:
        prompt = build_prompt(
            profile, medications, demographics, activity_score,
            ddi_findings, gdi_findings, risk_level,
            baseline_vitals=baseline_vitals,
            structured=self.settings.structured_output,
        )
        body = build_request_body(prompt, self.settings)

        text = await asyncio.to_thread(request_generation, self.settings, body)
        logger.info(f"Narrative response: {len(text)} chars")

        return parse_narrative(text, self.settings.structured_output)

    async def close(self) -> None:
        pass


# ---------------------------------------------------------------------------
# Module-level convenience API
# ---------------------------------------------------------------------------

_generator: Optional[NarrativeGenerator] = None


def get_generator() -> NarrativeGenerator:
    global _generator
    if _generator is None:
        _generator = NarrativeGenerator()
    return _generator


async def generate_narrative(
    profile: GeneticProfile,
    medications: List[Medication],
    demographics: Demographics,
    activity_score: float,
    ddi_findings: List[InteractionFinding],
    gdi_findings: List[InteractionFinding],
    risk_level: RiskLevel,
    baseline_vitals: Optional[VitalsSample] = None,
) -> NarrativeReport:
    return await get_generator().generate_narrative(
        profile, medications, demographics, activity_score,
        ddi_findings, gdi_findings, risk_level,
        baseline_vitals=baseline_vitals,
    )
