"""
Vitals collaborator boundary and baseline/follow-up comparison.

Camera-based acquisition lives in the client SDK. The backend only sees immutable
VitalsSample values, either posted directly or pulled from an injected VitalsProvider.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Optional, Protocol

from models.constants import (
    VITALS_MODERATE_BR_DELTA,
    VITALS_MODERATE_HR_DELTA,
    VITALS_STABLE_BR_DELTA,
    VITALS_STABLE_HR_DELTA,
)
from models.schemas import VitalsComparison, VitalsSample
from pipeline.errors import InsufficientDataError

logger = logging.getLogger(__name__)


class VitalsProvider(Protocol):
    """Source of vitals samples as a measurement progresses."""

    def samples(self) -> AsyncIterator[VitalsSample]:
        ...


async def _first_valid(provider: VitalsProvider) -> VitalsSample:
    async for sample in provider.samples():
        if sample.is_valid:
            return sample
    raise InsufficientDataError("Vitals measurement ended without a valid reading")


async def wait_for_valid_sample(
    provider: VitalsProvider,
    timeout: Optional[float] = None,
) -> VitalsSample:
    """
    Consume samples until one has both pulse and breathing flagged valid.

    Raises:
        InsufficientDataError: the stream ended first
        asyncio.TimeoutError: no valid sample within `timeout` seconds
    """
    if timeout is None:
        return await _first_valid(provider)
    return await asyncio.wait_for(_first_valid(provider), timeout=timeout)


def is_significant_change(baseline: VitalsSample, latest: VitalsSample) -> bool:
    hr_change = abs(latest.heart_rate - baseline.heart_rate)
    br_change = abs(latest.breathing_rate - baseline.breathing_rate)
    return hr_change > VITALS_MODERATE_HR_DELTA or br_change > VITALS_MODERATE_BR_DELTA


def _signed(value: int) -> str:
    return f"+{value}" if value > 0 else str(value)


def compare_vitals(baseline: VitalsSample, latest: VitalsSample) -> VitalsComparison:
    if not baseline.is_valid or not latest.is_valid:
        raise InsufficientDataError("Both vitals readings must be valid to compare")

    hr_change = latest.heart_rate - baseline.heart_rate
    br_change = latest.breathing_rate - baseline.breathing_rate

    if abs(hr_change) < VITALS_STABLE_HR_DELTA and abs(br_change) < VITALS_STABLE_BR_DELTA:
        status = "stable"
        verdict = "Vitals remain stable"
    elif abs(hr_change) < VITALS_MODERATE_HR_DELTA and abs(br_change) < VITALS_MODERATE_BR_DELTA:
        status = "moderate"
        verdict = "Moderate changes detected - continue monitoring"
    else:
        status = "significant"
        verdict = "Significant changes - seek medical attention"

    report = (
        "Vitals Comparison:\n\n"
        f"Heart Rate: {baseline.heart_rate} -> {latest.heart_rate} BPM ({_signed(hr_change)})\n"
        f"Breathing Rate: {baseline.breathing_rate} -> {latest.breathing_rate} BPM ({_signed(br_change)})\n\n"
        f"{verdict}"
    )

    significant = is_significant_change(baseline, latest)
    if significant:
        logger.warning(
            f"Significant vitals change detected (HR {_signed(hr_change)}, BR {_signed(br_change)})"
        )

    return VitalsComparison(
        baseline=baseline,
        latest=latest,
        heart_rate_change=hr_change,
        breathing_rate_change=br_change,
        status=status,
        significant_change=significant,
        report=report,
    )
