"""
Cohort-based application and hire probability estimation.

Given a lead's normalized score, look up historical leads that scored within
``cohort_score_window`` points and have moved past initial capture, and
report what share of them started an application and what share were
hired. Small or unavailable cohorts fall back to a static score-banded table.

Default bands (score floor -> application, hire):
    >= 80 -> 0.85, 0.65
    >= 70 -> 0.70, 0.45
    >= 60 -> 0.55, 0.30
    >= 50 -> 0.40, 0.20
    >= 40 -> 0.25, 0.10
    else  -> 0.15, 0.05

Failure policy:
    Any error while reading history is logged and the default bands are
    returned. Estimation never fails a score calculation.

Dependencies:
    - numpy: vectorized share computation over cohort outcomes
"""

import logging
import math
from typing import List, Sequence, Tuple

import numpy as np

from guardforce.models.enums import ApplicationStatus
from guardforce.models.schemas import OutcomeRecord, ProbabilityEstimate


logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

DEFAULT_PROBABILITY_BANDS: List[Tuple[float, float, float]] = [
    (80, 0.85, 0.65),
    (70, 0.70, 0.45),
    (60, 0.55, 0.30),
    (50, 0.40, 0.20),
    (40, 0.25, 0.10),
]
FLOOR_PROBABILITIES: Tuple[float, float] = (0.15, 0.05)

# Statuses counted as "started an application"
APPLICATION_STATUSES = frozenset({
    ApplicationStatus.APPLICATION_STARTED,
    ApplicationStatus.APPLICATION_SUBMITTED,
    ApplicationStatus.UNDER_REVIEW,
    ApplicationStatus.BACKGROUND_CHECK,
    ApplicationStatus.INTERVIEW_SCHEDULED,
    ApplicationStatus.INTERVIEW_COMPLETED,
    ApplicationStatus.REFERENCE_CHECK,
    ApplicationStatus.OFFER_EXTENDED,
    ApplicationStatus.OFFER_ACCEPTED,
    ApplicationStatus.HIRE_COMPLETED,
})


# =============================================================================
# Estimation
# =============================================================================

def default_probabilities(normalized_score: float) -> ProbabilityEstimate:
    """Static banded estimate for a score."""
    for floor, application, hire in DEFAULT_PROBABILITY_BANDS:
        if normalized_score >= floor:
            return ProbabilityEstimate(
                applicationProbability=application,
                hireProbability=hire,
                method="default",
            )
    application, hire = FLOOR_PROBABILITIES
    return ProbabilityEstimate(
        applicationProbability=application,
        hireProbability=hire,
        method="default",
    )


def round_half_up(value: float, places: int = 2) -> float:
    """Round with halves going up (0.125 -> 0.13), unlike built-in round()."""
    factor = 10 ** places
    return math.floor(value * factor + 0.5) / factor


def estimate_from_cohort(cohort: Sequence[OutcomeRecord]) -> ProbabilityEstimate:
    """
    Compute application and hire shares for a non-empty cohort.

    Both values are rounded half-up to 2 decimals.
    """
    applied = np.array(
        [record.applicationStatus in APPLICATION_STATUSES for record in cohort],
        dtype=float,
    )
    hired = np.array([record.convertedToHire for record in cohort], dtype=float)

    return ProbabilityEstimate(
        applicationProbability=round_half_up(float(np.clip(applied.mean(), 0, 1))),
        hireProbability=round_half_up(float(np.clip(hired.mean(), 0, 1))),
        cohortSize=len(cohort),
        method="cohort",
    )


async def estimate_probabilities(
    store,
    normalized_score: float,
    cohort_window: float = 10.0,
    min_cohort_size: int = 10,
) -> ProbabilityEstimate:
    """
    Estimate application / hire probability for a normalized score.

    Args:
        store: Persistence adapter exposing get_historical_outcomes().
        normalized_score: Lead score on the 0-100 scale.
        cohort_window: Half-width of the score band defining the cohort.
        min_cohort_size: Smallest cohort trusted over the default bands.

    Returns:
        ProbabilityEstimate: Cohort-derived estimate, or the default band.
    """
    try:
        history = await store.get_historical_outcomes(
            normalized_score - cohort_window,
            normalized_score + cohort_window,
        )
    except Exception as e:
        logger.error(f"Error loading historical outcomes for score {normalized_score}: {e}")
        return default_probabilities(normalized_score)

    cohort = [
        record for record in history
        if record.applicationStatus != ApplicationStatus.LEAD_CAPTURED
    ]

    if len(cohort) < min_cohort_size:
        logger.debug(
            f"Cohort of {len(cohort)} leads around score {normalized_score} "
            f"is below {min_cohort_size}; using default bands"
        )
        return default_probabilities(normalized_score)

    return estimate_from_cohort(cohort)
