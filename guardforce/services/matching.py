"""
Guard-to-shift match scoring and ranking.

Builds on an eligibility result to produce a GuardMatchResult: five component
scores, a combined match score, a confidence level, a recommended action and
human-readable strengths / concerns / recommendations.

Match score (clamped to [0, 1], 2 dp):
    0.30 * certification + 0.25 * availability + 0.15 * proximity
    + 0.20 * performance + 0.10 * preference

Component notes:
    certification  match share; full coverage earns a bonus of 0.05 per
                   extra certification, capped at 1.2
    availability   coverage share, +0.3 for a preferred window (cap 1.2),
                   x0.7 when emergency-only for a non-emergency shift,
                   0.5 when no availability data exists
    preference     starts at 0.5 and moves with shift type, location,
                   start hour, weekend and duration preferences

Confidence:
    any critical conflict -> low
    score >= 0.8 and no error conflicts -> high
    score >= 0.6 and at most one error conflict -> medium
    otherwise low

Recommended action:
    ineligible -> not_recommended
    high confidence and no conflicts at all -> auto_assign
    otherwise -> manager_review

Dependencies:
    - numpy: weighted component combination
"""

from typing import List, Optional, Sequence, Tuple

import numpy as np

from guardforce.models.enums import (
    ConflictSeverity,
    MatchConfidence,
    RecommendedAction,
)
from guardforce.models.schemas import (
    GuardEligibilityResult,
    GuardMatchResult,
    GuardProfile,
    Shift,
)


# =============================================================================
# Constants
# =============================================================================

# certification, availability, proximity, performance, preference
MATCH_WEIGHTS = np.array([0.30, 0.25, 0.15, 0.20, 0.10])

NO_AVAILABILITY_SCORE: float = 0.5
EMERGENCY_PRIORITY: int = 5


# =============================================================================
# Component Scores
# =============================================================================

def calculate_certification_score(eligibility: GuardEligibilityResult) -> float:
    match = eligibility.certificationMatch
    if match.matchPercentage >= 1.0:
        extra = max(0, len(match.available) - len(match.required))
        return min(1.2, 1.0 + extra * 0.05)
    return match.matchPercentage


def calculate_availability_score(
    eligibility: GuardEligibilityResult,
    shift: Shift,
) -> float:
    match = eligibility.availabilityMatch
    if match is None or not match.availabilityWindows:
        return NO_AVAILABILITY_SCORE

    if match.emergencyOnly:
        score = match.emergencyOverlapPercentage
        if shift.priority < EMERGENCY_PRIORITY:
            score *= 0.7
        return score

    score = match.overlapPercentage
    if match.preferredMatch:
        score = min(1.2, score + 0.3)
    return score


def calculate_preference_score(shift: Shift, guard: GuardProfile) -> float:
    """
    How well a shift lines up with a guard's stated preferences.

    Neutral guards (no preferences) score 0.5.
    """
    preferences = guard.preferences
    if preferences is None:
        return 0.5

    score = 0.5
    window = shift.timeWindow

    if shift.industryType and shift.industryType in preferences.preferredShiftTypes:
        score += 0.2

    if shift.locationId and shift.locationId in preferences.preferredLocations:
        score += 0.3

    if preferences.preferredHours is not None:
        hour = window.start.hour
        if preferences.preferredHours.start <= hour <= preferences.preferredHours.end:
            score += 0.2

    if preferences.weekendAvailability is not None:
        is_weekend = window.start.weekday() >= 5
        if is_weekend == preferences.weekendAvailability:
            score += 0.2
        else:
            score -= 0.1

    if preferences.preferredShiftDuration is not None:
        difference = abs(window.duration_hours - preferences.preferredShiftDuration)
        if difference <= 1:
            score += 0.1
        elif difference <= 2:
            score += 0.05

    return float(np.clip(score, 0.0, 1.0))


# =============================================================================
# Decisions
# =============================================================================

def determine_confidence(
    match_score: float,
    eligibility: GuardEligibilityResult,
) -> MatchConfidence:
    severities = [conflict.severity for conflict in eligibility.conflicts]
    if ConflictSeverity.CRITICAL in severities:
        return MatchConfidence.LOW

    errors = severities.count(ConflictSeverity.ERROR)
    if match_score >= 0.8 and errors == 0:
        return MatchConfidence.HIGH
    if match_score >= 0.6 and errors <= 1:
        return MatchConfidence.MEDIUM
    return MatchConfidence.LOW


def determine_recommended_action(
    confidence: MatchConfidence,
    eligibility: GuardEligibilityResult,
) -> RecommendedAction:
    if not eligibility.eligible:
        return RecommendedAction.NOT_RECOMMENDED
    if confidence == MatchConfidence.HIGH and not eligibility.conflicts:
        return RecommendedAction.AUTO_ASSIGN
    return RecommendedAction.MANAGER_REVIEW


def analyze_match_quality(
    certification: float,
    availability: float,
    proximity: float,
    performance: float,
    preference: float,
    eligibility: GuardEligibilityResult,
) -> Tuple[List[str], List[str], List[str]]:
    """Strengths, concerns and recommendations for a candidate."""
    strengths: List[str] = []
    concerns: List[str] = []
    recommendations: List[str] = []

    if certification >= 1.0:
        strengths.append("Holds all required certifications")
    elif certification < 0.8:
        concerns.append("Missing some required certifications")
        recommendations.append("Verify certification status before assigning")

    if availability >= 0.9:
        strengths.append("Fully available for the shift window")
    elif availability < 0.5:
        concerns.append("Limited availability for the shift window")
        recommendations.append("Confirm availability with the guard")

    if proximity >= 0.8:
        strengths.append("Based close to the site")
    elif proximity < 0.4:
        concerns.append("Long travel distance to the site")
        recommendations.append("Confirm transportation arrangements")

    if performance >= 0.9:
        strengths.append("Excellent performance record")
    elif performance < 0.7:
        concerns.append("Below-average performance metrics")
        recommendations.append("Review recent performance before assigning")

    if preference >= 0.8:
        strengths.append("Shift matches stated preferences")
    elif preference < 0.4:
        concerns.append("Shift does not match stated preferences")

    if eligibility.conflicts:
        concerns.append(f"{len(eligibility.conflicts)} scheduling conflict(s) detected")
        recommendations.append("Review conflicts before confirming")

    return strengths, concerns, recommendations


# =============================================================================
# Match Assembly
# =============================================================================

def calculate_match(
    shift: Shift,
    guard: GuardProfile,
    eligibility: GuardEligibilityResult,
    ranking: int = 1,
) -> GuardMatchResult:
    """Score one eligible (or near-eligible) candidate."""
    certification = calculate_certification_score(eligibility)
    availability = calculate_availability_score(eligibility, shift)
    proximity = eligibility.proximityScore if eligibility.proximityScore is not None else 0.5
    performance = eligibility.performanceScore if eligibility.performanceScore is not None else 0.0
    preference = calculate_preference_score(shift, guard)

    components = np.array([certification, availability, proximity, performance, preference])
    match_score = round(float(np.clip(components @ MATCH_WEIGHTS, 0.0, 1.0)), 2)

    confidence = determine_confidence(match_score, eligibility)
    strengths, concerns, recommendations = analyze_match_quality(
        certification, availability, proximity, performance, preference, eligibility
    )

    return GuardMatchResult(
        guardId=guard.id,
        matchScore=match_score,
        ranking=ranking,
        eligibility=eligibility,
        certificationScore=round(certification, 4),
        availabilityScore=round(availability, 4),
        proximityScore=proximity,
        performanceScore=performance,
        preferenceScore=round(preference, 4),
        strengths=strengths,
        concerns=concerns,
        recommendations=recommendations,
        confidence=confidence,
        recommendedAction=determine_recommended_action(confidence, eligibility),
    )


def rank_matches(
    matches: Sequence[GuardMatchResult],
    limit: Optional[int] = None,
) -> List[GuardMatchResult]:
    """Sort by match score (desc, ties by guard id) and number from 1."""
    ordered = sorted(matches, key=lambda m: (-m.matchScore, m.guardId))
    if limit is not None:
        ordered = ordered[:limit]
    return [
        match.model_copy(update={'ranking': position})
        for position, match in enumerate(ordered, start=1)
    ]
