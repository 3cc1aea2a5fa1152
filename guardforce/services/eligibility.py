"""
Guard eligibility for a shift.

Pure functions that compare a guard to a shift: certification coverage,
availability coverage, proximity to the site and historical performance,
combined with the detected conflicts into a GuardEligibilityResult.
Data loading lives in guardforce.services.assignments.

Eligibility gate:
    eligible = guard approved and schedulable
               AND no conflict requires an override
               AND no critical certification is missing

Eligibility score (0-1, 2 dp):
    status approved and schedulable          +0.25
    certifications: all matched              +0.35
                    partial                  +0.35 * match share
                    critical missing         +0
    conflicts: none                          +0.25
               none critical                 +0.10
    availability coverage >= 0.8 / >= 0.5    +0.15 / +0.10
                  emergency-only             +0.05
    proximity > 0.8 / > 0.5                  +0.10 / +0.05
    performance > 0.8                        +0.05
    capped at 1.0

Dependencies:
    - numpy: distance computation for proximity
"""

from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

from guardforce.models.enums import AvailabilityType, ConflictSeverity
from guardforce.models.schemas import (
    AssignmentConflict,
    AvailabilityMatch,
    CertificationMatch,
    GeoPoint,
    GuardAvailability,
    GuardEligibilityResult,
    GuardProfile,
    PerformanceMetrics,
    Shift,
    TimeWindow,
)


# =============================================================================
# Constants
# =============================================================================

APPROVED_PROFILE_STATUS = 'approved'
ACTIVE_CERTIFICATION_STATUS = 'active'

# Distance (degrees) upper bound -> proximity score
PROXIMITY_BANDS: List[Tuple[float, float]] = [
    (0.1, 1.0),
    (0.3, 0.8),
    (0.5, 0.6),
    (1.0, 0.4),
]
FAR_PROXIMITY_SCORE: float = 0.2
UNKNOWN_PROXIMITY_SCORE: float = 0.5

PERFORMANCE_WEIGHTS = {
    'onTime': 0.30,
    'completion': 0.25,
    'rating': 0.25,
    'incidents': 0.20,
}

STATUS_POINTS = 0.25
CERTIFICATION_POINTS = 0.35
NO_CONFLICT_POINTS = 0.25
MINOR_CONFLICT_POINTS = 0.10


# =============================================================================
# Certifications
# =============================================================================

def available_certifications(guard: GuardProfile, as_of: datetime) -> List[str]:
    """Certifications that are active and unexpired at ``as_of``."""
    return [
        name
        for name, certification in guard.certifications.items()
        if certification.status == ACTIVE_CERTIFICATION_STATUS
        and (certification.expiryDate is None or certification.expiryDate > as_of)
    ]


def match_certifications(
    shift: Shift,
    guard: GuardProfile,
    as_of: datetime,
    critical_certifications: Iterable[str] = (),
) -> CertificationMatch:
    """
    Compare a shift's required certifications to a guard's valid ones.

    Args:
        shift: Shift whose requirements are checked.
        guard: Guard being considered.
        as_of: Instant at which certifications must be valid.
        critical_certifications: Names whose absence blocks assignment, in
            addition to the shift's own critical list.
    """
    required = list(shift.requiredCertifications)
    available = available_certifications(guard, as_of)
    available_set = set(available)

    matched = [name for name in required if name in available_set]
    missing = [name for name in required if name not in available_set]

    critical = set(critical_certifications) | set(shift.criticalCertifications)
    critical_missing = [name for name in missing if name in critical]

    match_percentage = len(matched) / len(required) if required else 1.0

    return CertificationMatch(
        required=required,
        available=available,
        matched=matched,
        missing=missing,
        matchPercentage=match_percentage,
        criticalMissing=critical_missing,
    )


# =============================================================================
# Availability
# =============================================================================

def _covered_hours(window: TimeWindow, windows: Sequence[TimeWindow]) -> float:
    """Hours of ``window`` covered by the union of ``windows``."""
    clipped = sorted(
        (max(w.start, window.start), min(w.end, window.end))
        for w in windows
        if w.start < window.end and w.end > window.start
    )

    total = 0.0
    current_start = current_end = None
    for start, end in clipped:
        if current_end is None or start > current_end:
            if current_end is not None:
                total += (current_end - current_start).total_seconds()
            current_start, current_end = start, end
        else:
            current_end = max(current_end, end)
    if current_end is not None:
        total += (current_end - current_start).total_seconds()

    return total / 3600


def match_availability(
    window: TimeWindow,
    availability: Sequence[GuardAvailability],
) -> AvailabilityMatch:
    """
    Share of the shift covered by the guard's declared windows.

    Only available and preferred windows count toward ``overlapPercentage``.
    Emergency-only coverage is reported separately, and ``emergencyOnly`` is
    set when it is the only coverage the guard offers.
    """
    relevant = [
        slot for slot in availability
        if slot.window.start < window.end and slot.window.end > window.start
    ]
    regular = [
        slot.window for slot in relevant
        if slot.availabilityType in (AvailabilityType.AVAILABLE, AvailabilityType.PREFERRED)
    ]
    emergency = [
        slot.window for slot in relevant
        if slot.availabilityType == AvailabilityType.EMERGENCY_ONLY
    ]

    duration = window.duration_hours
    if duration <= 0:
        overlap = 0.0
        emergency_overlap = 0.0
    else:
        overlap = min(1.0, _covered_hours(window, regular) / duration)
        emergency_overlap = min(1.0, _covered_hours(window, emergency) / duration)

    return AvailabilityMatch(
        requestedWindow=window,
        availabilityWindows=relevant,
        overlapPercentage=round(overlap, 4),
        emergencyOverlapPercentage=round(emergency_overlap, 4),
        preferredMatch=any(
            slot.availabilityType == AvailabilityType.PREFERRED for slot in relevant
        ),
        emergencyOnly=emergency_overlap > 0 and overlap == 0,
    )


# =============================================================================
# Proximity / Performance
# =============================================================================

def calculate_proximity_score(
    site: Optional[GeoPoint],
    guard_location: Optional[GeoPoint],
) -> float:
    """Banded closeness of a guard to a site (0.5 when either is unknown)."""
    if site is None or guard_location is None:
        return UNKNOWN_PROXIMITY_SCORE

    distance = float(np.hypot(site.lat - guard_location.lat, site.lng - guard_location.lng))
    for limit, score in PROXIMITY_BANDS:
        if distance < limit:
            return score
    return FAR_PROXIMITY_SCORE


def calculate_performance_score(metrics: Optional[PerformanceMetrics]) -> float:
    """Weighted performance in [0, 1]; defaults apply when no history exists."""
    metrics = metrics or PerformanceMetrics()
    score = (
        metrics.onTimeRate * PERFORMANCE_WEIGHTS['onTime']
        + metrics.completionRate * PERFORMANCE_WEIGHTS['completion']
        + (metrics.clientRating / 5) * PERFORMANCE_WEIGHTS['rating']
        + (1 - metrics.incidentRate) * PERFORMANCE_WEIGHTS['incidents']
    )
    return float(np.clip(score, 0.0, 1.0))


# =============================================================================
# Eligibility
# =============================================================================

def is_guard_active(guard: GuardProfile) -> bool:
    return guard.profileStatus == APPROVED_PROFILE_STATUS and guard.isSchedulable


def evaluate_eligibility(
    shift: Shift,
    guard: GuardProfile,
    availability: Sequence[GuardAvailability],
    conflicts: Sequence[AssignmentConflict],
    as_of: datetime,
    critical_certifications: Iterable[str] = (),
) -> GuardEligibilityResult:
    """
    Decide whether a guard can take a shift and score how well they fit.

    Args:
        shift: Shift being staffed.
        guard: Candidate guard.
        availability: Guard's declared availability around the shift.
        conflicts: Conflicts already detected for this pairing.
        as_of: Instant used for certification validity.
        critical_certifications: Globally critical certification names.

    Returns:
        GuardEligibilityResult
    """
    reasons: List[str] = []
    eligible = True
    score = 0.0

    if is_guard_active(guard):
        score += STATUS_POINTS
    else:
        eligible = False
        reasons.append(
            f"Guard is not schedulable (status: {guard.profileStatus}, "
            f"schedulable: {guard.isSchedulable})"
        )

    certification_match = match_certifications(shift, guard, as_of, critical_certifications)
    if certification_match.criticalMissing:
        eligible = False
        reasons.append(
            f"Missing critical certifications: {', '.join(certification_match.criticalMissing)}"
        )
    elif certification_match.matchPercentage >= 1.0:
        score += CERTIFICATION_POINTS
    else:
        score += CERTIFICATION_POINTS * certification_match.matchPercentage
        reasons.append(f"Missing certifications: {', '.join(certification_match.missing)}")

    if not conflicts:
        score += NO_CONFLICT_POINTS
    elif not any(c.severity == ConflictSeverity.CRITICAL for c in conflicts):
        score += MINOR_CONFLICT_POINTS

    blocking = [c for c in conflicts if c.overrideRequired]
    if blocking:
        eligible = False
        reasons.extend(c.message for c in blocking)

    availability_match = match_availability(shift.timeWindow, availability)
    if availability_match.overlapPercentage >= 0.8 and not availability_match.emergencyOnly:
        score += 0.15
    elif availability_match.overlapPercentage >= 0.5 and not availability_match.emergencyOnly:
        score += 0.10
        reasons.append("Partial availability for shift window")
    elif availability_match.emergencyOnly:
        score += 0.05
        reasons.append("Available for emergency coverage only")
    else:
        reasons.append("No declared availability for shift window")

    proximity = calculate_proximity_score(shift.location, guard.location)
    if proximity > 0.8:
        score += 0.10
    elif proximity > 0.5:
        score += 0.05

    performance = calculate_performance_score(guard.performanceMetrics)
    if performance > 0.8:
        score += 0.05

    return GuardEligibilityResult(
        guardId=guard.id,
        shiftId=shift.id,
        eligible=eligible,
        eligibilityScore=round(min(1.0, score), 2),
        reasons=reasons,
        conflicts=list(conflicts),
        certificationMatch=certification_match,
        availabilityMatch=availability_match,
        proximityScore=proximity,
        performanceScore=round(performance, 4),
    )
