"""
Conflict detection for guard/shift pairings.

Each detector inspects one concern and returns AssignmentConflict records.
Detectors are pure; guardforce.services.assignments loads the data and runs
them together through detect_all_conflicts().

Conflict rules:
    time_overlap          overlap share of the shorter window
                          > 0.8 critical, > 0.5 error, else warning;
                          overridable unless the other assignment is
                          confirmed or the overlap exceeds 0.8
    availability_conflict unavailable window touching the shift -> error
                          emergency-only coverage, shift priority < 5 -> warning
    certification_missing critical gap -> critical, not overridable
                          other gap -> error, overridable
                          expiring within the warning window -> warning
    location_conflict     site further than 0.5 degrees -> warning
    workload_limit        day > daily limit / week > weekly limit -> error,
                          above the warning levels -> warning

summarize_conflicts() turns a list into a ConflictCheckResult with
resolution suggestions.
"""

from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Sequence

import numpy as np

from guardforce.core.config import Settings
from guardforce.models.enums import (
    AssignmentStatus,
    AvailabilityType,
    ConflictSeverity,
    ConflictType,
)
from guardforce.models.schemas import (
    AssignmentConflict,
    ConflictCheckResult,
    GuardAvailability,
    GuardProfile,
    ScheduledCommitment,
    Shift,
    TimeWindow,
)
from guardforce.services.eligibility import (
    ACTIVE_CERTIFICATION_STATUS,
    match_availability,
    match_certifications,
)


# =============================================================================
# Constants
# =============================================================================

CRITICAL_OVERLAP: float = 0.8
ERROR_OVERLAP: float = 0.5

FAR_SITE_DISTANCE: float = 1.0
DISTANT_SITE_DISTANCE: float = 0.5

# Shifts at this priority or above accept emergency-only coverage silently
EMERGENCY_PRIORITY: int = 5

RESOLUTION_SUGGESTIONS = {
    ConflictType.TIME_OVERLAP: [
        "Reschedule one of the overlapping shifts",
        "Assign a different guard to one of the shifts",
    ],
    ConflictType.AVAILABILITY_CONFLICT: [
        "Contact the guard to confirm availability",
        "Choose a guard with declared availability for this window",
    ],
    ConflictType.CERTIFICATION_MISSING: [
        "Select a guard holding the required certifications",
        "Schedule certification renewal before the shift",
    ],
    ConflictType.LOCATION_CONFLICT: [
        "Consider a guard based closer to the site",
        "Confirm the guard's travel arrangements",
    ],
    ConflictType.WORKLOAD_LIMIT: [
        "Spread hours across additional guards",
        "Shorten or split the shift",
    ],
}


# =============================================================================
# Detectors
# =============================================================================

def detect_time_conflicts(
    shift: Shift,
    commitments: Sequence[ScheduledCommitment],
) -> List[AssignmentConflict]:
    """Overlaps between the shift and the guard's other active assignments."""
    conflicts = []
    window = shift.timeWindow

    for commitment in commitments:
        if commitment.shiftId == shift.id:
            continue
        overlap_hours = window.overlap_hours(commitment.window)
        if overlap_hours <= 0:
            continue

        shorter = min(window.duration_hours, commitment.window.duration_hours)
        overlap = overlap_hours / shorter if shorter > 0 else 1.0

        if overlap > CRITICAL_OVERLAP:
            severity = ConflictSeverity.CRITICAL
        elif overlap > ERROR_OVERLAP:
            severity = ConflictSeverity.ERROR
        else:
            severity = ConflictSeverity.WARNING

        conflicts.append(
            AssignmentConflict(
                conflictType=ConflictType.TIME_OVERLAP,
                severity=severity,
                message=(
                    f"Overlaps {overlap:.0%} with assignment to "
                    f"{commitment.shiftTitle or commitment.shiftId}"
                ),
                details={
                    'conflictingAssignmentId': commitment.assignmentId,
                    'conflictingShiftId': commitment.shiftId,
                    'overlapPercentage': round(overlap, 4),
                    'overlapHours': round(overlap_hours, 2),
                },
                canOverride=(
                    commitment.assignmentStatus != AssignmentStatus.CONFIRMED
                    and overlap <= CRITICAL_OVERLAP
                ),
                overrideRequired=True,
            )
        )

    return conflicts


def detect_availability_conflicts(
    shift: Shift,
    availability: Sequence[GuardAvailability],
) -> List[AssignmentConflict]:
    conflicts = []
    window = shift.timeWindow

    for slot in availability:
        if slot.availabilityType != AvailabilityType.UNAVAILABLE:
            continue
        if window.overlap_hours(slot.window) <= 0:
            continue
        conflicts.append(
            AssignmentConflict(
                conflictType=ConflictType.AVAILABILITY_CONFLICT,
                severity=ConflictSeverity.ERROR,
                message="Guard marked unavailable during the shift",
                details={
                    'availabilityId': slot.id,
                    'unavailableFrom': slot.window.start.isoformat(),
                    'unavailableUntil': slot.window.end.isoformat(),
                    'notes': slot.notes,
                },
                canOverride=True,
                overrideRequired=True,
            )
        )

    match = match_availability(window, availability)
    if match.emergencyOnly and shift.priority < EMERGENCY_PRIORITY:
        conflicts.append(
            AssignmentConflict(
                conflictType=ConflictType.AVAILABILITY_CONFLICT,
                severity=ConflictSeverity.WARNING,
                message="Guard is only available for emergency coverage",
                details={'shiftPriority': shift.priority},
                canOverride=True,
                overrideRequired=False,
            )
        )

    return conflicts


def detect_certification_conflicts(
    shift: Shift,
    guard: GuardProfile,
    as_of: datetime,
    critical_certifications: Iterable[str] = (),
    expiry_warning_days: int = 30,
) -> List[AssignmentConflict]:
    conflicts = []
    match = match_certifications(shift, guard, as_of, critical_certifications)

    for name in match.missing:
        is_critical = name in match.criticalMissing
        conflicts.append(
            AssignmentConflict(
                conflictType=ConflictType.CERTIFICATION_MISSING,
                severity=ConflictSeverity.CRITICAL if is_critical else ConflictSeverity.ERROR,
                message=(
                    f"Missing critical certification: {name}"
                    if is_critical
                    else f"Missing certification: {name}"
                ),
                details={'certification': name, 'critical': is_critical},
                canOverride=not is_critical,
                overrideRequired=True,
            )
        )

    warning_cutoff = as_of + timedelta(days=expiry_warning_days)
    for name in match.matched:
        certification = guard.certifications[name]
        if (
            certification.status == ACTIVE_CERTIFICATION_STATUS
            and certification.expiryDate is not None
            and certification.expiryDate <= warning_cutoff
        ):
            days_left = (certification.expiryDate - as_of).days
            conflicts.append(
                AssignmentConflict(
                    conflictType=ConflictType.CERTIFICATION_MISSING,
                    severity=ConflictSeverity.WARNING,
                    message=f"Certification {name} expires in {days_left} days",
                    details={
                        'certification': name,
                        'expiryDate': certification.expiryDate.isoformat(),
                    },
                    canOverride=True,
                    overrideRequired=False,
                )
            )

    return conflicts


def detect_location_conflicts(shift: Shift, guard: GuardProfile) -> List[AssignmentConflict]:
    if shift.location is None or guard.location is None:
        return []

    distance = float(
        np.hypot(shift.location.lat - guard.location.lat, shift.location.lng - guard.location.lng)
    )
    if distance <= DISTANT_SITE_DISTANCE:
        return []

    message = (
        "Guard is based far from the shift site"
        if distance > FAR_SITE_DISTANCE
        else "Guard is based a significant distance from the shift site"
    )
    return [
        AssignmentConflict(
            conflictType=ConflictType.LOCATION_CONFLICT,
            severity=ConflictSeverity.WARNING,
            message=message,
            details={'distance': round(distance, 4)},
            canOverride=True,
            overrideRequired=False,
        )
    ]


def workload_windows(shift: Shift):
    """Calendar day and Sunday-based week containing the shift start."""
    start = shift.timeWindow.start
    day_start = start.replace(hour=0, minute=0, second=0, microsecond=0)
    week_start = day_start - timedelta(days=(day_start.weekday() + 1) % 7)
    return (
        TimeWindow(start=day_start, end=day_start + timedelta(days=1)),
        TimeWindow(start=week_start, end=week_start + timedelta(days=7)),
    )


def detect_workload_conflicts(
    shift: Shift,
    day_commitments: Sequence[ScheduledCommitment],
    week_commitments: Sequence[ScheduledCommitment],
    daily_limit: float = 12.0,
    daily_warning: float = 10.0,
    weekly_limit: float = 60.0,
    weekly_warning: float = 50.0,
) -> List[AssignmentConflict]:
    """
    Hours the guard would work on the shift's day and week if assigned.

    Commitments count with their full duration; the shift itself is
    excluded from the commitments and added once.
    """
    shift_hours = shift.timeWindow.duration_hours
    daily_hours = shift_hours + sum(
        c.window.duration_hours for c in day_commitments if c.shiftId != shift.id
    )
    weekly_hours = shift_hours + sum(
        c.window.duration_hours for c in week_commitments if c.shiftId != shift.id
    )

    conflicts = []
    for period, hours, limit, warning in (
        ('daily', daily_hours, daily_limit, daily_warning),
        ('weekly', weekly_hours, weekly_limit, weekly_warning),
    ):
        if hours > limit:
            conflicts.append(
                AssignmentConflict(
                    conflictType=ConflictType.WORKLOAD_LIMIT,
                    severity=ConflictSeverity.ERROR,
                    message=f"Would exceed {period} hour limit ({hours:.1f}h > {limit:g}h)",
                    details={'period': period, 'hours': round(hours, 2), 'limit': limit},
                    canOverride=True,
                    overrideRequired=True,
                )
            )
        elif hours > warning:
            conflicts.append(
                AssignmentConflict(
                    conflictType=ConflictType.WORKLOAD_LIMIT,
                    severity=ConflictSeverity.WARNING,
                    message=f"High {period} workload ({hours:.1f}h)",
                    details={'period': period, 'hours': round(hours, 2), 'limit': limit},
                    canOverride=True,
                    overrideRequired=False,
                )
            )

    return conflicts


# =============================================================================
# Summary
# =============================================================================

def summarize_conflicts(
    conflicts: Sequence[AssignmentConflict],
    override_requested: bool = False,
) -> ConflictCheckResult:
    """
    Decide whether an assignment can go ahead given its conflicts.

    can_proceed: no critical conflict, and either no error conflict or an
    override was requested. requires_override: some conflict needs one.
    """
    has_critical = any(c.severity == ConflictSeverity.CRITICAL for c in conflicts)
    has_errors = any(c.severity == ConflictSeverity.ERROR for c in conflicts)

    suggestions: List[str] = []
    for conflict in conflicts:
        for suggestion in RESOLUTION_SUGGESTIONS.get(conflict.conflictType, []):
            if suggestion not in suggestions:
                suggestions.append(suggestion)

    return ConflictCheckResult(
        hasConflicts=bool(conflicts),
        conflicts=list(conflicts),
        canProceed=not has_critical and (not has_errors or override_requested),
        requiresOverride=any(c.overrideRequired for c in conflicts),
        resolutionSuggestions=suggestions,
    )


def detect_all_conflicts(
    shift: Shift,
    guard: GuardProfile,
    availability: Sequence[GuardAvailability],
    overlapping: Sequence[ScheduledCommitment],
    day_commitments: Sequence[ScheduledCommitment],
    week_commitments: Sequence[ScheduledCommitment],
    as_of: datetime,
    critical_certifications: Iterable[str] = (),
    settings: Optional[Settings] = None,
) -> List[AssignmentConflict]:
    """
    Run every detector for one pairing.

    ``settings`` supplies the expiry warning window and workload limits;
    module defaults apply when it is omitted.
    """
    expiry_days = 30
    limits = {}
    if settings is not None:
        expiry_days = settings.certification_expiry_warning_days
        limits = {
            'daily_limit': settings.daily_hour_limit,
            'daily_warning': settings.daily_hour_warning,
            'weekly_limit': settings.weekly_hour_limit,
            'weekly_warning': settings.weekly_hour_warning,
        }

    return (
        detect_time_conflicts(shift, overlapping)
        + detect_availability_conflicts(shift, availability)
        + detect_certification_conflicts(
            shift, guard, as_of, critical_certifications, expiry_days
        )
        + detect_location_conflicts(shift, guard)
        + detect_workload_conflicts(shift, day_commitments, week_commitments, **limits)
    )
