"""
Persistence adapter for the Guardforce service layer.

Services never talk to the database directly. They depend on the ``Store``
protocol below, and the composition root (guardforce.core.dependencies)
hands them a concrete implementation. ``PostgresStore`` is the production
implementation on top of the asyncpg pool helpers in
guardforce.core.database and the statements in guardforce.sql.

Row mapping:
    Database columns are snake_case; models are camelCase. JSONB columns
    may arrive as text (no codec registered) or as decoded values; both are
    accepted.

Usage:
    store = PostgresStore()
    lead = await store.get_lead("lead-001")
"""

import json
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

from guardforce.core.database import execute_command, execute_query, execute_query_one
from guardforce.core.exceptions import NotFoundError
from guardforce.models.enums import AssignmentErrorCode, AssignmentStatus
from guardforce.models.schemas import (
    GeoPoint,
    GuardAvailability,
    GuardProfile,
    Lead,
    LeadScoreCalculation,
    OutcomeRecord,
    PrioritizedLead,
    QualificationFactors,
    ScheduledCommitment,
    ScoringConfig,
    Shift,
    ShiftAssignment,
    TimeWindow,
)
from guardforce.sql import assignment_queries, scoring_queries


logger = logging.getLogger(__name__)


# =============================================================================
# Store Protocol
# =============================================================================

class Store(Protocol):
    """Everything the services read from and write to persistent storage."""

    # Leads and scoring
    async def get_lead(self, lead_id: str) -> Optional[Lead]: ...

    async def update_lead_cached_fields(
        self,
        lead_id: str,
        qualification_score: float,
        qualification_factors: QualificationFactors,
        application_probability: float,
    ) -> None: ...

    async def get_historical_outcomes(
        self, min_score: float, max_score: float
    ) -> List[OutcomeRecord]: ...

    async def get_scored_outcomes_since(self, cutoff: datetime) -> List[OutcomeRecord]: ...

    async def list_prioritized_leads(
        self,
        recruiter_id: Optional[str],
        statuses: Optional[Sequence[str]],
        limit: int,
    ) -> List[PrioritizedLead]: ...

    async def list_leads_for_rescoring(self, cutoff: datetime, limit: int) -> List[str]: ...

    async def get_scoring_config(
        self, config_id: Optional[str] = None
    ) -> Optional[ScoringConfig]: ...

    async def get_scoring_config_by_name(self, name: str) -> Optional[ScoringConfig]: ...

    async def save_scoring_config(self, config: ScoringConfig) -> ScoringConfig: ...

    async def deactivate_scoring_config(self, config_id: str) -> None: ...

    async def insert_lead_score_calculation(
        self, calculation: LeadScoreCalculation
    ) -> LeadScoreCalculation: ...

    # Shifts, guards and assignments
    async def get_shift(self, shift_id: str) -> Optional[Shift]: ...

    async def set_shift_guard(self, shift_id: str, guard_id: Optional[str]) -> None: ...

    async def get_guard(self, guard_id: str) -> Optional[GuardProfile]: ...

    async def get_guard_availability(
        self, guard_id: str, window: TimeWindow
    ) -> List[GuardAvailability]: ...

    async def get_guard_commitments(
        self,
        guard_id: str,
        window: TimeWindow,
        statuses: Sequence[AssignmentStatus],
        exclude_shift_id: Optional[str] = None,
    ) -> List[ScheduledCommitment]: ...

    async def get_assignment(self, assignment_id: str) -> Optional[ShiftAssignment]: ...

    async def get_active_assignment_for_shift(
        self, shift_id: str
    ) -> Optional[ShiftAssignment]: ...

    async def create_assignment(self, assignment: ShiftAssignment) -> ShiftAssignment: ...

    async def update_assignment(
        self, assignment_id: str, fields: Mapping[str, Any]
    ) -> ShiftAssignment: ...


def new_id() -> str:
    return uuid.uuid4().hex


# =============================================================================
# Row Mapping Helpers
# =============================================================================

def _json(value: Any, default: Any = None) -> Any:
    if value is None:
        return default
    if isinstance(value, (str, bytes)):
        return json.loads(value)
    return value


def _point(row: Mapping[str, Any]) -> Optional[GeoPoint]:
    if row.get('latitude') is None or row.get('longitude') is None:
        return None
    return GeoPoint(lat=row['latitude'], lng=row['longitude'])


def _lead_from_row(row: Mapping[str, Any]) -> Lead:
    factors = _json(row.get('qualification_factors'))
    return Lead(
        id=row['id'],
        firstName=row.get('first_name'),
        lastName=row.get('last_name'),
        email=row.get('email'),
        phone=row.get('phone'),
        sourceType=row.get('source_type'),
        status=row.get('status') or 'new',
        applicationStatus=row.get('application_status') or 'lead_captured',
        hasSecurityExperience=bool(row.get('has_security_experience')),
        yearsExperience=row.get('years_experience'),
        hasLicense=bool(row.get('has_license')),
        transportationAvailable=bool(row.get('transportation_available')),
        willingToRelocate=bool(row.get('willing_to_relocate')),
        salaryExpectations=row.get('salary_expectations'),
        certifications=_json(row.get('certifications'), []),
        preferredLocations=_json(row.get('preferred_locations'), []),
        preferredShifts=_json(row.get('preferred_shifts'), []),
        availability=_json(row.get('availability'), {}),
        referralInfo=_json(row.get('referral_info')),
        notes=row.get('notes'),
        assignedRecruiter=row.get('assigned_recruiter'),
        convertedToHire=bool(row.get('converted_to_hire')),
        qualificationScore=row.get('qualification_score'),
        qualificationFactors=factors,
        applicationCompletionProbability=row.get('application_completion_probability'),
        createdAt=row.get('created_at'),
        updatedAt=row.get('updated_at'),
    )


def _outcome_from_row(row: Mapping[str, Any]) -> OutcomeRecord:
    return OutcomeRecord(
        leadId=row['id'],
        qualificationScore=row.get('qualification_score'),
        applicationStatus=row['application_status'],
        convertedToHire=bool(row.get('converted_to_hire')),
        createdAt=row.get('created_at'),
    )


def _config_from_row(row: Mapping[str, Any]) -> ScoringConfig:
    return ScoringConfig(
        id=row['id'],
        name=row['name'],
        description=row.get('description'),
        version=row.get('version') or 1,
        qualificationThreshold=row['qualification_threshold'],
        highPriorityThreshold=row['high_priority_threshold'],
        accuracy=row.get('accuracy'),
        isActive=bool(row.get('is_active')),
        factors=_json(row.get('factors'), []),
        createdAt=row.get('created_at'),
        updatedAt=row.get('updated_at'),
    )


def _calculation_from_row(row: Mapping[str, Any]) -> LeadScoreCalculation:
    return LeadScoreCalculation(
        id=row.get('id'),
        leadId=row['lead_id'],
        configId=row['config_id'],
        configVersion=row.get('config_version') or 1,
        totalScore=row['total_score'],
        maxPossibleScore=row['max_possible_score'],
        normalizedScore=row['normalized_score'],
        factorScores=_json(row.get('factor_scores'), []),
        isQualified=row['is_qualified'],
        priority=row['priority'],
        applicationProbability=row['application_probability'],
        hireProbability=row['hire_probability'],
        calculatedAt=row['calculated_at'],
    )


def _shift_from_row(row: Mapping[str, Any]) -> Shift:
    return Shift(
        id=row['id'],
        title=row.get('title') or '',
        timeWindow=TimeWindow(start=row['start_time'], end=row['end_time']),
        requiredCertifications=_json(row.get('required_certifications'), []),
        criticalCertifications=_json(row.get('critical_certifications'), []),
        priority=row.get('priority') or 3,
        clientName=row.get('client_name'),
        industryType=row.get('industry_type'),
        locationId=row.get('location_id'),
        location=_point(row),
        hourlyRate=row.get('hourly_rate'),
        assignedGuardId=row.get('assigned_guard_id'),
    )


def _guard_from_row(row: Mapping[str, Any]) -> GuardProfile:
    return GuardProfile(
        id=row['id'],
        firstName=row.get('first_name'),
        lastName=row.get('last_name'),
        profileStatus=row.get('profile_status') or 'approved',
        isSchedulable=bool(row.get('is_schedulable')),
        certifications=_json(row.get('certification_status'), {}),
        location=_point(row),
        performanceMetrics=_json(row.get('performance_metrics')),
        preferences=_json(row.get('preferences')),
    )


def _availability_from_row(row: Mapping[str, Any]) -> GuardAvailability:
    return GuardAvailability(
        id=row['id'],
        guardId=row['guard_id'],
        window=TimeWindow(start=row['start_time'], end=row['end_time']),
        availabilityType=row['availability_type'],
        priority=row.get('priority') or 3,
        status=row.get('status') or 'active',
        notes=row.get('notes'),
    )


def _assignment_from_row(row: Mapping[str, Any]) -> ShiftAssignment:
    return ShiftAssignment(
        id=row['id'],
        shiftId=row['shift_id'],
        guardId=row['guard_id'],
        assignmentStatus=row['assignment_status'],
        assignedBy=row['assigned_by'],
        assignedAt=row['assigned_at'],
        guardResponse=row.get('guard_response'),
        guardRespondedAt=row.get('guard_responded_at'),
        guardResponseNotes=row.get('guard_response_notes'),
        eligibilityScore=row.get('eligibility_score'),
        assignmentMethod=row.get('assignment_method') or 'manual',
        conflictOverridden=bool(row.get('conflict_overridden')),
        overrideReason=row.get('override_reason'),
        overrideBy=row.get('override_by'),
        overrideAt=row.get('override_at'),
        confirmedBy=row.get('confirmed_by'),
        confirmedAt=row.get('confirmed_at'),
        assignmentNotes=row.get('assignment_notes'),
        managerNotes=row.get('manager_notes'),
        createdAt=row.get('created_at'),
        updatedAt=row.get('updated_at'),
    )


# camelCase model field -> shift_assignments column
ASSIGNMENT_FIELD_COLUMNS: Dict[str, str] = {
    'assignmentStatus': 'assignment_status',
    'guardResponse': 'guard_response',
    'guardRespondedAt': 'guard_responded_at',
    'guardResponseNotes': 'guard_response_notes',
    'conflictOverridden': 'conflict_overridden',
    'overrideReason': 'override_reason',
    'overrideBy': 'override_by',
    'overrideAt': 'override_at',
    'confirmedBy': 'confirmed_by',
    'confirmedAt': 'confirmed_at',
    'assignmentNotes': 'assignment_notes',
    'managerNotes': 'manager_notes',
}


def _db_value(value: Any) -> Any:
    return getattr(value, 'value', value)


# =============================================================================
# PostgreSQL Implementation
# =============================================================================

class PostgresStore:
    """Store implementation backed by the shared asyncpg pool."""

    # -------------------------------------------------------------------------
    # Leads
    # -------------------------------------------------------------------------

    async def get_lead(self, lead_id: str) -> Optional[Lead]:
        row = await execute_query_one(scoring_queries.SELECT_LEAD_BY_ID, lead_id)
        return _lead_from_row(row) if row else None

    async def update_lead_cached_fields(
        self,
        lead_id: str,
        qualification_score: float,
        qualification_factors: QualificationFactors,
        application_probability: float,
    ) -> None:
        await execute_command(
            scoring_queries.UPDATE_LEAD_CACHED_FIELDS,
            lead_id,
            qualification_score,
            qualification_factors.model_dump_json(),
            application_probability,
        )

    async def get_historical_outcomes(
        self, min_score: float, max_score: float
    ) -> List[OutcomeRecord]:
        rows = await execute_query(
            scoring_queries.SELECT_OUTCOMES_IN_SCORE_BAND, min_score, max_score
        )
        return [_outcome_from_row(row) for row in rows]

    async def get_scored_outcomes_since(self, cutoff: datetime) -> List[OutcomeRecord]:
        rows = await execute_query(scoring_queries.SELECT_SCORED_OUTCOMES_SINCE, cutoff)
        return [_outcome_from_row(row) for row in rows]

    async def list_prioritized_leads(
        self,
        recruiter_id: Optional[str],
        statuses: Optional[Sequence[str]],
        limit: int,
    ) -> List[PrioritizedLead]:
        query, args = scoring_queries.get_prioritized_leads_query(recruiter_id, statuses, limit)
        rows = await execute_query(query, *args)

        results = []
        for row in rows:
            latest = _json(row.get('latest_calculation'))
            results.append(
                PrioritizedLead(
                    lead=_lead_from_row(row),
                    scoreCalculation=_calculation_from_row(latest) if latest else None,
                )
            )
        return results

    async def list_leads_for_rescoring(self, cutoff: datetime, limit: int) -> List[str]:
        rows = await execute_query(scoring_queries.SELECT_LEADS_FOR_RESCORING, cutoff, limit)
        return [row['id'] for row in rows]

    # -------------------------------------------------------------------------
    # Scoring configurations and calculations
    # -------------------------------------------------------------------------

    async def get_scoring_config(
        self, config_id: Optional[str] = None
    ) -> Optional[ScoringConfig]:
        if config_id:
            row = await execute_query_one(scoring_queries.SELECT_ACTIVE_CONFIG_BY_ID, config_id)
        else:
            row = await execute_query_one(scoring_queries.SELECT_ACTIVE_CONFIG)
        return _config_from_row(row) if row else None

    async def get_scoring_config_by_name(self, name: str) -> Optional[ScoringConfig]:
        row = await execute_query_one(scoring_queries.SELECT_CONFIG_BY_NAME, name)
        return _config_from_row(row) if row else None

    async def save_scoring_config(self, config: ScoringConfig) -> ScoringConfig:
        factors = json.dumps([factor.model_dump(mode='json') for factor in config.factors])
        await execute_command(
            scoring_queries.INSERT_CONFIG,
            config.id,
            config.name,
            config.description,
            config.version,
            config.qualificationThreshold,
            config.highPriorityThreshold,
            config.accuracy,
            config.isActive,
            factors,
        )
        logger.info(f"Saved scoring config {config.id} ('{config.name}' v{config.version})")
        return config

    async def deactivate_scoring_config(self, config_id: str) -> None:
        await execute_command(scoring_queries.DEACTIVATE_CONFIG, config_id)

    async def insert_lead_score_calculation(
        self, calculation: LeadScoreCalculation
    ) -> LeadScoreCalculation:
        stored = calculation.model_copy(update={'id': calculation.id or new_id()})
        factor_scores = json.dumps(
            [score.model_dump(mode='json') for score in stored.factorScores]
        )
        await execute_command(
            scoring_queries.INSERT_SCORE_CALCULATION,
            stored.id,
            stored.leadId,
            stored.configId,
            stored.configVersion,
            stored.totalScore,
            stored.maxPossibleScore,
            stored.normalizedScore,
            factor_scores,
            stored.isQualified,
            stored.priority.value,
            stored.applicationProbability,
            stored.hireProbability,
            stored.calculatedAt,
        )
        return stored

    # -------------------------------------------------------------------------
    # Shifts and guards
    # -------------------------------------------------------------------------

    async def get_shift(self, shift_id: str) -> Optional[Shift]:
        row = await execute_query_one(assignment_queries.SELECT_SHIFT_BY_ID, shift_id)
        return _shift_from_row(row) if row else None

    async def set_shift_guard(self, shift_id: str, guard_id: Optional[str]) -> None:
        await execute_command(assignment_queries.UPDATE_SHIFT_GUARD, shift_id, guard_id)

    async def get_guard(self, guard_id: str) -> Optional[GuardProfile]:
        row = await execute_query_one(assignment_queries.SELECT_GUARD_BY_ID, guard_id)
        return _guard_from_row(row) if row else None

    async def get_guard_availability(
        self, guard_id: str, window: TimeWindow
    ) -> List[GuardAvailability]:
        rows = await execute_query(
            assignment_queries.SELECT_GUARD_AVAILABILITY, guard_id, window.start, window.end
        )
        return [_availability_from_row(row) for row in rows]

    async def get_guard_commitments(
        self,
        guard_id: str,
        window: TimeWindow,
        statuses: Sequence[AssignmentStatus],
        exclude_shift_id: Optional[str] = None,
    ) -> List[ScheduledCommitment]:
        rows = await execute_query(
            assignment_queries.SELECT_GUARD_COMMITMENTS,
            guard_id,
            window.start,
            window.end,
            [_db_value(status) for status in statuses],
            exclude_shift_id,
        )
        return [
            ScheduledCommitment(
                assignmentId=row['assignment_id'],
                shiftId=row['shift_id'],
                shiftTitle=row.get('shift_title'),
                window=TimeWindow(start=row['start_time'], end=row['end_time']),
                assignmentStatus=row['assignment_status'],
            )
            for row in rows
        ]

    # -------------------------------------------------------------------------
    # Assignments
    # -------------------------------------------------------------------------

    async def get_assignment(self, assignment_id: str) -> Optional[ShiftAssignment]:
        row = await execute_query_one(assignment_queries.SELECT_ASSIGNMENT_BY_ID, assignment_id)
        return _assignment_from_row(row) if row else None

    async def get_active_assignment_for_shift(
        self, shift_id: str
    ) -> Optional[ShiftAssignment]:
        row = await execute_query_one(
            assignment_queries.SELECT_ACTIVE_ASSIGNMENT_FOR_SHIFT,
            shift_id,
            list(assignment_queries.ACTIVE_ASSIGNMENT_STATUSES),
        )
        return _assignment_from_row(row) if row else None

    async def create_assignment(self, assignment: ShiftAssignment) -> ShiftAssignment:
        row = await execute_query_one(
            assignment_queries.INSERT_ASSIGNMENT,
            assignment.id,
            assignment.shiftId,
            assignment.guardId,
            assignment.assignmentStatus.value,
            assignment.assignedBy,
            assignment.assignedAt,
            assignment.eligibilityScore,
            assignment.assignmentMethod.value,
            assignment.conflictOverridden,
            assignment.overrideReason,
            assignment.overrideBy,
            assignment.overrideAt,
            assignment.assignmentNotes,
            assignment.managerNotes,
        )
        return _assignment_from_row(row) if row else assignment

    async def update_assignment(
        self, assignment_id: str, fields: Mapping[str, Any]
    ) -> ShiftAssignment:
        columns = [ASSIGNMENT_FIELD_COLUMNS[name] for name in fields]
        query = assignment_queries.get_assignment_update_query(columns)
        row = await execute_query_one(
            query, assignment_id, *[_db_value(value) for value in fields.values()]
        )
        if row is None:
            raise NotFoundError(
                f"Assignment {assignment_id} not found",
                code=AssignmentErrorCode.ASSIGNMENT_NOT_FOUND.value,
            )
        return _assignment_from_row(row)
