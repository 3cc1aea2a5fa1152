"""
Pydantic models for the Guardforce service layer.

This module provides type-safe data validation and serialization for the
lead scoring engine and the shift eligibility / matching engine. Field names
are camelCase so that serialized models line up with the payloads the
recruiting and scheduling front ends exchange, and so that rule conditions
can reference lead attributes by the same names.

Groups:
- Lead scoring configuration: ScoringRule, ScoringFactor, ScoringConfig
- Lead data: LeadAvailability, ReferralInfo, QualificationFactors, Lead
- Scoring results: AppliedRule, FactorScore, ProbabilityEstimate,
  LeadScoreCalculation, BatchScoreResult, PrioritizedLead, OutcomeRecord,
  WeightRecommendation, ScoringAccuracyReport
- Scheduling data: TimeWindow, GeoPoint, GuardCertification,
  PerformanceMetrics, GuardPreferences, GuardProfile, Shift,
  GuardAvailability, ScheduledCommitment
- Eligibility / matching results: AssignmentConflict, CertificationMatch,
  AvailabilityMatch, GuardEligibilityResult, GuardMatchResult,
  ConflictCheckResult
- Assignment lifecycle: ShiftAssignment, AssignmentCreate,
  BatchAssignmentItem, BatchAssignmentResult

All models use Pydantic v2 syntax.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from guardforce.models.enums import (
    ApplicationStatus,
    AssignmentMethod,
    AssignmentStatus,
    AvailabilityType,
    BatchStatus,
    ConflictSeverity,
    ConflictType,
    GuardResponse,
    LeadPriority,
    LeadStatus,
    MatchConfidence,
    RecommendedAction,
    ScoringCategory,
)


# =============================================================================
# Scoring Configuration
# =============================================================================


class ScoringRule(BaseModel):
    """
    A single weighted rule inside a scoring factor.

    ``condition`` is a JSON-logic expression, either as the raw JSON text
    stored in the database or already decoded. It is compiled once when the
    owning config is loaded (see guardforce.services.rule_evaluator).
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "exp_5plus",
                "condition": '{">=": ["yearsExperience", 5]}',
                "points": 25,
                "description": "5+ years experience",
            }
        }
    )

    id: str
    condition: Union[str, bool, Dict[str, Any], List[Any], None] = Field(
        ...,
        description="JSON-logic condition (text or decoded)"
    )
    points: float = Field(
        ...,
        description="Points awarded when the condition holds (may be negative)"
    )
    description: str = Field(
        default="",
        description="Human-readable reason reported when the rule fires"
    )


class ScoringFactor(BaseModel):
    """A weighted group of rules for one scoring category."""

    id: str
    name: str
    description: Optional[str] = None
    category: ScoringCategory
    weight: float = Field(
        ...,
        ge=0,
        description="Relative weight; weights need not sum to 1"
    )
    isActive: bool = True
    scoringRules: List[ScoringRule] = Field(default_factory=list)


class ScoringConfig(BaseModel):
    """
    A versioned scoring configuration.

    Exactly one configuration is active at a time. Edits never mutate a
    stored configuration: they produce a new version and deactivate the
    previous one, so historical calculations keep pointing at the rules
    that produced them.
    """

    id: str
    name: str
    description: Optional[str] = None
    version: int = Field(default=1, ge=1)
    qualificationThreshold: float = Field(default=60, ge=0, le=100)
    highPriorityThreshold: float = Field(default=80, ge=0, le=100)
    accuracy: Optional[float] = Field(
        default=None,
        description="Last measured predictive accuracy (0-100)"
    )
    isActive: bool = True
    factors: List[ScoringFactor] = Field(default_factory=list)
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


# =============================================================================
# Lead Data
# =============================================================================


class LeadAvailability(BaseModel):
    """Work availability a lead reported on capture."""

    fullTime: bool = False
    partTime: bool = False
    weekdays: bool = False
    weekends: bool = False
    nights: bool = False
    holidays: bool = False
    overtime: bool = False
    hoursPerWeek: Optional[int] = None


class ReferralInfo(BaseModel):
    referrerGuardId: Optional[str] = None
    referrerName: Optional[str] = None
    referralCode: Optional[str] = None


class QualificationFactors(BaseModel):
    """
    Per-category breakdown cached on the lead after scoring.

    Each value is the category's earned share of its attainable points,
    scaled to 0-100. ``totalScore`` is the overall normalized score.
    """

    experienceScore: float = 0
    locationScore: float = 0
    availabilityScore: float = 0
    certificationScore: float = 0
    backgroundScore: float = 0
    salaryExpectationScore: float = 0
    transportationScore: float = 0
    motivationScore: float = 0
    sourceQualityScore: float = 0
    totalScore: float = 0


class Lead(BaseModel):
    """
    A guard recruiting lead.

    Raw attributes are captured at intake. ``qualificationScore``,
    ``qualificationFactors`` and ``applicationCompletionProbability`` are
    cached outputs of the most recent score calculation.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "lead-001",
                "firstName": "Dana",
                "lastName": "Reyes",
                "email": "dana.reyes@example.com",
                "sourceType": "referral",
                "hasSecurityExperience": True,
                "yearsExperience": 4,
                "hasLicense": True,
                "transportationAvailable": True,
                "certifications": ["TOPS", "CPR"],
                "availability": {"fullTime": True, "weekends": True},
            }
        }
    )

    id: str
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    sourceType: Optional[str] = None
    status: LeadStatus = LeadStatus.NEW
    applicationStatus: ApplicationStatus = ApplicationStatus.LEAD_CAPTURED

    hasSecurityExperience: bool = False
    yearsExperience: Optional[float] = None
    hasLicense: bool = False
    transportationAvailable: bool = False
    willingToRelocate: bool = False
    salaryExpectations: Optional[float] = None
    certifications: List[str] = Field(default_factory=list)
    preferredLocations: List[str] = Field(default_factory=list)
    preferredShifts: List[str] = Field(default_factory=list)
    availability: LeadAvailability = Field(default_factory=LeadAvailability)
    referralInfo: Optional[ReferralInfo] = None
    notes: Optional[str] = None

    assignedRecruiter: Optional[str] = None
    convertedToHire: bool = False

    qualificationScore: Optional[float] = None
    qualificationFactors: Optional[QualificationFactors] = None
    applicationCompletionProbability: Optional[float] = None

    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


# =============================================================================
# Scoring Results
# =============================================================================


class AppliedRule(BaseModel):
    ruleId: str
    points: float
    reason: str


class FactorScore(BaseModel):
    """Outcome of evaluating one factor's rules against a lead."""

    factorId: str
    factorName: str
    category: ScoringCategory
    weight: float
    score: float = Field(..., ge=0, description="Earned points, floored at 0")
    maxScore: float = Field(..., ge=0, description="Sum of positive rule points")
    appliedRules: List[AppliedRule] = Field(default_factory=list)


class ProbabilityEstimate(BaseModel):
    """Application / hire likelihood for a score."""

    applicationProbability: float = Field(..., ge=0, le=1)
    hireProbability: float = Field(..., ge=0, le=1)
    cohortSize: int = Field(default=0, ge=0)
    method: Literal["cohort", "default"] = "default"


class LeadScoreCalculation(BaseModel):
    """
    An immutable record of one scoring run.

    Calculations are append-only; the newest one for a lead is current.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "leadId": "lead-001",
                "configId": "default",
                "configVersion": 1,
                "totalScore": 14.5,
                "maxPossibleScore": 20.0,
                "normalizedScore": 72.5,
                "isQualified": True,
                "priority": "medium",
                "applicationProbability": 0.7,
                "hireProbability": 0.45,
            }
        }
    )

    id: Optional[str] = None
    leadId: str
    configId: str
    configVersion: int = 1
    totalScore: float
    maxPossibleScore: float
    normalizedScore: float = Field(..., ge=0, le=100)
    factorScores: List[FactorScore] = Field(default_factory=list)
    isQualified: bool
    priority: LeadPriority
    applicationProbability: float = Field(..., ge=0, le=1)
    hireProbability: float = Field(..., ge=0, le=1)
    calculatedAt: datetime


class OutcomeRecord(BaseModel):
    """A historical lead with a score and a known pipeline outcome."""

    leadId: str
    qualificationScore: Optional[float] = None
    applicationStatus: ApplicationStatus
    convertedToHire: bool = False
    createdAt: Optional[datetime] = None


class BatchScoreResult(BaseModel):
    calculations: List[LeadScoreCalculation] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    message: Optional[str] = None


class PrioritizedLead(BaseModel):
    lead: Lead
    scoreCalculation: Optional[LeadScoreCalculation] = None


class WeightRecommendation(BaseModel):
    factor: str
    currentWeight: float
    recommendedWeight: float
    reason: str


class ScoringAccuracyReport(BaseModel):
    """Agreement between scores and observed outcomes over a lookback window."""

    configId: Optional[str] = None
    accuracy: float = Field(..., ge=0, le=100)
    sampleSize: int
    calibrationNeeded: bool
    recommendations: List[WeightRecommendation] = Field(default_factory=list)


# =============================================================================
# Scheduling Data
# =============================================================================


class TimeWindow(BaseModel):
    """A half-open [start, end) time range."""

    start: datetime
    end: datetime

    @model_validator(mode='after')
    def _check_order(self) -> 'TimeWindow':
        if self.end < self.start:
            raise ValueError("time window end must not precede start")
        return self

    @property
    def duration_hours(self) -> float:
        return (self.end - self.start).total_seconds() / 3600

    def overlap_hours(self, other: 'TimeWindow') -> float:
        """Hours shared with ``other`` (0 when disjoint)."""
        start = max(self.start, other.start)
        end = min(self.end, other.end)
        if end <= start:
            return 0.0
        return (end - start).total_seconds() / 3600


class GeoPoint(BaseModel):
    lat: float
    lng: float


class GuardCertification(BaseModel):
    status: str = "active"
    expiryDate: Optional[datetime] = None
    issuedDate: Optional[datetime] = None

    @field_validator('expiryDate', 'issuedDate')
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # Stored dates are often date-only strings with no offset
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class PerformanceMetrics(BaseModel):
    """Rolling performance figures; defaults apply to guards with no history."""

    onTimeRate: float = Field(default=0.8, ge=0, le=1)
    completionRate: float = Field(default=0.9, ge=0, le=1)
    clientRating: float = Field(default=4.0, ge=0, le=5)
    incidentRate: float = Field(default=0.05, ge=0, le=1)


class HourRange(BaseModel):
    start: int = Field(..., ge=0, le=23)
    end: int = Field(..., ge=0, le=24)


class GuardPreferences(BaseModel):
    preferredShiftTypes: List[str] = Field(default_factory=list)
    preferredLocations: List[str] = Field(default_factory=list)
    preferredHours: Optional[HourRange] = None
    weekendAvailability: Optional[bool] = None
    preferredShiftDuration: Optional[float] = Field(
        default=None,
        description="Preferred shift length in hours"
    )


class GuardProfile(BaseModel):
    """A hired guard as seen by the scheduling engine."""

    id: str
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    profileStatus: str = "approved"
    isSchedulable: bool = True
    certifications: Dict[str, GuardCertification] = Field(default_factory=dict)
    location: Optional[GeoPoint] = None
    performanceMetrics: Optional[PerformanceMetrics] = None
    preferences: Optional[GuardPreferences] = None


class Shift(BaseModel):
    """A unit of scheduled work requiring one guard."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "shift-100",
                "title": "Warehouse overnight patrol",
                "timeWindow": {
                    "start": "2026-03-02T22:00:00+00:00",
                    "end": "2026-03-03T06:00:00+00:00",
                },
                "requiredCertifications": ["TOPS", "Basic_Security"],
                "priority": 3,
                "industryType": "logistics",
                "location": {"lat": 29.76, "lng": -95.37},
            }
        }
    )

    id: str
    title: str
    timeWindow: TimeWindow
    requiredCertifications: List[str] = Field(default_factory=list)
    criticalCertifications: List[str] = Field(
        default_factory=list,
        description="Additional certifications whose absence blocks assignment"
    )
    priority: int = Field(default=3, ge=1, le=5)
    clientName: Optional[str] = None
    industryType: Optional[str] = None
    locationId: Optional[str] = None
    location: Optional[GeoPoint] = None
    hourlyRate: Optional[float] = None
    assignedGuardId: Optional[str] = None


class GuardAvailability(BaseModel):
    id: str
    guardId: str
    window: TimeWindow
    availabilityType: AvailabilityType
    priority: int = Field(default=3, ge=1, le=5)
    status: str = "active"
    notes: Optional[str] = None


class ScheduledCommitment(BaseModel):
    """An existing assignment occupying a guard's time."""

    assignmentId: str
    shiftId: str
    shiftTitle: Optional[str] = None
    window: TimeWindow
    assignmentStatus: AssignmentStatus


# =============================================================================
# Eligibility / Matching Results
# =============================================================================


class AssignmentConflict(BaseModel):
    """
    A reason a guard/shift pairing is problematic.

    ``overrideRequired`` conflicts make the guard ineligible until a manager
    records an override; ``canOverride`` says whether an override is allowed
    at assignment time at all.
    """

    conflictType: ConflictType
    severity: ConflictSeverity
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)
    canOverride: bool
    overrideRequired: bool


class CertificationMatch(BaseModel):
    required: List[str] = Field(default_factory=list)
    available: List[str] = Field(default_factory=list)
    matched: List[str] = Field(default_factory=list)
    missing: List[str] = Field(default_factory=list)
    matchPercentage: float = Field(..., ge=0, le=1)
    criticalMissing: List[str] = Field(default_factory=list)


class AvailabilityMatch(BaseModel):
    requestedWindow: TimeWindow
    availabilityWindows: List[GuardAvailability] = Field(default_factory=list)
    overlapPercentage: float = Field(
        ..., ge=0, le=1,
        description="Share of the shift covered by available or preferred windows"
    )
    emergencyOverlapPercentage: float = Field(
        default=0, ge=0, le=1,
        description="Share of the shift covered by emergency-only windows"
    )
    preferredMatch: bool = False
    emergencyOnly: bool = False


class GuardEligibilityResult(BaseModel):
    guardId: str
    shiftId: str
    eligible: bool
    eligibilityScore: float = Field(..., ge=0, le=1)
    reasons: List[str] = Field(default_factory=list)
    conflicts: List[AssignmentConflict] = Field(default_factory=list)
    certificationMatch: CertificationMatch
    availabilityMatch: Optional[AvailabilityMatch] = None
    proximityScore: Optional[float] = None
    performanceScore: Optional[float] = None


class GuardMatchResult(BaseModel):
    """A ranked candidate for a shift."""

    guardId: str
    matchScore: float = Field(..., ge=0, le=1)
    ranking: int = Field(..., ge=1)
    eligibility: GuardEligibilityResult
    certificationScore: float
    availabilityScore: float
    proximityScore: float
    performanceScore: float
    preferenceScore: float
    strengths: List[str] = Field(default_factory=list)
    concerns: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    confidence: MatchConfidence
    recommendedAction: RecommendedAction


class ConflictCheckResult(BaseModel):
    hasConflicts: bool
    conflicts: List[AssignmentConflict] = Field(default_factory=list)
    canProceed: bool
    requiresOverride: bool
    resolutionSuggestions: List[str] = Field(default_factory=list)


# =============================================================================
# Assignment Lifecycle
# =============================================================================


class ShiftAssignment(BaseModel):
    """A guard's assignment to a shift and its lifecycle metadata."""

    id: str
    shiftId: str
    guardId: str
    assignmentStatus: AssignmentStatus = AssignmentStatus.PENDING
    assignedBy: str
    assignedAt: datetime
    guardResponse: Optional[GuardResponse] = None
    guardRespondedAt: Optional[datetime] = None
    guardResponseNotes: Optional[str] = None
    eligibilityScore: Optional[float] = None
    assignmentMethod: AssignmentMethod = AssignmentMethod.MANUAL
    conflictOverridden: bool = False
    overrideReason: Optional[str] = None
    overrideBy: Optional[str] = None
    overrideAt: Optional[datetime] = None
    confirmedBy: Optional[str] = None
    confirmedAt: Optional[datetime] = None
    assignmentNotes: Optional[str] = None
    managerNotes: Optional[str] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class AssignmentCreate(BaseModel):
    """Request to assign a guard to a shift."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "shiftId": "shift-100",
                "guardId": "guard-7",
                "assignmentMethod": "manual",
                "assignedBy": "manager-2",
                "overrideConflicts": False,
            }
        }
    )

    shiftId: str
    guardId: str
    assignmentMethod: AssignmentMethod = AssignmentMethod.MANUAL
    assignedBy: str
    overrideConflicts: bool = False
    overrideReason: Optional[str] = None
    assignmentNotes: Optional[str] = None
    managerNotes: Optional[str] = None


class BatchAssignmentItem(BaseModel):
    shiftId: str
    guardId: str
    success: bool
    assignmentId: Optional[str] = None
    error: Optional[str] = None
    conflicts: List[AssignmentConflict] = Field(default_factory=list)


class BatchAssignmentResult(BaseModel):
    batchId: str
    totalAssignments: int
    successful: int
    failed: int
    items: List[BatchAssignmentItem] = Field(default_factory=list)
    status: BatchStatus
    startedAt: datetime
    completedAt: datetime
