"""
Models package for the Guardforce service layer.

Provides:
- enums: str-valued enumerations for scoring categories, lead and
  assignment lifecycle states, conflict types and match outcomes
- schemas: Pydantic v2 models for scoring configuration, leads, score
  calculations, shifts, guards, eligibility results and assignments
"""

from guardforce.models.enums import (
    ApplicationStatus,
    AssignmentErrorCode,
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
from guardforce.models.schemas import (
    AppliedRule,
    AssignmentConflict,
    AssignmentCreate,
    AvailabilityMatch,
    BatchAssignmentItem,
    BatchAssignmentResult,
    BatchScoreResult,
    CertificationMatch,
    ConflictCheckResult,
    FactorScore,
    GeoPoint,
    GuardAvailability,
    GuardCertification,
    GuardEligibilityResult,
    GuardMatchResult,
    GuardPreferences,
    GuardProfile,
    HourRange,
    Lead,
    LeadAvailability,
    LeadScoreCalculation,
    OutcomeRecord,
    PerformanceMetrics,
    PrioritizedLead,
    ProbabilityEstimate,
    QualificationFactors,
    ReferralInfo,
    ScheduledCommitment,
    ScoringAccuracyReport,
    ScoringConfig,
    ScoringFactor,
    ScoringRule,
    Shift,
    ShiftAssignment,
    TimeWindow,
    WeightRecommendation,
)

__all__ = [
    # Enums
    'ApplicationStatus',
    'AssignmentErrorCode',
    'AssignmentMethod',
    'AssignmentStatus',
    'AvailabilityType',
    'BatchStatus',
    'ConflictSeverity',
    'ConflictType',
    'GuardResponse',
    'LeadPriority',
    'LeadStatus',
    'MatchConfidence',
    'RecommendedAction',
    'ScoringCategory',
    # Scoring
    'AppliedRule',
    'BatchScoreResult',
    'FactorScore',
    'Lead',
    'LeadAvailability',
    'LeadScoreCalculation',
    'OutcomeRecord',
    'PrioritizedLead',
    'ProbabilityEstimate',
    'QualificationFactors',
    'ReferralInfo',
    'ScoringAccuracyReport',
    'ScoringConfig',
    'ScoringFactor',
    'ScoringRule',
    'WeightRecommendation',
    # Scheduling
    'AssignmentConflict',
    'AssignmentCreate',
    'AvailabilityMatch',
    'BatchAssignmentItem',
    'BatchAssignmentResult',
    'CertificationMatch',
    'ConflictCheckResult',
    'GeoPoint',
    'GuardAvailability',
    'GuardCertification',
    'GuardEligibilityResult',
    'GuardMatchResult',
    'GuardPreferences',
    'GuardProfile',
    'HourRange',
    'ScheduledCommitment',
    'Shift',
    'ShiftAssignment',
    'TimeWindow',
]
