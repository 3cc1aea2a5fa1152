"""
Enumeration definitions for the Guardforce service layer.

All enums inherit from both `str` and `Enum` so they serialize as plain
strings through Pydantic models and compare equal to the raw values stored
in PostgreSQL.

Groups:
- Lead scoring: ScoringCategory, LeadPriority, ApplicationStatus, LeadStatus
- Shift assignment: AssignmentStatus, GuardResponse, AssignmentMethod,
  AvailabilityType, ConflictType, ConflictSeverity, MatchConfidence,
  RecommendedAction, BatchStatus, AssignmentErrorCode
"""

from enum import Enum


# =============================================================================
# Lead Scoring
# =============================================================================

class ScoringCategory(str, Enum):
    """
    Category of a scoring factor.

    The category selects which context builder prepares the attributes a
    factor's rules can reference, and which bucket of the cached
    qualification breakdown the factor feeds.
    """
    EXPERIENCE = "experience"
    LOCATION = "location"
    AVAILABILITY = "availability"
    CERTIFICATIONS = "certifications"
    BACKGROUND = "background"
    SALARY_EXPECTATIONS = "salary_expectations"
    TRANSPORTATION = "transportation"
    MOTIVATION = "motivation"
    SOURCE_QUALITY = "source_quality"


class LeadPriority(str, Enum):
    """Recruiting priority tier derived from the normalized score."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ApplicationStatus(str, Enum):
    """
    Application pipeline stage of a lead.

    Everything from APPLICATION_STARTED through HIRE_COMPLETED counts as
    "applied" for cohort probability estimation.
    """
    LEAD_CAPTURED = "lead_captured"
    APPLICATION_STARTED = "application_started"
    APPLICATION_SUBMITTED = "application_submitted"
    UNDER_REVIEW = "under_review"
    BACKGROUND_CHECK = "background_check"
    INTERVIEW_SCHEDULED = "interview_scheduled"
    INTERVIEW_COMPLETED = "interview_completed"
    REFERENCE_CHECK = "reference_check"
    OFFER_EXTENDED = "offer_extended"
    OFFER_ACCEPTED = "offer_accepted"
    HIRE_COMPLETED = "hire_completed"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


class LeadStatus(str, Enum):
    """Recruiter-facing lead status."""
    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    DISQUALIFIED = "disqualified"
    NURTURING = "nurturing"
    APPLICATION_PENDING = "application_pending"
    CONVERTED = "converted"
    LOST = "lost"


# =============================================================================
# Shift Assignment
# =============================================================================

class AssignmentStatus(str, Enum):
    """
    Lifecycle state of a shift assignment.

    Transitions:
        pending  -> accepted | declined | expired | cancelled
        accepted -> confirmed | cancelled
    CONFIRMED, DECLINED, EXPIRED and CANCELLED are terminal.
    """
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    CONFIRMED = "confirmed"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class GuardResponse(str, Enum):
    """A guard's answer to an assignment offer."""
    ACCEPT = "accept"
    DECLINE = "decline"
    CONDITIONAL = "conditional"


class AssignmentMethod(str, Enum):
    MANUAL = "manual"
    AUTO_MATCHED = "auto_matched"
    GUARD_REQUESTED = "guard_requested"
    EMERGENCY_FILL = "emergency_fill"


class AvailabilityType(str, Enum):
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    PREFERRED = "preferred"
    EMERGENCY_ONLY = "emergency_only"


class ConflictType(str, Enum):
    TIME_OVERLAP = "time_overlap"
    AVAILABILITY_CONFLICT = "availability_conflict"
    CERTIFICATION_MISSING = "certification_missing"
    LOCATION_CONFLICT = "location_conflict"
    WORKLOAD_LIMIT = "workload_limit"


class ConflictSeverity(str, Enum):
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class MatchConfidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RecommendedAction(str, Enum):
    AUTO_ASSIGN = "auto_assign"
    MANAGER_REVIEW = "manager_review"
    NOT_RECOMMENDED = "not_recommended"


class BatchStatus(str, Enum):
    """Outcome of a batch assignment run."""
    COMPLETED = "completed"
    PARTIALLY_COMPLETED = "partially_completed"
    FAILED = "failed"


class AssignmentErrorCode(str, Enum):
    """Machine-readable codes attached to assignment errors."""
    SHIFT_NOT_FOUND = "SHIFT_NOT_FOUND"
    GUARD_NOT_FOUND = "GUARD_NOT_FOUND"
    ASSIGNMENT_NOT_FOUND = "ASSIGNMENT_NOT_FOUND"
    GUARD_NOT_ELIGIBLE = "GUARD_NOT_ELIGIBLE"
    ASSIGNMENT_EXISTS = "ASSIGNMENT_EXISTS"
    CONFLICT_OVERRIDE_REQUIRED = "CONFLICT_OVERRIDE_REQUIRED"
    INVALID_ASSIGNMENT_STATUS = "INVALID_ASSIGNMENT_STATUS"
    RESPONSE_DEADLINE_PASSED = "RESPONSE_DEADLINE_PASSED"
