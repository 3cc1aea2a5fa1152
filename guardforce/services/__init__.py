"""
Guardforce Services Module

Business logic for lead scoring and shift assignment. Pure scoring and
matching functions live in their own modules; the two service classes bind
them to a Store and Settings.

Services:
- rule_evaluator: JSON-logic condition compilation and evaluation
- factor_scoring: per-category rule contexts and factor scores
- predictive: cohort-based application / hire probabilities
- lead_scoring: LeadScoringService (scoring, batches, configs, accuracy)
- eligibility: certification / availability / proximity / performance checks
- conflicts: time, availability, certification, location and workload conflicts
- matching: match scores, confidence and recommended actions
- assignments: AssignmentService (ranking and assignment lifecycle)
- export: lead CSV export
"""

# =============================================================================
# Lead Scoring Exports
# =============================================================================
from guardforce.services.rule_evaluator import (
    evaluate,
    evaluate_condition,
    parse_condition,
    validate_condition,
)
from guardforce.services.factor_scoring import (
    CONTEXT_BUILDERS,
    build_rule_context,
    compile_config,
    score_factor,
)
from guardforce.services.predictive import (
    default_probabilities,
    estimate_probabilities,
)
from guardforce.services.lead_scoring import (
    LeadScoringService,
    determine_priority,
    get_default_scoring_config,
    normalize_score,
    scale_score,
)

# =============================================================================
# Shift Assignment Exports
# =============================================================================
from guardforce.services.eligibility import (
    calculate_performance_score,
    calculate_proximity_score,
    evaluate_eligibility,
    match_availability,
    match_certifications,
)
from guardforce.services.conflicts import (
    detect_all_conflicts,
    summarize_conflicts,
)
from guardforce.services.matching import (
    calculate_match,
    rank_matches,
)
from guardforce.services.assignments import (
    ASSIGNMENT_TRANSITIONS,
    AssignmentService,
    can_transition,
)

# =============================================================================
# CSV Export
# =============================================================================
from guardforce.services.export import (
    export_leads_csv,
    parse_leads_csv,
)

__all__ = [
    # Lead scoring
    'evaluate',
    'evaluate_condition',
    'parse_condition',
    'validate_condition',
    'CONTEXT_BUILDERS',
    'build_rule_context',
    'compile_config',
    'score_factor',
    'default_probabilities',
    'estimate_probabilities',
    'LeadScoringService',
    'determine_priority',
    'get_default_scoring_config',
    'normalize_score',
    'scale_score',
    # Shift assignment
    'calculate_performance_score',
    'calculate_proximity_score',
    'evaluate_eligibility',
    'match_availability',
    'match_certifications',
    'detect_all_conflicts',
    'summarize_conflicts',
    'calculate_match',
    'rank_matches',
    'ASSIGNMENT_TRANSITIONS',
    'AssignmentService',
    'can_transition',
    # Export
    'export_leads_csv',
    'parse_leads_csv',
]
