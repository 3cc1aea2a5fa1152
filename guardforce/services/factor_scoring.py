"""
Factor scoring for guard leads.

A scoring factor groups weighted rules under one ScoringCategory. To score a
factor, the lead is projected into a context record for that category, each
compiled rule condition is evaluated against it, and the points of the rules
that fire are summed.

Context builders:
    Every category maps to a builder in CONTEXT_BUILDERS. All builders
    share the base LeadContext fields; some categories add derived
    attributes (e.g. ``hasReferral`` for source_quality). Categories with no
    special needs use the base record. Adding a category means adding one
    entry to the table.

Scoring:
    max_score = sum of positive rule points (negative rules only subtract)
    score     = max(0, sum of fired rule points)

Usage:
    compiled = compile_factor(factor)
    result = score_factor(lead, compiled)
    result.score, result.maxScore, result.appliedRules
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from guardforce.models.enums import ScoringCategory
from guardforce.models.schemas import (
    AppliedRule,
    FactorScore,
    Lead,
    ScoringConfig,
    ScoringFactor,
    ScoringRule,
)
from guardforce.services.rule_evaluator import Condition, Invalid, evaluate, parse_condition


logger = logging.getLogger(__name__)


# =============================================================================
# Context Records
# =============================================================================

@dataclass(frozen=True)
class LeadContext:
    """Attributes every rule may reference, whatever its category."""
    hasSecurityExperience: bool
    yearsExperience: float
    hasLicense: bool
    transportationAvailable: bool
    willingToRelocate: bool
    salaryExpectations: float
    certificationCount: int
    preferredLocationCount: int
    preferredShiftCount: int
    sourceType: Optional[str]
    applicationStatus: str


@dataclass(frozen=True)
class ExperienceContext(LeadContext):
    experienceYears: float
    hasExperience: bool


@dataclass(frozen=True)
class LocationContext(LeadContext):
    locationCount: int
    canRelocate: bool
    hasTransportation: bool


@dataclass(frozen=True)
class AvailabilityContext(LeadContext):
    fullTime: bool
    partTime: bool
    weekends: bool
    nights: bool


@dataclass(frozen=True)
class CertificationContext(LeadContext):
    certifications: Tuple[str, ...]


@dataclass(frozen=True)
class SalaryContext(LeadContext):
    salary: float


@dataclass(frozen=True)
class SourceQualityContext(LeadContext):
    source: Optional[str]
    hasReferral: bool


def _base_fields(lead: Lead) -> Dict[str, Any]:
    return {
        'hasSecurityExperience': lead.hasSecurityExperience,
        'yearsExperience': lead.yearsExperience or 0,
        'hasLicense': lead.hasLicense,
        'transportationAvailable': lead.transportationAvailable,
        'willingToRelocate': lead.willingToRelocate,
        'salaryExpectations': lead.salaryExpectations or 0,
        'certificationCount': len(lead.certifications),
        'preferredLocationCount': len(lead.preferredLocations),
        'preferredShiftCount': len(lead.preferredShifts),
        'sourceType': lead.sourceType,
        'applicationStatus': lead.applicationStatus.value,
    }


def _base_context(lead: Lead) -> LeadContext:
    return LeadContext(**_base_fields(lead))


def _experience_context(lead: Lead) -> ExperienceContext:
    years = lead.yearsExperience or 0
    return ExperienceContext(
        **_base_fields(lead),
        experienceYears=years,
        hasExperience=lead.hasSecurityExperience,
    )


def _location_context(lead: Lead) -> LocationContext:
    return LocationContext(
        **_base_fields(lead),
        locationCount=len(lead.preferredLocations),
        canRelocate=lead.willingToRelocate,
        hasTransportation=lead.transportationAvailable,
    )


def _availability_context(lead: Lead) -> AvailabilityContext:
    availability = lead.availability
    return AvailabilityContext(
        **_base_fields(lead),
        fullTime=availability.fullTime,
        partTime=availability.partTime,
        weekends=availability.weekends,
        nights=availability.nights,
    )


def _certification_context(lead: Lead) -> CertificationContext:
    return CertificationContext(
        **_base_fields(lead),
        certifications=tuple(lead.certifications),
    )


def _salary_context(lead: Lead) -> SalaryContext:
    return SalaryContext(**_base_fields(lead), salary=lead.salaryExpectations or 0)


def _source_quality_context(lead: Lead) -> SourceQualityContext:
    referral = lead.referralInfo
    return SourceQualityContext(
        **_base_fields(lead),
        source=lead.sourceType,
        hasReferral=bool(referral and referral.referrerGuardId),
    )


CONTEXT_BUILDERS: Dict[ScoringCategory, Callable[[Lead], LeadContext]] = {
    ScoringCategory.EXPERIENCE: _experience_context,
    ScoringCategory.LOCATION: _location_context,
    ScoringCategory.AVAILABILITY: _availability_context,
    ScoringCategory.CERTIFICATIONS: _certification_context,
    ScoringCategory.BACKGROUND: _base_context,
    ScoringCategory.SALARY_EXPECTATIONS: _salary_context,
    ScoringCategory.TRANSPORTATION: _base_context,
    ScoringCategory.MOTIVATION: _base_context,
    ScoringCategory.SOURCE_QUALITY: _source_quality_context,
}


def build_rule_context(lead: Lead, category: ScoringCategory) -> Dict[str, Any]:
    """
    Project a lead into the attribute mapping rules of ``category`` see.

    Args:
        lead: Lead to project.
        category: Scoring category of the factor being evaluated.

    Returns:
        Dict[str, Any]: Context mapping keyed by rule attribute name.
    """
    builder = CONTEXT_BUILDERS.get(category, _base_context)
    return asdict(builder(lead))


# =============================================================================
# Compilation
# =============================================================================

@dataclass(frozen=True)
class CompiledRule:
    rule: ScoringRule
    condition: Condition


@dataclass(frozen=True)
class CompiledFactor:
    factor: ScoringFactor
    rules: Tuple[CompiledRule, ...]


def compile_factor(factor: ScoringFactor) -> CompiledFactor:
    """Parse every rule condition of a factor once."""
    rules = []
    for rule in factor.scoringRules:
        condition = parse_condition(rule.condition)
        if isinstance(condition, Invalid):
            logger.warning(
                f"Rule {rule.id} in factor {factor.id} will never fire: {condition.reason}"
            )
        rules.append(CompiledRule(rule=rule, condition=condition))
    return CompiledFactor(factor=factor, rules=tuple(rules))


def compile_config(config: ScoringConfig) -> List[CompiledFactor]:
    """Compile the active factors of a scoring configuration."""
    return [compile_factor(factor) for factor in config.factors if factor.isActive]


# =============================================================================
# Scoring
# =============================================================================

def score_factor(
    lead: Lead,
    factor: Union[ScoringFactor, CompiledFactor],
) -> FactorScore:
    """
    Score one factor for one lead.

    Args:
        lead: Lead being scored.
        factor: Factor definition, raw or already compiled.

    Returns:
        FactorScore: Earned score (floored at 0), attainable maximum and
            the rules that fired in definition order.
    """
    compiled = factor if isinstance(factor, CompiledFactor) else compile_factor(factor)
    definition = compiled.factor
    context = build_rule_context(lead, definition.category)

    total = 0.0
    max_score = 0.0
    applied: List[AppliedRule] = []

    for compiled_rule in compiled.rules:
        rule = compiled_rule.rule
        if rule.points > 0:
            max_score += rule.points
        if evaluate(compiled_rule.condition, context):
            total += rule.points
            applied.append(
                AppliedRule(ruleId=rule.id, points=rule.points, reason=rule.description)
            )

    return FactorScore(
        factorId=definition.id,
        factorName=definition.name,
        category=definition.category,
        weight=definition.weight,
        score=max(0.0, total),
        maxScore=max_score,
        appliedRules=applied,
    )
