"""
Guard lead scoring service.

Turns a lead's raw attributes into a normalized 0-100 qualification score,
a qualification flag, a recruiting priority and application / hire
probabilities, using the active versioned ScoringConfig.

Pipeline per lead:
    1. Load the lead and the active configuration (rules compiled once)
    2. Score each active factor (guardforce.services.factor_scoring)
    3. weighted_total = sum(score * weight), weighted_max = sum(max_score * weight)
    4. normalized = weighted_total / weighted_max * 100 (0 when weighted_max is 0)
    5. qualified  = normalized >= qualificationThreshold
       priority   = high if normalized >= highPriorityThreshold,
                    medium if qualified, else low
    6. Probabilities from the historical cohort (guardforce.services.predictive)
    7. Persist the calculation and refresh the lead's cached score fields

Failure policy:
    Missing lead -> NotFoundError. Missing/inactive config ->
    ConfigurationError. Write-back failures in step 7 are logged and the
    computed calculation is still returned. Concurrent recalculation of the
    same lead is "last write wins"; no locking is attempted.

Other operations:
    - batch_score_leads: bounded-concurrency scoring with per-lead error capture
    - get_prioritized_leads: recruiter work queue ordered by score
    - update_scoring_config: versioned, validated config edits
    - initialize_default_scoring_config: seed the default configuration
    - analyze_scoring_accuracy: agreement between scores and outcomes

Dependencies:
    - numpy: vectorized accuracy computation
    - guardforce.core.store.Store: persistence adapter (injected)
    - guardforce.core.config.Settings: thresholds and limits (injected)
"""

import asyncio
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import numpy as np
from pydantic import ValidationError as PydanticValidationError

from guardforce.core.config import Settings
from guardforce.core.exceptions import (
    ConfigurationError,
    InsufficientDataError,
    NotFoundError,
    ValidationError,
)
from guardforce.core.store import Store, new_id
from guardforce.models.enums import ApplicationStatus, LeadPriority, LeadStatus, ScoringCategory
from guardforce.models.schemas import (
    BatchScoreResult,
    FactorScore,
    Lead,
    LeadScoreCalculation,
    PrioritizedLead,
    QualificationFactors,
    ScoringAccuracyReport,
    ScoringConfig,
    ScoringFactor,
    ScoringRule,
    WeightRecommendation,
)
from guardforce.services.factor_scoring import CompiledFactor, compile_config, score_factor
from guardforce.services.predictive import APPLICATION_STATUSES, estimate_probabilities, round_half_up
from guardforce.services.rule_evaluator import validate_condition


logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

DEFAULT_CONFIG_ID = 'default'
DEFAULT_CONFIG_NAME = 'Default Guard Lead Scoring'

# Score bands used when judging whether a score agreed with the outcome
ACCURACY_HIGH_SCORE: float = 70.0
ACCURACY_MEDIUM_SCORE: float = 50.0

# Applications that went past the first step
COMPLETED_APPLICATION_STATUSES = APPLICATION_STATUSES - {ApplicationStatus.APPLICATION_STARTED}

WEIGHT_RECOMMENDATION_STEP: float = 0.05

# Category -> field of the cached qualification breakdown
CATEGORY_BREAKDOWN_FIELDS: Dict[ScoringCategory, str] = {
    ScoringCategory.EXPERIENCE: 'experienceScore',
    ScoringCategory.LOCATION: 'locationScore',
    ScoringCategory.AVAILABILITY: 'availabilityScore',
    ScoringCategory.CERTIFICATIONS: 'certificationScore',
    ScoringCategory.BACKGROUND: 'backgroundScore',
    ScoringCategory.SALARY_EXPECTATIONS: 'salaryExpectationScore',
    ScoringCategory.TRANSPORTATION: 'transportationScore',
    ScoringCategory.MOTIVATION: 'motivationScore',
    ScoringCategory.SOURCE_QUALITY: 'sourceQualityScore',
}

UPDATABLE_CONFIG_FIELDS = frozenset({
    'name',
    'description',
    'qualificationThreshold',
    'highPriorityThreshold',
    'accuracy',
    'factors',
})


# =============================================================================
# Default Configuration
# =============================================================================

def _rule(rule_id: str, condition: Dict[str, Any], points: float, description: str) -> ScoringRule:
    return ScoringRule(
        id=rule_id,
        condition=json.dumps(condition),
        points=points,
        description=description,
    )


def get_default_scoring_config() -> ScoringConfig:
    """
    The seed configuration used when no configuration exists yet.

    Six factors: experience (0.25), location (0.20), availability (0.15),
    certifications (0.20), source quality (0.10), salary expectations (0.10).
    """
    factors = [
        ScoringFactor(
            id='experience',
            name='Security Experience',
            category=ScoringCategory.EXPERIENCE,
            weight=0.25,
            scoringRules=[
                _rule('exp_5plus', {'>=': ['yearsExperience', 5]}, 25, '5+ years experience'),
                _rule('exp_2plus', {'>=': ['yearsExperience', 2]}, 15, '2+ years experience'),
                _rule(
                    'has_security_exp',
                    {'==': ['hasSecurityExperience', True]},
                    10,
                    'Has security experience',
                ),
            ],
        ),
        ScoringFactor(
            id='location',
            name='Location Flexibility',
            category=ScoringCategory.LOCATION,
            weight=0.20,
            scoringRules=[
                _rule('has_transport', {'==': ['hasTransportation', True]}, 15, 'Has reliable transportation'),
                _rule('will_relocate', {'==': ['willingToRelocate', True]}, 10, 'Willing to relocate'),
                _rule('multi_location', {'>=': ['locationCount', 3]}, 10, 'Flexible on multiple locations'),
            ],
        ),
        ScoringFactor(
            id='availability',
            name='Availability',
            category=ScoringCategory.AVAILABILITY,
            weight=0.15,
            scoringRules=[
                _rule('full_time', {'==': ['fullTime', True]}, 15, 'Available full-time'),
                _rule('weekends', {'==': ['weekends', True]}, 10, 'Available weekends'),
                _rule('nights', {'==': ['nights', True]}, 10, 'Available nights'),
            ],
        ),
        ScoringFactor(
            id='certifications',
            name='Certifications',
            category=ScoringCategory.CERTIFICATIONS,
            weight=0.20,
            scoringRules=[
                _rule('has_license', {'==': ['hasLicense', True]}, 20, 'Has security license'),
                _rule('multi_cert', {'>=': ['certificationCount', 2]}, 10, 'Multiple certifications'),
            ],
        ),
        ScoringFactor(
            id='source_quality',
            name='Source Quality',
            category=ScoringCategory.SOURCE_QUALITY,
            weight=0.10,
            scoringRules=[
                _rule('referral', {'==': ['hasReferral', True]}, 15, 'Referred by current guard'),
                _rule(
                    'quality_source',
                    {'in': ['source', ['direct_website', 'referral']]},
                    10,
                    'High-quality lead source',
                ),
            ],
        ),
        ScoringFactor(
            id='salary',
            name='Salary Expectations',
            category=ScoringCategory.SALARY_EXPECTATIONS,
            weight=0.10,
            scoringRules=[
                _rule('reasonable_salary', {'<=': ['salary', 45000]}, 10, 'Reasonable salary expectations'),
                _rule('competitive_salary', {'<=': ['salary', 35000]}, 15, 'Very competitive salary expectations'),
            ],
        ),
    ]

    return ScoringConfig(
        id=DEFAULT_CONFIG_ID,
        name=DEFAULT_CONFIG_NAME,
        description='Default scoring configuration for security guard leads',
        version=1,
        qualificationThreshold=60,
        highPriorityThreshold=80,
        accuracy=75,
        isActive=True,
        factors=factors,
    )


# =============================================================================
# Pure Helpers
# =============================================================================

def scale_score(weighted_total: float, weighted_max: float) -> float:
    """Scale a weighted total to 0-100 (0 when nothing is attainable), unrounded."""
    if weighted_max <= 0:
        return 0.0
    return min(100.0, max(0.0, weighted_total / weighted_max * 100))


def normalize_score(weighted_total: float, weighted_max: float) -> float:
    """The scaled score rounded to 2 decimals, as stored."""
    return round_half_up(scale_score(weighted_total, weighted_max))


def determine_priority(normalized_score: float, config: ScoringConfig) -> LeadPriority:
    if normalized_score >= config.highPriorityThreshold:
        return LeadPriority.HIGH
    if normalized_score >= config.qualificationThreshold:
        return LeadPriority.MEDIUM
    return LeadPriority.LOW


def build_qualification_factors(
    factor_scores: Iterable[FactorScore],
    normalized_score: float,
) -> QualificationFactors:
    """
    Per-category 0-100 breakdown for the lead's cached fields.

    Factors sharing a category are pooled before scaling.
    """
    earned: Dict[ScoringCategory, float] = {}
    attainable: Dict[ScoringCategory, float] = {}
    for factor_score in factor_scores:
        earned[factor_score.category] = earned.get(factor_score.category, 0.0) + factor_score.score
        attainable[factor_score.category] = (
            attainable.get(factor_score.category, 0.0) + factor_score.maxScore
        )

    breakdown = {}
    for category, field_name in CATEGORY_BREAKDOWN_FIELDS.items():
        maximum = attainable.get(category, 0.0)
        breakdown[field_name] = round(earned[category] / maximum * 100, 2) if maximum > 0 else 0.0

    return QualificationFactors(**breakdown, totalScore=normalized_score)


def _factor_weight(config: Optional[ScoringConfig], category: ScoringCategory) -> Optional[float]:
    if config is None:
        return None
    for factor in config.factors:
        if factor.isActive and factor.category == category:
            return factor.weight
    return None


# =============================================================================
# Service
# =============================================================================

class LeadScoringService:
    """
    Lead scoring operations bound to one store and one settings object.

    Instances are built by guardforce.core.dependencies.build_services().
    """

    def __init__(self, store: Store, settings: Settings):
        self.store = store
        self.settings = settings

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    async def get_scoring_config(self, config_id: Optional[str] = None) -> ScoringConfig:
        """
        Load the active scoring configuration.

        Raises:
            ConfigurationError: If the configuration is missing or inactive.
        """
        config = await self.store.get_scoring_config(config_id)
        if config is None or not config.isActive:
            target = f"'{config_id}'" if config_id else "(active)"
            raise ConfigurationError(f"No active scoring configuration found for {target}")
        return config

    async def update_scoring_config(
        self,
        config_id: str,
        updates: Dict[str, Any],
    ) -> ScoringConfig:
        """
        Apply edits to a configuration as a new version.

        The previous version is deactivated so exactly one configuration
        stays active. Stored calculations keep their original configId.

        Args:
            config_id: Configuration being edited.
            updates: Field values to change (name, description,
                qualificationThreshold, highPriorityThreshold, accuracy, factors).

        Returns:
            ScoringConfig: The newly saved version.

        Raises:
            ConfigurationError: If the config does not exist or a rule
                condition is malformed.
            ValidationError: If the edit is structurally invalid.
        """
        current = await self.get_scoring_config(config_id)

        unknown = set(updates) - UPDATABLE_CONFIG_FIELDS
        if unknown:
            raise ValidationError(
                f"Unsupported scoring config fields: {', '.join(sorted(unknown))}"
            )

        data = current.model_dump()
        data.update(updates)
        data.update(
            id=new_id(),
            version=current.version + 1,
            isActive=True,
            createdAt=None,
            updatedAt=None,
        )

        try:
            candidate = ScoringConfig.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid scoring config: {e}") from e

        if candidate.highPriorityThreshold < candidate.qualificationThreshold:
            raise ValidationError(
                "High priority threshold must not be below the qualification threshold",
                details={
                    'qualificationThreshold': candidate.qualificationThreshold,
                    'highPriorityThreshold': candidate.highPriorityThreshold,
                },
            )

        for factor in candidate.factors:
            for rule in factor.scoringRules:
                validate_condition(rule.condition)

        saved = await self.store.save_scoring_config(candidate)
        await self.store.deactivate_scoring_config(current.id)

        logger.info(
            f"Scoring config '{saved.name}' updated: v{current.version} -> v{saved.version}"
        )
        return saved

    async def initialize_default_scoring_config(self) -> ScoringConfig:
        """
        Persist the default seed configuration unless it already exists.

        The seed is only activated when no other configuration is active.
        """
        existing = await self.store.get_scoring_config_by_name(DEFAULT_CONFIG_NAME)
        if existing is not None:
            return existing

        active = await self.store.get_scoring_config()
        seed = get_default_scoring_config().model_copy(update={'isActive': active is None})
        saved = await self.store.save_scoring_config(seed)
        logger.info(f"Default scoring configuration seeded (active={saved.isActive})")
        return saved

    # -------------------------------------------------------------------------
    # Scoring
    # -------------------------------------------------------------------------

    async def calculate_lead_score(
        self,
        lead_id: str,
        config_id: Optional[str] = None,
    ) -> LeadScoreCalculation:
        """
        Score one lead against the active configuration.

        Args:
            lead_id: Lead to score.
            config_id: Specific configuration to use (must be active).

        Returns:
            LeadScoreCalculation: The stored (or, on write failure, computed)
                calculation.

        Raises:
            NotFoundError: If the lead does not exist.
            ConfigurationError: If no active configuration is available.
        """
        lead = await self._load_lead(lead_id)
        config = await self.get_scoring_config(config_id)
        return await self._score_loaded_lead(lead, config, compile_config(config))

    async def _load_lead(self, lead_id: str) -> Lead:
        lead = await self.store.get_lead(lead_id)
        if lead is None:
            raise NotFoundError(f"Lead {lead_id} not found")
        return lead

    async def _score_lead(
        self,
        lead_id: str,
        config: ScoringConfig,
        factors: Sequence[CompiledFactor],
    ) -> LeadScoreCalculation:
        lead = await self._load_lead(lead_id)
        return await self._score_loaded_lead(lead, config, factors)

    async def _score_loaded_lead(
        self,
        lead: Lead,
        config: ScoringConfig,
        factors: Sequence[CompiledFactor],
    ) -> LeadScoreCalculation:
        factor_scores = [score_factor(lead, factor) for factor in factors]

        weighted_total = sum(fs.score * fs.weight for fs in factor_scores)
        weighted_max = sum(fs.maxScore * fs.weight for fs in factor_scores)
        # Thresholds and bands see the unrounded score; only storage is rounded
        scaled = scale_score(weighted_total, weighted_max)
        normalized = round_half_up(scaled)

        estimate = await estimate_probabilities(
            self.store,
            scaled,
            cohort_window=self.settings.cohort_score_window,
            min_cohort_size=self.settings.min_cohort_size,
        )

        calculation = LeadScoreCalculation(
            leadId=lead.id,
            configId=config.id,
            configVersion=config.version,
            totalScore=round(weighted_total, 4),
            maxPossibleScore=round(weighted_max, 4),
            normalizedScore=normalized,
            factorScores=factor_scores,
            isQualified=scaled >= config.qualificationThreshold,
            priority=determine_priority(scaled, config),
            applicationProbability=estimate.applicationProbability,
            hireProbability=estimate.hireProbability,
            calculatedAt=datetime.now(timezone.utc),
        )

        return await self._write_back(calculation)

    async def _write_back(self, calculation: LeadScoreCalculation) -> LeadScoreCalculation:
        stored = calculation
        try:
            stored = await self.store.insert_lead_score_calculation(calculation)
        except Exception as e:
            logger.error(f"Error storing score calculation for lead {calculation.leadId}: {e}")

        try:
            await self.store.update_lead_cached_fields(
                calculation.leadId,
                calculation.normalizedScore,
                build_qualification_factors(
                    calculation.factorScores, calculation.normalizedScore
                ),
                calculation.applicationProbability,
            )
        except Exception as e:
            logger.error(f"Error updating cached score for lead {calculation.leadId}: {e}")

        return stored

    async def batch_score_leads(
        self,
        lead_ids: Sequence[str],
        config_id: Optional[str] = None,
    ) -> BatchScoreResult:
        """
        Score many leads with bounded concurrency.

        Leads are processed in chunks of ``batch_chunk_size``; leads within a
        chunk run concurrently, chunks run one after another. A failing lead
        never aborts the batch: its error is recorded as
        ``"Lead <id>: <message>"``.

        Raises:
            ValidationError: If lead_ids is empty or exceeds max_batch_leads.
            ConfigurationError: If no active configuration is available.
        """
        if not lead_ids:
            raise ValidationError("At least one lead id is required")
        if len(lead_ids) > self.settings.max_batch_leads:
            raise ValidationError(
                f"Batch size {len(lead_ids)} exceeds the maximum of "
                f"{self.settings.max_batch_leads} leads"
            )

        config = await self.get_scoring_config(config_id)
        factors = compile_config(config)

        calculations: List[LeadScoreCalculation] = []
        errors: List[str] = []
        chunk_size = max(1, self.settings.batch_chunk_size)

        for start in range(0, len(lead_ids), chunk_size):
            chunk = lead_ids[start:start + chunk_size]
            results = await asyncio.gather(
                *(self._score_lead(lead_id, config, factors) for lead_id in chunk),
                return_exceptions=True,
            )
            for lead_id, result in zip(chunk, results):
                if isinstance(result, Exception):
                    errors.append(f"Lead {lead_id}: {result}")
                elif isinstance(result, BaseException):
                    raise result
                else:
                    calculations.append(result)

        if errors:
            message = f"Scored {len(calculations)} leads with {len(errors)} errors"
            logger.warning(message)
        else:
            message = f"Scored {len(calculations)} leads"
            logger.info(message)

        return BatchScoreResult(calculations=calculations, errors=errors, message=message)

    # -------------------------------------------------------------------------
    # Recruiter queue
    # -------------------------------------------------------------------------

    async def get_prioritized_leads(
        self,
        recruiter_id: Optional[str] = None,
        statuses: Optional[Sequence[Union[LeadStatus, str]]] = None,
        limit: int = 50,
    ) -> List[PrioritizedLead]:
        """
        Leads ordered by qualification score (highest first, unscored last),
        each with its most recent calculation.

        Raises:
            ValidationError: If limit is outside 1..max_prioritized_leads.
        """
        if limit < 1 or limit > self.settings.max_prioritized_leads:
            raise ValidationError(
                f"limit must be between 1 and {self.settings.max_prioritized_leads}"
            )

        status_values = [LeadStatus(status).value for status in statuses] if statuses else None
        return await self.store.list_prioritized_leads(recruiter_id, status_values, limit)

    # -------------------------------------------------------------------------
    # Accuracy analysis
    # -------------------------------------------------------------------------

    async def analyze_scoring_accuracy(
        self,
        config_id: Optional[str] = None,
        lookback_days: Optional[int] = None,
    ) -> ScoringAccuracyReport:
        """
        Measure how often scores agreed with observed outcomes.

        A scored lead counts as correctly scored when:
            score >= 70 and it was hired or completed its application
            50 <= score < 70 and it completed its application without a hire
            score < 50 and it did not complete its application

        Args:
            config_id: Configuration whose weights feed recommendations.
            lookback_days: Window of lead creation dates to analyze.

        Returns:
            ScoringAccuracyReport: Accuracy (0-100, 2 dp), sample size,
                calibration flag and weight recommendations.

        Raises:
            InsufficientDataError: If fewer than min_accuracy_samples scored
                leads fall in the window.
        """
        days = lookback_days or self.settings.accuracy_lookback_days
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        outcomes = [
            outcome for outcome in await self.store.get_scored_outcomes_since(cutoff)
            if outcome.qualificationScore is not None
        ]

        if len(outcomes) < self.settings.min_accuracy_samples:
            raise InsufficientDataError(
                f"Insufficient data for accuracy analysis: {len(outcomes)} scored leads, "
                f"{self.settings.min_accuracy_samples} required",
                details={'sampleSize': len(outcomes), 'lookbackDays': days},
            )

        scores = np.array([outcome.qualificationScore for outcome in outcomes], dtype=float)
        hired = np.array([outcome.convertedToHire for outcome in outcomes], dtype=bool)
        completed = np.array(
            [outcome.applicationStatus in COMPLETED_APPLICATION_STATUSES for outcome in outcomes],
            dtype=bool,
        )

        high = scores >= ACCURACY_HIGH_SCORE
        medium = (scores >= ACCURACY_MEDIUM_SCORE) & ~high
        low = scores < ACCURACY_MEDIUM_SCORE

        correct = (
            (high & (hired | completed))
            | (medium & completed & ~hired)
            | (low & ~completed)
        )
        accuracy = round(float(correct.mean() * 100), 2)

        config = await self.store.get_scoring_config(config_id)
        recommendations = self._weight_recommendations(accuracy, config)

        logger.info(
            f"Scoring accuracy over {days} days: {accuracy}% on {len(outcomes)} leads"
        )

        return ScoringAccuracyReport(
            configId=config.id if config else config_id,
            accuracy=accuracy,
            sampleSize=len(outcomes),
            calibrationNeeded=accuracy < self.settings.calibration_accuracy_threshold,
            recommendations=recommendations,
        )

    def _weight_recommendations(
        self,
        accuracy: float,
        config: Optional[ScoringConfig],
    ) -> List[WeightRecommendation]:
        recommendations = []

        experience_weight = _factor_weight(config, ScoringCategory.EXPERIENCE)
        if accuracy < 65 and experience_weight is not None:
            recommendations.append(
                WeightRecommendation(
                    factor=ScoringCategory.EXPERIENCE.value,
                    currentWeight=experience_weight,
                    recommendedWeight=round(experience_weight + WEIGHT_RECOMMENDATION_STEP, 2),
                    reason='Experience appears to be a stronger predictor of success',
                )
            )

        source_weight = _factor_weight(config, ScoringCategory.SOURCE_QUALITY)
        if accuracy < 70 and source_weight is not None:
            recommendations.append(
                WeightRecommendation(
                    factor=ScoringCategory.SOURCE_QUALITY.value,
                    currentWeight=source_weight,
                    recommendedWeight=round(source_weight + WEIGHT_RECOMMENDATION_STEP, 2),
                    reason='Lead source quality shows higher correlation with conversion',
                )
            )

        return recommendations
