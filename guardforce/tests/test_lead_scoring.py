"""
Tests for the lead scoring service.

Covers:
- Normalization and priority bands
- Single-lead scoring against the default configuration
- Degrade-gracefully write-back
- Batch scoring with per-lead errors
- Versioned configuration edits and default seeding
- Accuracy analysis and the prioritized recruiter queue

The default configuration's weighted maximum is 35.75:
    experience 50 * 0.25 + location 35 * 0.20 + availability 35 * 0.15
    + certifications 30 * 0.20 + source quality 25 * 0.10 + salary 25 * 0.10
"""

from datetime import datetime, timedelta, timezone

import pytest

from guardforce.core.exceptions import (
    ConfigurationError,
    InsufficientDataError,
    NotFoundError,
    ValidationError,
)
from guardforce.models.enums import ApplicationStatus, LeadPriority, LeadStatus, ScoringCategory
from guardforce.models.schemas import FactorScore, OutcomeRecord, ScoringConfig
from guardforce.services.lead_scoring import (
    DEFAULT_CONFIG_ID,
    DEFAULT_CONFIG_NAME,
    LeadScoringService,
    build_qualification_factors,
    determine_priority,
    get_default_scoring_config,
    normalize_score,
)
from guardforce.tests.fakes import InMemoryStore, make_lead, make_strong_lead, make_weak_lead


pytestmark = pytest.mark.asyncio

DEFAULT_WEIGHTED_MAX = 35.75


def single_factor_config(config_id='custom', rules=None, **factor_overrides):
    factor = {
        'id': 'background',
        'name': 'Background',
        'category': 'background',
        'weight': 1.0,
        'scoringRules': rules or [],
    }
    factor.update(factor_overrides)
    return ScoringConfig.model_validate({
        'id': config_id,
        'name': f"Config {config_id}",
        'factors': [factor],
    })


def outcome(score, status, hired=False, days_ago=1):
    return OutcomeRecord(
        leadId=f"hist-{score}-{status}-{days_ago}",
        qualificationScore=score,
        applicationStatus=status,
        convertedToHire=hired,
        createdAt=datetime.now(timezone.utc) - timedelta(days=days_ago),
    )


# =============================================================================
# Pure helpers
# =============================================================================

class TestScoreHelpers:

    async def test_normalize_score_bounds(self):
        assert normalize_score(5, 10) == 50.0
        assert normalize_score(0, 0) == 0.0
        assert normalize_score(3, -1) == 0.0
        assert normalize_score(15, 10) == 100.0
        assert normalize_score(-2, 10) == 0.0
        assert normalize_score(1, 3) == 33.33

    async def test_priority_bands(self):
        config = get_default_scoring_config()
        assert determine_priority(80, config) == LeadPriority.HIGH
        assert determine_priority(79.99, config) == LeadPriority.MEDIUM
        assert determine_priority(60, config) == LeadPriority.MEDIUM
        assert determine_priority(59.99, config) == LeadPriority.LOW

    async def test_breakdown_pools_factors_by_category(self):
        scores = [
            FactorScore(factorId='a', factorName='A', category=ScoringCategory.EXPERIENCE,
                        weight=0.5, score=10, maxScore=20),
            FactorScore(factorId='b', factorName='B', category=ScoringCategory.EXPERIENCE,
                        weight=0.5, score=20, maxScore=20),
            FactorScore(factorId='c', factorName='C', category=ScoringCategory.SOURCE_QUALITY,
                        weight=0.1, score=0, maxScore=25),
        ]
        breakdown = build_qualification_factors(scores, 61.5)
        assert breakdown.experienceScore == 75.0
        assert breakdown.sourceQualityScore == 0.0
        assert breakdown.motivationScore == 0.0
        assert breakdown.totalScore == 61.5


# =============================================================================
# Single lead scoring
# =============================================================================

class TestCalculateLeadScore:

    async def test_perfect_lead_scores_maximum(self, services, store):
        store.add_lead(make_strong_lead())

        calculation = await services.lead_scoring.calculate_lead_score('lead-strong')

        assert calculation.normalizedScore == 100.0
        assert calculation.totalScore == pytest.approx(DEFAULT_WEIGHTED_MAX)
        assert calculation.maxPossibleScore == pytest.approx(DEFAULT_WEIGHTED_MAX)
        assert calculation.isQualified is True
        assert calculation.priority == LeadPriority.HIGH
        assert calculation.configId == DEFAULT_CONFIG_ID
        assert calculation.configVersion == 1
        assert len(calculation.factorScores) == 6
        for factor_score in calculation.factorScores:
            assert factor_score.score == factor_score.maxScore

    async def test_default_probabilities_without_history(self, services, store):
        store.add_lead(make_strong_lead())

        calculation = await services.lead_scoring.calculate_lead_score('lead-strong')

        assert calculation.applicationProbability == 0.85
        assert calculation.hireProbability == 0.65

    async def test_weak_lead_scores_zero(self, services, store):
        store.add_lead(make_weak_lead())

        calculation = await services.lead_scoring.calculate_lead_score('lead-weak')

        assert calculation.normalizedScore == 0.0
        assert calculation.isQualified is False
        assert calculation.priority == LeadPriority.LOW
        assert calculation.applicationProbability == 0.15
        assert calculation.hireProbability == 0.05
        assert all(not fs.appliedRules for fs in calculation.factorScores)

    async def test_more_experience_never_lowers_score(self, services, store):
        store.add_lead(make_weak_lead('junior', yearsExperience=3))
        store.add_lead(make_weak_lead('senior', yearsExperience=6))

        junior = await services.lead_scoring.calculate_lead_score('junior')
        senior = await services.lead_scoring.calculate_lead_score('senior')

        assert junior.normalizedScore == pytest.approx(15 * 0.25 / DEFAULT_WEIGHTED_MAX * 100, abs=0.01)
        assert senior.normalizedScore == pytest.approx(40 * 0.25 / DEFAULT_WEIGHTED_MAX * 100, abs=0.01)
        assert senior.normalizedScore >= junior.normalizedScore

    async def test_applied_rules_are_reported(self, services, store):
        store.add_lead(make_weak_lead(hasLicense=True))

        calculation = await services.lead_scoring.calculate_lead_score('lead-weak')

        certifications = next(
            fs for fs in calculation.factorScores if fs.factorId == 'certifications'
        )
        assert certifications.score == 20
        assert certifications.maxScore == 30
        assert [rule.ruleId for rule in certifications.appliedRules] == ['has_license']
        assert certifications.appliedRules[0].reason == 'Has security license'

    async def test_results_are_persisted_and_cached(self, services, store):
        store.add_lead(make_strong_lead())

        calculation = await services.lead_scoring.calculate_lead_score('lead-strong')

        assert calculation.id is not None
        assert store.calculations[-1].id == calculation.id
        lead = store.leads['lead-strong']
        assert lead.qualificationScore == 100.0
        assert lead.applicationCompletionProbability == 0.85
        assert lead.qualificationFactors.experienceScore == 100.0
        assert lead.qualificationFactors.backgroundScore == 0.0
        assert lead.qualificationFactors.totalScore == 100.0

    async def test_missing_lead(self, services):
        with pytest.raises(NotFoundError) as exc_info:
            await services.lead_scoring.calculate_lead_score('nope')
        assert str(exc_info.value) == 'Lead nope not found'

    async def test_missing_lead_reported_before_missing_config(self, settings):
        empty = InMemoryStore()

        with pytest.raises(NotFoundError):
            await LeadScoringService(empty, settings).calculate_lead_score('nope')

    async def test_thresholds_use_unrounded_score(self, services, store):
        store.add_lead(make_lead('edge'))
        store.add_config(single_factor_config('edge', rules=[
            {'id': 'most', 'condition': True, 'points': 19999},
            {'id': 'rest', 'condition': False, 'points': 5001},
        ]))

        calculation = await services.lead_scoring.calculate_lead_score('edge', config_id='edge')

        assert calculation.normalizedScore == 80.0
        assert calculation.priority == LeadPriority.MEDIUM
        assert calculation.isQualified is True

    async def test_no_active_config(self, settings):
        empty = InMemoryStore()
        empty.add_lead(make_strong_lead())

        with pytest.raises(ConfigurationError):
            await LeadScoringService(empty, settings).calculate_lead_score('lead-strong')

    async def test_inactive_config_by_id(self, services, store):
        store.add_lead(make_strong_lead())
        store.add_config(single_factor_config('retired').model_copy(update={'isActive': False}))

        with pytest.raises(ConfigurationError):
            await services.lead_scoring.calculate_lead_score('lead-strong', config_id='retired')

    async def test_cache_write_failure_still_returns(self, services, store):
        store.add_lead(make_strong_lead())
        store.fail_cache_writes = True

        calculation = await services.lead_scoring.calculate_lead_score('lead-strong')

        assert calculation.normalizedScore == 100.0
        assert len(store.calculations) == 1
        assert store.leads['lead-strong'].qualificationScore is None

    async def test_calculation_insert_failure_still_returns(self, services, store):
        store.add_lead(make_strong_lead())
        store.fail_calculation_inserts = True

        calculation = await services.lead_scoring.calculate_lead_score('lead-strong')

        assert calculation.normalizedScore == 100.0
        assert store.calculations == []
        assert store.leads['lead-strong'].qualificationScore == 100.0

    async def test_negative_rules_floor_at_zero(self, services, store):
        store.add_lead(make_lead('plain'))
        store.add_config(single_factor_config('penalty', rules=[
            {'id': 'bonus', 'condition': {'==': ['hasLicense', True]}, 'points': 10},
            {'id': 'penalty', 'condition': True, 'points': -20},
        ]))

        calculation = await services.lead_scoring.calculate_lead_score('plain', config_id='penalty')

        factor = calculation.factorScores[0]
        assert factor.score == 0
        assert factor.maxScore == 10
        assert calculation.normalizedScore == 0.0

    async def test_inactive_factors_are_skipped(self, services, store):
        store.add_lead(make_lead('plain'))
        store.add_config(single_factor_config(
            'dormant',
            rules=[{'id': 'always', 'condition': True, 'points': 5}],
            isActive=False,
        ))

        calculation = await services.lead_scoring.calculate_lead_score('plain', config_id='dormant')

        assert calculation.factorScores == []
        assert calculation.maxPossibleScore == 0
        assert calculation.normalizedScore == 0.0

    async def test_malformed_stored_rule_never_fires(self, services, store):
        store.add_lead(make_lead('plain'))
        store.add_config(single_factor_config('broken', rules=[
            {'id': 'ok', 'condition': True, 'points': 5},
            {'id': 'bad', 'condition': '{"unknown_op": [1]}', 'points': 5},
        ]))

        calculation = await services.lead_scoring.calculate_lead_score('plain', config_id='broken')

        assert calculation.factorScores[0].score == 5
        assert calculation.factorScores[0].maxScore == 10
        assert calculation.normalizedScore == 50.0


# =============================================================================
# Batch scoring
# =============================================================================

class TestBatchScoreLeads:

    async def test_missing_leads_are_reported_not_raised(self, services, store):
        lead_ids = []
        for index in range(8):
            store.add_lead(make_strong_lead(f"lead-{index}"))
            lead_ids.append(f"lead-{index}")
        lead_ids[3:3] = ['missing-1']
        lead_ids.append('missing-2')

        result = await services.lead_scoring.batch_score_leads(lead_ids)

        assert len(result.calculations) == 8
        assert result.errors == [
            'Lead missing-1: Lead missing-1 not found',
            'Lead missing-2: Lead missing-2 not found',
        ]
        assert result.message == 'Scored 8 leads with 2 errors'

    async def test_clean_batch_message(self, services, store):
        store.add_lead(make_strong_lead('one'))
        store.add_lead(make_weak_lead('two'))

        result = await services.lead_scoring.batch_score_leads(['one', 'two'])

        assert result.errors == []
        assert result.message == 'Scored 2 leads'
        assert {calc.leadId for calc in result.calculations} == {'one', 'two'}

    async def test_chunks_cover_every_lead(self, services, store, settings):
        settings.batch_chunk_size = 3
        lead_ids = [store.add_lead(make_weak_lead(f"w{index}")).id for index in range(7)]

        result = await services.lead_scoring.batch_score_leads(lead_ids)

        assert [calc.leadId for calc in result.calculations] == lead_ids

    async def test_empty_batch_rejected(self, services):
        with pytest.raises(ValidationError):
            await services.lead_scoring.batch_score_leads([])

    async def test_oversized_batch_rejected(self, services, settings):
        lead_ids = [f"lead-{index}" for index in range(settings.max_batch_leads + 1)]
        with pytest.raises(ValidationError):
            await services.lead_scoring.batch_score_leads(lead_ids)

    async def test_missing_config_fails_whole_batch(self, settings):
        empty = InMemoryStore()
        with pytest.raises(ConfigurationError):
            await LeadScoringService(empty, settings).batch_score_leads(['a'])


# =============================================================================
# Configuration management
# =============================================================================

class TestScoringConfigVersions:

    async def test_update_creates_new_active_version(self, services, store):
        updated = await services.lead_scoring.update_scoring_config(
            DEFAULT_CONFIG_ID, {'qualificationThreshold': 70}
        )

        assert updated.version == 2
        assert updated.id != DEFAULT_CONFIG_ID
        assert updated.isActive is True
        assert updated.qualificationThreshold == 70
        assert store.configs[DEFAULT_CONFIG_ID].isActive is False
        assert (await services.lead_scoring.get_scoring_config()).id == updated.id

    async def test_scores_reference_the_version_used(self, services, store):
        store.add_lead(make_strong_lead())
        first = await services.lead_scoring.calculate_lead_score('lead-strong')
        updated = await services.lead_scoring.update_scoring_config(
            DEFAULT_CONFIG_ID, {'highPriorityThreshold': 95}
        )
        second = await services.lead_scoring.calculate_lead_score('lead-strong')

        assert (first.configId, first.configVersion) == (DEFAULT_CONFIG_ID, 1)
        assert (second.configId, second.configVersion) == (updated.id, 2)

    async def test_unknown_fields_rejected(self, services):
        with pytest.raises(ValidationError):
            await services.lead_scoring.update_scoring_config(DEFAULT_CONFIG_ID, {'version': 9})

    async def test_threshold_order_enforced(self, services, store):
        with pytest.raises(ValidationError):
            await services.lead_scoring.update_scoring_config(
                DEFAULT_CONFIG_ID, {'highPriorityThreshold': 50}
            )
        assert store.configs[DEFAULT_CONFIG_ID].isActive is True

    async def test_out_of_range_threshold_rejected(self, services):
        with pytest.raises(ValidationError):
            await services.lead_scoring.update_scoring_config(
                DEFAULT_CONFIG_ID, {'qualificationThreshold': 150}
            )

    async def test_malformed_rule_rejected_on_save(self, services, store):
        factors = [{
            'id': 'motivation',
            'name': 'Motivation',
            'category': 'motivation',
            'weight': 0.1,
            'scoringRules': [{'id': 'bad', 'condition': '{"bogus": [1]}', 'points': 5}],
        }]

        with pytest.raises(ConfigurationError):
            await services.lead_scoring.update_scoring_config(DEFAULT_CONFIG_ID, {'factors': factors})
        assert len(store.configs) == 1

    async def test_editing_inactive_config_fails(self, services, store):
        store.add_config(single_factor_config('old').model_copy(update={'isActive': False}))
        with pytest.raises(ConfigurationError):
            await services.lead_scoring.update_scoring_config('old', {'name': 'Renamed'})


class TestDefaultConfigSeeding:

    async def test_seeds_active_default_into_empty_store(self, settings):
        empty = InMemoryStore()
        service = LeadScoringService(empty, settings)

        seeded = await service.initialize_default_scoring_config()

        assert seeded.name == DEFAULT_CONFIG_NAME
        assert seeded.isActive is True
        assert [factor.id for factor in seeded.factors] == [
            'experience', 'location', 'availability', 'certifications', 'source_quality', 'salary',
        ]
        assert (await service.get_scoring_config()).id == DEFAULT_CONFIG_ID

    async def test_seeding_is_idempotent(self, services, store):
        first = await services.lead_scoring.initialize_default_scoring_config()
        second = await services.lead_scoring.initialize_default_scoring_config()

        assert first.id == second.id
        assert len(store.configs) == 1

    async def test_seed_stays_inactive_beside_another_active_config(self, settings):
        memory = InMemoryStore()
        memory.add_config(single_factor_config('custom'))

        seeded = await LeadScoringService(memory, settings).initialize_default_scoring_config()

        assert seeded.isActive is False
        assert (await memory.get_scoring_config()).id == 'custom'


# =============================================================================
# Accuracy analysis
# =============================================================================

class TestScoringAccuracy:

    async def test_half_accurate_history_needs_calibration(self, services, store):
        store.outcomes = (
            [outcome(80, ApplicationStatus.HIRE_COMPLETED, hired=True) for _ in range(10)]
            + [outcome(30, ApplicationStatus.APPLICATION_SUBMITTED) for _ in range(10)]
        )

        report = await services.lead_scoring.analyze_scoring_accuracy()

        assert report.accuracy == 50.0
        assert report.sampleSize == 20
        assert report.calibrationNeeded is True
        assert report.configId == DEFAULT_CONFIG_ID
        by_factor = {rec.factor: rec for rec in report.recommendations}
        assert by_factor['experience'].currentWeight == 0.25
        assert by_factor['experience'].recommendedWeight == 0.3
        assert by_factor['source_quality'].recommendedWeight == 0.15

    async def test_accurate_history_needs_nothing(self, services, store):
        store.outcomes = (
            [outcome(85, ApplicationStatus.OFFER_ACCEPTED) for _ in range(8)]
            + [outcome(60, ApplicationStatus.UNDER_REVIEW) for _ in range(6)]
            + [outcome(20, ApplicationStatus.LEAD_CAPTURED) for _ in range(6)]
        )

        report = await services.lead_scoring.analyze_scoring_accuracy()

        assert report.accuracy == 100.0
        assert report.calibrationNeeded is False
        assert report.recommendations == []

    async def test_started_application_is_not_completion(self, services, store):
        store.outcomes = [outcome(40, ApplicationStatus.APPLICATION_STARTED) for _ in range(20)]

        report = await services.lead_scoring.analyze_scoring_accuracy()

        assert report.accuracy == 100.0

    async def test_insufficient_samples(self, services, store):
        store.outcomes = [outcome(80, ApplicationStatus.HIRE_COMPLETED, hired=True) for _ in range(19)]

        with pytest.raises(InsufficientDataError) as exc_info:
            await services.lead_scoring.analyze_scoring_accuracy()
        assert exc_info.value.details['sampleSize'] == 19

    async def test_lookback_excludes_old_outcomes(self, services, store):
        store.outcomes = [
            outcome(80, ApplicationStatus.HIRE_COMPLETED, hired=True, days_ago=200)
            for _ in range(25)
        ]

        with pytest.raises(InsufficientDataError):
            await services.lead_scoring.analyze_scoring_accuracy(lookback_days=90)


# =============================================================================
# Recruiter queue
# =============================================================================

class TestPrioritizedLeads:

    async def test_orders_by_score_with_unscored_last(self, services, store):
        store.add_lead(make_lead('unscored', assignedRecruiter='rec-1'))
        store.add_lead(make_lead('low', qualificationScore=40, assignedRecruiter='rec-1'))
        store.add_lead(make_lead('high', qualificationScore=90, assignedRecruiter='rec-1'))
        store.add_lead(make_lead('other', qualificationScore=99, assignedRecruiter='rec-2'))

        leads = await services.lead_scoring.get_prioritized_leads(recruiter_id='rec-1')

        assert [item.lead.id for item in leads] == ['high', 'low', 'unscored']

    async def test_includes_latest_calculation(self, services, store):
        store.add_lead(make_strong_lead())
        calculation = await services.lead_scoring.calculate_lead_score('lead-strong')

        leads = await services.lead_scoring.get_prioritized_leads()

        assert leads[0].scoreCalculation.id == calculation.id

    async def test_status_filter(self, services, store):
        store.add_lead(make_lead('fresh', status='new', qualificationScore=50))
        store.add_lead(make_lead('called', status='contacted', qualificationScore=70))

        leads = await services.lead_scoring.get_prioritized_leads(statuses=[LeadStatus.CONTACTED])

        assert [item.lead.id for item in leads] == ['called']

    @pytest.mark.parametrize('limit', [0, 101])
    async def test_limit_bounds(self, services, limit):
        with pytest.raises(ValidationError):
            await services.lead_scoring.get_prioritized_leads(limit=limit)
