'''
Guardforce Test Suite

Test Modules:
-------------
- test_rule_evaluator.py: JSON-logic parsing and evaluation
  - Operator semantics (loose / strict equality, ordering, membership)
  - Malformed conditions evaluate to False and fail validation

- test_lead_scoring.py: Lead scoring service
  - Normalization bounds, priority bands, per-category breakdown
  - Batch scoring with per-lead errors
  - Config versioning and default seeding
  - Accuracy analysis and recruiter queue

- test_predictive.py: Cohort probability estimation
- test_eligibility_matching.py: Eligibility, conflicts and ranking
- test_assignments.py: Assignment lifecycle and batch assignment
- test_store.py: PostgresStore row mapping and query wiring
- test_export.py: Lead CSV export
- test_jobs.py: Stale lead rescoring job

Running Tests:
--------------
    pip install -e ".[test]"
    pytest guardforce/tests/ -v

Configuration:
--------------
See conftest.py for shared fixtures and fakes.py for the in-memory Store.
'''

__all__ = []
