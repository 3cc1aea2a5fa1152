"""
Guardforce Workforce Core Package.

Async service layer for security-guard recruiting and scheduling. Provides the
lead scoring engine (rule evaluation, weighted factor scoring, qualification
tiers, cohort-based conversion estimates) and the shift eligibility / matching
engine (certification, availability and conflict checks, ranked guard matches,
assignment lifecycle).

Subpackages:
    - core: Configuration, database pool, persistence adapter, errors, wiring
    - models: Pydantic schemas and enums
    - services: Business logic services
    - jobs: Scheduled automation jobs
    - sql: Parameterized SQL queries
"""

__version__ = "1.0.0"
