"""
SQL query module for the Guardforce service layer.

Provides parameterized PostgreSQL statements for:
- Leads, scoring configurations and score calculations (scoring_queries)
- Shifts, guard profiles, availability and assignments (assignment_queries)

Statements are consumed by guardforce.core.store.PostgresStore; services
never build SQL themselves.
"""

from guardforce.sql.assignment_queries import (
    ACTIVE_ASSIGNMENT_STATUSES,
    ASSIGNMENT_UPDATABLE_COLUMNS,
    get_assignment_update_query,
)
from guardforce.sql.scoring_queries import get_prioritized_leads_query

__all__ = [
    'ACTIVE_ASSIGNMENT_STATUSES',
    'ASSIGNMENT_UPDATABLE_COLUMNS',
    'get_assignment_update_query',
    'get_prioritized_leads_query',
]
