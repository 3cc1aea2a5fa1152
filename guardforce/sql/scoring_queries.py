"""
Lead scoring queries.

Parameterized PostgreSQL statements used by PostgresStore for leads, scoring
configurations and score calculations. All statements use asyncpg ``$n``
placeholders; JSON columns are JSONB and are written with ``::jsonb`` casts.

Tables:
- guard_leads: raw lead attributes plus cached score fields
- lead_scoring_configs: versioned configurations, factors stored as JSONB
- lead_score_calculations: append-only calculation history
"""

from typing import Any, List, Optional, Sequence, Tuple


# =============================================================================
# LEADS
# =============================================================================

SELECT_LEAD_BY_ID = """
    SELECT *
    FROM guard_leads
    WHERE id = $1
"""

# Cached fields only; raw intake attributes are owned by the intake flow
UPDATE_LEAD_CACHED_FIELDS = """
    UPDATE guard_leads
    SET qualification_score = $2,
        qualification_factors = $3::jsonb,
        application_completion_probability = $4,
        updated_at = NOW()
    WHERE id = $1
"""

# Outcomes of scored leads inside a score band
SELECT_OUTCOMES_IN_SCORE_BAND = """
    SELECT id, qualification_score, application_status, converted_to_hire, created_at
    FROM guard_leads
    WHERE qualification_score IS NOT NULL
      AND qualification_score >= $1
      AND qualification_score <= $2
"""

SELECT_SCORED_OUTCOMES_SINCE = """
    SELECT id, qualification_score, application_status, converted_to_hire, created_at
    FROM guard_leads
    WHERE qualification_score IS NOT NULL
      AND created_at >= $1
"""

SELECT_LEADS_FOR_RESCORING = """
    SELECT id
    FROM guard_leads
    WHERE qualification_score IS NULL
       OR updated_at < $1
    ORDER BY updated_at ASC NULLS FIRST
    LIMIT $2
"""


def get_prioritized_leads_query(
    recruiter_id: Optional[str],
    statuses: Optional[Sequence[str]],
    limit: int,
) -> Tuple[str, List[Any]]:
    """
    Build the prioritized lead listing query.

    Leads are ordered by cached qualification score, highest first, with
    unscored leads last. Each row carries the lead's most recent calculation
    (if any) as ``latest_calculation`` JSON.

    Args:
        recruiter_id: Restrict to leads assigned to this recruiter.
        statuses: Restrict to these lead statuses.
        limit: Maximum number of rows.

    Returns:
        Tuple of (query, args) ready for execute_query(query, *args).
    """
    conditions = []
    args: List[Any] = []

    if recruiter_id:
        args.append(recruiter_id)
        conditions.append(f"l.assigned_recruiter = ${len(args)}")

    if statuses:
        args.append(list(statuses))
        conditions.append(f"l.status = ANY(${len(args)}::text[])")

    where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

    args.append(limit)
    limit_placeholder = f"${len(args)}"

    query = f"""
    SELECT
        l.*,
        (
            SELECT row_to_json(c)
            FROM lead_score_calculations c
            WHERE c.lead_id = l.id
            ORDER BY c.calculated_at DESC
            LIMIT 1
        ) AS latest_calculation
    FROM guard_leads l
    {where_clause}
    ORDER BY l.qualification_score DESC NULLS LAST, l.created_at DESC
    LIMIT {limit_placeholder}
    """
    return query, args


# =============================================================================
# SCORING CONFIGURATIONS
# =============================================================================

SELECT_ACTIVE_CONFIG = """
    SELECT *
    FROM lead_scoring_configs
    WHERE is_active = TRUE
    ORDER BY version DESC
    LIMIT 1
"""

SELECT_ACTIVE_CONFIG_BY_ID = """
    SELECT *
    FROM lead_scoring_configs
    WHERE id = $1
      AND is_active = TRUE
"""

SELECT_CONFIG_BY_NAME = """
    SELECT *
    FROM lead_scoring_configs
    WHERE name = $1
    ORDER BY version DESC
    LIMIT 1
"""

INSERT_CONFIG = """
    INSERT INTO lead_scoring_configs (
        id, name, description, version,
        qualification_threshold, high_priority_threshold, accuracy,
        is_active, factors, created_at, updated_at
    )
    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9::jsonb, NOW(), NOW())
"""

DEACTIVATE_CONFIG = """
    UPDATE lead_scoring_configs
    SET is_active = FALSE,
        updated_at = NOW()
    WHERE id = $1
"""


# =============================================================================
# SCORE CALCULATIONS
# =============================================================================

INSERT_SCORE_CALCULATION = """
    INSERT INTO lead_score_calculations (
        id, lead_id, config_id, config_version,
        total_score, max_possible_score, normalized_score, factor_scores,
        is_qualified, priority, application_probability, hire_probability,
        calculated_at
    )
    VALUES ($1, $2, $3, $4, $5, $6, $7, $8::jsonb, $9, $10, $11, $12, $13)
"""
