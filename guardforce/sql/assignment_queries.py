"""
Shift assignment queries.

Parameterized PostgreSQL statements used by PostgresStore for shifts, guard
profiles, availability windows and shift assignments.

Tables:
- shifts: scheduled work with required certifications and site location
- guard_profiles: certification status, location, performance, preferences
- guard_availability: declared availability windows
- shift_assignments: guard-to-shift assignments and their lifecycle
"""

from typing import Sequence


# Assignment statuses that still occupy a guard's time
ACTIVE_ASSIGNMENT_STATUSES = ('pending', 'accepted', 'confirmed')

# Columns PostgresStore.update_assignment may write
ASSIGNMENT_UPDATABLE_COLUMNS = (
    'assignment_status',
    'guard_response',
    'guard_responded_at',
    'guard_response_notes',
    'conflict_overridden',
    'override_reason',
    'override_by',
    'override_at',
    'confirmed_by',
    'confirmed_at',
    'assignment_notes',
    'manager_notes',
)


# =============================================================================
# SHIFTS / GUARDS
# =============================================================================

SELECT_SHIFT_BY_ID = """
    SELECT *
    FROM shifts
    WHERE id = $1
"""

UPDATE_SHIFT_GUARD = """
    UPDATE shifts
    SET assigned_guard_id = $2,
        updated_at = NOW()
    WHERE id = $1
"""

SELECT_GUARD_BY_ID = """
    SELECT *
    FROM guard_profiles
    WHERE id = $1
"""

# Active windows touching [start, end)
SELECT_GUARD_AVAILABILITY = """
    SELECT *
    FROM guard_availability
    WHERE guard_id = $1
      AND status = 'active'
      AND start_time < $3
      AND end_time > $2
    ORDER BY start_time
"""


# =============================================================================
# ASSIGNMENTS
# =============================================================================

# Active assignments of a guard whose shifts touch [start, end), other shift excluded
SELECT_GUARD_COMMITMENTS = """
    SELECT
        a.id AS assignment_id,
        a.shift_id,
        a.assignment_status,
        s.title AS shift_title,
        s.start_time,
        s.end_time
    FROM shift_assignments a
    JOIN shifts s ON s.id = a.shift_id
    WHERE a.guard_id = $1
      AND a.assignment_status = ANY($4::text[])
      AND s.start_time < $3
      AND s.end_time > $2
      AND ($5::text IS NULL OR a.shift_id <> $5)
    ORDER BY s.start_time
"""

SELECT_ASSIGNMENT_BY_ID = """
    SELECT *
    FROM shift_assignments
    WHERE id = $1
"""

SELECT_ACTIVE_ASSIGNMENT_FOR_SHIFT = """
    SELECT *
    FROM shift_assignments
    WHERE shift_id = $1
      AND assignment_status = ANY($2::text[])
    ORDER BY assigned_at DESC
    LIMIT 1
"""

INSERT_ASSIGNMENT = """
    INSERT INTO shift_assignments (
        id, shift_id, guard_id, assignment_status, assigned_by, assigned_at,
        eligibility_score, assignment_method,
        conflict_overridden, override_reason, override_by, override_at,
        assignment_notes, manager_notes, created_at, updated_at
    )
    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, NOW(), NOW())
    RETURNING *
"""


def get_assignment_update_query(columns: Sequence[str]) -> str:
    """
    Build an UPDATE for the given assignment columns.

    The assignment id is $1; column values follow in order as $2..$n.

    Raises:
        ValueError: If a column is not in ASSIGNMENT_UPDATABLE_COLUMNS.
    """
    unknown = [column for column in columns if column not in ASSIGNMENT_UPDATABLE_COLUMNS]
    if unknown:
        raise ValueError(f"Cannot update assignment columns: {', '.join(unknown)}")

    assignments = ",\n        ".join(
        f"{column} = ${index}" for index, column in enumerate(columns, start=2)
    )
    return f"""
    UPDATE shift_assignments
    SET {assignments},
        updated_at = NOW()
    WHERE id = $1
    RETURNING *
    """
