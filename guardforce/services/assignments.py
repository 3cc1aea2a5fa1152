"""
Shift assignment service.

Loads shifts, guards, availability and existing commitments through the
Store, runs the pure eligibility / conflict / matching functions, and drives
the assignment lifecycle.

Lifecycle:
    pending  -> accepted | declined | expired | cancelled
    accepted -> confirmed | cancelled
    confirmed, declined, expired, cancelled are terminal

Override rules:
    - Conflicts with overrideRequired make a guard ineligible. Creating an
      assignment despite them needs overrideConflicts=True and an
      overrideReason; conflicts that cannot be overridden always block.
    - Confirming re-checks conflicts. A critical or override-required
      conflict needs an override record, either captured at creation or
      supplied with the confirmation (overrideReason and overrideBy).

Guard responses:
    Only pending assignments accept a response, and only within
    ``response_deadline_hours`` of assignment. A late response marks the
    assignment expired and is rejected.
"""

import asyncio
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence, Tuple, Union

from guardforce.core.config import Settings
from guardforce.core.exceptions import GuardforceError, NotFoundError, ValidationError
from guardforce.core.store import Store, new_id
from guardforce.models.enums import (
    AssignmentErrorCode,
    AssignmentStatus,
    BatchStatus,
    ConflictSeverity,
    GuardResponse,
)
from guardforce.models.schemas import (
    AssignmentConflict,
    AssignmentCreate,
    BatchAssignmentItem,
    BatchAssignmentResult,
    ConflictCheckResult,
    GuardAvailability,
    GuardEligibilityResult,
    GuardMatchResult,
    GuardProfile,
    Shift,
    ShiftAssignment,
)
from guardforce.services.conflicts import (
    detect_all_conflicts,
    summarize_conflicts,
    workload_windows,
)
from guardforce.services.eligibility import evaluate_eligibility, is_guard_active
from guardforce.services.matching import calculate_match, rank_matches


logger = logging.getLogger(__name__)


# =============================================================================
# Status Transitions
# =============================================================================

ASSIGNMENT_TRANSITIONS = {
    AssignmentStatus.PENDING: frozenset({
        AssignmentStatus.ACCEPTED,
        AssignmentStatus.DECLINED,
        AssignmentStatus.EXPIRED,
        AssignmentStatus.CANCELLED,
    }),
    AssignmentStatus.ACCEPTED: frozenset({
        AssignmentStatus.CONFIRMED,
        AssignmentStatus.CANCELLED,
    }),
    AssignmentStatus.CONFIRMED: frozenset(),
    AssignmentStatus.DECLINED: frozenset(),
    AssignmentStatus.EXPIRED: frozenset(),
    AssignmentStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in ASSIGNMENT_TRANSITIONS.items() if not targets
)

# Statuses that occupy a guard's time
ACTIVE_STATUSES = (
    AssignmentStatus.PENDING,
    AssignmentStatus.ACCEPTED,
    AssignmentStatus.CONFIRMED,
)


def can_transition(current: AssignmentStatus, target: AssignmentStatus) -> bool:
    return target in ASSIGNMENT_TRANSITIONS.get(current, frozenset())


def validate_transition(current: AssignmentStatus, target: AssignmentStatus) -> None:
    """
    Raises:
        ValidationError: If ``current -> target`` is not an allowed transition.
    """
    if not can_transition(current, target):
        raise ValidationError(
            f"Cannot move assignment from '{current.value}' to '{target.value}'",
            code=AssignmentErrorCode.INVALID_ASSIGNMENT_STATUS.value,
            details={'currentStatus': current.value, 'targetStatus': target.value},
        )


def _conflict_details(conflicts: Sequence[AssignmentConflict]) -> dict:
    return {'conflicts': [conflict.model_dump(mode='json') for conflict in conflicts]}


# =============================================================================
# Service
# =============================================================================

class AssignmentService:
    """
    Eligibility, matching and assignment lifecycle operations.

    Args:
        store: Persistence adapter.
        settings: Thresholds and limits.
        clock: Returns the current time; injectable for deadline handling.
    """

    def __init__(
        self,
        store: Store,
        settings: Settings,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.settings = settings
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    async def _load_shift(self, shift_id: str) -> Shift:
        shift = await self.store.get_shift(shift_id)
        if shift is None:
            raise NotFoundError(
                f"Shift {shift_id} not found",
                code=AssignmentErrorCode.SHIFT_NOT_FOUND.value,
            )
        return shift

    async def _load_guard(self, guard_id: str) -> GuardProfile:
        guard = await self.store.get_guard(guard_id)
        if guard is None:
            raise NotFoundError(
                f"Guard {guard_id} not found",
                code=AssignmentErrorCode.GUARD_NOT_FOUND.value,
            )
        return guard

    async def _load_assignment(self, assignment_id: str) -> ShiftAssignment:
        assignment = await self.store.get_assignment(assignment_id)
        if assignment is None:
            raise NotFoundError(
                f"Assignment {assignment_id} not found",
                code=AssignmentErrorCode.ASSIGNMENT_NOT_FOUND.value,
            )
        return assignment

    async def _collect_conflicts(
        self,
        shift: Shift,
        guard: GuardProfile,
        as_of: datetime,
    ) -> Tuple[List[GuardAvailability], List[AssignmentConflict]]:
        day, week = workload_windows(shift)
        availability, overlapping, day_commitments, week_commitments = await asyncio.gather(
            self.store.get_guard_availability(guard.id, shift.timeWindow),
            self.store.get_guard_commitments(
                guard.id, shift.timeWindow, ACTIVE_STATUSES, exclude_shift_id=shift.id
            ),
            self.store.get_guard_commitments(
                guard.id, day, ACTIVE_STATUSES, exclude_shift_id=shift.id
            ),
            self.store.get_guard_commitments(
                guard.id, week, ACTIVE_STATUSES, exclude_shift_id=shift.id
            ),
        )

        conflicts = detect_all_conflicts(
            shift,
            guard,
            availability,
            overlapping,
            day_commitments,
            week_commitments,
            as_of,
            critical_certifications=self.settings.critical_certifications,
            settings=self.settings,
        )
        return availability, conflicts

    async def _evaluate(
        self,
        shift: Shift,
        guard: GuardProfile,
        as_of: datetime,
    ) -> GuardEligibilityResult:
        availability, conflicts = await self._collect_conflicts(shift, guard, as_of)
        return evaluate_eligibility(
            shift,
            guard,
            availability,
            conflicts,
            as_of,
            critical_certifications=self.settings.critical_certifications,
        )

    # -------------------------------------------------------------------------
    # Eligibility and matching
    # -------------------------------------------------------------------------

    async def check_eligibility(self, shift_id: str, guard_id: str) -> GuardEligibilityResult:
        """
        Decide whether a guard can take a shift.

        Raises:
            NotFoundError: If the shift or guard does not exist.
        """
        shift = await self._load_shift(shift_id)
        guard = await self._load_guard(guard_id)
        return await self._evaluate(shift, guard, self.clock())

    async def detect_conflicts(
        self,
        shift_id: str,
        guard_id: str,
        override_requested: bool = False,
    ) -> ConflictCheckResult:
        """All conflicts for a pairing, with a proceed / override verdict."""
        shift = await self._load_shift(shift_id)
        guard = await self._load_guard(guard_id)
        _, conflicts = await self._collect_conflicts(shift, guard, self.clock())
        return summarize_conflicts(conflicts, override_requested)

    async def rank_guards(
        self,
        shift_id: str,
        candidate_guard_ids: Sequence[str],
        limit: Optional[int] = None,
    ) -> List[GuardMatchResult]:
        """
        Rank candidate guards for a shift.

        Candidates that are eligible, or whose eligibility score exceeds
        ``min_match_eligibility_score``, are scored and returned best first
        with rankings starting at 1. Unknown guard ids are skipped.

        Raises:
            NotFoundError: If the shift does not exist.
        """
        shift = await self._load_shift(shift_id)
        as_of = self.clock()

        async def evaluate_candidate(guard_id: str):
            guard = await self.store.get_guard(guard_id)
            if guard is None:
                logger.warning(f"Skipping unknown guard {guard_id} while ranking shift {shift_id}")
                return None
            return guard, await self._evaluate(shift, guard, as_of)

        evaluated = await asyncio.gather(
            *(evaluate_candidate(guard_id) for guard_id in dict.fromkeys(candidate_guard_ids))
        )

        matches = [
            calculate_match(shift, guard, eligibility)
            for guard, eligibility in filter(None, evaluated)
            if eligibility.eligible
            or eligibility.eligibilityScore > self.settings.min_match_eligibility_score
        ]

        ranked = rank_matches(matches, limit)
        logger.info(
            f"Ranked {len(ranked)} of {len(candidate_guard_ids)} candidates for shift {shift_id}"
        )
        return ranked

    # -------------------------------------------------------------------------
    # Assignment lifecycle
    # -------------------------------------------------------------------------

    async def create_assignment(self, request: AssignmentCreate) -> ShiftAssignment:
        """
        Assign a guard to a shift as a pending assignment.

        Returns:
            ShiftAssignment: The stored assignment.

        Raises:
            NotFoundError: If the shift or guard does not exist.
            ValidationError: If the shift is already assigned, the guard is
                not eligible, or an override is needed but not justified.
        """
        shift = await self._load_shift(request.shiftId)
        guard = await self._load_guard(request.guardId)

        existing = await self.store.get_active_assignment_for_shift(shift.id)
        if existing is not None:
            raise ValidationError(
                f"Shift {shift.id} already has an active assignment",
                code=AssignmentErrorCode.ASSIGNMENT_EXISTS.value,
                details={'assignmentId': existing.id, 'guardId': existing.guardId},
            )

        now = self.clock()
        eligibility = await self._evaluate(shift, guard, now)

        if not is_guard_active(guard):
            raise ValidationError(
                f"Guard {guard.id} is not schedulable",
                code=AssignmentErrorCode.GUARD_NOT_ELIGIBLE.value,
                details={'reasons': eligibility.reasons},
            )

        blocking = [c for c in eligibility.conflicts if c.overrideRequired]
        hard_blocks = [c for c in blocking if not c.canOverride]
        if hard_blocks:
            raise ValidationError(
                f"Guard {guard.id} is not eligible for shift {shift.id}",
                code=AssignmentErrorCode.GUARD_NOT_ELIGIBLE.value,
                details=_conflict_details(hard_blocks),
            )

        if blocking:
            if not request.overrideConflicts:
                raise ValidationError(
                    "Assignment has conflicts that require an override",
                    code=AssignmentErrorCode.CONFLICT_OVERRIDE_REQUIRED.value,
                    details=_conflict_details(blocking),
                )
            if not request.overrideReason:
                raise ValidationError(
                    "Override reason is required when overriding conflicts",
                    code=AssignmentErrorCode.CONFLICT_OVERRIDE_REQUIRED.value,
                    details=_conflict_details(blocking),
                )

        overridden = bool(blocking)
        assignment = ShiftAssignment(
            id=new_id(),
            shiftId=shift.id,
            guardId=guard.id,
            assignmentStatus=AssignmentStatus.PENDING,
            assignedBy=request.assignedBy,
            assignedAt=now,
            eligibilityScore=eligibility.eligibilityScore,
            assignmentMethod=request.assignmentMethod,
            conflictOverridden=overridden,
            overrideReason=request.overrideReason if overridden else None,
            overrideBy=request.assignedBy if overridden else None,
            overrideAt=now if overridden else None,
            assignmentNotes=request.assignmentNotes,
            managerNotes=request.managerNotes,
        )

        created = await self.store.create_assignment(assignment)
        await self.store.set_shift_guard(shift.id, guard.id)

        logger.info(
            f"Assigned guard {guard.id} to shift {shift.id} "
            f"(assignment {created.id}, overridden={overridden})"
        )
        return created

    async def record_guard_response(
        self,
        assignment_id: str,
        response: Union[GuardResponse, str],
        notes: Optional[str] = None,
    ) -> ShiftAssignment:
        """
        Record a guard's accept / decline / conditional answer.

        Conditional answers count as acceptance; their notes are stored as
        JSON so the conditions stay distinguishable from plain notes.

        Raises:
            NotFoundError: If the assignment does not exist.
            ValidationError: If the assignment is not pending, or the
                response deadline has passed (the assignment is expired).
        """
        assignment = await self._load_assignment(assignment_id)
        response = GuardResponse(response)

        if assignment.assignmentStatus != AssignmentStatus.PENDING:
            raise ValidationError(
                f"Assignment {assignment_id} is not awaiting a response "
                f"(status: {assignment.assignmentStatus.value})",
                code=AssignmentErrorCode.INVALID_ASSIGNMENT_STATUS.value,
            )

        now = self.clock()
        deadline = assignment.assignedAt + timedelta(hours=self.settings.response_deadline_hours)
        if now > deadline:
            await self.store.update_assignment(
                assignment_id, {'assignmentStatus': AssignmentStatus.EXPIRED}
            )
            await self.store.set_shift_guard(assignment.shiftId, None)
            logger.info(f"Assignment {assignment_id} expired before the guard responded")
            raise ValidationError(
                f"Response deadline passed for assignment {assignment_id}",
                code=AssignmentErrorCode.RESPONSE_DEADLINE_PASSED.value,
                details={'deadline': deadline.isoformat()},
            )

        if response == GuardResponse.DECLINE:
            target = AssignmentStatus.DECLINED
            stored_notes = notes
        elif response == GuardResponse.CONDITIONAL:
            target = AssignmentStatus.ACCEPTED
            stored_notes = json.dumps({'conditional': True, 'conditions': notes})
        else:
            target = AssignmentStatus.ACCEPTED
            stored_notes = notes

        validate_transition(assignment.assignmentStatus, target)
        updated = await self.store.update_assignment(
            assignment_id,
            {
                'assignmentStatus': target,
                'guardResponse': response,
                'guardRespondedAt': now,
                'guardResponseNotes': stored_notes,
            },
        )

        if target == AssignmentStatus.DECLINED:
            await self.store.set_shift_guard(assignment.shiftId, None)

        logger.info(f"Guard {assignment.guardId} responded '{response.value}' to {assignment_id}")
        return updated

    async def confirm_assignment(
        self,
        assignment_id: str,
        confirmed_by: str,
        override_reason: Optional[str] = None,
        override_by: Optional[str] = None,
    ) -> ShiftAssignment:
        """
        Confirm an accepted assignment.

        Raises:
            NotFoundError: If the assignment does not exist.
            ValidationError: If the assignment is not accepted, or an
                unresolved critical or override-required conflict exists and
                no override covers it. Critical and non-overridable conflicts
                need an override supplied with this call.
        """
        assignment = await self._load_assignment(assignment_id)
        validate_transition(assignment.assignmentStatus, AssignmentStatus.CONFIRMED)

        shift = await self._load_shift(assignment.shiftId)
        guard = await self._load_guard(assignment.guardId)
        now = self.clock()
        _, conflicts = await self._collect_conflicts(shift, guard, now)

        unresolved = [
            c for c in conflicts
            if c.severity == ConflictSeverity.CRITICAL or c.overrideRequired
        ]
        # An override recorded at creation only covers overridable conflicts
        needs_fresh_override = [
            c for c in unresolved
            if c.severity == ConflictSeverity.CRITICAL or not c.canOverride
        ]

        fields = {
            'assignmentStatus': AssignmentStatus.CONFIRMED,
            'confirmedBy': confirmed_by,
            'confirmedAt': now,
        }

        if override_reason and override_by:
            fields.update(
                conflictOverridden=True,
                overrideReason=override_reason,
                overrideBy=override_by,
                overrideAt=now,
            )
        elif needs_fresh_override or (unresolved and not assignment.conflictOverridden):
            raise ValidationError(
                "Unresolved conflicts require overrideReason and overrideBy to confirm",
                code=AssignmentErrorCode.CONFLICT_OVERRIDE_REQUIRED.value,
                details=_conflict_details(needs_fresh_override or unresolved),
            )

        updated = await self.store.update_assignment(assignment_id, fields)
        logger.info(f"Assignment {assignment_id} confirmed by {confirmed_by}")
        return updated

    async def cancel_assignment(
        self,
        assignment_id: str,
        cancelled_by: str,
        reason: str,
    ) -> ShiftAssignment:
        """
        Cancel a non-terminal assignment and free the shift.

        Raises:
            NotFoundError: If the assignment does not exist.
            ValidationError: If the assignment is already terminal.
        """
        assignment = await self._load_assignment(assignment_id)
        validate_transition(assignment.assignmentStatus, AssignmentStatus.CANCELLED)

        note = f"Cancelled by {cancelled_by}: {reason}"
        manager_notes = f"{assignment.managerNotes}\n{note}" if assignment.managerNotes else note

        updated = await self.store.update_assignment(
            assignment_id,
            {
                'assignmentStatus': AssignmentStatus.CANCELLED,
                'managerNotes': manager_notes,
            },
        )
        await self.store.set_shift_guard(assignment.shiftId, None)

        logger.info(f"Assignment {assignment_id} cancelled by {cancelled_by}")
        return updated

    async def create_batch_assignments(
        self,
        requests: Sequence[AssignmentCreate],
        allow_partial_success: bool = True,
    ) -> BatchAssignmentResult:
        """
        Create several assignments in order.

        With ``allow_partial_success`` each request stands alone. Without it
        the first failure stops the batch and cancels the assignments already
        created, so either every request succeeds or none remains active.
        """
        batch_id = new_id()
        started_at = self.clock()
        items: List[BatchAssignmentItem] = []

        for index, request in enumerate(requests):
            try:
                created = await self.create_assignment(request)
            except GuardforceError as e:
                conflicts = e.details.get('conflicts', []) if e.details else []
                items.append(
                    BatchAssignmentItem(
                        shiftId=request.shiftId,
                        guardId=request.guardId,
                        success=False,
                        error=str(e),
                        conflicts=conflicts,
                    )
                )
                if not allow_partial_success:
                    await self._roll_back_batch(batch_id, items)
                    items.extend(
                        BatchAssignmentItem(
                            shiftId=skipped.shiftId,
                            guardId=skipped.guardId,
                            success=False,
                            error="Skipped after an earlier failure in the batch",
                        )
                        for skipped in requests[index + 1:]
                    )
                    break
                continue

            items.append(
                BatchAssignmentItem(
                    shiftId=request.shiftId,
                    guardId=request.guardId,
                    success=True,
                    assignmentId=created.id,
                )
            )

        successful = sum(1 for item in items if item.success)
        failed = len(items) - successful

        if failed == 0:
            status = BatchStatus.COMPLETED
        elif successful > 0:
            status = BatchStatus.PARTIALLY_COMPLETED
        else:
            status = BatchStatus.FAILED

        logger.info(f"Batch {batch_id}: {successful} assigned, {failed} failed ({status.value})")

        return BatchAssignmentResult(
            batchId=batch_id,
            totalAssignments=len(requests),
            successful=successful,
            failed=failed,
            items=items,
            status=status,
            startedAt=started_at,
            completedAt=self.clock(),
        )

    async def _roll_back_batch(self, batch_id: str, items: List[BatchAssignmentItem]) -> None:
        for position, item in enumerate(items):
            if not item.success or item.assignmentId is None:
                continue
            await self.cancel_assignment(
                item.assignmentId, 'system', f"Batch {batch_id} rolled back"
            )
            items[position] = item.model_copy(
                update={'success': False, 'error': "Rolled back after a failure in the batch"}
            )
