"""
Tests for the shift assignment lifecycle.

Covers:
- Status transition table
- Assignment creation, eligibility gating and conflict overrides
- Guard responses and the response deadline
- Confirmation with re-checked conflicts
- Cancellation
- Batch assignment with and without partial success
"""

import json
from datetime import timedelta

import pytest

from guardforce.core.exceptions import NotFoundError, ValidationError
from guardforce.models.enums import (
    AssignmentStatus,
    BatchStatus,
    ConflictType,
    GuardResponse,
)
from guardforce.models.schemas import AssignmentCreate, ShiftAssignment
from guardforce.services.assignments import (
    TERMINAL_STATUSES,
    can_transition,
    validate_transition,
)
from guardforce.tests.fakes import NOW, make_availability, make_guard, make_shift, make_window


pytestmark = pytest.mark.asyncio


def request(shift_id='shift-100', guard_id='guard-a', **overrides):
    data = {'shiftId': shift_id, 'guardId': guard_id, 'assignedBy': 'mgr-1'}
    data.update(overrides)
    return AssignmentCreate(**data)


@pytest.fixture
def conflicted_guard(store, shift_start):
    """A qualified guard who marked two hours of the shift unavailable."""
    guard = store.add_guard(make_guard('guard-d'))
    store.add_availability(make_availability('guard-d', make_window(shift_start.replace(hour=8), 10)))
    store.add_availability(
        make_availability('guard-d', make_window(shift_start + timedelta(hours=2), 2), 'unavailable')
    )
    return guard


@pytest.fixture
def second_shift(store, shift_start):
    return store.add_shift(make_shift('shift-101', make_window(shift_start + timedelta(days=1), 8)))


# =============================================================================
# Transitions
# =============================================================================

class TestTransitions:

    @pytest.mark.parametrize('current, target', [
        (AssignmentStatus.PENDING, AssignmentStatus.ACCEPTED),
        (AssignmentStatus.PENDING, AssignmentStatus.DECLINED),
        (AssignmentStatus.PENDING, AssignmentStatus.EXPIRED),
        (AssignmentStatus.PENDING, AssignmentStatus.CANCELLED),
        (AssignmentStatus.ACCEPTED, AssignmentStatus.CONFIRMED),
        (AssignmentStatus.ACCEPTED, AssignmentStatus.CANCELLED),
    ])
    async def test_allowed(self, current, target):
        assert can_transition(current, target)

    @pytest.mark.parametrize('current, target', [
        (AssignmentStatus.PENDING, AssignmentStatus.CONFIRMED),
        (AssignmentStatus.ACCEPTED, AssignmentStatus.DECLINED),
        (AssignmentStatus.CONFIRMED, AssignmentStatus.CANCELLED),
        (AssignmentStatus.DECLINED, AssignmentStatus.ACCEPTED),
    ])
    async def test_rejected(self, current, target):
        assert not can_transition(current, target)
        with pytest.raises(ValidationError) as exc_info:
            validate_transition(current, target)
        assert exc_info.value.code == 'INVALID_ASSIGNMENT_STATUS'

    async def test_terminal_statuses(self):
        assert TERMINAL_STATUSES == {
            AssignmentStatus.CONFIRMED,
            AssignmentStatus.DECLINED,
            AssignmentStatus.EXPIRED,
            AssignmentStatus.CANCELLED,
        }


# =============================================================================
# Creation
# =============================================================================

class TestCreateAssignment:

    async def test_creates_pending_assignment(self, services, store, scheduling):
        assignment = await services.assignments.create_assignment(request())

        assert assignment.assignmentStatus == AssignmentStatus.PENDING
        assert assignment.assignedAt == NOW
        assert assignment.assignedBy == 'mgr-1'
        assert assignment.eligibilityScore == 1.0
        assert assignment.conflictOverridden is False
        assert store.assignments[assignment.id] == assignment
        assert store.shifts['shift-100'].assignedGuardId == 'guard-a'

    async def test_shift_with_active_assignment_is_rejected(self, services, scheduling):
        await services.assignments.create_assignment(request())

        with pytest.raises(ValidationError) as exc_info:
            await services.assignments.create_assignment(request(guard_id='guard-b'))
        assert exc_info.value.code == 'ASSIGNMENT_EXISTS'

    async def test_missing_critical_certification_cannot_be_overridden(self, services, scheduling):
        with pytest.raises(ValidationError) as exc_info:
            await services.assignments.create_assignment(
                request(guard_id='guard-b', overrideConflicts=True, overrideReason='Short staffed')
            )
        assert exc_info.value.code == 'GUARD_NOT_ELIGIBLE'
        assert exc_info.value.details['conflicts'][0]['conflictType'] == 'certification_missing'

    async def test_unschedulable_guard_is_rejected(self, services, store, shift):
        store.add_guard(make_guard('guard-s', isSchedulable=False))

        with pytest.raises(ValidationError) as exc_info:
            await services.assignments.create_assignment(request(guard_id='guard-s'))
        assert exc_info.value.code == 'GUARD_NOT_ELIGIBLE'

    async def test_double_booking_a_confirmed_guard_is_blocked(
        self, services, store, scheduling, shift
    ):
        store.add_shift(make_shift('shift-200', shift.timeWindow))
        store.assignments['existing'] = ShiftAssignment(
            id='existing',
            shiftId='shift-200',
            guardId='guard-a',
            assignmentStatus=AssignmentStatus.CONFIRMED,
            assignedBy='mgr-9',
            assignedAt=NOW,
        )

        with pytest.raises(ValidationError) as exc_info:
            await services.assignments.create_assignment(request())
        assert exc_info.value.code == 'GUARD_NOT_ELIGIBLE'

    async def test_overridable_conflict_requires_override(self, services, shift, conflicted_guard):
        with pytest.raises(ValidationError) as exc_info:
            await services.assignments.create_assignment(request(guard_id='guard-d'))

        assert exc_info.value.code == 'CONFLICT_OVERRIDE_REQUIRED'
        conflict = exc_info.value.details['conflicts'][0]
        assert conflict['conflictType'] == ConflictType.AVAILABILITY_CONFLICT.value

    async def test_override_requires_reason(self, services, shift, conflicted_guard):
        with pytest.raises(ValidationError) as exc_info:
            await services.assignments.create_assignment(
                request(guard_id='guard-d', overrideConflicts=True)
            )
        assert exc_info.value.code == 'CONFLICT_OVERRIDE_REQUIRED'

    async def test_override_with_reason_is_recorded(self, services, shift, conflicted_guard):
        assignment = await services.assignments.create_assignment(
            request(guard_id='guard-d', overrideConflicts=True, overrideReason='Covers lunch only')
        )

        assert assignment.conflictOverridden is True
        assert assignment.overrideReason == 'Covers lunch only'
        assert assignment.overrideBy == 'mgr-1'
        assert assignment.overrideAt == NOW

    async def test_unknown_shift(self, services, scheduling):
        with pytest.raises(NotFoundError) as exc_info:
            await services.assignments.create_assignment(request(shift_id='shift-x'))
        assert exc_info.value.code == 'SHIFT_NOT_FOUND'


# =============================================================================
# Guard responses
# =============================================================================

class TestGuardResponse:

    async def test_accept(self, services, scheduling):
        assignment = await services.assignments.create_assignment(request())

        updated = await services.assignments.record_guard_response(assignment.id, 'accept')

        assert updated.assignmentStatus == AssignmentStatus.ACCEPTED
        assert updated.guardResponse == GuardResponse.ACCEPT
        assert updated.guardRespondedAt == NOW

    async def test_decline_frees_the_shift(self, services, store, scheduling):
        assignment = await services.assignments.create_assignment(request())

        updated = await services.assignments.record_guard_response(
            assignment.id, GuardResponse.DECLINE, notes='Family event'
        )

        assert updated.assignmentStatus == AssignmentStatus.DECLINED
        assert updated.guardResponseNotes == 'Family event'
        assert store.shifts['shift-100'].assignedGuardId is None

    async def test_conditional_counts_as_acceptance(self, services, scheduling):
        assignment = await services.assignments.create_assignment(request())

        updated = await services.assignments.record_guard_response(
            assignment.id, 'conditional', notes='Needs parking pass'
        )

        assert updated.assignmentStatus == AssignmentStatus.ACCEPTED
        assert updated.guardResponse == GuardResponse.CONDITIONAL
        assert json.loads(updated.guardResponseNotes) == {
            'conditional': True,
            'conditions': 'Needs parking pass',
        }

    async def test_response_at_deadline_is_accepted(self, services, clock, scheduling):
        assignment = await services.assignments.create_assignment(request())
        clock.advance(timedelta(hours=24))

        updated = await services.assignments.record_guard_response(assignment.id, 'accept')

        assert updated.assignmentStatus == AssignmentStatus.ACCEPTED

    async def test_late_response_expires_assignment(self, services, store, clock, scheduling):
        assignment = await services.assignments.create_assignment(request())
        clock.advance(timedelta(hours=25))

        with pytest.raises(ValidationError) as exc_info:
            await services.assignments.record_guard_response(assignment.id, 'accept')

        assert exc_info.value.code == 'RESPONSE_DEADLINE_PASSED'
        assert store.assignments[assignment.id].assignmentStatus == AssignmentStatus.EXPIRED
        assert store.shifts['shift-100'].assignedGuardId is None

    async def test_second_response_rejected(self, services, scheduling):
        assignment = await services.assignments.create_assignment(request())
        await services.assignments.record_guard_response(assignment.id, 'accept')

        with pytest.raises(ValidationError) as exc_info:
            await services.assignments.record_guard_response(assignment.id, 'decline')
        assert exc_info.value.code == 'INVALID_ASSIGNMENT_STATUS'

    async def test_unknown_assignment(self, services):
        with pytest.raises(NotFoundError) as exc_info:
            await services.assignments.record_guard_response('nope', 'accept')
        assert exc_info.value.code == 'ASSIGNMENT_NOT_FOUND'

    async def test_unknown_response_value(self, services, scheduling):
        assignment = await services.assignments.create_assignment(request())
        with pytest.raises(ValueError):
            await services.assignments.record_guard_response(assignment.id, 'maybe')


# =============================================================================
# Confirmation and cancellation
# =============================================================================

class TestConfirmAssignment:

    async def test_confirms_accepted_assignment(self, services, scheduling):
        assignment = await services.assignments.create_assignment(request())
        await services.assignments.record_guard_response(assignment.id, 'accept')

        confirmed = await services.assignments.confirm_assignment(assignment.id, 'mgr-2')

        assert confirmed.assignmentStatus == AssignmentStatus.CONFIRMED
        assert confirmed.confirmedBy == 'mgr-2'
        assert confirmed.confirmedAt == NOW

    async def test_pending_cannot_be_confirmed(self, services, scheduling):
        assignment = await services.assignments.create_assignment(request())

        with pytest.raises(ValidationError) as exc_info:
            await services.assignments.confirm_assignment(assignment.id, 'mgr-2')
        assert exc_info.value.code == 'INVALID_ASSIGNMENT_STATUS'

    async def test_new_conflict_needs_override_to_confirm(
        self, services, store, scheduling, shift_start
    ):
        assignment = await services.assignments.create_assignment(request())
        await services.assignments.record_guard_response(assignment.id, 'accept')
        store.add_availability(
            make_availability('guard-a', make_window(shift_start, 4), 'unavailable')
        )

        with pytest.raises(ValidationError) as exc_info:
            await services.assignments.confirm_assignment(assignment.id, 'mgr-2')
        assert exc_info.value.code == 'CONFLICT_OVERRIDE_REQUIRED'
        assert store.assignments[assignment.id].assignmentStatus == AssignmentStatus.ACCEPTED

        confirmed = await services.assignments.confirm_assignment(
            assignment.id, 'mgr-2', override_reason='Guard rearranged plans', override_by='mgr-2'
        )
        assert confirmed.assignmentStatus == AssignmentStatus.CONFIRMED
        assert confirmed.conflictOverridden is True
        assert confirmed.overrideReason == 'Guard rearranged plans'

    async def test_override_from_creation_carries_to_confirmation(
        self, services, shift, conflicted_guard
    ):
        assignment = await services.assignments.create_assignment(
            request(guard_id='guard-d', overrideConflicts=True, overrideReason='Covers lunch only')
        )
        await services.assignments.record_guard_response(assignment.id, 'accept')

        confirmed = await services.assignments.confirm_assignment(assignment.id, 'mgr-2')

        assert confirmed.assignmentStatus == AssignmentStatus.CONFIRMED

    async def test_creation_override_does_not_cover_new_critical_conflict(
        self, services, store, shift, conflicted_guard
    ):
        assignment = await services.assignments.create_assignment(
            request(guard_id='guard-d', overrideConflicts=True, overrideReason='Covers lunch only')
        )
        await services.assignments.record_guard_response(assignment.id, 'accept')
        store.guards['guard-d'].certifications.pop('Basic_Security')

        with pytest.raises(ValidationError) as exc_info:
            await services.assignments.confirm_assignment(assignment.id, 'mgr-2')
        assert exc_info.value.code == 'CONFLICT_OVERRIDE_REQUIRED'
        assert store.assignments[assignment.id].assignmentStatus == AssignmentStatus.ACCEPTED

        confirmed = await services.assignments.confirm_assignment(
            assignment.id, 'mgr-2', override_reason='Certification renewal in progress',
            override_by='ops-lead',
        )
        assert confirmed.assignmentStatus == AssignmentStatus.CONFIRMED
        assert confirmed.overrideReason == 'Certification renewal in progress'
        assert confirmed.overrideBy == 'ops-lead'


class TestCancelAssignment:

    async def test_cancel_frees_shift_and_records_reason(self, services, store, scheduling):
        assignment = await services.assignments.create_assignment(request(managerNotes='VIP site'))

        cancelled = await services.assignments.cancel_assignment(
            assignment.id, 'mgr-2', 'Client cancelled'
        )

        assert cancelled.assignmentStatus == AssignmentStatus.CANCELLED
        assert cancelled.managerNotes == 'VIP site\nCancelled by mgr-2: Client cancelled'
        assert store.shifts['shift-100'].assignedGuardId is None

        replacement = await services.assignments.create_assignment(request())
        assert replacement.id != assignment.id

    async def test_terminal_assignment_cannot_be_cancelled(self, services, scheduling):
        assignment = await services.assignments.create_assignment(request())
        await services.assignments.record_guard_response(assignment.id, 'decline')

        with pytest.raises(ValidationError) as exc_info:
            await services.assignments.cancel_assignment(assignment.id, 'mgr-2', 'Too late')
        assert exc_info.value.code == 'INVALID_ASSIGNMENT_STATUS'


# =============================================================================
# Batch assignment
# =============================================================================

class TestBatchAssignments:

    async def test_all_succeed(self, services, scheduling, second_shift):
        result = await services.assignments.create_batch_assignments(
            [request(), request(shift_id='shift-101')]
        )

        assert result.status == BatchStatus.COMPLETED
        assert (result.successful, result.failed, result.totalAssignments) == (2, 0, 2)
        assert all(item.assignmentId for item in result.items)

    async def test_partial_success(self, services, scheduling, second_shift):
        result = await services.assignments.create_batch_assignments([
            request(),
            request(shift_id='shift-x'),
            request(shift_id='shift-101', guard_id='guard-b'),
        ])

        assert result.status == BatchStatus.PARTIALLY_COMPLETED
        assert (result.successful, result.failed) == (1, 2)
        assert result.items[1].error == 'Shift shift-x not found'
        assert result.items[2].conflicts[0].conflictType == ConflictType.CERTIFICATION_MISSING

    async def test_all_or_nothing_rolls_back(self, services, store, scheduling, second_shift):
        result = await services.assignments.create_batch_assignments(
            [request(), request(shift_id='shift-x'), request(shift_id='shift-101')],
            allow_partial_success=False,
        )

        assert result.status == BatchStatus.FAILED
        assert (result.successful, result.failed) == (0, 3)
        assert result.items[2].error == 'Skipped after an earlier failure in the batch'
        assert [a.assignmentStatus for a in store.assignments.values()] == [
            AssignmentStatus.CANCELLED
        ]
        assert store.shifts['shift-100'].assignedGuardId is None
        assert store.shifts['shift-101'].assignedGuardId is None
