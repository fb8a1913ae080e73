"""
Tests for workshop registration: admission per mode, the capacity counter and
waitlist promotion.
"""
from unittest.mock import patch

import pytest

from conftest import HOUR, ORGANIZER, get_row
from workshop_engine import dynamo, registration
from workshop_engine.config import config
from workshop_engine.errors import (
    AlreadyRegisteredError, AtCapacityError, ConflictError, ForbiddenError,
    InvalidStateError, InvariantViolation, NotFoundError, NotPublishedError,
)
from workshop_engine.models import PublicationState, RegistrationStatus


def _count(workshop_id):
    return int(get_row(config.WORKSHOPS_TABLE, {'workshopId': workshop_id})['registrationCount'])


def _status(workshop_id, user_id):
    return get_row(config.REGISTRATIONS_TABLE, {'workshopId': workshop_id, 'userId': user_id})['status']


def _assert_capacity_invariant(workshop_id):
    assert _count(workshop_id) == registration.count_registered(workshop_id)


CAPPED_2 = {'type': 'capped', 'maxCapacity': 2, 'waitlistEnabled': False}
CAPPED_1_WAITLIST = {'type': 'capped', 'maxCapacity': 1, 'waitlistEnabled': True}


class TestOpenRegistration:
    """Tests for open workshops and the common preconditions."""

    def test_open_registration_takes_a_seat(self, make_workshop, published_events):
        """Open mode registers immediately and bumps the counter."""
        workshop = make_workshop()
        result = registration.register(workshop['workshopId'], 'user-a')

        assert result['status'] == RegistrationStatus.REGISTERED
        assert _count(workshop['workshopId']) == 1
        facts = published_events()
        assert facts[0]['type'] == 'registration_status_changed'
        assert facts[0]['status'] == RegistrationStatus.REGISTERED
        assert facts[0]['previousStatus'] is None

    def test_unknown_workshop(self, aws):
        with pytest.raises(NotFoundError):
            registration.register('missing', 'user-a')

    def test_draft_workshop_is_not_open(self, make_workshop):
        workshop = make_workshop(publicationState=PublicationState.DRAFT)
        with pytest.raises(NotPublishedError):
            registration.register(workshop['workshopId'], 'user-a')

    def test_mode_must_be_configured(self, make_workshop, put_item):
        workshop = make_workshop()
        del workshop['registrationMode']
        put_item(config.WORKSHOPS_TABLE, workshop)
        with pytest.raises(InvalidStateError):
            registration.register(workshop['workshopId'], 'user-a')

    def test_active_registration_blocks_a_second_one(self, make_workshop):
        """A user cannot hold two active registrations for one workshop."""
        workshop = make_workshop()
        registration.register(workshop['workshopId'], 'user-a')
        with pytest.raises(AlreadyRegisteredError):
            registration.register(workshop['workshopId'], 'user-a')
        assert _count(workshop['workshopId']) == 1

    def test_cancelled_registration_is_reused(self, make_workshop):
        """Registering again after cancelling overwrites the same row."""
        workshop = make_workshop()
        wid = workshop['workshopId']
        registration.register(wid, 'user-a')
        registration.cancel_registration(wid, 'user-a')
        result = registration.register(wid, 'user-a')

        assert result['status'] == RegistrationStatus.REGISTERED
        assert _count(wid) == 1
        _assert_capacity_invariant(wid)


class TestCappedRegistration:
    """Tests for capacity limits and the waitlist."""

    def test_no_double_admission_without_waitlist(self, make_workshop):
        """N registrations against k seats admit exactly k, the rest fail."""
        workshop = make_workshop(mode=CAPPED_2)
        wid = workshop['workshopId']
        admitted, refused = 0, 0
        for n in range(5):
            try:
                registration.register(wid, f"user-{n}")
                admitted += 1
            except AtCapacityError:
                refused += 1

        assert admitted == 2
        assert refused == 3
        assert _count(wid) == 2
        _assert_capacity_invariant(wid)

    def test_waitlist_admits_k_and_queues_the_rest(self, make_workshop):
        workshop = make_workshop(mode={'type': 'capped', 'maxCapacity': 2, 'waitlistEnabled': True})
        wid = workshop['workshopId']
        statuses = [registration.register(wid, f"user-{n}")['status'] for n in range(4)]

        assert statuses.count(RegistrationStatus.REGISTERED) == 2
        assert statuses.count(RegistrationStatus.WAITLISTED) == 2
        assert _count(wid) == 2

    def test_cancel_promotes_from_waitlist(self, make_workshop, published_events):
        """
        maxCapacity=1 with waitlist: A registered, B waitlisted; A cancels,
        B is promoted and the count stays 1.
        """
        workshop = make_workshop(mode=CAPPED_1_WAITLIST)
        wid = workshop['workshopId']
        assert registration.register(wid, 'user-a')['status'] == RegistrationStatus.REGISTERED
        assert _count(wid) == 1
        assert registration.register(wid, 'user-b')['status'] == RegistrationStatus.WAITLISTED

        cancelled = registration.cancel_registration(wid, 'user-a')

        assert cancelled['status'] == RegistrationStatus.CANCELLED
        assert _status(wid, 'user-b') == RegistrationStatus.REGISTERED
        assert _count(wid) == 1
        _assert_capacity_invariant(wid)

        facts = [f for f in published_events() if f['previousStatus'] is not None]
        assert {(f['userId'], f['status']) for f in facts} == {
            ('user-a', RegistrationStatus.CANCELLED),
            ('user-b', RegistrationStatus.REGISTERED),
        }

    def test_waitlist_is_first_in_first_out(self, make_workshop, clock):
        """The oldest waitlisted registration is promoted, not the first by id."""
        workshop = make_workshop(mode=CAPPED_1_WAITLIST)
        wid = workshop['workshopId']
        registration.register(wid, 'user-a')
        clock.advance(1000)
        registration.register(wid, 'user-z')
        clock.advance(1000)
        registration.register(wid, 'user-b')

        registration.cancel_registration(wid, 'user-a')

        assert _status(wid, 'user-z') == RegistrationStatus.REGISTERED
        assert _status(wid, 'user-b') == RegistrationStatus.WAITLISTED

    def test_waitlist_ties_break_on_user_id(self, make_workshop):
        workshop = make_workshop(mode=CAPPED_1_WAITLIST)
        wid = workshop['workshopId']
        for user_id in ('user-a', 'user-c', 'user-b'):
            registration.register(wid, user_id)

        registration.cancel_registration(wid, 'user-a')

        assert _status(wid, 'user-b') == RegistrationStatus.REGISTERED
        assert _status(wid, 'user-c') == RegistrationStatus.WAITLISTED

    def test_cancelling_waitlisted_frees_no_seat(self, make_workshop):
        workshop = make_workshop(mode=CAPPED_1_WAITLIST)
        wid = workshop['workshopId']
        registration.register(wid, 'user-a')
        registration.register(wid, 'user-b')

        registration.cancel_registration(wid, 'user-b')

        assert _status(wid, 'user-a') == RegistrationStatus.REGISTERED
        assert _count(wid) == 1

    def test_cancel_is_idempotent(self, make_workshop):
        workshop = make_workshop()
        wid = workshop['workshopId']
        registration.register(wid, 'user-a')
        registration.cancel_registration(wid, 'user-a')
        again = registration.cancel_registration(wid, 'user-a')

        assert again['status'] == RegistrationStatus.CANCELLED
        assert _count(wid) == 0

    def test_cancel_without_registration(self, make_workshop):
        workshop = make_workshop()
        with pytest.raises(NotFoundError):
            registration.cancel_registration(workshop['workshopId'], 'user-a')

    def test_negative_counter_is_a_bug(self, make_workshop, put_item):
        """A registered row with a zero counter cannot be cancelled silently."""
        workshop = make_workshop()
        put_item(config.REGISTRATIONS_TABLE, {
            'workshopId': workshop['workshopId'],
            'userId': 'user-a',
            'status': RegistrationStatus.REGISTERED,
            'registeredAt': 1,
            'updatedAt': 1,
        })
        with pytest.raises(InvariantViolation):
            registration.cancel_registration(workshop['workshopId'], 'user-a')


class TestApprovalRegistration:
    """Tests for approval-mode workshops."""

    def test_pending_then_approved(self, make_workshop):
        workshop = make_workshop(mode={'type': 'approval', 'maxCapacity': 1})
        wid = workshop['workshopId']
        pending = registration.register(wid, 'user-a')
        assert pending['status'] == RegistrationStatus.PENDING_APPROVAL
        assert _count(wid) == 0

        approved = registration.approve_registration(wid, 'user-a', ORGANIZER)

        assert approved['status'] == RegistrationStatus.REGISTERED
        assert _count(wid) == 1

    def test_approval_respects_capacity(self, make_workshop):
        workshop = make_workshop(mode={'type': 'approval', 'maxCapacity': 1})
        wid = workshop['workshopId']
        registration.register(wid, 'user-a')
        registration.register(wid, 'user-b')
        registration.approve_registration(wid, 'user-a', ORGANIZER)

        with pytest.raises(AtCapacityError):
            registration.approve_registration(wid, 'user-b', ORGANIZER)
        assert _status(wid, 'user-b') == RegistrationStatus.PENDING_APPROVAL

    def test_reject_keeps_counter(self, make_workshop):
        workshop = make_workshop(mode={'type': 'approval'})
        wid = workshop['workshopId']
        registration.register(wid, 'user-a')

        rejected = registration.reject_registration(wid, 'user-a', ORGANIZER)

        assert rejected['status'] == RegistrationStatus.REJECTED
        assert _count(wid) == 0

    def test_only_organizers_review(self, make_workshop):
        workshop = make_workshop(mode={'type': 'approval'})
        registration.register(workshop['workshopId'], 'user-a')
        with pytest.raises(ForbiddenError):
            registration.approve_registration(workshop['workshopId'], 'user-a', 'user-b')

    def test_review_needs_approval_mode(self, make_workshop):
        workshop = make_workshop()
        registration.register(workshop['workshopId'], 'user-a')
        with pytest.raises(InvalidStateError):
            registration.approve_registration(workshop['workshopId'], 'user-a', ORGANIZER)

    def test_review_needs_pending_registration(self, make_workshop):
        workshop = make_workshop(mode={'type': 'approval'})
        wid = workshop['workshopId']
        with pytest.raises(NotFoundError):
            registration.reject_registration(wid, 'user-a', ORGANIZER)
        registration.register(wid, 'user-a')
        registration.approve_registration(wid, 'user-a', ORGANIZER)
        with pytest.raises(InvalidStateError):
            registration.approve_registration(wid, 'user-a', ORGANIZER)


class TestLevelGatedRegistration:
    """Tests for level-gated workshops (base 100: level = floor(sqrt(xp / 100)))."""

    def test_low_level_is_rejected_not_an_error(self, make_workshop, put_item):
        """A level 1 user asking for a minLevel 3 workshop gets status rejected."""
        workshop = make_workshop(mode={'type': 'level_gated', 'minLevel': 3})
        put_item(config.USERS_TABLE, {'userId': 'user-a', 'totalXp': 150})

        result = registration.register(workshop['workshopId'], 'user-a')

        assert result['status'] == RegistrationStatus.REJECTED
        assert _count(workshop['workshopId']) == 0

    def test_high_enough_level_is_admitted(self, make_workshop, put_item):
        workshop = make_workshop(mode={'type': 'level_gated', 'minLevel': 3})
        put_item(config.USERS_TABLE, {'userId': 'user-a', 'totalXp': 900})

        result = registration.register(workshop['workshopId'], 'user-a')

        assert result['status'] == RegistrationStatus.REGISTERED
        assert _count(workshop['workshopId']) == 1

    def test_rejected_user_can_try_again_after_levelling_up(self, make_workshop, put_item):
        workshop = make_workshop(mode={'type': 'level_gated', 'minLevel': 1})
        wid = workshop['workshopId']
        assert registration.register(wid, 'user-a')['status'] == RegistrationStatus.REJECTED

        put_item(config.USERS_TABLE, {'userId': 'user-a', 'totalXp': 100})

        assert registration.register(wid, 'user-a')['status'] == RegistrationStatus.REGISTERED

    def test_level_gated_capacity(self, make_workshop, put_item):
        workshop = make_workshop(mode={'type': 'level_gated', 'minLevel': 0, 'maxCapacity': 1})
        registration.register(workshop['workshopId'], 'user-a')
        with pytest.raises(AtCapacityError):
            registration.register(workshop['workshopId'], 'user-b')

    def test_configured_level_base_is_used(self, make_workshop, put_item):
        """With base 10, 90 XP is level 3."""
        put_item(config.XP_CONFIG_TABLE, {
            'configId': 'default',
            'levelFormula': {'type': 'quadratic', 'base': 10},
        })
        put_item(config.USERS_TABLE, {'userId': 'user-a', 'totalXp': 90})
        workshop = make_workshop(mode={'type': 'level_gated', 'minLevel': 3})

        assert registration.register(workshop['workshopId'], 'user-a')['status'] == RegistrationStatus.REGISTERED

    def test_configured_level_base_rejects_low_level(self, make_workshop, put_item):
        """With base 100, 1000 XP is level 3, short of minLevel 4."""
        put_item(config.XP_CONFIG_TABLE, {
            'configId': 'default',
            'levelFormula': {'type': 'quadratic', 'base': 100},
        })
        put_item(config.USERS_TABLE, {'userId': 'user-a', 'totalXp': 1000})
        gated = make_workshop(mode={'type': 'level_gated', 'minLevel': 4})
        open_to_level_1 = make_workshop(mode={'type': 'level_gated', 'minLevel': 1})

        assert registration.register(gated['workshopId'], 'user-a')['status'] == RegistrationStatus.REJECTED
        assert registration.register(open_to_level_1['workshopId'], 'user-a')['status'] == RegistrationStatus.REGISTERED


class TestRegistrationConcurrency:
    """Tests for the optimistic concurrency retry loop."""

    def test_interleaved_registration_for_the_last_seat(self, make_workshop):
        """
        Another user takes the last seat between our read and our write: our
        transaction is cancelled, re-run against fresh state, and refused.
        """
        workshop = make_workshop(mode={'type': 'capped', 'maxCapacity': 1, 'waitlistEnabled': False})
        wid = workshop['workshopId']
        real_transact_write = dynamo.transact_write
        raced = {'done': False}

        def racing_transact_write(items):
            if not raced['done']:
                raced['done'] = True
                registration.register(wid, 'intruder')
            return real_transact_write(items)

        with patch('workshop_engine.dynamo.transact_write', side_effect=racing_transact_write):
            with pytest.raises(AtCapacityError):
                registration.register(wid, 'user-a')

        assert _status(wid, 'intruder') == RegistrationStatus.REGISTERED
        assert get_row(config.REGISTRATIONS_TABLE, {'workshopId': wid, 'userId': 'user-a'}) is None
        assert _count(wid) == 1

    def test_interleaved_registration_lands_on_waitlist(self, make_workshop):
        workshop = make_workshop(mode=CAPPED_1_WAITLIST)
        wid = workshop['workshopId']
        real_transact_write = dynamo.transact_write
        raced = {'done': False}

        def racing_transact_write(items):
            if not raced['done']:
                raced['done'] = True
                registration.register(wid, 'intruder')
            return real_transact_write(items)

        with patch('workshop_engine.dynamo.transact_write', side_effect=racing_transact_write):
            result = registration.register(wid, 'user-a')

        assert result['status'] == RegistrationStatus.WAITLISTED
        assert _count(wid) == 1
        _assert_capacity_invariant(wid)

    def test_gives_up_after_max_attempts(self, make_workshop):
        """Persistent conflicts surface as ConflictError after the attempt budget."""
        workshop = make_workshop()
        conflict = dynamo.TransactionConflict([{'Code': 'ConditionalCheckFailed'}])

        with patch('workshop_engine.dynamo.transact_write', side_effect=conflict) as mock_write:
            with pytest.raises(ConflictError):
                registration.register(workshop['workshopId'], 'user-a')

        assert mock_write.call_count == config.MAX_TRANSACTION_ATTEMPTS
        assert _count(workshop['workshopId']) == 0

    def test_domain_errors_are_not_retried(self, make_workshop):
        workshop = make_workshop(mode={'type': 'capped', 'maxCapacity': 0})
        with patch('workshop_engine.dynamo.transact_write') as mock_write:
            with pytest.raises(AtCapacityError):
                registration.register(workshop['workshopId'], 'user-a')
        mock_write.assert_not_called()


class TestRegistrationQueries:
    """Tests for listing and the counter audit."""

    def test_list_by_status(self, make_workshop):
        workshop = make_workshop(mode=CAPPED_1_WAITLIST)
        wid = workshop['workshopId']
        for user_id in ('user-a', 'user-b', 'user-c'):
            registration.register(wid, user_id)

        waitlisted = registration.list_registrations(wid, ORGANIZER, status=RegistrationStatus.WAITLISTED)
        everyone = registration.list_registrations(wid, ORGANIZER)

        assert sorted(r['userId'] for r in waitlisted['items']) == ['user-b', 'user-c']
        assert len(everyone['items']) == 3

    def test_list_is_organizer_only(self, make_workshop):
        workshop = make_workshop()
        with pytest.raises(ForbiddenError):
            registration.list_registrations(workshop['workshopId'], 'user-a')

    def test_list_pages_with_cursor(self, make_workshop):
        workshop = make_workshop()
        wid = workshop['workshopId']
        for n in range(3):
            registration.register(wid, f"user-{n}")

        first = registration.list_registrations(wid, ORGANIZER, limit=2)
        second = registration.list_registrations(wid, ORGANIZER, limit=2, cursor=first['nextCursor'])

        assert len(first['items']) == 2
        assert first['nextCursor'] is not None
        seen = {r['userId'] for r in first['items'] + second['items']}
        assert seen == {'user-0', 'user-1', 'user-2'}

    def test_verify_count_detects_drift(self, make_workshop, put_item):
        workshop = make_workshop(registrationCount=3)
        result = registration.verify_registration_count(workshop['workshopId'])

        assert result['consistent'] is False
        assert result['registrationCount'] == 3
        assert result['registered'] == 0

    def test_get_my_registration(self, make_workshop):
        workshop = make_workshop()
        assert registration.get_my_registration(workshop['workshopId'], 'user-a') is None
        registration.register(workshop['workshopId'], 'user-a')
        assert registration.get_my_registration(workshop['workshopId'], 'user-a')['status'] == 'registered'

    def test_cancel_after_workshop_ended(self, make_workshop, clock):
        """Cancelling does not depend on the workshop still being upcoming."""
        workshop = make_workshop()
        registration.register(workshop['workshopId'], 'user-a')
        clock.advance(2 * HOUR)
        assert registration.cancel_registration(workshop['workshopId'], 'user-a')['status'] == 'cancelled'
