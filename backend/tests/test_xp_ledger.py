"""
Tests for the XP ledger and level calculations.
"""
from decimal import Decimal

import pytest

from conftest import HOUR, get_row
from workshop_engine import xp_ledger
from workshop_engine.errors import ValidationError
from workshop_engine.config import config
from workshop_engine.gamification import (
    compute_level, get_level_progress, resolve_level_title, xp_for_level,
)
from workshop_engine.models import (
    AssignmentSource, AttendanceSource, DailyTaskSource, ModuleSource, QuizSource, parse_xp_source,
)


class TestLevelCurve:
    """Tests for the quadratic level curve."""

    @pytest.mark.parametrize('base', [1, 10, 100, Decimal('2.5')])
    def test_level_monotonicity(self, base):
        """xp_for_level is strictly increasing and compute_level inverts it."""
        previous = None
        for level in range(0, 40):
            xp = xp_for_level(level, base)
            if previous is not None:
                assert xp > previous
            assert compute_level(xp, base) == level
            previous = xp

    def test_just_below_threshold(self):
        assert compute_level(399, 100) == 1
        assert compute_level(400, 100) == 2
        assert compute_level(Decimal('399.99'), 100) == 1

    def test_non_positive_inputs(self):
        assert compute_level(0, 100) == 0
        assert compute_level(-50, 100) == 0
        assert compute_level(500, 0) == 0

    def test_progress(self):
        progress = get_level_progress(250, 100)
        assert progress == {'level': 1, 'currentXp': 150, 'xpForNextLevel': 300, 'totalXp': 250}


class TestLevelTitles:
    """Tests for level title resolution."""

    TITLES = [
        {'title': 'Newcomer', 'minLevel': 0, 'maxLevel': 4},
        {'title': 'Regular', 'minLevel': 5, 'maxLevel': 9},
        {'title': 'Veteran', 'minLevel': 10},
        {'title': 'Legend', 'minLevel': 10, 'maxLevel': 19},
    ]

    def test_range_lookup(self):
        assert resolve_level_title(0, self.TITLES) == 'Newcomer'
        assert resolve_level_title(7, self.TITLES) == 'Regular'

    def test_bounded_range_wins_on_equal_min_level(self):
        assert resolve_level_title(12, self.TITLES) == 'Legend'
        assert resolve_level_title(25, self.TITLES) == 'Veteran'

    def test_no_title(self):
        assert resolve_level_title(3, [{'title': 'Pro', 'minLevel': 5}]) is None


class TestAwardXp:
    """Tests for award_xp and the cached total."""

    SOURCE = DailyTaskSource(date='2026-01-01')

    @pytest.mark.parametrize('amount', [0, -5])
    def test_non_positive_amount_is_a_no_op(self, aws, amount):
        assert xp_ledger.award_xp('user-a', amount, self.SOURCE) is None
        assert get_row(config.USERS_TABLE, {'userId': 'user-a'}) is None
        assert xp_ledger.list_transactions('user-a')['items'] == []

    def test_award_appends_and_bumps_total(self, aws):
        first = xp_ledger.award_xp('user-a', 30, self.SOURCE)
        second = xp_ledger.award_xp('user-a', 20, ModuleSource(module_id='m-1'))

        assert first['finalXp'] == 30
        assert second['source'] == {'type': 'module', 'moduleId': 'm-1'}
        assert xp_ledger.get_user_total('user-a') == 50

    def test_explicit_multiplier(self, aws):
        transaction = xp_ledger.award_xp('user-a', 10, self.SOURCE, multiplier=Decimal('1.5'))
        assert transaction['finalXp'] == 15
        assert xp_ledger.get_user_total('user-a') == 15

    def test_once_only_sources(self, aws):
        """Attendance and assignment rewards are keyed by their event."""
        attendance_source = AttendanceSource(workshop_id='w-1', attendance_id='a-1')
        assert xp_ledger.award_xp('user-a', 25, attendance_source) is not None
        assert xp_ledger.award_xp('user-a', 25, AttendanceSource(workshop_id='w-1', attendance_id='a-2')) is None

        assignment_source = AssignmentSource(workshop_id='w-1', assignment_id='as-1', submission_id='s-1')
        assert xp_ledger.award_xp('user-a', 40, assignment_source) is not None
        assert xp_ledger.award_xp('user-a', 40, assignment_source) is None

        assert xp_ledger.get_user_total('user-a') == 65

    def test_level_up_is_announced(self, aws, published_events):
        xp_ledger.award_xp('user-a', 90, self.SOURCE)
        assert [f for f in published_events() if f['type'] == 'level_up'] == []

        xp_ledger.award_xp('user-a', 20, self.SOURCE)

        level_ups = [f for f in published_events() if f['type'] == 'level_up']
        assert level_ups == [{
            'type': 'level_up',
            'occurredAt': level_ups[0]['occurredAt'],
            'userId': 'user-a',
            'previousLevel': 0,
            'level': 1,
        }]

    def test_source_round_trip_from_storage(self, aws):
        transaction = xp_ledger.award_xp('user-a', 5, self.SOURCE)
        stored = xp_ledger.get_transaction(transaction['transactionId'])
        assert parse_xp_source(stored['source']) == self.SOURCE

    def test_stored_source_shapes(self, aws):
        daily = xp_ledger.award_xp('user-a', 5, self.SOURCE)
        quiz = xp_ledger.award_xp('user-a', 5, QuizSource(quiz_id='quiz-1', submission_id='qs-1', question_id='q-3'))

        assert daily['source'] == {'type': 'dailyTask', 'date': '2026-01-01'}
        assert quiz['source'] == {
            'type': 'quiz', 'quizId': 'quiz-1', 'submissionId': 'qs-1', 'questionId': 'q-3',
        }

    def test_quiz_source_requires_question(self):
        with pytest.raises(ValidationError):
            parse_xp_source({'type': 'quiz', 'quizId': 'quiz-1', 'submissionId': 'qs-1'})


class TestMultipliers:
    """Tests for active multiplier resolution."""

    def _multiplier(self, put_item, clock, multiplier_id, value, scope=None, active=True, window=HOUR):
        put_item(config.XP_MULTIPLIERS_TABLE, {
            'multiplierId': multiplier_id,
            'multiplier': value,
            'isActive': active,
            'startsAt': clock.now - window,
            'endsAt': clock.now + window,
            'scope': scope or {'type': 'global'},
        })

    def test_default_is_one(self, aws):
        assert xp_ledger.get_active_multiplier('user-a') == 1

    def test_highest_wins_without_stacking(self, put_item, clock):
        self._multiplier(put_item, clock, 'global-2', 2)
        self._multiplier(put_item, clock, 'user-3', 3, scope={'type': 'user', 'userId': 'user-a'})

        assert xp_ledger.get_active_multiplier('user-a') == 3
        assert xp_ledger.get_active_multiplier('user-b') == 2

    def test_inactive_and_expired_are_ignored(self, put_item, clock):
        self._multiplier(put_item, clock, 'off', 5, active=False)
        self._multiplier(put_item, clock, 'old', 4)
        clock.advance(2 * HOUR)

        assert xp_ledger.get_active_multiplier('user-a') == 1

    def test_award_uses_active_multiplier(self, put_item, clock):
        self._multiplier(put_item, clock, 'global-2', 2)
        transaction = xp_ledger.award_xp('user-a', 10, DailyTaskSource(date='2026-01-01'))
        assert transaction['multiplier'] == 2
        assert transaction['finalXp'] == 20


class TestLedgerQueries:
    """Tests for level info, history and the total audit."""

    def test_level_info(self, put_item):
        put_item(config.LEVEL_TITLES_TABLE, {'titleId': 't-1', 'title': 'Apprentice', 'minLevel': 1, 'maxLevel': 4})
        xp_ledger.award_xp('user-a', 450, DailyTaskSource(date='2026-01-01'))

        info = xp_ledger.get_user_level_info('user-a')

        assert info['level'] == 2
        assert info['title'] == 'Apprentice'
        assert info['totalXp'] == 450
        assert info['currentXp'] == 50
        assert info['xpForNextLevel'] == 500

    def test_level_info_for_new_user(self, aws):
        info = xp_ledger.get_user_level_info('nobody')
        assert info['level'] == 0
        assert info['title'] is None

    def test_history_is_newest_first(self, aws, clock):
        for day in ('2026-01-01', '2026-01-02', '2026-01-03'):
            xp_ledger.award_xp('user-a', 10, DailyTaskSource(date=day))
            clock.advance(1000)

        page = xp_ledger.list_transactions('user-a', limit=2)

        assert [t['source']['date'] for t in page['items']] == ['2026-01-03', '2026-01-02']
        rest = xp_ledger.list_transactions('user-a', limit=2, cursor=page['nextCursor'])
        assert [t['source']['date'] for t in rest['items']] == ['2026-01-01']

    def test_audit_consistent(self, aws):
        xp_ledger.award_xp('user-a', 10, DailyTaskSource(date='2026-01-01'))
        xp_ledger.award_xp('user-a', 15, ModuleSource(module_id='m-1'))

        result = xp_ledger.audit_user_total('user-a')

        assert result['consistent'] is True
        assert result['ledgerTotal'] == 25
        assert result['transactions'] == 2

    def test_audit_detects_drift(self, put_item):
        xp_ledger.award_xp('user-a', 10, DailyTaskSource(date='2026-01-01'))
        put_item(config.USERS_TABLE, {'userId': 'user-a', 'totalXp': 500})

        result = xp_ledger.audit_user_total('user-a')

        assert result['consistent'] is False
        assert result['cachedTotal'] == 500
        assert result['ledgerTotal'] == 10

    def test_default_config(self, aws):
        xp_config = xp_ledger.get_xp_config()
        assert xp_config['isDefault'] is True
        assert xp_ledger.level_base(xp_config) == config.DEFAULT_LEVEL_BASE
