"""
Tests for the lease manager and the candidate eligibility predicate.
"""
from datetime import timedelta

import pytest

from conftest import NOW, iso_ago
from shared.errors import NoCandidatesError, AllLockedError, LockAcquisitionError
from shared.leasing import LeaseManager, LeasePolicy, should_skip
from shared.models import ReviewerId

SIX_HOURS = timedelta(hours=6)


class TestShouldSkip:
    """Tests for the should_skip eligibility predicate."""

    @pytest.mark.parametrize('extra', [
        {},
        {'locked_by': 'someone_DOT_else'},
        {'locked_by': 'someone', 'locked_at': iso_ago(minutes=1)},
        {'locked_at': None},
    ])
    def test_unlocked_is_never_skipped(self, extra):
        """lock=false is available whatever the other fields say."""
        candidate = {'id': 'A', 'status': 'pending', 'lock': False, **extra}
        assert should_skip(candidate, 'alice@example.com', NOW, SIX_HOURS) is False

    def test_same_holder_reenters(self):
        """The current holder can always take their own item back."""
        candidate = {
            'lock': True,
            'locked_by': 'alice@example_DOT_com',
            'locked_at': iso_ago(minutes=5)
        }
        assert should_skip(candidate, 'alice@example.com', NOW, SIX_HOURS) is False

    def test_same_holder_without_timestamp(self):
        candidate = {'lock': True, 'locked_by': 'alice@example_DOT_com'}
        assert should_skip(candidate, ReviewerId('alice@example.com'), NOW, SIX_HOURS) is False

    def test_missing_timestamp_is_skipped(self):
        """Malformed lock held by someone else stays blocked."""
        candidate = {'lock': True, 'locked_by': 'bob'}
        assert should_skip(candidate, 'carol', NOW, SIX_HOURS) is True

    def test_expired_lease_is_reclaimable(self):
        candidate = {'lock': True, 'locked_by': 'bob', 'locked_at': iso_ago(hours=6, seconds=1)}
        assert should_skip(candidate, 'carol', NOW, SIX_HOURS) is False

    def test_active_lease_is_skipped(self):
        candidate = {'lock': True, 'locked_by': 'bob', 'locked_at': iso_ago(hours=5, minutes=59, seconds=59)}
        assert should_skip(candidate, 'carol', NOW, SIX_HOURS) is True

    def test_exact_timeout_is_reclaimable(self):
        """Elapsed time equal to the window counts as expired."""
        candidate = {'lock': True, 'locked_by': 'bob', 'locked_at': iso_ago(hours=6)}
        assert should_skip(candidate, 'carol', NOW, SIX_HOURS) is False

    def test_epoch_timestamp_is_understood(self):
        candidate = {'lock': True, 'locked_by': 'bob', 'locked_at': int(NOW.timestamp()) - 60}
        assert should_skip(candidate, 'carol', NOW, SIX_HOURS) is True


class TestAcquire:
    """Tests for LeaseManager.acquire on the primary collection."""

    def test_simple_claim(self, store, clock):
        store.seed('probad', 'A', status='pending', lock=False)
        leases = LeaseManager(store, clock=clock)

        item = leases.acquire('probad', 'alice')

        assert item['id'] == 'A'
        assert item['lock'] is True
        assert item['locked_by'] == 'alice'
        assert item['locked_at'] == NOW.isoformat()
        assert store.doc('probad', 'A')['locked_by'] == 'alice'

    def test_identity_is_sanitized(self, store, clock):
        store.seed('probad', 'A', status='pending', lock=False)
        item = LeaseManager(store, clock=clock).acquire('probad', 'alice.smith@mail.com')
        assert item['locked_by'] == 'alice_DOT_smith@mail_DOT_com'

    def test_timeout_reclaim(self, store, clock):
        """A lease older than the 6 hour window is taken over."""
        store.seed('probad', 'B', status='pending', lock=True, locked_by='bob', locked_at=iso_ago(hours=7))

        item = LeaseManager(store, clock=clock).acquire('probad', 'carol')

        assert item['id'] == 'B'
        assert item['locked_by'] == 'carol'
        assert store.doc('probad', 'B')['locked_by'] == 'carol'

    def test_all_locked(self, store, clock):
        for doc_id in ('D1', 'D2'):
            store.seed('probad', doc_id, status='pending', lock=True, locked_by='dave', locked_at=iso_ago(minutes=1))

        with pytest.raises(AllLockedError):
            LeaseManager(store, clock=clock).acquire('probad', 'erin')

        assert store.count('update_fields') == 0

    def test_no_candidates(self, store, clock):
        store.seed('probad', 'X', status='done', lock=False)
        with pytest.raises(NoCandidatesError):
            LeaseManager(store, clock=clock).acquire('probad', 'alice')

    def test_skips_to_first_eligible(self, store, clock):
        store.seed('probad', 'A', status='pending', lock=True, locked_by='bob', locked_at=iso_ago(minutes=5))
        store.seed('probad', 'B', status='pending', lock=False)
        store.seed('probad', 'C', status='pending', lock=False)

        item = LeaseManager(store, clock=clock).acquire('probad', 'carol')

        assert item['id'] == 'B'
        assert store.doc('probad', 'C')['lock'] is False

    def test_scan_is_bounded(self, store, clock):
        """Only the first N candidates are considered."""
        for idx in range(3):
            store.seed('probad', f'L{idx}', status='pending', lock=True, locked_by='bob', locked_at=iso_ago(minutes=5))
        store.seed('probad', 'FREE', status='pending', lock=False)

        with pytest.raises(AllLockedError):
            LeaseManager(store, clock=clock, scan_limit=3).acquire('probad', 'carol')

    def test_claim_failure(self, store, clock):
        store.seed('probad', 'A', status='pending', lock=False)
        store.fail_on.add('update_fields')

        with pytest.raises(LockAcquisitionError):
            LeaseManager(store, clock=clock).acquire('probad', 'alice')

    def test_scan_failure(self, store, clock):
        store.fail_on.add('query')
        with pytest.raises(LockAcquisitionError):
            LeaseManager(store, clock=clock).acquire('probad', 'alice')

    def test_window_follows_policy(self, store, clock):
        store.seed('probad', 'B', status='pending', lock=True, locked_by='bob', locked_at=iso_ago(minutes=30))
        policies = {'probad': LeasePolicy(timedelta(minutes=10))}

        item = LeaseManager(store, policies=policies, clock=clock).acquire('probad', 'carol')

        assert item['locked_by'] == 'carol'

    def test_unknown_collection(self, store, clock):
        with pytest.raises(ValueError):
            LeaseManager(store, clock=clock).acquire('nope', 'alice')


class TestEvaluationAcquire:
    """Tests for the resume-held mode used by the evaluation collection."""

    def test_idempotent_resume(self, store, clock):
        """A second acquire returns the held item without writing a new lock."""
        store.seed('eval', 'E1', status='pending', lock=False)
        store.seed('eval', 'E2', status='pending', lock=False)
        leases = LeaseManager(store, clock=clock)

        first = leases.acquire('eval', 'alice')
        clock.advance(minutes=10)
        second = leases.acquire('eval', 'alice')

        assert first['id'] == second['id']
        assert second['locked_at'] == NOW.isoformat()
        assert store.count('update_fields', 'eval') == 1

    def test_completed_items_are_not_resumed(self, store, clock):
        store.seed('eval', 'OLD', status='completed', lock=False, locked_by='alice')
        store.seed('eval', 'NEW', status='pending', lock=False)

        item = LeaseManager(store, clock=clock).acquire('eval', 'alice')

        assert item['id'] == 'NEW'

    def test_twenty_four_hour_window(self, store, clock):
        store.seed('eval', 'E1', status='pending', lock=True, locked_by='bob', locked_at=iso_ago(hours=7))

        with pytest.raises(AllLockedError):
            LeaseManager(store, clock=clock).acquire('eval', 'carol')

        store.doc('eval', 'E1')['locked_at'] = iso_ago(hours=25)
        assert LeaseManager(store, clock=clock).acquire('eval', 'carol')['id'] == 'E1'

    def test_primary_collection_does_not_resume(self, store, clock):
        """Only the evaluation collection looks up held items first."""
        store.seed('probad', 'A', status='pending', lock=False)
        leases = LeaseManager(store, clock=clock)

        leases.acquire('probad', 'alice')
        leases.acquire('probad', 'alice')

        assert store.count('update_fields', 'probad') == 2


class TestToleratedRace:
    """
    The scan and the claim are separate writes, so two reviewers that scan
    before either claims both win the same item.
    """

    def test_double_assignment_is_tolerated(self, store, clock):
        store.seed('probad', 'A', status='pending', lock=False)
        leases = LeaseManager(store, clock=clock)

        # Both reviewers scan before either claim lands
        alice_view = leases.leases.scan_candidates('probad', 50)
        bob_view = leases.leases.scan_candidates('probad', 50)
        assert not should_skip(alice_view[0], 'alice', NOW, SIX_HOURS)
        assert not should_skip(bob_view[0], 'bob', NOW, SIX_HOURS)

        leases.leases.claim('probad', 'A', {'lock': True, 'locked_by': 'alice', 'locked_at': NOW.isoformat()})
        leases.leases.claim('probad', 'A', {'lock': True, 'locked_by': 'bob', 'locked_at': NOW.isoformat()})

        # Last writer holds the row; alice is never told
        assert store.doc('probad', 'A')['locked_by'] == 'bob'
