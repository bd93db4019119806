"""
Tests for the contribution ledger counters.
"""
from shared.ledger import ContributionLedger, review_ledger, evaluation_ledger


class TestContributionLedger:

    def test_first_write_creates_document(self, store):
        ledger = ContributionLedger(store, 'review_analytics')

        ledger.record_done('alice.smith@mail.com')

        assert store.doc('analytics', 'review_analytics') == {
            'id': 'review_analytics',
            'done': 1,
            'contribution': {'alice_DOT_smith@mail_DOT_com': 1},
        }

    def test_counts_accumulate(self, store):
        ledger = review_ledger(store)

        ledger.record_done('alice')
        ledger.record_done('bob')
        ledger.record_done('alice', was_previously_done=True)
        ledger.record_problematic()
        ledger.record_edit()

        snapshot = ledger.snapshot()
        assert snapshot['done'] == 2
        assert snapshot['problematic'] == 1
        assert snapshot['edited'] == 1
        assert snapshot['contribution'] == {'alice': 2, 'bob': 1}

    def test_completed(self, store):
        ledger = evaluation_ledger(store)

        ledger.record_completed('alice')

        assert store.doc('analytics', 'eval_analytics')['completed'] == 1
        assert store.doc('analytics', 'eval_analytics')['contribution'] == {'alice': 1}

    def test_snapshot_before_any_write(self, store):
        assert review_ledger(store).snapshot() is None

    def test_ledgers_are_separate(self, store):
        review_ledger(store).credit('alice')
        evaluation_ledger(store).credit('alice', delta=3)

        assert store.doc('analytics', 'review_analytics')['contribution']['alice'] == 1
        assert store.doc('analytics', 'eval_analytics')['contribution']['alice'] == 3
