# tests/test_insight_store.py
import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

from src.core.errors import StoreWriteError
from src.core.insight_store import VISIBLE_TYPES, InsightStore
from src.core.models import InsightCandidate, InsightRecord, InsightType

NOW = datetime(2025, 7, 10, tzinfo=timezone.utc)


def make_record(id_="1", read=False):
    return InsightRecord(
        id=id_, user_id="u1", type=InsightType.ALERT, title="Gasto alto", body="R$95.00 em Food",
        category="Food", content_hash="h1", created_at=NOW, read=read,
    )


@patch("src.core.insight_store.db")
class TestInsightStore(unittest.TestCase):
    def setUp(self):
        self.client = MagicMock()
        self.store = InsightStore(self.client, dedup_window_days=30)
        self.events = []
        self.store.subscribe(self.events.append)
        self.candidate = InsightCandidate(InsightType.ALERT, "Gasto alto", "R$95.00 em Food", "Food", "h1")

    def test_append_publishes_change(self, mock_db):
        mock_db.add_insight.return_value = make_record()

        record = self.store.append("u1", self.candidate)

        mock_db.add_insight.assert_called_once_with(self.client, "u1", self.candidate)
        self.assertEqual(record.id, "1")
        self.assertEqual(self.events, ["u1"])

    def test_failed_append_does_not_publish(self, mock_db):
        mock_db.add_insight.side_effect = StoreWriteError("offline")
        with self.assertRaises(StoreWriteError):
            self.store.append("u1", self.candidate)
        self.assertEqual(self.events, [])

    def test_mark_read_publishes_only_when_updated(self, mock_db):
        mock_db.mark_insight_read.return_value = False
        self.assertFalse(self.store.mark_read("u1", "404"))
        self.assertEqual(self.events, [])

        mock_db.mark_insight_read.return_value = True
        self.assertTrue(self.store.mark_read("u1", "1"))
        mock_db.mark_insight_read.assert_called_with(self.client, "u1", "1")
        self.assertEqual(self.events, ["u1"])

    def test_unsubscribe(self, mock_db):
        mock_db.add_insight.return_value = make_record()
        other = []
        unsubscribe = self.store.subscribe(other.append)
        unsubscribe()
        unsubscribe()
        self.store.append("u1", self.candidate)
        self.assertEqual(other, [])

    def test_failing_listener_does_not_block_others(self, mock_db):
        mock_db.add_insight.return_value = make_record()
        store = InsightStore(self.client)
        received = []
        store.subscribe(MagicMock(side_effect=RuntimeError("boom")))
        store.subscribe(received.append)

        store.append("u1", self.candidate)

        self.assertEqual(received, ["u1"])

    def test_seen_hashes_uses_dedup_window(self, mock_db):
        mock_db.get_insight_hashes.return_value = {"h1"}
        self.assertEqual(self.store.seen_hashes("u1", now=NOW), {"h1"})
        mock_db.get_insight_hashes.assert_called_once_with(self.client, "u1", since=NOW - timedelta(days=30))

    def test_seen_hashes_with_longer_window(self, mock_db):
        mock_db.get_insight_hashes.return_value = set()
        self.store.seen_hashes("u1", now=NOW, days=62)
        mock_db.get_insight_hashes.assert_called_once_with(self.client, "u1", since=NOW - timedelta(days=62))

    def test_recent_reads_visible_types(self, mock_db):
        mock_db.get_insights.return_value = [make_record()]
        records = self.store.recent("u1", days=14, now=NOW)
        self.assertEqual(len(records), 1)
        mock_db.get_insights.assert_called_once_with(
            self.client, "u1", since=NOW - timedelta(days=14), types=VISIBLE_TYPES
        )

    def test_list_for_user(self, mock_db):
        mock_db.get_insights.return_value = [make_record("2"), make_record("1", read=True)]
        records = self.store.list_for_user("u1")
        self.assertEqual([r.id for r in records], ["2", "1"])
        mock_db.get_insights.assert_called_once_with(self.client, "u1", types=VISIBLE_TYPES)


if __name__ == '__main__':
    unittest.main()
