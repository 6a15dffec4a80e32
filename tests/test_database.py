"""Tests for the SQLite state database."""

import sqlite3
import threading

from woo_amazon_mcf.models import AccessToken, SyncDetail, SyncReport
from woo_amazon_mcf.storage import StateDatabase


class TestMigrations:
    def test_reopening_does_not_rerun_migrations(self, tmp_path):
        path = str(tmp_path / "nested" / "state.db")
        StateDatabase(path).store_token("k", AccessToken("t", 10.0))

        reopened = StateDatabase(path)

        assert reopened.get_cached_token("k", 0.0).value == "t"
        with sqlite3.connect(path) as conn:
            assert conn.execute("SELECT COUNT(*) FROM migrations").fetchone()[0] == 1


class TestTokenSlot:
    def test_expired_token_not_returned(self, database):
        database.store_token("k", AccessToken("t", 100.0))

        assert database.get_cached_token("k", 99.0).value == "t"
        assert database.get_cached_token("k", 100.0) is None

    def test_store_overwrites_slot(self, database):
        database.store_token("k", AccessToken("old", 100.0))
        database.store_token("k", AccessToken("new", 200.0))

        assert database.get_cached_token("k", 0.0) == AccessToken("new", 200.0)

    def test_delete_token(self, database):
        database.store_token("a", AccessToken("t", 100.0))
        database.store_token("b", AccessToken("t", 100.0))

        assert database.delete_token("a") == 1
        assert database.get_cached_token("b", 0.0) is not None
        assert database.delete_token() == 1


class TestLocks:
    def test_lock_excludes_other_owner_until_expiry(self, database):
        assert database.acquire_lock("sync", "a", 60, now=1000.0)
        assert not database.acquire_lock("sync", "b", 60, now=1030.0)
        assert database.acquire_lock("sync", "b", 60, now=1060.0)

    def test_release_only_by_owner(self, database):
        database.acquire_lock("sync", "a", 60, now=1000.0)

        database.release_lock("sync", "b")
        assert not database.acquire_lock("sync", "b", 60, now=1001.0)

        database.release_lock("sync", "a")
        assert database.acquire_lock("sync", "b", 60, now=1002.0)


class TestSyncSnapshot:
    def test_last_report_round_trip(self, database):
        report = SyncReport(
            timestamp="2024-05-01T10:00:00+00:00",
            updated=1,
            details=[SyncDetail(sku="A", product_id=1, status="updated", old_qty=3, new_qty=5)],
        )

        database.save_sync_report(report)

        assert database.get_last_sync_report() == report

    def test_snapshot_overwritten(self, database):
        database.save_sync_report(SyncReport(timestamp="first", updated=1))
        database.save_sync_report(SyncReport(timestamp="second", error="boom"))

        last = database.get_last_sync_report()
        assert (last.timestamp, last.error) == ("second", "boom")

    def test_no_report_yet(self, database):
        assert database.get_last_sync_report() is None


class TestFulfillmentState:
    def test_claim_is_exclusive(self, database):
        assert database.claim_submission(1, "WOO-1-100", [], {})
        assert not database.claim_submission(1, "WOO-1-101", [], {})

        record = database.get_fulfillment(1)
        assert record.mcf_order_id == "WOO-1-100"
        assert record.status == "SUBMITTING"

    def test_concurrent_claims_have_single_winner(self, database):
        results = []

        def claim(suffix):
            results.append(database.claim_submission(7, f"WOO-7-{suffix}", [], {}))

        threads = [threading.Thread(target=claim, args=(n,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results.count(True) == 1

    def test_failed_submission_can_be_claimed_again(self, database):
        database.claim_submission(1, "WOO-1-100", [{"seller_sku": "A"}], {"countryCode": "US"})
        database.mark_submission_failed(1, "Invalid SKU")

        record = database.get_fulfillment(1)
        assert (record.mcf_order_id, record.status, record.last_error) == (None, "UNSUBMITTED", "Invalid SKU")
        assert record.is_retryable

        assert database.claim_submission(1, "WOO-1-200", [], {})

    def test_mark_submitted(self, database):
        database.claim_submission(1, "WOO-1-100", [], {})

        database.mark_submitted(1, "2024-05-01T10:00:00+00:00")

        record = database.get_fulfillment(1)
        assert record.status == "RECEIVED"
        assert record.submitted_at == "2024-05-01T10:00:00+00:00"

    def test_status_update_keeps_tracking_when_absent(self, database):
        database.claim_submission(1, "WOO-1-100", [], {})
        database.update_fulfillment_status(1, "PROCESSING", "1Z999", "UPS")

        database.update_fulfillment_status(1, "COMPLETE")

        record = database.get_fulfillment(1)
        assert (record.status, record.tracking_number, record.carrier) == ("COMPLETE", "1Z999", "UPS")
        assert record.is_terminal

    def test_list_by_status(self, database):
        database.claim_submission(1, "WOO-1-100", [], {})
        database.mark_submitted(1, "t")
        database.claim_submission(2, "WOO-2-100", [], {})
        database.update_fulfillment_status(2, "COMPLETE")

        assert [r.store_order_id for r in database.list_fulfillments(["RECEIVED"])] == [1]
        assert len(database.list_fulfillments()) == 2

    def test_health_check(self, database):
        database.mark_submission_failed(3, "boom")

        health = database.get_health_check()

        assert health["status"] == "healthy"
        assert health["fulfillment_orders"] == 1
        assert health["orders_with_errors"] == 1
