"""Tests for the background job scheduler."""

from unittest.mock import Mock

from woo_amazon_mcf.scheduler import STATUS_JOB_ID, SYNC_JOB_ID, SyncScheduler


class TestSyncScheduler:
    def test_registers_interval_jobs(self):
        backend = Mock()
        sync_job, status_job = Mock(), Mock()
        scheduler = SyncScheduler(sync_job, 60, status_job, 15, scheduler=backend)

        scheduler.start()

        calls = backend.add_job.call_args_list
        assert [c.kwargs["id"] for c in calls] == [SYNC_JOB_ID, STATUS_JOB_ID]
        assert calls[0].kwargs["minutes"] == 60
        assert calls[1].kwargs["minutes"] == 15
        for call in calls:
            assert call.args[1] == "interval"
            assert call.kwargs["max_instances"] == 1
            assert call.kwargs["coalesce"] is True
        backend.start.assert_called_once()
        assert scheduler.running

    def test_status_polling_disabled(self):
        backend = Mock()
        scheduler = SyncScheduler(Mock(), 60, Mock(), 0, scheduler=backend)

        scheduler.start()

        assert backend.add_job.call_count == 1

    def test_start_and_shutdown_are_idempotent(self):
        backend = Mock()
        scheduler = SyncScheduler(Mock(), scheduler=backend)

        scheduler.start()
        scheduler.start()
        scheduler.shutdown()
        scheduler.shutdown()

        backend.start.assert_called_once()
        backend.shutdown.assert_called_once_with(wait=False)

    def test_job_failure_is_contained(self):
        job = Mock(side_effect=RuntimeError("boom"))
        scheduler = SyncScheduler(job, scheduler=Mock())

        scheduler._run(SYNC_JOB_ID, job)

        job.assert_called_once()
