"""Tests for scheduler wiring and graceful shutdown."""

import os
import signal
import subprocess
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from stock_sync import scheduler as scheduler_module
from stock_sync.models.sync_result import CycleResult
from stock_sync.scheduler import SyncScheduler, _make_sync_job, create_background_scheduler
from stock_sync.utils.config import get_config
from stock_sync.utils.exceptions import WooCommerceAPIError


REPO_ROOT = Path(__file__).resolve().parent.parent

# A standalone service whose only cycle hangs in the catalog fetch.
HANGING_SERVICE = """
import time
from unittest.mock import MagicMock

from stock_sync.scheduler import SyncScheduler
from stock_sync.services.reconciler import StockReconciler


def hanging_fetch():
    print("cycle-started", flush=True)
    time.sleep(30)
    return []


reader = MagicMock()
reader.fetch_tracked_items.side_effect = hanging_fetch
reconciler = StockReconciler(
    woocommerce_client=MagicMock(),
    local_client=MagicMock(),
    catalog_reader=reader,
    resolver=MagicMock(),
)
service = SyncScheduler(reconciler=reconciler)
service.scheduler.add_job(service.sync_job, "date", id="hanging_sync")
service.scheduler.start()
"""


@pytest.fixture
def stub_reconciler():
    reconciler = MagicMock()
    reconciler.run_cycle.return_value = CycleResult()
    reconciler.wait_until_idle.return_value = True
    return reconciler


class TestSyncJob:

    def test_job_runs_a_cycle(self, stub_reconciler):
        _make_sync_job(stub_reconciler)()

        stub_reconciler.run_cycle.assert_called_once_with()

    def test_job_survives_catalog_failure(self, stub_reconciler):
        stub_reconciler.run_cycle.side_effect = WooCommerceAPIError("HTTP 502")

        _make_sync_job(stub_reconciler)()

    def test_job_survives_rejected_cycle(self, stub_reconciler):
        stub_reconciler.run_cycle.return_value = CycleResult.rejected_cycle()

        _make_sync_job(stub_reconciler)()


class TestBackgroundScheduler:

    def test_jobs_are_registered_not_started(self, stub_reconciler):
        scheduler = create_background_scheduler(stub_reconciler)

        job_ids = {job.id for job in scheduler.get_jobs()}
        assert job_ids == {"stock_sync", "initial_sync"}
        assert scheduler.running is False

    def test_initial_sync_runs_after_startup_delay(self, stub_reconciler):
        scheduler = create_background_scheduler(stub_reconciler)

        run_date = scheduler.get_job("initial_sync").trigger.run_date
        delay = (run_date - datetime.now(timezone.utc)).total_seconds()

        assert 0 < delay <= get_config().scheduler.initial_delay_seconds


class TestSyncScheduler:

    @pytest.fixture
    def sync_scheduler(self, stub_reconciler, monkeypatch):
        monkeypatch.setattr(scheduler_module.signal, "signal", lambda *args: None)
        return SyncScheduler(reconciler=stub_reconciler)

    @pytest.fixture
    def exits(self, monkeypatch):
        calls = []
        monkeypatch.setattr(scheduler_module, "exit_immediately", calls.append)
        return calls

    def test_shutdown_stops_reconciler_within_grace(self, sync_scheduler, stub_reconciler):
        assert sync_scheduler.shutdown() is True

        stub_reconciler.request_stop.assert_called_once()
        grace = sync_scheduler.config.scheduler.shutdown_grace_period
        stub_reconciler.wait_until_idle.assert_called_once_with(timeout=grace)
        stub_reconciler.close.assert_called_once()

    def test_shutdown_gives_up_after_grace(self, sync_scheduler, stub_reconciler):
        stub_reconciler.wait_until_idle.return_value = False

        assert sync_scheduler.shutdown() is False

    def test_signal_when_idle_exits_normally(self, sync_scheduler, exits):
        with pytest.raises(SystemExit):
            sync_scheduler._shutdown_handler(signal.SIGTERM, None)

        assert exits == []

    def test_signal_after_grace_forces_exit(self, sync_scheduler, stub_reconciler, exits):
        stub_reconciler.wait_until_idle.return_value = False

        with pytest.raises(SystemExit):
            sync_scheduler._shutdown_handler(signal.SIGTERM, None)

        assert exits == [0]

    @pytest.mark.skipif(sys.platform == "win32", reason="needs POSIX signals")
    def test_sigterm_exits_within_grace_while_cycle_hangs(self):
        grace = get_config().scheduler.shutdown_grace_period
        env = dict(os.environ, PYTHONPATH=str(REPO_ROOT))
        process = subprocess.Popen(
            [sys.executable, "-c", HANGING_SERVICE],
            cwd=REPO_ROOT,
            env=env,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
        )
        try:
            for line in process.stdout:
                if line.strip() == "cycle-started":
                    break
            else:
                pytest.fail("service exited before starting a cycle")

            sent = time.monotonic()
            process.send_signal(signal.SIGTERM)
            process.wait(timeout=grace + 10)
            elapsed = time.monotonic() - sent
        finally:
            if process.poll() is None:
                process.kill()
            process.stdout.close()

        assert process.returncode == 0
        assert elapsed < grace + 3
