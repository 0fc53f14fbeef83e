import logging
import threading

import pytest

from migration_engine.core import logging_config
from migration_engine.core.logging_config import JobContextFilter, job_log_context
from migration_engine.core.config import Settings
from migration_engine.domain.migrations.errors import JobBusy, UnreadableSource
from migration_engine.domain.migrations.worker import COMPLETED, FAILED, MigrationWorkerPool


def test_settings_defaults():
    settings = Settings(_env_file=None)

    assert settings.upload_max_file_size_mb == 100
    assert settings.rollback_window_days == 7
    assert settings.import_max_workers == 1
    assert settings.validation_yield_every == 1000
    assert settings.date_default_dayfirst is False


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("ROLLBACK_WINDOW_DAYS", "3")
    monkeypatch.setenv("DATE_DEFAULT_DAYFIRST", "true")
    monkeypatch.setenv("ROW_COMMIT_TIMEOUT_SECONDS", "2.5")

    settings = Settings(_env_file=None)

    assert settings.rollback_window_days == 3
    assert settings.date_default_dayfirst is True
    assert settings.row_commit_timeout_seconds == 2.5


def test_worker_pool_size_is_clamped():
    large = MigrationWorkerPool(5)
    small = MigrationWorkerPool(0)
    try:
        assert large.max_workers == 2
        assert small.max_workers == 1
    finally:
        large.shutdown()
        small.shutdown()


def test_worker_records_result_and_failure(worker_pool):
    ok = worker_pool.submit("job-1", "validate", lambda: 42)
    assert worker_pool.wait(ok.task_id, timeout=5).status == COMPLETED
    assert ok.result == 42
    assert worker_pool.active_task("job-1") is None

    def broken():
        raise UnreadableSource("File is not valid")

    failed = worker_pool.wait(worker_pool.submit("job-1", "import", broken).task_id, timeout=5)
    assert failed.status == FAILED
    assert failed.message == "File is not valid"
    assert failed.finished_at is not None


def test_worker_rejects_second_task_for_same_job(worker_pool):
    release = threading.Event()
    first = worker_pool.submit("job-1", "import", lambda: release.wait(5))
    try:
        with pytest.raises(JobBusy):
            worker_pool.submit("job-1", "rollback", lambda: None)
        assert worker_pool.active_task("job-1").task_id == first.task_id
    finally:
        release.set()
        worker_pool.wait(first.task_id, timeout=5)


def test_busy_job_is_not_prepared(worker_pool):
    release = threading.Event()
    prepared = []
    first = worker_pool.submit("job-1", "import", lambda: release.wait(5))
    try:
        with pytest.raises(JobBusy):
            worker_pool.submit("job-1", "rollback", lambda: None, prepare=lambda: prepared.append("job-1"))
        assert prepared == []
    finally:
        release.set()
        worker_pool.wait(first.task_id, timeout=5)


def test_failed_prepare_queues_nothing(worker_pool):
    def reject():
        raise JobBusy("not now")

    with pytest.raises(JobBusy):
        worker_pool.submit("job-2", "import", lambda: None, prepare=reject)

    assert worker_pool.active_task("job-2") is None


def test_worker_forgets_old_finished_tasks():
    pool = MigrationWorkerPool(1, history_size=3)
    try:
        handles = [pool.submit(f"job-{n}", "validate", lambda n=n: n) for n in range(5)]
        # One worker runs them in order, so the last one finishing means all have.
        assert pool.wait(handles[-1].task_id, timeout=5).status == COMPLETED

        assert pool.get_task(handles[0].task_id) is None
        assert pool.get_task(handles[1].task_id) is None
        assert [pool.get_task(h.task_id).result for h in handles[2:]] == [2, 3, 4]
        assert pool._futures == {}
        assert pool._active_by_job == {}
    finally:
        pool.shutdown()


def test_configure_logging_sets_package_level(monkeypatch):
    package_logger = logging.getLogger("migration_engine")
    root_logger = logging.getLogger()
    previous = (package_logger.level, root_logger.level, list(root_logger.handlers))
    monkeypatch.setattr(logging_config, "_is_configured", False)

    try:
        logging_config.configure_logging("debug")
        assert package_logger.level == logging.DEBUG
        assert logging_config._is_configured is True

        # Second call is a no-op.
        logging_config.configure_logging("error")
        assert package_logger.level == logging.DEBUG
    finally:
        package_logger.setLevel(previous[0])
        root_logger.setLevel(previous[1])
        root_logger.handlers[:] = previous[2]


def _record():
    return logging.LogRecord("migration_engine.test", logging.INFO, __file__, 1, "message", None, None)


def test_job_context_filter_stamps_job_id():
    log_filter = JobContextFilter()

    outside = _record()
    log_filter.filter(outside)
    with job_log_context("job-42"):
        inside = _record()
        log_filter.filter(inside)

    assert outside.job_id == "-"
    assert inside.job_id == "job-42"


def test_worker_tasks_run_in_job_context(worker_pool):
    def current_job():
        record = _record()
        JobContextFilter().filter(record)
        return record.job_id

    handle = worker_pool.wait(worker_pool.submit("job-7", "validate", current_job).task_id, timeout=5)

    assert handle.result == "job-7"
