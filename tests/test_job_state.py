import pytest

from migration_engine.domain.migrations.errors import InvalidTransition, JobNotFound
from migration_engine.domain.migrations.fields import FieldMapping
from migration_engine.domain.migrations.state import (
    TERMINAL_STATES,
    TRANSITIONS,
    JobState,
    can_transition,
    ensure_transition,
)

HAPPY_PATH = [
    JobState.UPLOADED,
    JobState.DETECTING,
    JobState.MAPPING,
    JobState.VALIDATING,
    JobState.PREVIEW_READY,
    JobState.IMPORTING,
    JobState.COMPLETED,
    JobState.ROLLED_BACK,
]


def _new_job(store, tenant_id="tenant-a"):
    return store.create_job(tenant_id, {
        "file_name": "export.csv",
        "storage_path": "/tmp/export.csv",
        "file_format": "csv",
        "size_bytes": 10,
        "content_hash": "0" * 64,
    })


def test_happy_path_transitions_are_legal():
    for current, target in zip(HAPPY_PATH, HAPPY_PATH[1:]):
        assert can_transition(current, target), f"{current} -> {target}"


def test_mapping_can_be_revisited():
    assert can_transition("PREVIEW_READY", "MAPPING")
    assert can_transition("VALIDATION_FAILED", "MAPPING")
    assert can_transition("VALIDATING", "MAPPING")


def test_illegal_transitions_are_rejected():
    with pytest.raises(InvalidTransition) as exc_info:
        ensure_transition(JobState.MAPPING, JobState.IMPORTING)

    assert exc_info.value.current == "MAPPING"
    assert exc_info.value.target == "IMPORTING"
    assert not can_transition("COMPLETED", "IMPORTING")
    assert not can_transition("IMPORTING", "MAPPING")


def test_final_states_have_no_exits():
    assert TERMINAL_STATES == {JobState.ROLLED_BACK, JobState.IMPORT_FAILED}
    for state in TERMINAL_STATES:
        assert TRANSITIONS[state] == frozenset()


def test_store_creates_job_in_uploaded_state(store):
    job = _new_job(store)

    assert job.state == "UPLOADED"
    assert job.uploaded_at is not None
    assert job.source_file.file_name == "export.csv"


def test_store_transition_stamps_timestamp(store):
    job = _new_job(store)

    job = store.transition(job.id, JobState.DETECTING, current_step="Detecting")

    assert job.state == "DETECTING"
    assert job.detected_at is not None
    assert job.current_step == "Detecting"


def test_store_transition_rejects_illegal_move(store):
    job = _new_job(store)

    with pytest.raises(InvalidTransition):
        store.transition(job.id, JobState.COMPLETED)
    assert store.get_job_by_id(job.id).state == "UPLOADED"


def test_jobs_are_invisible_to_other_tenants(store):
    job = _new_job(store, tenant_id="tenant-a")

    with pytest.raises(JobNotFound):
        store.get_job("tenant-b", job.id)
    assert store.list_jobs("tenant-b") == ([], 0)


def test_list_jobs_paginates(store):
    for _ in range(3):
        _new_job(store)

    jobs, total = store.list_jobs("tenant-a", limit=2, offset=0)

    assert total == 3
    assert len(jobs) == 2


def test_mappings_replace_and_keep_order(store):
    job = _new_job(store)

    store.replace_mappings(job.id, [FieldMapping("A", "details"), FieldMapping("B", "status", "status")])
    saved = store.replace_mappings(job.id, [FieldMapping("B", "summary"), FieldMapping("A", "details")])

    assert [(m.source_column, m.target_field) for m in saved] == [("B", "summary"), ("A", "details")]


def test_cancel_flag_round_trip(store):
    job = _new_job(store)

    assert store.is_cancel_requested(job.id) is False
    store.request_cancel(job.id)
    assert store.is_cancel_requested(job.id) is True
