"""
Migration job lifecycle.

Only the transitions listed in ``TRANSITIONS`` are legal; everything else
is rejected with ``InvalidTransition`` before any work starts.
"""
from enum import Enum
from typing import Dict, FrozenSet, Union

from migration_engine.domain.migrations.errors import InvalidTransition


class JobState(str, Enum):
    UPLOADED = "UPLOADED"
    DETECTING = "DETECTING"
    MAPPING = "MAPPING"
    VALIDATING = "VALIDATING"
    PREVIEW_READY = "PREVIEW_READY"
    IMPORTING = "IMPORTING"
    COMPLETED = "COMPLETED"
    ROLLED_BACK = "ROLLED_BACK"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    IMPORT_FAILED = "IMPORT_FAILED"


TRANSITIONS: Dict[JobState, FrozenSet[JobState]] = {
    JobState.UPLOADED: frozenset({JobState.DETECTING, JobState.VALIDATION_FAILED}),
    JobState.DETECTING: frozenset({JobState.MAPPING, JobState.VALIDATION_FAILED}),
    JobState.MAPPING: frozenset({JobState.MAPPING, JobState.VALIDATING}),
    JobState.VALIDATING: frozenset({JobState.PREVIEW_READY, JobState.VALIDATION_FAILED, JobState.MAPPING}),
    JobState.PREVIEW_READY: frozenset({JobState.IMPORTING, JobState.MAPPING, JobState.VALIDATING}),
    JobState.IMPORTING: frozenset({JobState.COMPLETED, JobState.IMPORT_FAILED}),
    JobState.COMPLETED: frozenset({JobState.ROLLED_BACK}),
    JobState.ROLLED_BACK: frozenset(),
    JobState.VALIDATION_FAILED: frozenset({JobState.MAPPING}),
    JobState.IMPORT_FAILED: frozenset(),
}

# Timestamp column stamped when a job enters each state.
STATE_TIMESTAMPS = {
    JobState.UPLOADED: "uploaded_at",
    JobState.DETECTING: "detected_at",
    JobState.MAPPING: "mapped_at",
    JobState.VALIDATING: "validated_at",
    JobState.PREVIEW_READY: "preview_ready_at",
    JobState.IMPORTING: "import_started_at",
    JobState.COMPLETED: "completed_at",
    JobState.IMPORT_FAILED: "failed_at",
    JobState.VALIDATION_FAILED: "failed_at",
    JobState.ROLLED_BACK: "rolled_back_at",
}

TERMINAL_STATES = frozenset({JobState.ROLLED_BACK, JobState.IMPORT_FAILED})
MAPPING_EDITABLE_STATES = frozenset({JobState.MAPPING, JobState.PREVIEW_READY, JobState.VALIDATION_FAILED})


def can_transition(current: Union[JobState, str], target: Union[JobState, str]) -> bool:
    return JobState(target) in TRANSITIONS[JobState(current)]


def ensure_transition(current: Union[JobState, str], target: Union[JobState, str]) -> JobState:
    """Return the target state, or raise ``InvalidTransition``."""
    current_state, target_state = JobState(current), JobState(target)
    if target_state not in TRANSITIONS[current_state]:
        raise InvalidTransition(current_state.value, target_state.value)
    return target_state
