"""
Unit + property tests for PdfJobStore.

Covers:
- Job model, enums, constants
- State machine: every legal transition accepted, every illegal one rejected
- Exactly-one-of invariant for storage_path / error_message
- created_at <= updated_at after every write
- Error truncation (2000 chars)
- Listing order, stale-job lookup, delete
"""
from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st
from sqlalchemy import update

from contract_pdf.database import PdfGenerationJob
from contract_pdf.errors import InvalidTransitionError, JobNotFoundError
from contract_pdf.services.pdf_job_store import (
    MAX_ERROR_MESSAGE_LENGTH,
    VALID_TRANSITIONS,
    PdfJobStatus,
    check_result_fields,
    is_valid_transition,
    truncate_error,
)


def _job_in_status(store, status: PdfJobStatus, user_id: str = "alice"):
    job = store.create_job(user_id, "<p>Hello</p>", "a.pdf")
    if status == PdfJobStatus.PENDING:
        return job
    assert store.claim_job(job.id)
    if status == PdfJobStatus.COMPLETED:
        store.mark_completed(job.id, f"{user_id}/{job.id}_a.pdf")
    elif status == PdfJobStatus.FAILED:
        store.mark_failed(job.id, "RENDER_FAILED: boom")
    return store.get_job(job.id)


def _set_timestamps(session_factory, job_id: str, **values):
    with session_factory() as db:
        db.execute(update(PdfGenerationJob).where(PdfGenerationJob.id == job_id).values(**values))
        db.commit()


def _result_kwargs(target: PdfJobStatus) -> dict:
    if target == PdfJobStatus.COMPLETED:
        return {"storage_path": "alice/x_a.pdf"}
    if target == PdfJobStatus.FAILED:
        return {"error_message": "boom"}
    return {}


# ===================================================================
# Unit tests: enums and constants
# ===================================================================

class TestEnumsAndConstants:
    def test_status_values(self):
        assert [s.value for s in PdfJobStatus] == ["pending", "processing", "completed", "failed"]

    def test_terminal_states_have_no_exits(self):
        assert VALID_TRANSITIONS[PdfJobStatus.COMPLETED] == frozenset()
        assert VALID_TRANSITIONS[PdfJobStatus.FAILED] == frozenset()

    def test_every_status_has_entry(self):
        assert set(VALID_TRANSITIONS) == set(PdfJobStatus)


# ===================================================================
# Pure functions
# ===================================================================

class TestPureFunctions:
    @pytest.mark.parametrize("current,target", [
        (PdfJobStatus.PENDING, PdfJobStatus.PROCESSING),
        (PdfJobStatus.PROCESSING, PdfJobStatus.COMPLETED),
        (PdfJobStatus.PROCESSING, PdfJobStatus.FAILED),
    ])
    def test_legal_transitions(self, current, target):
        assert is_valid_transition(current, target)

    def test_pending_cannot_skip_processing(self):
        assert not is_valid_transition(PdfJobStatus.PENDING, PdfJobStatus.COMPLETED)
        assert not is_valid_transition(PdfJobStatus.PENDING, PdfJobStatus.FAILED)

    def test_truncate_short_message_unchanged(self):
        assert truncate_error("boom") == "boom"

    def test_truncate_long_message(self):
        out = truncate_error("x" * 5000)
        assert len(out) == MAX_ERROR_MESSAGE_LENGTH
        assert out.endswith("...")

    def test_completed_requires_storage_path(self):
        with pytest.raises(InvalidTransitionError):
            check_result_fields(PdfJobStatus.COMPLETED, None, None)

    def test_failed_rejects_storage_path(self):
        with pytest.raises(InvalidTransitionError):
            check_result_fields(PdfJobStatus.FAILED, "a/b.pdf", "boom")

    def test_processing_carries_nothing(self):
        with pytest.raises(InvalidTransitionError):
            check_result_fields(PdfJobStatus.PROCESSING, None, "boom")


# ===================================================================
# Store: create and read
# ===================================================================

class TestCreateAndRead:
    def test_create_job_is_pending(self, store):
        job = store.create_job("alice", "<p>Hello</p>", "a.pdf")
        assert job.status == PdfJobStatus.PENDING
        assert job.storage_path is None
        assert job.error_message is None
        assert job.claimed_at is None
        assert job.created_at == job.updated_at

    def test_get_unknown_returns_none(self, store):
        assert store.get_job("missing") is None

    def test_require_unknown_raises(self, store):
        with pytest.raises(JobNotFoundError):
            store.require_job("missing")

    def test_job_not_found_is_key_error(self, store):
        with pytest.raises(KeyError):
            store.update_status("missing", PdfJobStatus.PROCESSING)

    def test_list_newest_first_and_per_user(self, store, session_factory):
        a1 = store.create_job("alice", "<p>1</p>", "one.pdf")
        a2 = store.create_job("alice", "<p>2</p>", "two.pdf")
        store.create_job("bob", "<p>3</p>", "three.pdf")
        base = datetime(2026, 1, 1, 12, 0, 0)
        _set_timestamps(session_factory, a1.id, created_at=base, updated_at=base)
        later = base + timedelta(minutes=5)
        _set_timestamps(session_factory, a2.id, created_at=later, updated_at=later)

        jobs = store.list_jobs(user_id="alice")
        assert [j.id for j in jobs] == [a2.id, a1.id]
        assert len(store.list_jobs()) == 3

    def test_find_oldest_pending_skips_claimed(self, store, session_factory):
        old = store.create_job("alice", "<p>1</p>", "old.pdf")
        new = store.create_job("alice", "<p>2</p>", "new.pdf")
        _set_timestamps(session_factory, old.id, created_at=datetime(2026, 1, 1), updated_at=datetime(2026, 1, 1))
        _set_timestamps(session_factory, new.id, created_at=datetime(2026, 1, 2), updated_at=datetime(2026, 1, 2))

        assert store.find_oldest_pending().id == old.id
        store.claim_job(old.id)
        assert store.find_oldest_pending().id == new.id


# ===================================================================
# State machine on the store
# ===================================================================

ILLEGAL_PAIRS = [
    (current, target)
    for current in PdfJobStatus
    for target in PdfJobStatus
    if not is_valid_transition(current, target)
]


class TestStateMachine:
    def test_happy_path_completed(self, store):
        job = store.create_job("alice", "<p>Hello</p>", "a.pdf")
        processing = store.update_status(job.id, PdfJobStatus.PROCESSING)
        assert processing.status == PdfJobStatus.PROCESSING
        assert processing.claimed_at is not None

        done = store.mark_completed(job.id, "alice/x_a.pdf")
        assert done.status == PdfJobStatus.COMPLETED
        assert done.storage_path == "alice/x_a.pdf"
        assert done.error_message is None

    def test_happy_path_failed(self, store):
        job = _job_in_status(store, PdfJobStatus.PROCESSING)
        failed = store.mark_failed(job.id, "RENDER_FAILED: bad html")
        assert failed.status == PdfJobStatus.FAILED
        assert failed.error_message == "RENDER_FAILED: bad html"
        assert failed.storage_path is None

    @pytest.mark.parametrize("current,target", ILLEGAL_PAIRS)
    def test_illegal_transition_rejected(self, store, current, target):
        job = _job_in_status(store, current)
        before = store.get_job(job.id)

        with pytest.raises(InvalidTransitionError):
            store.update_status(job.id, target, **_result_kwargs(target))

        after = store.get_job(job.id)
        assert after.status == before.status
        assert after.storage_path == before.storage_path
        assert after.error_message == before.error_message

    def test_completed_without_path_rejected(self, store):
        job = _job_in_status(store, PdfJobStatus.PROCESSING)
        with pytest.raises(InvalidTransitionError):
            store.update_status(job.id, PdfJobStatus.COMPLETED)
        assert store.get_job(job.id).status == PdfJobStatus.PROCESSING

    def test_mark_failed_truncates(self, store):
        job = _job_in_status(store, PdfJobStatus.PROCESSING)
        failed = store.mark_failed(job.id, "e" * 10_000)
        assert len(failed.error_message) == MAX_ERROR_MESSAGE_LENGTH

    def test_mark_failed_empty_message(self, store):
        job = _job_in_status(store, PdfJobStatus.PROCESSING)
        assert store.mark_failed(job.id, "").error_message == "Unknown error"

    def test_updated_at_never_before_created_at(self, store, session_factory):
        job = store.create_job("alice", "<p>Hello</p>", "a.pdf")
        # created_at in the future (clock skew between writers)
        future = datetime(2100, 1, 1)
        _set_timestamps(session_factory, job.id, created_at=future, updated_at=future)
        store.claim_job(job.id)
        assert store.get_job(job.id).updated_at >= future
        done = store.mark_completed(job.id, "alice/x_a.pdf")
        assert done.updated_at >= done.created_at

    def test_immutable_fields_survive_transitions(self, store):
        job = _job_in_status(store, PdfJobStatus.COMPLETED)
        assert job.user_id == "alice"
        assert job.html_content == "<p>Hello</p>"
        assert job.filename == "a.pdf"


# ===================================================================
# Stale jobs / delete
# ===================================================================

class TestStaleAndDelete:
    def test_find_stale_jobs(self, store, session_factory):
        stale = _job_in_status(store, PdfJobStatus.PROCESSING)
        fresh = _job_in_status(store, PdfJobStatus.PROCESSING)
        _set_timestamps(session_factory, stale.id, claimed_at=datetime(2020, 1, 1))

        found = [j.id for j in store.find_stale_jobs(600)]
        assert found == [stale.id]
        assert fresh.id not in found

    def test_pending_never_stale(self, store):
        store.create_job("alice", "<p>1</p>", "a.pdf")
        assert store.find_stale_jobs(0, now=datetime(2100, 1, 1)) == []

    def test_delete_job(self, store):
        job = store.create_job("alice", "<p>1</p>", "a.pdf")
        assert store.delete_job(job.id) is True
        assert store.get_job(job.id) is None
        assert store.delete_job(job.id) is False


# ===================================================================
# Property tests
# ===================================================================

status_strategy = st.sampled_from(list(PdfJobStatus))
message_strategy = st.text(min_size=1, max_size=3000)


class TestProperties:
    @given(current=status_strategy, target=status_strategy)
    @settings(max_examples=100)
    def test_transition_table_matches_terminality(self, current, target):
        if current in (PdfJobStatus.COMPLETED, PdfJobStatus.FAILED):
            assert not is_valid_transition(current, target)

    @given(message=message_strategy)
    @settings(max_examples=200)
    def test_truncate_bounded_and_prefix_preserving(self, message):
        out = truncate_error(message)
        assert len(out) <= MAX_ERROR_MESSAGE_LENGTH
        if len(message) <= MAX_ERROR_MESSAGE_LENGTH:
            assert out == message
        else:
            assert out[:-3] == message[: MAX_ERROR_MESSAGE_LENGTH - 3]

    @given(succeed=st.booleans(), message=message_strategy)
    @settings(max_examples=50, deadline=None)
    def test_terminal_rows_have_exactly_one_result(self, store, succeed, message):
        job = _job_in_status(store, PdfJobStatus.PROCESSING)
        if succeed:
            final = store.mark_completed(job.id, f"alice/{job.id}_a.pdf")
        else:
            final = store.mark_failed(job.id, message)
        assert (final.storage_path is None) != (final.error_message is None)
        assert final.updated_at >= final.created_at
