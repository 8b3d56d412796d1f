"""Tests for the idempotency filter."""

import pytest

from common.types import OperationKind
from uploader.storage_check import StorageChecker
from uploader.transaction_filter import filter_chunked_operations, filter_existing_operations, filter_upload_plan
from uploader.transaction_prep import build_chunked_plan, build_upload_plan

OPERATOR = "0x" + "ab" * 20
SPONSOR = "0x" + "5c" * 20
CONTENT = "".join(f"{i:04d}" for i in range(75))


def _chunked_plan(chunk_operator=None):
    return build_chunked_plan(CONTENT, "doc1", "label", OPERATOR, chunk_operator=chunk_operator, chunk_size=100)


@pytest.mark.asyncio
async def test_nothing_stored_sends_everything(ledger):
    plan = _chunked_plan()

    outcome = await filter_upload_plan(StorageChecker(ledger), plan, OPERATOR)

    assert outcome.to_send[0].kind == OperationKind.METADATA
    assert len(outcome.to_send) == len(plan.operations)
    assert outcome.skipped == []
    assert outcome.metadata_needs_storage


@pytest.mark.asyncio
async def test_everything_stored_is_noop(ledger):
    plan = _chunked_plan()
    for op in plan.operations:
        ledger.apply(op.call, OPERATOR)

    outcome = await filter_upload_plan(StorageChecker(ledger), plan, OPERATOR)

    assert outcome.is_noop
    assert len(outcome.skipped) == len(plan.operations)


@pytest.mark.asyncio
async def test_matching_metadata_resent_when_a_chunk_is_missing(ledger):
    plan = _chunked_plan()
    ledger.apply(plan.metadata_operation.call, OPERATOR)
    for op in plan.chunk_operations[:-1]:
        ledger.apply(op.call, OPERATOR)

    outcome = await filter_upload_plan(StorageChecker(ledger), plan, OPERATOR)

    assert [op.kind for op in outcome.to_send] == [OperationKind.METADATA, OperationKind.CHUNK]
    assert outcome.to_send[1].id == plan.chunk_operations[-1].id
    assert len(outcome.skipped) == len(plan.chunk_operations) - 1


@pytest.mark.asyncio
async def test_mismatched_metadata_is_sent_even_with_all_chunks(ledger):
    plan = _chunked_plan()
    for op in plan.chunk_operations:
        ledger.apply(op.call, OPERATOR)
    other = build_chunked_plan("different content" * 20, "doc1", "label", OPERATOR, chunk_size=100)
    ledger.apply(other.metadata_operation.call, OPERATOR)

    outcome = await filter_upload_plan(StorageChecker(ledger), plan, OPERATOR)

    assert [op.kind for op in outcome.to_send] == [OperationKind.METADATA]


@pytest.mark.asyncio
async def test_chunks_checked_under_chunk_operator(ledger):
    plan = _chunked_plan(chunk_operator=SPONSOR)
    for op in plan.chunk_operations:
        ledger.apply(op.call, SPONSOR)

    outcome = await filter_chunked_operations(StorageChecker(ledger), plan.operations, OPERATOR, SPONSOR)

    assert [op.kind for op in outcome.to_send] == [OperationKind.METADATA]
    assert all(op.kind == OperationKind.CHUNK for op in outcome.skipped)


@pytest.mark.asyncio
async def test_normal_mismatch_is_sent(ledger):
    stored = build_upload_plan("old value", "doc1", "label", OPERATOR)
    ledger.apply(stored.operations[0].call, OPERATOR)

    fresh = build_upload_plan("new value", "doc1", "label", OPERATOR)
    outcome = await filter_existing_operations(StorageChecker(ledger), fresh.operations, OPERATOR)

    assert outcome.to_send == fresh.operations

    outcome = await filter_existing_operations(StorageChecker(ledger), stored.operations, OPERATOR)
    assert outcome.is_noop
