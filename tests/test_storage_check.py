"""Tests for StorageChecker existence checks."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from common.exceptions import StorageNotFoundError, StorageReadError
from common.types import ChunkedRecord, StoredValue
from uploader.content import text_to_hex
from uploader.keys import get_storage_key_bytes
from uploader.storage_check import StorageChecker
from uploader.transaction_prep import build_chunked_plan, prepare_normal_operation

OPERATOR = "0x" + "ab" * 20


@pytest.mark.asyncio
async def test_check_normal_missing(ledger):
    result = await StorageChecker(ledger).check_normal(get_storage_key_bytes("doc1"), OPERATOR, "hello")

    assert result.exists is False
    assert result.satisfied is False


@pytest.mark.asyncio
async def test_check_normal_match_and_mismatch(ledger):
    op = prepare_normal_operation("hello", "doc1", "label")
    ledger.apply(op.call, OPERATOR)
    checker = StorageChecker(ledger)

    same = await checker.check_normal(op.id, OPERATOR, "hello")
    different = await checker.check_normal(op.id, OPERATOR, "hello!")

    assert same.exists and same.matches
    assert different.exists and different.matches is False


@pytest.mark.asyncio
async def test_values_are_scoped_by_operator(ledger):
    op = prepare_normal_operation("hello", "doc1", "label")
    ledger.apply(op.call, OPERATOR)

    result = await StorageChecker(ledger).check_normal(op.id, "0x" + "cd" * 20, "hello")
    assert result.exists is False


@pytest.mark.asyncio
async def test_other_read_errors_propagate():
    storage = AsyncMock()
    storage.get.side_effect = StorageReadError("gateway down")

    with pytest.raises(StorageReadError):
        await StorageChecker(storage).check_metadata("0x" + "00" * 32, OPERATOR, "x")


@pytest.mark.asyncio
async def test_zero_segment_chunk_counts_as_absent():
    storage = AsyncMock()
    storage.get_chunked_metadata.return_value = ChunkedRecord(chunk_count=0)

    assert await StorageChecker(storage).check_chunk("0x" + "11" * 32, OPERATOR) is False


@pytest.mark.asyncio
async def test_chunk_not_found_error_counts_as_absent():
    storage = AsyncMock()
    storage.get_chunked_metadata.side_effect = StorageNotFoundError("missing")

    assert await StorageChecker(storage).check_chunk("0x" + "11" * 32, OPERATOR) is False


@pytest.mark.asyncio
async def test_check_chunk_set_runs_concurrently():
    in_flight = 0
    peak = 0

    async def slow_lookup(chunk_hash, operator):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return ChunkedRecord(chunk_count=1) if chunk_hash.endswith("1") else None

    storage = AsyncMock()
    storage.get_chunked_metadata.side_effect = slow_lookup
    hashes = [f"0x{i:064x}" for i in range(10)]

    existing = await StorageChecker(storage).check_chunk_set(hashes, OPERATOR)

    assert peak == len(hashes)
    assert existing == {hashes[1]}


@pytest.mark.asyncio
async def test_check_chunk_set_respects_concurrency_limit():
    in_flight = 0
    peak = 0

    async def slow_lookup(chunk_hash, operator):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return ChunkedRecord(chunk_count=1)

    storage = AsyncMock()
    storage.get_chunked_metadata.side_effect = slow_lookup
    hashes = [f"0x{i:064x}" for i in range(10)]

    existing = await StorageChecker(storage, max_concurrency=3).check_chunk_set(hashes, OPERATOR)

    assert peak == 3
    assert existing == set(hashes)


def test_concurrency_limit_must_be_positive():
    with pytest.raises(ValueError, match="max_concurrency"):
        StorageChecker(AsyncMock(), max_concurrency=0)


@pytest.mark.asyncio
async def test_missing_required_chunks_uses_chunk_operator(ledger):
    sponsor = "0x" + "5c" * 20
    plan = build_chunked_plan("abc" * 100, "doc1", "label", OPERATOR, chunk_operator=sponsor, chunk_size=100)
    checker = StorageChecker(ledger)

    first = plan.chunk_operations[0]
    ledger.apply(first.call, sponsor)

    missing = await checker.missing_required_chunks(plan.metadata_operation, OPERATOR)
    assert missing == plan.chunk_hashes[1:]


@pytest.mark.asyncio
async def test_check_operation_metadata_compares_document(ledger):
    plan = build_chunked_plan("abc" * 100, "doc1", "label", OPERATOR, chunk_size=100)
    metadata = plan.metadata_operation
    checker = StorageChecker(ledger)

    assert await checker.check_operation(metadata, OPERATOR) is False
    ledger.apply(metadata.call, OPERATOR)
    assert await checker.check_operation(metadata, OPERATOR) is True

    ledger.values[(metadata.id, OPERATOR)] = StoredValue(text="label", value=text_to_hex("stale document"))
    assert await checker.check_operation(metadata, OPERATOR) is False
