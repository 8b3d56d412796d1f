"""Splits operations into relay batches bounded by count and estimated request size."""

import json

from common.constants import (
    MAX_BATCH_SIZE_BYTES,
    MAX_TRANSACTION_SIZE_BYTES,
    MAX_TRANSACTIONS_PER_BATCH,
    REQUEST_SIZE_OVERHEAD_BYTES,
    TRANSACTION_SIZE_OVERHEAD_BYTES,
)
from common.types import WriteOperation


def estimate_operation_size(op: WriteOperation) -> int:
    """
    Estimate the serialized size of one operation in a submit request.

    Args:
        op: Operation to estimate

    Returns:
        JSON length of the call arguments plus a fixed overhead, capped at
        MAX_TRANSACTION_SIZE_BYTES
    """
    args_size = len(json.dumps(op.call.to_dict()['args'], separators=(',', ':')))
    return min(args_size + TRANSACTION_SIZE_OVERHEAD_BYTES, MAX_TRANSACTION_SIZE_BYTES)


def estimate_request_size(operations: list[WriteOperation]) -> int:
    """Estimate the size of a submit request carrying operations."""
    return REQUEST_SIZE_OVERHEAD_BYTES + sum(estimate_operation_size(op) for op in operations)


def batch_operations(
    operations: list[WriteOperation],
    max_count: int = MAX_TRANSACTIONS_PER_BATCH,
    max_bytes: int = MAX_BATCH_SIZE_BYTES,
) -> list[list[WriteOperation]]:
    """
    Split operations into ordered batches.

    Every batch holds at most max_count operations and stays within max_bytes
    of estimated request size. An operation that alone exceeds max_bytes is
    placed in a batch of its own.

    Args:
        operations: Operations in send order
        max_count: Maximum operations per batch
        max_bytes: Maximum estimated request size per batch

    Returns:
        List of batches preserving operation order
    """
    batches: list[list[WriteOperation]] = []
    current: list[WriteOperation] = []
    current_size = REQUEST_SIZE_OVERHEAD_BYTES

    for op in operations:
        op_size = estimate_operation_size(op)
        if current and (len(current) >= max_count or current_size + op_size > max_bytes):
            batches.append(current)
            current = []
            current_size = REQUEST_SIZE_OVERHEAD_BYTES

        current.append(op)
        current_size += op_size

    if current:
        batches.append(current)
    return batches
