"""Existence checks against previously stored data."""

import asyncio

from common.constants import MAX_CONCURRENT_CHUNK_CHECKS
from common.exceptions import StorageNotFoundError
from common.logging_config import get_logger
from common.types import ChunkArgs, ExistenceResult, MetadataArgs, NormalArgs, WriteOperation
from uploader.content import hex_to_bytes
from uploader.storage_client import StorageReader

logger = get_logger(__name__)


class StorageChecker:
    """
    Answers "is this write already durable?" for each kind of operation.

    A not-found response is reported as exists=False. Any other read failure
    propagates to the caller.
    """

    def __init__(self, storage: StorageReader, max_concurrency: int = MAX_CONCURRENT_CHUNK_CHECKS):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be positive")
        self.storage = storage
        self.max_concurrency = max_concurrency

    async def _check_value(self, key: str, operator: str, expected: bytes) -> ExistenceResult:
        try:
            stored = await self.storage.get(key, operator)
        except StorageNotFoundError:
            return ExistenceResult(exists=False)

        matches = hex_to_bytes(stored.value) == expected
        return ExistenceResult(exists=True, matches=matches)

    async def check_normal(self, key: str, operator: str, expected_content: str) -> ExistenceResult:
        """
        Check a direct key/value write.

        Args:
            key: Normalized storage key
            operator: Writer address
            expected_content: Content the write would store

        Returns:
            ExistenceResult; matches compares stored bytes with expected_content
        """
        return await self._check_value(key, operator, expected_content.encode('utf-8'))

    async def check_metadata(self, key: str, operator: str, expected_metadata: str) -> ExistenceResult:
        """Check a metadata document write (same comparison as check_normal)."""
        return await self._check_value(key, operator, expected_metadata.encode('utf-8'))

    async def check_chunk(self, chunk_hash: str, operator: str) -> bool:
        """
        Check whether a chunk record exists.

        A record with zero segments is a torn write and counts as absent.
        """
        try:
            record = await self.storage.get_chunked_metadata(chunk_hash, operator)
        except StorageNotFoundError:
            return False
        return record is not None and record.chunk_count > 0

    async def check_chunk_set(self, chunk_hashes: list[str], operator: str) -> set[str]:
        """
        Check many chunks concurrently, at most max_concurrency at a time.

        Returns:
            Subset of chunk_hashes that already exist
        """
        if not chunk_hashes:
            return set()

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def bounded_check(chunk_hash: str) -> bool:
            async with semaphore:
                return await self.check_chunk(chunk_hash, operator)

        results = await asyncio.gather(*(bounded_check(chunk_hash) for chunk_hash in chunk_hashes))
        existing = {chunk_hash for chunk_hash, exists in zip(chunk_hashes, results) if exists}
        logger.debug(f"Chunk check: {len(existing)}/{len(chunk_hashes)} present [operator={operator}]")
        return existing

    async def check_operation(self, op: WriteOperation, operator: str) -> bool:
        """
        Check whether a single write operation is already satisfied.

        Normal and metadata writes must exist and match. Chunk writes only
        need to exist, since their id is derived from their content.
        """
        args = op.typed_args
        if isinstance(args, ChunkArgs):
            return await self.check_chunk(args.hash, operator)
        if isinstance(args, (NormalArgs, MetadataArgs)):
            result = await self._check_value(args.key, operator, hex_to_bytes(args.value))
            return result.satisfied
        raise TypeError(f"Unknown operation arguments: {type(args).__name__}")

    async def missing_required_chunks(self, op: WriteOperation, operator: str) -> list[str]:
        """
        List the chunks a metadata operation depends on that are not stored yet.

        Args:
            op: Operation to inspect (non-metadata operations have no requirements)
            operator: Fallback operator when the metadata names none

        Returns:
            Missing chunk hashes in document order
        """
        required = op.requires_confirmed_chunks
        if not required:
            return []
        chunk_operator = op.typed_args.chunk_operator or operator
        existing = await self.check_chunk_set(list(required), chunk_operator)
        return [chunk_hash for chunk_hash in required if chunk_hash not in existing]
