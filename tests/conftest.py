"""Shared pytest fixtures for all tests."""

import itertools
from typing import Callable, Optional

import pytest

from cli.config import Config
from common.activity_log import ActivityLog
from common.constants import STORAGE_CONTRACT_ADDRESS
from common.exceptions import ConfirmationTimeoutError, StorageNotFoundError, TransactionSubmissionError
from common.types import ChunkedRecord, EncodedCall, StoredValue

OPERATOR = "0x" + "ab" * 20
SPONSOR = "0x" + "5c" * 20


class InMemoryLedger:
    """
    In-memory storage primitive and ledger.

    Reads serve what earlier sends wrote. A send writes immediately under
    the writer's address, so a confirmed receipt always follows.
    """

    def __init__(self, address: str = OPERATOR):
        self.address = address
        self.values: dict[tuple[str, str], StoredValue] = {}
        self.chunks: dict[tuple[str, str], tuple[str, ...]] = {}
        self.sent_calls: list[EncodedCall] = []
        self.fail_send: Optional[Callable[[EncodedCall], bool]] = None
        self.unconfirmed: set[str] = set()
        self._counter = itertools.count(1)

    def apply(self, call: EncodedCall, operator: str) -> None:
        """Write the effect of call into storage under operator."""
        key, text, payload = call.args
        if call.to == STORAGE_CONTRACT_ADDRESS:
            self.values[(key, operator.lower())] = StoredValue(text=text, value=payload)
        else:
            self.chunks[(key, operator.lower())] = tuple(payload)

    def next_hash(self) -> str:
        return f"0x{next(self._counter):064x}"

    async def get(self, key: str, operator: str) -> StoredValue:
        try:
            return self.values[(key, operator.lower())]
        except KeyError:
            raise StorageNotFoundError(f"{key} not stored by {operator}")

    async def get_chunked_metadata(self, chunk_hash: str, operator: str) -> Optional[ChunkedRecord]:
        segments = self.chunks.get((chunk_hash, operator.lower()))
        if segments is None:
            return None
        return ChunkedRecord(chunk_count=len(segments))

    async def send(self, call: EncodedCall) -> str:
        if self.fail_send is not None and self.fail_send(call):
            raise TransactionSubmissionError("simulated rejection")
        self.sent_calls.append(call)
        self.apply(call, self.address)
        return self.next_hash()

    async def wait_for_receipt(self, tx_hash: str, confirmations: int, timeout_ms: int) -> dict:
        if tx_hash in self.unconfirmed:
            raise ConfirmationTimeoutError(f"{tx_hash} not confirmed", tx_hash=tx_hash)
        return {'transactionHash': tx_hash, 'status': 'success', 'confirmations': confirmations}


@pytest.fixture
def ledger():
    """In-memory ledger writing as OPERATOR."""
    return InMemoryLedger()


@pytest.fixture
def temp_config_dir(tmp_path):
    """
    Create temporary config directory.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to temporary .netstore directory
    """
    config_dir = tmp_path / '.netstore'
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def temp_config(temp_config_dir):
    """
    Create temporary config instance.

    Args:
        temp_config_dir: Temporary config directory fixture

    Returns:
        Config instance with temp config file
    """
    return Config(temp_config_dir / 'config.json')


@pytest.fixture
def activity_log(temp_config_dir):
    return ActivityLog(temp_config_dir / 'activity.json')


@pytest.fixture
def sample_file(tmp_path):
    """
    Create a small text file (normal storage).

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to sample text file
    """
    file_path = tmp_path / 'test.txt'
    file_path.write_text('Sample content for testing')
    return file_path


@pytest.fixture
def large_file(tmp_path):
    """Create a 100KB text file (chunked storage)."""
    file_path = tmp_path / 'large.txt'
    line = "The quick brown fox jumps over the lazy dog 0123456789\n"
    content = (line * (100_000 // len(line) + 1))[:100_000]
    file_path.write_text(content)
    return file_path
