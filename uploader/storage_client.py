"""
Boundary interfaces to the storage primitive and the ledger.

The upload pipeline only talks to these protocols. `GatewayClient` in
uploader.gateway_client implements both over HTTP; tests use in-memory fakes.
"""

from typing import Optional, Protocol, runtime_checkable

from common.types import ChunkedRecord, EncodedCall, StoredValue


@runtime_checkable
class StorageReader(Protocol):
    """Read access to the (key, operator) scoped storage primitive."""

    async def get(self, key: str, operator: str) -> StoredValue:
        """Read the latest value stored under key by operator.

        Args:
            key: Normalized 32-byte storage key
            operator: Writer address

        Returns:
            Stored label and 0x hex value

        Raises:
            StorageNotFoundError: If nothing is stored for (key, operator)
            StorageReadError: On any other read failure
        """
        ...

    async def get_chunked_metadata(self, chunk_hash: str, operator: str) -> Optional[ChunkedRecord]:
        """Read the chunk record header for chunk_hash.

        Returns:
            ChunkedRecord, or None if no record exists
        """
        ...


@runtime_checkable
class LedgerWriter(Protocol):
    """Write access to the ledger with the caller's own credentials."""

    @property
    def address(self) -> str:
        """Operator address of the signing identity."""
        ...

    async def send(self, call: EncodedCall) -> str:
        """Submit an encoded call.

        Returns:
            Transaction hash

        Raises:
            TransactionSubmissionError: If the ledger rejects the call
        """
        ...

    async def wait_for_receipt(self, tx_hash: str, confirmations: int, timeout_ms: int) -> dict:
        """Wait until tx_hash has the requested confirmations.

        Raises:
            ConfirmationTimeoutError: If no receipt arrives within timeout_ms
        """
        ...
