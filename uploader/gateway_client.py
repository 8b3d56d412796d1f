"""HTTP client for the storage gateway (reads, signed writes, receipts)."""

import asyncio
import uuid
from typing import Optional

import httpx

from common.constants import DEFAULT_HTTP_TIMEOUT_SECONDS, RECEIPT_POLL_INTERVAL_SECONDS
from common.exceptions import (
    ConfirmationTimeoutError,
    StorageNotFoundError,
    StorageReadError,
    TransactionSubmissionError,
)
from common.logging_config import get_logger
from common.signing import Ed25519Signer
from common.types import ChunkedRecord, EncodedCall, StoredValue

logger = get_logger(__name__)


def _json_object(response: httpx.Response) -> Optional[dict]:
    """Decode a JSON object body, or None when the body is anything else."""
    try:
        data = response.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


class GatewayClient:
    """
    Async gateway client implementing StorageReader and LedgerWriter.

    Reads retry on 5xx and network errors with exponential backoff. Writes are
    never retried here, since a resubmitted write could land twice; the
    upload pipeline re-checks existence before any resend.
    """

    def __init__(
        self,
        base_url: str,
        chain_id: int,
        signer: Optional[Ed25519Signer] = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        max_retries: int = 3,
        retry_backoff_multiplier: float = 2,
        poll_interval: float = RECEIPT_POLL_INTERVAL_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize gateway client.

        Args:
            base_url: Gateway base URL (e.g. "http://localhost:8545")
            chain_id: Chain the gateway writes to
            signer: Signer for writes (reads work without one)
            timeout: Per-request timeout in seconds
            max_retries: Retries for reads on 5xx and network errors
            retry_backoff_multiplier: Backoff base in seconds
            poll_interval: Seconds between receipt polls
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.chain_id = chain_id
        self.signer = signer
        self.max_retries = max_retries
        self.retry_backoff_multiplier = retry_backoff_multiplier
        self.poll_interval = poll_interval
        self.client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)
        logger.info(f"Initialized GatewayClient [base_url={base_url}, chain_id={chain_id}]")

    async def close(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> 'GatewayClient':
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @property
    def address(self) -> str:
        if self.signer is None:
            raise ValueError("GatewayClient has no signer configured")
        return self.signer.address

    async def _request_with_retry(
        self,
        method: str,
        endpoint: str,
        max_retries: Optional[int] = None,
        **kwargs
    ) -> httpx.Response:
        """
        Make HTTP request with retry logic on 5xx errors and network failures.

        Args:
            method: HTTP method
            endpoint: API endpoint path
            max_retries: Max retry attempts (uses client default if None)
            **kwargs: Additional arguments to pass to httpx request

        Returns:
            HTTP response object

        Raises:
            ConnectionError: If the gateway cannot be reached after all retries
        """
        max_retries = self.max_retries if max_retries is None else max_retries
        request_id = str(uuid.uuid4())
        kwargs.setdefault('headers', {})['X-Request-ID'] = request_id
        last_exception = None

        for attempt in range(max_retries + 1):
            try:
                response = await self.client.request(method, endpoint, **kwargs)
            except (httpx.ConnectError, httpx.TimeoutException) as e:
                last_exception = e
                if attempt < max_retries:
                    delay = self.retry_backoff_multiplier ** attempt
                    logger.warning(
                        f"Network error (attempt {attempt + 1}/{max_retries + 1}): "
                        f"{method} {endpoint} error={type(e).__name__}, retrying in {delay}s [request_id={request_id}]"
                    )
                    await asyncio.sleep(delay)
                    continue
                logger.error(f"Network error (max retries exceeded): {method} {endpoint} error={e} [request_id={request_id}]")
                break

            if response.status_code >= 500 and attempt < max_retries:
                delay = self.retry_backoff_multiplier ** attempt
                logger.warning(
                    f"Server error (attempt {attempt + 1}/{max_retries + 1}): "
                    f"{method} {endpoint} status={response.status_code}, retrying in {delay}s [request_id={request_id}]"
                )
                await asyncio.sleep(delay)
                continue

            return response

        if isinstance(last_exception, httpx.TimeoutException):
            raise ConnectionError("Gateway request timed out")
        raise ConnectionError("Cannot connect to storage gateway")

    async def get(self, key: str, operator: str) -> StoredValue:
        """Read the latest value stored under (key, operator)."""
        try:
            response = await self._request_with_retry('GET', f"/storage/{key}", params={'operator': operator})
        except ConnectionError as e:
            raise StorageReadError(str(e)) from e

        if response.status_code == 404:
            raise StorageNotFoundError(f"No value stored for key {key} by {operator}")
        if response.status_code != 200:
            raise StorageReadError(f"Storage read failed for key {key}: HTTP {response.status_code}")

        data = _json_object(response)
        if data is None or not isinstance(data.get('value'), str):
            raise StorageReadError(f"Malformed storage response for key {key}: {response.text[:200]!r}")
        return StoredValue(text=str(data.get('text') or ''), value=data['value'])

    async def get_chunked_metadata(self, chunk_hash: str, operator: str) -> Optional[ChunkedRecord]:
        """Read the chunk record header for chunk_hash, or None if absent."""
        try:
            response = await self._request_with_retry(
                'GET', f"/chunked-storage/{chunk_hash}/metadata", params={'operator': operator}
            )
        except ConnectionError as e:
            raise StorageReadError(str(e)) from e

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise StorageReadError(f"Chunk metadata read failed for {chunk_hash}: HTTP {response.status_code}")

        data = _json_object(response)
        try:
            chunk_count = int(data.get('chunkCount', 0)) if data is not None else None
        except (TypeError, ValueError):
            chunk_count = None
        if chunk_count is None:
            raise StorageReadError(f"Malformed chunk metadata for {chunk_hash}: {response.text[:200]!r}")
        return ChunkedRecord(chunk_count=chunk_count, text=str(data.get('text') or ''))

    async def send(self, call: EncodedCall) -> str:
        """
        Sign and submit an encoded call.

        Returns:
            Transaction hash

        Raises:
            TransactionSubmissionError: On rejection or network failure
        """
        if self.signer is None:
            raise TransactionSubmissionError("Cannot send transactions without a signer")

        payload = {
            'chainId': self.chain_id,
            'from': self.signer.address,
            'call': call.to_dict(),
        }
        body = {
            **payload,
            'publicKey': self.signer.public_key,
            'signature': self.signer.sign_message(payload),
        }

        try:
            response = await self._request_with_retry('POST', "/transactions", max_retries=0, json=body)
        except ConnectionError as e:
            raise TransactionSubmissionError(str(e)) from e

        if response.status_code not in (200, 201, 202):
            raise TransactionSubmissionError(
                f"Transaction rejected: HTTP {response.status_code} {response.text}"
            )

        data = _json_object(response)
        tx_hash = data.get('transactionHash') if data is not None else None
        if not isinstance(tx_hash, str) or not tx_hash:
            raise TransactionSubmissionError(
                f"Gateway accepted the call but returned no transaction hash: {response.text[:200]!r}"
            )
        logger.debug(f"Submitted transaction [tx_hash={tx_hash}, to={call.to}]")
        return tx_hash

    async def wait_for_receipt(self, tx_hash: str, confirmations: int, timeout_ms: int) -> dict:
        """
        Poll for a receipt until it has enough confirmations.

        Raises:
            TransactionSubmissionError: If the transaction reverted
            ConfirmationTimeoutError: If the timeout elapses first
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_ms / 1000

        while True:
            try:
                response = await self._request_with_retry('GET', f"/transactions/{tx_hash}/receipt")
            except ConnectionError as e:
                logger.warning(f"Receipt poll failed [tx_hash={tx_hash}]: {e}")
                response = None

            if response is not None and response.status_code == 200:
                receipt = _json_object(response)
                if receipt is None:
                    logger.warning(f"Malformed receipt, polling again [tx_hash={tx_hash}]")
                else:
                    if receipt.get('status') == 'reverted':
                        raise TransactionSubmissionError(f"Transaction {tx_hash} reverted")
                    try:
                        confirmed = int(receipt.get('confirmations', 0))
                    except (TypeError, ValueError):
                        logger.warning(f"Receipt has invalid confirmations, polling again [tx_hash={tx_hash}]")
                        confirmed = 0
                    if confirmed >= confirmations:
                        return receipt

            if loop.time() + self.poll_interval > deadline:
                raise ConfirmationTimeoutError(
                    f"Transaction {tx_hash} not confirmed within {timeout_ms}ms", tx_hash=tx_hash
                )
            await asyncio.sleep(self.poll_interval)
