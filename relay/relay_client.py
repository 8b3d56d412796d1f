"""HTTP client for the fee-sponsoring relay backend."""

import asyncio
import base64
import json
import time
from dataclasses import dataclass
from typing import Optional, TypeVar

import httpx
from pydantic import ValidationError

from common.constants import (
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    PAYMENT_HEADER,
    PAYMENT_RESPONSE_HEADER,
    PAYMENT_SETTLE_DELAY_SECONDS,
    RELAY_DOMAIN_NAME,
    RELAY_DOMAIN_VERSION,
    SESSION_EXPIRES_IN_SECONDS,
)
from common.exceptions import (
    RelayAuthenticationError,
    RelayBalanceError,
    RelayError,
    RelayFundingError,
    RelaySubmitError,
)
from common.hashing import compute_content_hash
from common.logging_config import get_logger
from common.signing import Ed25519Signer
from common.types import SubmissionResult, WriteOperation
from relay.schemas import (
    BalanceRequest,
    BalanceResponse,
    FundRequest,
    FundResponse,
    PaymentSettlement,
    RelayModel,
    SessionRequest,
    SessionResponse,
    SubmitResponse,
    VerifyFundRequest,
    VerifyFundResponse,
)

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=RelayModel)


@dataclass(frozen=True)
class FundResult:
    """Outcome of a successful funding round."""
    payment_tx_hash: str
    sponsor_address: str


@dataclass(frozen=True)
class RelaySession:
    """Short-lived relay session credential."""
    token: str
    expires_at: int

    def is_expired(self, now: Optional[float] = None) -> bool:
        return (now if now is not None else time.time()) >= self.expires_at


def _json_or_empty(response: httpx.Response) -> dict:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _parse_response(
    model: type[ModelT],
    response: httpx.Response,
    error_cls: type[RelayError],
    endpoint: str,
) -> ModelT:
    """
    Validate a relay response body against model.

    Raises:
        error_cls: If the body is not JSON or does not match model
    """
    try:
        return model.model_validate(_json_or_empty(response))
    except ValidationError as e:
        logger.error(f"Malformed relay response [endpoint={endpoint}, status={response.status_code}]: {e}")
        raise error_cls(
            f"Malformed response from {endpoint}: {response.text[:200]!r}",
            status_code=response.status_code,
        ) from e


class RelayClient:
    """
    Client for the relay endpoints: fund, fund/verify, session, balance, submit.

    One client serves one operator identity. The session created by
    create_session is kept on the client and reused by submit.
    """

    def __init__(
        self,
        api_url: str,
        chain_id: int,
        signer: Ed25519Signer,
        secret_key: str,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        payment_settle_delay: float = PAYMENT_SETTLE_DELAY_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize relay client.

        Args:
            api_url: Relay backend base URL
            chain_id: Chain the relay submits to
            signer: Caller's signer (session and payment signatures)
            secret_key: Relay secret shared with the backend
            timeout: Per-request timeout in seconds
            payment_settle_delay: Seconds to wait between payment and verification
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.chain_id = chain_id
        self.signer = signer
        self.secret_key = secret_key
        self.payment_settle_delay = payment_settle_delay
        self.session: Optional[RelaySession] = None
        self.client = httpx.AsyncClient(base_url=api_url, timeout=timeout, transport=transport)
        logger.info(f"Initialized RelayClient [api_url={api_url}, chain_id={chain_id}]")

    @property
    def operator_address(self) -> str:
        return self.signer.address

    async def close(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> 'RelayClient':
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _post(
        self,
        endpoint: str,
        body: RelayModel | dict,
        error_cls: type[RelayError],
        headers: Optional[dict] = None,
    ) -> httpx.Response:
        payload = body.model_dump(by_alias=True) if isinstance(body, RelayModel) else body
        try:
            return await self.client.post(endpoint, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Relay request failed: POST {endpoint} error={type(e).__name__}: {e}")
            raise error_cls(f"Relay request to {endpoint} failed: {e}") from e

    def build_payment_header(self, requirements: dict) -> str:
        """
        Build the signed payment header answering a 402 challenge.

        Args:
            requirements: Payment requirements from the 402 body

        Returns:
            Base64 encoded JSON payment payload
        """
        authorization = {
            'from': self.operator_address,
            'chainId': self.chain_id,
            'requirements': requirements,
            'timestamp': int(time.time()),
        }
        payload = {
            'x402Version': 1,
            'payload': {
                'authorization': authorization,
                'publicKey': self.signer.public_key,
                'signature': self.signer.sign_message(authorization),
            },
        }
        return base64.b64encode(json.dumps(payload, separators=(',', ':')).encode('utf-8')).decode('ascii')

    @staticmethod
    def extract_payment_tx_hash(response: httpx.Response) -> Optional[str]:
        """Read the payment transaction hash from the settlement header, if any."""
        header = response.headers.get(PAYMENT_RESPONSE_HEADER)
        if not header:
            return None
        try:
            settlement = PaymentSettlement.model_validate(json.loads(base64.b64decode(header)))
        except (ValueError, ValidationError) as e:
            logger.warning(f"Failed to decode {PAYMENT_RESPONSE_HEADER} header: {e}")
            return None
        return settlement.payment_tx_hash

    async def fund(self) -> FundResult:
        """
        Pay to fund the sponsor account, then verify the payment.

        Returns:
            FundResult with payment hash and sponsor address

        Raises:
            RelayFundingError: If payment or verification fails
        """
        endpoint = f"/api/relay/{self.chain_id}/fund"
        request = FundRequest(chain_id=self.chain_id, operator_address=self.operator_address, secret_key=self.secret_key)
        logger.info(f"Funding sponsor account [chain_id={self.chain_id}, operator={self.operator_address}]")

        response = await self._post(endpoint, request, RelayFundingError)
        if response.status_code == 402:
            requirements = _json_or_empty(response)
            logger.info("Received payment challenge, retrying fund request with payment header")
            response = await self._post(
                endpoint,
                request,
                RelayFundingError,
                headers={PAYMENT_HEADER: self.build_payment_header(requirements)},
            )

        data = _parse_response(FundResponse, response, RelayFundingError, endpoint)
        if response.status_code == 402:
            if data.payer or data.success:
                logger.warning("Fund endpoint returned 402 but payment appears processed")
            else:
                raise RelayFundingError(
                    f"Fund endpoint returned 402 Payment Required: {data.error or data.message or 'no payment data'}",
                    status_code=402,
                )
        elif not response.is_success:
            raise RelayFundingError(
                f"Fund endpoint failed: {response.status_code} {data.error or response.text}",
                status_code=response.status_code,
            )

        payment_tx_hash = self.extract_payment_tx_hash(response)
        if not payment_tx_hash:
            raise RelayFundingError("Failed to extract payment transaction hash from payment response headers")

        logger.info(f"Waiting {self.payment_settle_delay}s for payment to settle [payment_tx_hash={payment_tx_hash}]")
        await asyncio.sleep(self.payment_settle_delay)

        verify_request = VerifyFundRequest(
            chain_id=self.chain_id,
            payment_tx_hash=payment_tx_hash,
            operator_address=self.operator_address,
            secret_key=self.secret_key,
        )
        verify_response = await self._post("/api/relay/fund/verify", verify_request, RelayFundingError)
        if not verify_response.is_success:
            raise RelayFundingError(
                f"Fund verify endpoint failed: {verify_response.status_code} {verify_response.text}",
                status_code=verify_response.status_code,
            )

        verified = _parse_response(VerifyFundResponse, verify_response, RelayFundingError, "/api/relay/fund/verify")
        if not verified.success:
            raise RelayFundingError(f"Fund verify failed: {verified.error or 'Unknown error'}")
        if not verified.backend_wallet_address:
            raise RelayFundingError("Sponsor address not found in verify response")

        logger.info(f"Sponsor account funded [sponsor={verified.backend_wallet_address}, payment_tx_hash={payment_tx_hash}]")
        return FundResult(payment_tx_hash=payment_tx_hash, sponsor_address=verified.backend_wallet_address)

    def session_message(self, expires_at: int) -> dict:
        """Message signed to authenticate a session."""
        return {
            'domain': {'name': RELAY_DOMAIN_NAME, 'version': RELAY_DOMAIN_VERSION, 'chainId': self.chain_id},
            'operatorAddress': self.operator_address,
            'secretKeyHash': compute_content_hash(self.secret_key),
            'expiresAt': expires_at,
        }

    async def create_session(self, expires_in: int = SESSION_EXPIRES_IN_SECONDS) -> RelaySession:
        """
        Authenticate a time-boxed relay session.

        Args:
            expires_in: Session lifetime in seconds

        Returns:
            RelaySession (also stored on the client)

        Raises:
            RelayAuthenticationError: If the backend rejects the session
        """
        expires_at = int(time.time()) + expires_in
        request = SessionRequest(
            chain_id=self.chain_id,
            operator_address=self.operator_address,
            secret_key=self.secret_key,
            public_key=self.signer.public_key,
            signature=self.signer.sign_message(self.session_message(expires_at)),
            expires_in=expires_in,
        )

        response = await self._post("/api/relay/session", request, RelayAuthenticationError)
        data = _json_or_empty(response)
        if not response.is_success:
            raise RelayAuthenticationError(
                f"Session creation failed: {response.status_code} {data.get('error') or response.reason_phrase}",
                status_code=response.status_code,
            )

        result = _parse_response(SessionResponse, response, RelayAuthenticationError, "/api/relay/session")
        if not result.success or result.error:
            raise RelayAuthenticationError(f"Session creation failed: {result.error or 'Unknown error'}")
        if not result.session_token or not result.expires_at:
            raise RelayAuthenticationError("Session creation failed: missing session token or expiry in response")

        self.session = RelaySession(token=result.session_token, expires_at=result.expires_at)
        logger.info(f"Relay session created [operator={self.operator_address}, expires_at={result.expires_at}]")
        return self.session

    async def check_balance(self) -> BalanceResponse:
        """
        Query the sponsor account balance.

        Raises:
            RelayBalanceError: If the endpoint fails
        """
        request = BalanceRequest(chain_id=self.chain_id, operator_address=self.operator_address, secret_key=self.secret_key)
        response = await self._post("/api/relay/balance", request, RelayBalanceError)
        data = _json_or_empty(response)
        if not response.is_success:
            raise RelayBalanceError(
                f"Balance check endpoint failed: {response.status_code} {data.get('error') or response.text}",
                status_code=response.status_code,
            )

        result = _parse_response(BalanceResponse, response, RelayBalanceError, "/api/relay/balance")
        if not result.success or result.error:
            raise RelayBalanceError(f"Balance check failed: {result.error or 'Unknown error'}")

        logger.info(
            f"Sponsor balance [sponsor={result.backend_wallet_address}, balance_eth={result.balance_eth}, "
            f"sufficient={result.sufficient_balance}]"
        )
        return result

    async def submit(self, operations: list[WriteOperation], session: Optional[RelaySession] = None) -> SubmissionResult:
        """
        Submit a batch of operations through the sponsor account.

        Args:
            operations: Operations to submit in order
            session: Session to use (defaults to the client's current session)

        Returns:
            SubmissionResult with indexes relative to operations

        Raises:
            RelayAuthenticationError: If no session is available
            RelaySubmitError: If the backend rejects the whole request
        """
        session = session or self.session
        if session is None:
            raise RelayAuthenticationError("No relay session; call create_session first")

        body = {
            'chainId': self.chain_id,
            'operatorAddress': self.operator_address,
            'sessionToken': session.token,
            'transactions': [op.call.to_dict() for op in operations],
        }
        response = await self._post(
            "/api/relay/submit",
            body,
            RelaySubmitError,
            headers={'Authorization': f"Bearer {session.token}"},
        )
        data = _json_or_empty(response)
        if not response.is_success:
            raise RelaySubmitError(
                f"Relay submit endpoint failed: {response.status_code} {data.get('error') or response.text}",
                status_code=response.status_code,
            )

        result = _parse_response(SubmitResponse, response, RelaySubmitError, "/api/relay/submit")
        if not result.success:
            raise RelaySubmitError(f"Relay submit failed: {result.error or 'Unknown error'}")

        return SubmissionResult(
            transaction_hashes=list(result.transaction_hashes),
            successful_indexes=list(result.successful_indexes),
            failed_indexes=list(result.failed_indexes),
            errors=[{'index': e.index, 'error': e.error} for e in result.errors],
            transactions_sent=result.transactions_sent,
            transactions_failed=result.transactions_failed,
            sponsor_address=result.backend_wallet_address,
        )
