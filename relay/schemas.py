"""Pydantic schemas for relay backend requests and responses."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class RelayModel(BaseModel):
    """Base model mapping snake_case fields to the backend's camelCase JSON."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FundRequest(RelayModel):
    """Request body for the fund endpoint."""
    chain_id: int
    operator_address: str
    secret_key: str


class FundResponse(RelayModel):
    """Response of the fund endpoint (also the body of a 402)."""
    success: bool = False
    message: Optional[str] = None
    payer: Optional[str] = None
    amount: Optional[str] = None
    error: Optional[str] = None


class VerifyFundRequest(RelayModel):
    """Request body for fund verification."""
    chain_id: int
    payment_tx_hash: str
    operator_address: str
    secret_key: str


class VerifyFundResponse(RelayModel):
    """Response of fund verification."""
    success: bool
    payment_tx_hash: Optional[str] = None
    backend_wallet_address: Optional[str] = None
    funded_amount_eth: Optional[str] = None
    already_processed: Optional[bool] = None
    error: Optional[str] = None


class SessionRequest(RelayModel):
    """Request body for session creation."""
    chain_id: int
    operator_address: str
    secret_key: str
    public_key: str
    signature: str
    expires_in: int


class SessionResponse(RelayModel):
    """Response of session creation."""
    success: bool
    session_token: Optional[str] = None
    expires_at: Optional[int] = None
    error: Optional[str] = None


class BalanceRequest(RelayModel):
    """Request body for the balance endpoint."""
    chain_id: int
    operator_address: str
    secret_key: str


class BalanceResponse(RelayModel):
    """Response of the balance endpoint."""
    success: bool
    backend_wallet_address: Optional[str] = None
    balance_wei: str = "0"
    balance_eth: str = "0"
    sufficient_balance: bool = False
    min_required_wei: str = "0"
    min_required_eth: str = "0"
    error: Optional[str] = None


class SubmitError(RelayModel):
    """Per-index error entry of a submit response."""
    index: int
    error: str


class SubmitResponse(RelayModel):
    """Response of the submit endpoint. Indexes refer to the submitted list."""
    success: bool
    transaction_hashes: List[str] = []
    successful_indexes: List[int] = []
    failed_indexes: List[int] = []
    errors: List[SubmitError] = []
    transactions_sent: int = 0
    transactions_failed: int = 0
    backend_wallet_address: Optional[str] = None
    error: Optional[str] = None


class PaymentSettlement(RelayModel):
    """Decoded payment settlement header."""
    success: bool = True
    transaction: Optional[str] = None
    tx_hash: Optional[str] = None
    payer: Optional[str] = None

    @property
    def payment_tx_hash(self) -> Optional[str]:
        return self.transaction or self.tx_hash
