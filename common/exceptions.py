"""Custom exception classes for the upload pipeline and relay client."""


class NetStoreError(Exception):
    """
    Base exception class for all upload-related errors.
    """
    pass


class StorageNotFoundError(NetStoreError):
    """
    Raised by a storage reader when no record exists for (key, operator).

    The existence checker maps this to exists=False; it is never surfaced as a failure.
    """
    pass


class StorageReadError(NetStoreError):
    """
    Raised when the storage layer cannot be read for a reason other than absence.
    """
    pass


class InvalidStorageKeyError(NetStoreError):
    """
    Raised when a storage key cannot be normalized.
    """
    pass


class ContentTooLargeError(NetStoreError):
    """
    Raised when content exceeds a caller cap or the maximum chunk count.
    """
    pass


class TransactionSubmissionError(NetStoreError):
    """
    Raised when a single write operation could not be submitted.
    """
    pass


class ConfirmationTimeoutError(NetStoreError):
    """
    Raised when a transaction receipt does not arrive within the timeout.
    """

    def __init__(self, message: str, tx_hash: str | None = None):
        super().__init__(message)
        self.tx_hash = tx_hash


class RelayError(NetStoreError):
    """
    Base class for relay backend failures.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RelayAuthenticationError(RelayError):
    """
    Raised when a relay session cannot be created.
    """
    pass


class RelayFundingError(RelayError):
    """
    Raised when funding the sponsor account or verifying the payment fails.
    """
    pass


class RelayBalanceError(RelayError):
    """
    Raised when the sponsor balance endpoint fails.
    """
    pass


class RelaySubmitError(RelayError):
    """
    Raised when the relay submit endpoint rejects a whole request.
    """
    pass


class SystemicBatchFailure(NetStoreError):
    """
    Raised when every operation of a relay batch fails.
    """

    def __init__(self, message: str, batch_index: int):
        super().__init__(message)
        self.batch_index = batch_index
