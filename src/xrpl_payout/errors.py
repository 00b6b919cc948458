class PayoutError(Exception):
    """Base class for payout errors."""


class ConfigurationError(PayoutError):
    """Raised when configuration values are missing or malformed."""


class InputValidationError(PayoutError):
    """Raised when a recipient row fails validation."""

    def __init__(self, row: int, reason: str):
        super().__init__(f"Row {row}: {reason}")
        self.row = row
        self.reason = reason


class WalletError(PayoutError):
    """Raised when the sender wallet cannot be derived from its secret."""


class LedgerConnectionError(PayoutError):
    """Raised when a ledger session cannot be established."""


class LedgerUnavailable(PayoutError):
    """Raised when the ledger stops answering status queries mid-run."""

    def __init__(self, tx_hash: str, cause: BaseException):
        super().__init__(f"Ledger unavailable while checking {tx_hash}: {cause}")
        self.tx_hash = tx_hash
        self.cause = cause


class SubmissionError(PayoutError):
    """Raised when the ledger rejects a payment or the submit round-trip fails."""

    def __init__(self, cause: BaseException | str):
        super().__init__(str(cause))
        self.cause = cause


class InvalidDestination(SubmissionError):
    """Raised when a destination address or tag cannot be encoded."""


class LedgerRejected(PayoutError):
    """Reason for a Failed outcome: the transaction resolved to failed or unknown.

    Never raised; the watcher records it as the outcome text.
    """

    def __init__(self, tx_hash: str, status: str):
        super().__init__(f"Transaction {tx_hash} resolved as {status}")
        self.tx_hash = tx_hash
        self.status = status


class PendingTimeout(PayoutError):
    """Reason for a TimedOut outcome: still pending after the retry limit.

    Never raised; the outcome detail is built from it.
    """

    def __init__(self, tx_hash: str, attempts: int):
        super().__init__(f"Retry limit of {attempts} reached. Transaction {tx_hash} still pending.")
        self.tx_hash = tx_hash
        self.attempts = attempts
