"""Error taxonomy for a payout attempt.

Every failure a payout can end in is a PayoutError; the message is what gets
written to the ``error`` output, so it must be actionable on its own.
"""

from typing import Any


class PayoutError(Exception):
    """Base class for every failure that ends a payout attempt."""


class ConfigurationError(PayoutError):
    """Malformed or missing input, detected before any network call."""


class ValidationError(PayoutError):
    pass


class InvalidAddressError(ValidationError):
    pass


class InvalidTokenError(ValidationError):
    pass


class SenderTokenAccountMissing(ValidationError):
    def __init__(self, token_account: str, mint: str):
        self.token_account = token_account
        self.mint = mint
        super().__init__(
            "Sender address does not have an associated token account to complete the transfer "
            f"(mint {mint}, expected account {token_account})"
        )


class InsufficientFundsError(PayoutError):
    pass


class InsufficientNativeBalance(InsufficientFundsError):
    def __init__(self, message: str, *, balance: int, requirement: Any):
        self.balance = balance
        self.requirement = requirement
        super().__init__(message)


class InsufficientTokenBalance(InsufficientFundsError):
    def __init__(self, message: str, *, mint: str, balance: int, required: int):
        self.mint = mint
        self.balance = balance
        self.required = required
        super().__init__(message)


class NetworkError(PayoutError):
    """The RPC node could not be reached or answered with an error outside submission."""


class SubmissionError(PayoutError):
    def __init__(self, message: str, logs: list[str] | None = None):
        self.logs = list(logs or [])
        if self.logs:
            message = f"{message}\nTransaction logs:\n" + "\n".join(self.logs)
        super().__init__(message)


class ConfirmationTimeoutError(PayoutError):
    """No terminal status observed in time. The transaction may still land."""

    def __init__(self, signature: str, attempts: int, last_status: str | None):
        self.signature = signature
        self.attempts = attempts
        self.last_status = last_status
        super().__init__(
            f"Transaction {signature} not confirmed after {attempts} attempts. "
            f"Last status: {last_status}. It may still be confirmed later, check it manually."
        )


class OnChainExecutionError(PayoutError):
    def __init__(self, signature: str, err: str):
        self.signature = signature
        self.err = err
        super().__init__(f"Transaction failed: {err}")
