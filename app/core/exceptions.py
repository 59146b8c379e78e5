from typing import Optional

from fastapi import status

from app.messages import ja


class AppError(Exception):
    """Base application error class."""
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail: str = ja.EXC_INTERNAL_ERROR

    def __init__(self, message: Optional[str] = None, *, detail: Optional[str] = None):
        super().__init__(message or detail or self.default_detail)
        self.detail = detail or self.default_detail


class ValidationError(AppError):
    """Missing or malformed request fields."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = ja.EXC_VALIDATION_FAILED


class ConfigurationError(AppError):
    """Missing credentials or an invalid billing configuration."""
    default_detail = ja.CONFIG_PORTONE_SECRET_NOT_SET


# --- PortOne API ---

class ProviderError(AppError):
    """Outbound PortOne call failed."""
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = ja.PORTONE_REJECTED

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        operation: str,
        payment_id: Optional[str] = None,
        provider_status: Optional[int] = None,
        detail: Optional[str] = None
    ):
        self.operation = operation
        self.payment_id = payment_id
        self.provider_status = provider_status
        if message is None:
            message = f"PortOne {operation} failed (payment_id={payment_id}, status={provider_status})"
        super().__init__(message, detail=detail)


class ProviderUnavailable(ProviderError):
    """Network error, timeout or 5xx from PortOne; a 5xx status is forwarded."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = ja.PORTONE_UNAVAILABLE

    def __init__(self, message: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        if self.provider_status and self.provider_status >= 500:
            self.status_code = self.provider_status


class ProviderInvalidResponse(ProviderError):
    """2xx from PortOne whose body could not be parsed."""
    default_detail = ja.PORTONE_INVALID_RESPONSE


class ProviderRejected(ProviderError):
    """Non-2xx response from PortOne; the provider status is forwarded."""
    default_detail = ja.PORTONE_REJECTED

    def __init__(self, message: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        if self.provider_status:
            self.status_code = self.provider_status


class ProviderNotFound(ProviderRejected):
    default_detail = ja.PORTONE_NOT_FOUND


class ProviderUnauthorized(ProviderRejected):
    default_detail = ja.PORTONE_UNAUTHORIZED


class ProviderLookupFailed(AppError):
    """Payment lookup during a Paid webhook failed; nothing was written."""
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = ja.PORTONE_LOOKUP_FAILED

    def __init__(self, payment_id: str, cause: ProviderError):
        self.payment_id = payment_id
        self.cause = cause
        super().__init__(f"Payment lookup failed for {payment_id}: {cause}")


# --- Ledger ---

class StoreError(AppError):
    """Ledger read/write failure."""
    default_detail = ja.LEDGER_STORE_FAILED

    def __init__(self, message: Optional[str] = None, *, operation: str, transaction_key: Optional[str] = None):
        self.operation = operation
        self.transaction_key = transaction_key
        if message is None:
            message = f"Ledger {operation} failed (transaction_key={transaction_key})"
        super().__init__(message)


class StoreUnavailable(StoreError):
    """Ledger call timed out or the database could not be reached."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = ja.LEDGER_STORE_UNAVAILABLE


class NoActiveSubscription(AppError):
    """Cancellation for a payment with no active Paid ledger row."""
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = ja.LEDGER_NO_ACTIVE_SUBSCRIPTION

    def __init__(self, transaction_key: str):
        self.transaction_key = transaction_key
        super().__init__(f"No active subscription for transaction_key={transaction_key}")
