"""
Error taxonomy for the storefront core.

Collaborator failures (catalog fetch, order submission, settings) are caught at
the checkout boundary and converted into one of these kinds before they reach
the HTTP layer. The cart itself never raises for normal usage.
"""

from enum import Enum
from typing import List, Optional


class ErrorKind(str, Enum):
    """Classification of storefront failures."""
    VALIDATION = "validation"
    STOCK_CONFLICT = "stock_conflict"
    NOT_FOUND = "not_found"
    TRANSIENT_NETWORK = "transient_network"
    PERSISTENCE = "persistence"


class StorefrontError(Exception):
    """Base class for classified storefront errors."""

    kind: ErrorKind = ErrorKind.TRANSIENT_NETWORK
    retryable: bool = False

    def __init__(self, message: str, product_ids: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.product_ids = list(product_ids or [])

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "product_ids": self.product_ids,
            "retryable": self.retryable,
        }


class ValidationError(StorefrontError):
    """Missing or blank checkout fields. Fixed locally by the buyer."""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, fields: Optional[List[str]] = None):
        super().__init__(message)
        self.fields = list(fields or [])

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["fields"] = self.fields
        return data


class StockConflictError(StorefrontError):
    """Requested quantity exceeds available stock."""

    kind = ErrorKind.STOCK_CONFLICT


class NotFoundError(StorefrontError):
    """A cart line references a product that no longer exists."""

    kind = ErrorKind.NOT_FOUND


class TransientNetworkError(StorefrontError):
    """Catalog fetch or order submission failed for reasons unrelated to stock."""

    kind = ErrorKind.TRANSIENT_NETWORK
    retryable = True


class PersistenceWarning(StorefrontError):
    """Key-value store read or write failed. Logged, never surfaced as blocking."""

    kind = ErrorKind.PERSISTENCE


_ERRORS_BY_KIND = {
    ErrorKind.VALIDATION: ValidationError,
    ErrorKind.STOCK_CONFLICT: StockConflictError,
    ErrorKind.NOT_FOUND: NotFoundError,
    ErrorKind.TRANSIENT_NETWORK: TransientNetworkError,
    ErrorKind.PERSISTENCE: PersistenceWarning,
}


def error_from_kind(
    kind: ErrorKind,
    message: str,
    product_ids: Optional[List[str]] = None
) -> StorefrontError:
    """Build the exception matching a reported error kind."""
    error_class = _ERRORS_BY_KIND.get(ErrorKind(kind), TransientNetworkError)
    if error_class is ValidationError:
        return ValidationError(message)
    return error_class(message, product_ids=product_ids)
