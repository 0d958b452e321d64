from decimal import Decimal

from django.core.exceptions import ObjectDoesNotExist, ValidationError

__all__ = [
    "NotFound",
    "ValidationError",
    "InsufficientStock",
    "CreditLimitExceeded",
    "InvalidStatusTransition",
    "DuplicateEntry",
]


class NotFound(ObjectDoesNotExist):
    """Raised when a party, product, warehouse or document is missing
    (or belongs to another company)."""
    pass


class InsufficientStock(ValidationError):
    """Raised when a tracked product does not have enough available stock."""

    def __init__(self, product, available, requested, warehouse=None):
        self.product = product
        self.warehouse = warehouse
        self.available = Decimal(available)
        self.requested = Decimal(requested)
        self.shortfall = self.requested - self.available
        where = f" in {warehouse}" if warehouse is not None else ""
        super().__init__(
            f"Insufficient stock for {product}{where}. "
            f"Available: {self.available}, Required: {self.requested}, "
            f"Short by: {self.shortfall}",
            code="insufficient_stock",
        )


class CreditLimitExceeded(ValidationError):
    """Raised when a sale would push a customer above its credit limit."""

    def __init__(self, customer, available_credit):
        self.customer = customer
        self.available_credit = Decimal(available_credit)
        super().__init__(
            f"Credit limit exceeded for {customer}. "
            f"Available credit: {self.available_credit}",
            code="credit_limit_exceeded",
        )


class InvalidStatusTransition(ValidationError):
    """Raised on edits/deletes of terminal documents, forbidden status moves
    and deletion of documents that still have dependents."""

    def __init__(self, message, current=None, target=None):
        self.current = current
        self.target = target
        super().__init__(message, code="invalid_status_transition")


class DuplicateEntry(ValidationError):
    """Raised when a per-company uniqueness rule is violated."""

    def __init__(self, message):
        super().__init__(message, code="duplicate_entry")
