"""Document lifecycle: statuses and the per-kind transition tables.

Every status change in the engine goes through ``check_transition`` so the
allowed moves for a document kind are listed in exactly one place.
"""
from django.db import models

from .exceptions import InvalidStatusTransition


class DocumentStatus(models.TextChoices):
    DRAFT = "DRAFT", "Draft"
    SENT = "SENT", "Sent"
    APPROVED = "APPROVED", "Approved"
    RECEIVED = "RECEIVED", "Received"
    COMPLETED = "COMPLETED", "Completed"
    CANCELLED = "CANCELLED", "Cancelled"


S = DocumentStatus

TERMINAL_STATUSES = frozenset({S.COMPLETED, S.CANCELLED})

# Statuses an update payload may ask for. The rest follow from fulfilment,
# conversion and payment, or from the cancel/delete operations.
REQUESTABLE_STATUSES = frozenset({S.DRAFT, S.SENT, S.APPROVED})


class DocumentKind(models.TextChoices):
    QUOTATION = "quotation", "Quotation"
    ORDER = "order", "Order"
    DELIVERY = "delivery", "Delivery challan"
    RECEIPT = "receipt", "Goods receipt"
    INVOICE = "invoice", "Invoice / Bill"
    RETURN = "return", "Return"


# Current state vs. allowed next states
TRANSITIONS = {
    DocumentKind.QUOTATION: {
        S.DRAFT: {S.SENT, S.APPROVED, S.COMPLETED, S.CANCELLED},
        S.SENT: {S.APPROVED, S.COMPLETED, S.CANCELLED},
        S.APPROVED: {S.COMPLETED, S.CANCELLED},
        S.COMPLETED: set(),
        S.CANCELLED: set(),
    },
    # RECEIVED means "some or all lines fulfilled"; it falls back to
    # APPROVED (or DRAFT for an order never approved) when the last
    # fulfilment is reversed
    DocumentKind.ORDER: {
        S.DRAFT: {S.SENT, S.APPROVED, S.RECEIVED, S.CANCELLED},
        S.SENT: {S.APPROVED, S.RECEIVED, S.CANCELLED},
        S.APPROVED: {S.RECEIVED, S.COMPLETED, S.CANCELLED},
        S.RECEIVED: {S.DRAFT, S.APPROVED, S.COMPLETED, S.CANCELLED},
        S.COMPLETED: set(),
        S.CANCELLED: set(),
    },
    DocumentKind.DELIVERY: {
        S.APPROVED: {S.COMPLETED, S.CANCELLED},
        S.COMPLETED: set(),
        S.CANCELLED: set(),
    },
    DocumentKind.RECEIPT: {
        S.DRAFT: {S.RECEIVED, S.CANCELLED},
        S.RECEIVED: {S.APPROVED, S.CANCELLED},
        S.APPROVED: {S.COMPLETED, S.CANCELLED},
        S.COMPLETED: set(),
        S.CANCELLED: set(),
    },
    DocumentKind.INVOICE: {
        S.DRAFT: {S.APPROVED, S.CANCELLED},
        S.APPROVED: {S.COMPLETED, S.CANCELLED},
        S.COMPLETED: set(),
        S.CANCELLED: set(),
    },
    DocumentKind.RETURN: {
        S.DRAFT: {S.APPROVED, S.CANCELLED},
        S.APPROVED: {S.COMPLETED},
        S.COMPLETED: set(),
        S.CANCELLED: set(),
    },
}


def allowed_targets(kind, current):
    return TRANSITIONS[kind].get(current, set())


def check_transition(kind, current, target):
    """Raise InvalidStatusTransition unless current -> target is allowed."""
    if target not in DocumentStatus.values:
        raise InvalidStatusTransition(
            f"Unknown status {target!r}", current=current, target=target
        )
    if target not in allowed_targets(kind, current):
        raise InvalidStatusTransition(
            f"Cannot go from {current} to {target}",
            current=current,
            target=target,
        )


def is_terminal(status):
    return status in TERMINAL_STATUSES


def ensure_editable(document, action="modify"):
    """Completed and cancelled documents are frozen."""
    if is_terminal(document.status):
        raise InvalidStatusTransition(
            f"Cannot {action} {document} in status {document.status}",
            current=document.status,
        )


def ensure_no_dependents(document):
    """Block deletion while successor documents still point at ``document``."""
    dependents = document.dependent_documents()
    if dependents:
        names = ", ".join(sorted(dependents))
        raise InvalidStatusTransition(
            f"Cannot delete {document} while it has {names}",
            current=document.status,
        )


def check_requested_status(kind, current, target):
    """Like ``check_transition``, for a status asked for in an update payload."""
    check_transition(kind, current, target)
    if target not in REQUESTABLE_STATUSES:
        raise InvalidStatusTransition(
            f"Status {target} cannot be set directly",
            current=current,
            target=target,
        )
