import logging
from decimal import Decimal

from django.db import transaction

from ..exceptions import ValidationError
from ..lifecycle import DocumentStatus
from ..models import Bill, Customer, Invoice, Vendor
from .audit_helper import log_action
from .common import adjust_balance
from .totals import money

logger = logging.getLogger(__name__)


# ----------------------------
# Payment-related workflows
# ----------------------------
def _apply_payment(document, party_model, party_field, amount, user):
    amount = money(amount)
    if amount <= Decimal("0.00"):
        raise ValidationError("Payment amount must be positive")
    if document.status != DocumentStatus.APPROVED:
        raise ValidationError(f"Cannot pay a {document.status.lower()} document")
    if amount > document.balance_amount:
        raise ValidationError("Payment amount exceeds balance")

    # Lock the party row until the transaction finishes
    party = party_model.objects.select_for_update().get(pk=getattr(document, party_field))

    document.paid_amount += amount
    document.balance_amount -= amount
    document.save(update_fields=["paid_amount", "balance_amount", "updated_at"])
    adjust_balance(party, -amount)

    if document.balance_amount <= Decimal("0.00"):
        document.transition_to(DocumentStatus.COMPLETED)

    log_action(
        action="payment",
        instance=document,
        user=user,
        changes={"amount": str(amount), "balance": str(document.balance_amount)},
    )
    return document


def record_invoice_payment(company, user, invoice_id, amount):
    """Customer pays (part of) an approved invoice."""
    with transaction.atomic():
        invoice = Invoice.objects.select_for_update().get_for_company(company, invoice_id)
        _apply_payment(invoice, Customer, "customer_id", amount, user)
    logger.info("Payment of %s recorded on invoice %s by %s", amount, invoice.number, user)
    return invoice


def record_bill_payment(company, user, bill_id, amount):
    """Pay (part of) an approved vendor bill."""
    with transaction.atomic():
        bill = Bill.objects.select_for_update().get_for_company(company, bill_id)
        _apply_payment(bill, Vendor, "vendor_id", amount, user)
    logger.info("Payment of %s recorded on bill %s by %s", amount, bill.number, user)
    return bill
