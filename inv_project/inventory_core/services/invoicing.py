import logging

from django.db import transaction

from ..conf import get_setting
from ..exceptions import InvalidStatusTransition, ValidationError
from ..lifecycle import DocumentStatus, ensure_no_dependents
from ..models import Customer, DeliveryChallan, Invoice, SalesOrder
from . import guard
from .audit_helper import log_action
from .common import (adjust_balance, copy_lines, create_lines, due_date_for,
                     header_values, locked_for_company, payload_items, reload,
                     save_totals)
from .numbering import next_document_number
from .totals import calculate_totals

logger = logging.getLogger(__name__)


def _credit_days(customer):
    return customer.credit_days or get_setting("DEFAULT_CREDIT_DAYS")


def _linked(model, company, pk, customer, label):
    if not pk:
        return None
    document = model.objects.get_for_company(company, pk)
    if document.customer_id != customer.pk:
        raise ValidationError(f"{label} {document.number} belongs to another customer")
    return document


def convert_order_to_invoice(company, user, order_id, data=None, allow_partial=False):
    """Invoice a sales order.

    The order must be APPROVED or RECEIVED and, unless ``allow_partial``,
    fully delivered. Totals and lines are copied from the order, the invoice
    is APPROVED straight away, the customer's balance grows by its total
    and the order becomes COMPLETED.
    """
    data = data or {}
    allow_partial = allow_partial or bool(data.get("allow_partial"))
    with transaction.atomic():
        order = SalesOrder.objects.select_for_update().get_for_company(company, order_id)
        if order.status not in (DocumentStatus.APPROVED, DocumentStatus.RECEIVED):
            raise InvalidStatusTransition(
                "Order must be approved before creating invoice",
                current=order.status,
                target=DocumentStatus.COMPLETED,
            )
        if not allow_partial and not order.is_fully_delivered():
            raise ValidationError("All items must be delivered before creating invoice")

        customer = Customer.objects.select_for_update().get(pk=order.customer_id)
        challan = _linked(
            DeliveryChallan, company, data.get("delivery_challan_id"), customer, "Delivery challan"
        )

        invoice_date = data.get("date") or order.date
        invoice = Invoice.objects.create(
            company=company,
            customer=customer,
            sales_order=order,
            delivery_challan=challan,
            number=next_document_number(company, Invoice.number_type),
            date=invoice_date,
            due_date=data.get("due_date") or due_date_for(invoice_date, _credit_days(customer)),
            status=DocumentStatus.APPROVED,
            shipping_address=data.get("shipping_address") or order.shipping_address,
            notes=data.get("notes") or order.notes,
            terms=data.get("terms") or order.terms,
            subtotal=order.subtotal,
            tax_amount=order.tax_amount,
            discount_amount=order.discount_amount,
            total=order.total,
            paid_amount=0,
            balance_amount=order.total,
            created_by=user,
        )
        copy_lines(order, invoice)

        adjust_balance(customer, invoice.total)
        order.transition_to(DocumentStatus.COMPLETED)

        log_action(
            action="convert",
            instance=order,
            user=user,
            changes={"invoice": invoice.number},
        )
        log_action(
            action="create",
            instance=invoice,
            user=user,
            changes={"number": invoice.number, "from": order.number, "total": str(invoice.total)},
        )
    logger.info(
        "Sales order %s converted to invoice %s by %s", order.number, invoice.number, user
    )
    return reload(invoice)


def create_invoice(company, user, data):
    """Direct invoice, created DRAFT. The balance moves on approval."""
    items = payload_items(data)
    with transaction.atomic():
        guard.check_items_present(items)
        customer = guard.check_party(company, Customer, data.get("customer_id"))
        order = _linked(SalesOrder, company, data.get("sales_order_id"), customer, "Sales order")
        challan = _linked(
            DeliveryChallan, company, data.get("delivery_challan_id"), customer, "Delivery challan"
        )
        guard.check_products(company, items, guard.SALE)
        guard.check_credit_limit(customer, calculate_totals(items).total)

        invoice_date = data.get("date")
        invoice = Invoice(
            company=company,
            customer=customer,
            sales_order=order,
            delivery_challan=challan,
            number=next_document_number(company, Invoice.number_type),
            status=DocumentStatus.DRAFT,
            shipping_address=data.get("shipping_address") or customer.address,
            created_by=user,
            **header_values(data),
        )
        invoice.due_date = data.get("due_date") or due_date_for(
            invoice_date or invoice.date, _credit_days(customer)
        )
        invoice.save()
        create_lines(invoice, items)
        save_totals(invoice)
        invoice.balance_amount = invoice.total
        invoice.save(update_fields=["balance_amount"])

        log_action(
            action="create",
            instance=invoice,
            user=user,
            changes={"number": invoice.number, "total": str(invoice.total)},
        )
    logger.info("Invoice created: %s by %s", invoice.number, user)
    return reload(invoice)


def approve_invoice(company, user, invoice_id):
    with transaction.atomic():
        invoice = locked_for_company(Invoice, company, invoice_id, "approve")
        invoice.transition_to(DocumentStatus.APPROVED)
        customer = Customer.objects.select_for_update().get(pk=invoice.customer_id)
        adjust_balance(customer, invoice.total)
        log_action(
            action="approve",
            instance=invoice,
            user=user,
            changes={"customer_balance": str(customer.current_balance)},
        )
    logger.info("Invoice approved: %s by %s", invoice.number, user)
    return invoice


def delete_invoice(company, user, invoice_id):
    """Soft delete. An approved invoice gives its total back to the customer."""
    with transaction.atomic():
        invoice = locked_for_company(Invoice, company, invoice_id, "delete")
        ensure_no_dependents(invoice)
        was_approved = invoice.status == DocumentStatus.APPROVED
        invoice.transition_to(DocumentStatus.CANCELLED)
        if was_approved:
            customer = Customer.objects.select_for_update().get(pk=invoice.customer_id)
            adjust_balance(customer, -invoice.balance_amount)
        log_action(
            action="delete",
            instance=invoice,
            user=user,
            changes={"reversed_balance": str(invoice.balance_amount) if was_approved else "0"},
        )
    logger.info("Invoice cancelled: %s by %s", invoice.number, user)
    return invoice
