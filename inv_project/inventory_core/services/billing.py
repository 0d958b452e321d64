import logging

from django.db import transaction

from ..conf import get_setting
from ..exceptions import InvalidStatusTransition, ValidationError
from ..lifecycle import DocumentStatus, ensure_no_dependents
from ..models import Bill, GoodsReceipt, PurchaseOrder, Vendor
from . import guard
from .audit_helper import log_action
from .common import (adjust_balance, copy_lines, create_lines, due_date_for,
                     header_values, locked_for_company, payload_items, reload,
                     save_totals)
from .numbering import next_document_number

logger = logging.getLogger(__name__)


def _payment_days(vendor):
    return vendor.payment_terms_days or get_setting("DEFAULT_CREDIT_DAYS")


def _linked(model, company, pk, vendor, label):
    if not pk:
        return None
    document = model.objects.get_for_company(company, pk)
    if document.vendor_id != vendor.pk:
        raise ValidationError(f"{label} {document.number} belongs to another vendor")
    return document


def convert_order_to_bill(company, user, order_id, data=None, allow_partial=False):
    """Bill a purchase order: lines copied as they are, bill left DRAFT.

    The order must be APPROVED or RECEIVED and fully received unless
    ``allow_partial``; it becomes COMPLETED.
    """
    data = data or {}
    allow_partial = allow_partial or bool(data.get("allow_partial"))
    with transaction.atomic():
        order = PurchaseOrder.objects.select_for_update().get_for_company(company, order_id)
        if order.status not in (DocumentStatus.APPROVED, DocumentStatus.RECEIVED):
            raise InvalidStatusTransition(
                "Order must be approved before creating bill",
                current=order.status,
                target=DocumentStatus.COMPLETED,
            )
        if not allow_partial and not order.is_fully_received():
            raise ValidationError("All items must be received before creating bill")

        vendor = order.vendor
        receipt = _linked(GoodsReceipt, company, data.get("goods_receipt_id"), vendor, "Goods receipt")
        bill_date = data.get("date") or order.date
        bill = Bill.objects.create(
            company=company,
            vendor=vendor,
            purchase_order=order,
            goods_receipt=receipt,
            number=next_document_number(company, Bill.number_type),
            date=bill_date,
            due_date=data.get("due_date") or due_date_for(bill_date, _payment_days(vendor)),
            vendor_bill_no=data.get("vendor_bill_no") or "",
            status=DocumentStatus.DRAFT,
            notes=data.get("notes") or order.notes,
            terms=data.get("terms") or order.terms,
            subtotal=order.subtotal,
            tax_amount=order.tax_amount,
            discount_amount=order.discount_amount,
            total=order.total,
            balance_amount=order.total,
            created_by=user,
        )
        copy_lines(order, bill)
        order.transition_to(DocumentStatus.COMPLETED)

        log_action(action="convert", instance=order, user=user, changes={"bill": bill.number})
        log_action(
            action="create",
            instance=bill,
            user=user,
            changes={"number": bill.number, "from": order.number, "total": str(bill.total)},
        )
    logger.info("Purchase order %s converted to bill %s by %s", order.number, bill.number, user)
    return reload(bill)


def create_bill(company, user, data):
    items = payload_items(data)
    with transaction.atomic():
        guard.check_items_present(items)
        vendor = guard.check_party(company, Vendor, data.get("vendor_id"))
        order = _linked(PurchaseOrder, company, data.get("purchase_order_id"), vendor, "Purchase order")
        receipt = _linked(GoodsReceipt, company, data.get("goods_receipt_id"), vendor, "Goods receipt")
        guard.check_products(company, items, guard.PURCHASE)

        bill = Bill(
            company=company,
            vendor=vendor,
            purchase_order=order,
            goods_receipt=receipt,
            number=next_document_number(company, Bill.number_type),
            status=DocumentStatus.DRAFT,
            created_by=user,
            **header_values(data, "vendor_bill_no"),
        )
        bill.due_date = data.get("due_date") or due_date_for(bill.date, _payment_days(vendor))
        bill.save()
        create_lines(bill, items)
        save_totals(bill)
        bill.balance_amount = bill.total
        bill.save(update_fields=["balance_amount"])

        log_action(
            action="create",
            instance=bill,
            user=user,
            changes={"number": bill.number, "total": str(bill.total)},
        )
    logger.info("Bill created: %s by %s", bill.number, user)
    return reload(bill)


def approve_bill(company, user, bill_id):
    """DRAFT -> APPROVED; the vendor's payable balance grows by the total."""
    with transaction.atomic():
        bill = locked_for_company(Bill, company, bill_id, "approve")
        bill.transition_to(DocumentStatus.APPROVED)
        vendor = Vendor.objects.select_for_update().get(pk=bill.vendor_id)
        adjust_balance(vendor, bill.total)
        log_action(
            action="approve",
            instance=bill,
            user=user,
            changes={"vendor_balance": str(vendor.current_balance)},
        )
    logger.info("Bill approved: %s by %s", bill.number, user)
    return bill


def delete_bill(company, user, bill_id):
    """Soft delete of a draft bill. Approved or paid bills stay."""
    with transaction.atomic():
        bill = locked_for_company(Bill, company, bill_id, "delete")
        ensure_no_dependents(bill)
        if bill.status == DocumentStatus.APPROVED:
            raise InvalidStatusTransition(
                "Cannot delete approved bill",
                current=bill.status,
                target=DocumentStatus.CANCELLED,
            )
        bill.transition_to(DocumentStatus.CANCELLED)
        log_action(action="delete", instance=bill, user=user)
    logger.info("Bill cancelled: %s by %s", bill.number, user)
    return bill
