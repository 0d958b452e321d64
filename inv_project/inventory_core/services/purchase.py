import logging

from django.db import transaction

from ..exceptions import InvalidStatusTransition
from ..lifecycle import DocumentStatus, ensure_no_dependents
from ..models import PurchaseOrder, PurchaseQuotation, Vendor
from . import guard
from .audit_helper import log_action
from .common import (apply_requested_status, approve_order, copy_lines,
                     create_lines, header_values, lock, locked_for_company,
                     payload_items, reload, replace_lines, save_totals)
from .numbering import next_document_number

logger = logging.getLogger(__name__)


def _update_document(company, user, document, data, *header_names):
    if data.get("vendor_id") and int(data["vendor_id"]) != document.vendor_id:
        document.vendor = guard.check_party(company, Vendor, data["vendor_id"])
    for name, value in header_values(data, *header_names).items():
        setattr(document, name, value)
    document.save()

    if "items" in data:
        items = payload_items(data)
        guard.check_items_present(items)
        guard.check_products(company, items, guard.PURCHASE)
        replace_lines(document, items)
        save_totals(document)

    apply_requested_status(document, data)

    log_action(action="update", instance=document, user=user, changes={"fields": sorted(data)})
    return document


# ----------------------------
# Purchase quotations
# ----------------------------
def create_purchase_quotation(company, user, data):
    items = payload_items(data)
    with transaction.atomic():
        guard.check_items_present(items)
        vendor = guard.check_party(company, Vendor, data.get("vendor_id"))
        guard.check_products(company, items, guard.PURCHASE)

        quotation = PurchaseQuotation.objects.create(
            company=company,
            vendor=vendor,
            number=next_document_number(company, PurchaseQuotation.number_type),
            status=DocumentStatus.DRAFT,
            created_by=user,
            **header_values(data, "valid_till", "reference_no"),
        )
        create_lines(quotation, items)
        save_totals(quotation)
        log_action(
            action="create",
            instance=quotation,
            user=user,
            changes={"number": quotation.number, "total": str(quotation.total)},
        )
    logger.info("Purchase quotation created: %s by %s", quotation.number, user)
    return reload(quotation)


def update_purchase_quotation(company, user, quotation_id, data):
    with transaction.atomic():
        quotation = locked_for_company(PurchaseQuotation, company, quotation_id, "update")
        _update_document(company, user, quotation, data, "valid_till", "reference_no")
    logger.info("Purchase quotation updated: %s by %s", quotation.number, user)
    return reload(quotation)


def cancel_purchase_quotation(company, user, quotation_id):
    with transaction.atomic():
        quotation = locked_for_company(PurchaseQuotation, company, quotation_id, "delete")
        ensure_no_dependents(quotation)
        quotation.transition_to(DocumentStatus.CANCELLED)
        log_action(action="delete", instance=quotation, user=user)
    logger.info("Purchase quotation cancelled: %s by %s", quotation.number, user)
    return quotation


def convert_purchase_quotation_to_order(company, user, quotation_id, data=None):
    """Snapshot a vendor quotation into a DRAFT purchase order."""
    data = data or {}
    with transaction.atomic():
        quotation = PurchaseQuotation.objects.select_for_update().get_for_company(
            company, quotation_id
        )
        if quotation.status in (DocumentStatus.COMPLETED, DocumentStatus.CANCELLED):
            raise InvalidStatusTransition(
                "Quotation already converted or cancelled",
                current=quotation.status,
                target=DocumentStatus.COMPLETED,
            )

        order = PurchaseOrder.objects.create(
            company=company,
            vendor=quotation.vendor,
            quotation=quotation,
            number=next_document_number(company, PurchaseOrder.number_type),
            status=DocumentStatus.DRAFT,
            date=data.get("date") or quotation.date,
            expected_date=data.get("expected_date"),
            notes=data.get("notes") or quotation.notes,
            terms=data.get("terms") or quotation.terms,
            subtotal=quotation.subtotal,
            tax_amount=quotation.tax_amount,
            discount_amount=quotation.discount_amount,
            total=quotation.total,
            created_by=user,
        )
        copy_lines(quotation, order)
        quotation.transition_to(DocumentStatus.COMPLETED)

        log_action(action="convert", instance=quotation, user=user, changes={"purchase_order": order.number})
        log_action(
            action="create",
            instance=order,
            user=user,
            changes={"number": order.number, "from": quotation.number},
        )
    logger.info(
        "Purchase quotation %s converted to order %s by %s",
        quotation.number,
        order.number,
        user,
    )
    return reload(order)


# ----------------------------
# Purchase orders
# ----------------------------
def create_purchase_order(company, user, data):
    items = payload_items(data)
    with transaction.atomic():
        guard.check_items_present(items)
        vendor = guard.check_party(company, Vendor, data.get("vendor_id"))
        quotation = None
        if data.get("quotation_id"):
            quotation = PurchaseQuotation.objects.get_for_company(company, data["quotation_id"])
        guard.check_products(company, items, guard.PURCHASE)

        order = PurchaseOrder.objects.create(
            company=company,
            vendor=vendor,
            quotation=quotation,
            number=next_document_number(company, PurchaseOrder.number_type),
            status=DocumentStatus.DRAFT,
            created_by=user,
            **header_values(data, "expected_date", "delivery_address"),
        )
        create_lines(order, items)
        save_totals(order)
        log_action(
            action="create",
            instance=order,
            user=user,
            changes={"number": order.number, "total": str(order.total)},
        )
    logger.info("Purchase order created: %s by %s", order.number, user)
    return reload(order)


def update_purchase_order(company, user, order_id, data):
    """Only orders not yet approved can be edited."""
    with transaction.atomic():
        order = locked_for_company(PurchaseOrder, company, order_id, "update")
        if order.status in (DocumentStatus.APPROVED, DocumentStatus.RECEIVED):
            raise InvalidStatusTransition(
                "Cannot update approved or received order", current=order.status
            )
        _update_document(company, user, order, data, "expected_date", "delivery_address")
    logger.info("Purchase order updated: %s by %s", order.number, user)
    return reload(order)


def approve_purchase_order(company, user, order_id):
    with transaction.atomic():
        order = locked_for_company(PurchaseOrder, company, order_id, "approve")
        approve_order(order)
        log_action(action="approve", instance=order, user=user)
    logger.info("Purchase order approved: %s by %s", order.number, user)
    return order


def cancel_purchase_order(company, user, order_id):
    with transaction.atomic():
        order = locked_for_company(PurchaseOrder, company, order_id, "delete")
        ensure_no_dependents(order)
        if order.status == DocumentStatus.APPROVED:
            raise InvalidStatusTransition(
                "Cannot delete approved order",
                current=order.status,
                target=DocumentStatus.CANCELLED,
            )
        order.transition_to(DocumentStatus.CANCELLED)
        log_action(action="delete", instance=order, user=user)
    logger.info("Purchase order cancelled: %s by %s", order.number, user)
    return order


def close_purchase_order(company, user, order_id):
    """Mark an approved or (partly) received order as done."""
    with transaction.atomic():
        order = locked_for_company(PurchaseOrder, company, order_id, "close")
        if order.status not in (DocumentStatus.APPROVED, DocumentStatus.RECEIVED):
            raise InvalidStatusTransition(
                "Order cannot be closed in current status",
                current=order.status,
                target=DocumentStatus.COMPLETED,
            )
        order.transition_to(DocumentStatus.COMPLETED)
        log_action(action="close", instance=order, user=user)
    logger.info("Purchase order closed: %s by %s", order.number, user)
    return order


def recompute_purchase_order_status(order):
    """Same rules as sales orders, driven by received quantities."""
    order = lock(order)
    if order.status in (DocumentStatus.COMPLETED, DocumentStatus.CANCELLED):
        return order

    target = order.status
    if order.is_fully_received():
        target = DocumentStatus.RECEIVED
    elif order.any_received():
        if order.status == DocumentStatus.APPROVED:
            target = DocumentStatus.RECEIVED
    elif order.status == DocumentStatus.RECEIVED:
        target = DocumentStatus.APPROVED if order.approved_at else DocumentStatus.DRAFT

    if target != order.status:
        order.transition_to(target)
    return order
