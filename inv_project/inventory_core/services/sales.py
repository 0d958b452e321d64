import logging

from django.db import transaction

from ..exceptions import InvalidStatusTransition
from ..lifecycle import DocumentStatus, ensure_no_dependents
from ..models import Customer, SalesOrder, SalesQuotation
from . import guard
from .audit_helper import log_action
from .common import (apply_requested_status, approve_order, copy_lines,
                     create_lines, header_values, lock, locked_for_company,
                     payload_items, reload, replace_lines, save_totals)
from .numbering import next_document_number
from .totals import calculate_totals

logger = logging.getLogger(__name__)


# ----------------------------
# Sales quotations
# ----------------------------
def create_sales_quotation(company, user, data):
    items = payload_items(data)
    with transaction.atomic():
        guard.check_items_present(items)
        customer = guard.check_party(company, Customer, data.get("customer_id"))
        guard.check_products(company, items, guard.SALE)

        quotation = SalesQuotation.objects.create(
            company=company,
            customer=customer,
            number=next_document_number(company, SalesQuotation.number_type),
            status=DocumentStatus.DRAFT,
            shipping_address=data.get("shipping_address") or customer.address,
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
    logger.info("Sales quotation created: %s by %s", quotation.number, user)
    return reload(quotation)


def update_sales_quotation(company, user, quotation_id, data):
    with transaction.atomic():
        quotation = locked_for_company(SalesQuotation, company, quotation_id, "update")

        if data.get("customer_id") and int(data["customer_id"]) != quotation.customer_id:
            quotation.customer = guard.check_party(company, Customer, data["customer_id"])
        for name, value in header_values(
            data, "valid_till", "reference_no", "shipping_address"
        ).items():
            setattr(quotation, name, value)
        quotation.save()

        if "items" in data:
            items = payload_items(data)
            guard.check_items_present(items)
            guard.check_products(company, items, guard.SALE)
            replace_lines(quotation, items)
            save_totals(quotation)

        apply_requested_status(quotation, data)

        log_action(action="update", instance=quotation, user=user, changes={"fields": sorted(data)})
    logger.info("Sales quotation updated: %s by %s", quotation.number, user)
    return reload(quotation)


def _move_quotation(company, user, quotation_id, target, action):
    with transaction.atomic():
        quotation = locked_for_company(SalesQuotation, company, quotation_id, action)
        previous = quotation.status
        quotation.transition_to(target)
        log_action(
            action=action,
            instance=quotation,
            user=user,
            changes={"status": [previous, target]},
        )
    logger.info("Sales quotation %s %s by %s", quotation.number, target.lower(), user)
    return quotation


def send_sales_quotation(company, user, quotation_id):
    return _move_quotation(company, user, quotation_id, DocumentStatus.SENT, "send")


def approve_sales_quotation(company, user, quotation_id):
    return _move_quotation(company, user, quotation_id, DocumentStatus.APPROVED, "approve")


def delete_sales_quotation(company, user, quotation_id):
    """Soft delete: drafts without orders become CANCELLED."""
    with transaction.atomic():
        quotation = locked_for_company(SalesQuotation, company, quotation_id, "delete")
        ensure_no_dependents(quotation)
        if quotation.status != DocumentStatus.DRAFT:
            raise InvalidStatusTransition(
                "Cannot delete sent or approved quotation",
                current=quotation.status,
                target=DocumentStatus.CANCELLED,
            )
        quotation.transition_to(DocumentStatus.CANCELLED)
        log_action(action="delete", instance=quotation, user=user)
    logger.info("Sales quotation deleted: %s by %s", quotation.number, user)
    return quotation


def convert_quotation_to_order(company, user, quotation_id, data=None):
    """Copy a quotation into a new DRAFT sales order.

    Lines are copied as they are (prices and products are not looked up
    again) and the quotation becomes COMPLETED in the same transaction.
    """
    data = data or {}
    with transaction.atomic():
        quotation = SalesQuotation.objects.select_for_update().get_for_company(
            company, quotation_id
        )
        if quotation.status in (DocumentStatus.COMPLETED, DocumentStatus.CANCELLED):
            raise InvalidStatusTransition(
                "Quotation already converted or cancelled",
                current=quotation.status,
                target=DocumentStatus.COMPLETED,
            )

        order = SalesOrder.objects.create(
            company=company,
            customer=quotation.customer,
            quotation=quotation,
            number=next_document_number(company, SalesOrder.number_type),
            status=DocumentStatus.DRAFT,
            date=data.get("date") or quotation.date,
            delivery_date=data.get("delivery_date"),
            shipping_address=data.get("shipping_address") or quotation.shipping_address,
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

        log_action(
            action="convert",
            instance=quotation,
            user=user,
            changes={"sales_order": order.number},
        )
        log_action(
            action="create",
            instance=order,
            user=user,
            changes={"number": order.number, "from": quotation.number},
        )
    logger.info(
        "Sales quotation %s converted to order %s by %s",
        quotation.number,
        order.number,
        user,
    )
    return reload(order)


# ----------------------------
# Sales orders
# ----------------------------
def create_sales_order(company, user, data):
    items = payload_items(data)
    with transaction.atomic():
        guard.check_items_present(items)
        customer = guard.check_party(company, Customer, data.get("customer_id"))

        quotation = None
        if data.get("quotation_id"):
            quotation = SalesQuotation.objects.get_for_company(
                company, data["quotation_id"]
            )

        products = guard.check_products(company, items, guard.SALE)
        guard.check_order_stock(items, products)
        totals = calculate_totals(items)
        guard.check_credit_limit(customer, totals.total)

        order = SalesOrder.objects.create(
            company=company,
            customer=customer,
            quotation=quotation,
            number=next_document_number(company, SalesOrder.number_type),
            status=DocumentStatus.DRAFT,
            shipping_address=data.get("shipping_address") or customer.address,
            created_by=user,
            **header_values(data, "delivery_date"),
        )
        create_lines(order, items)
        save_totals(order)

        log_action(
            action="create",
            instance=order,
            user=user,
            changes={"number": order.number, "total": str(order.total)},
        )
    logger.info("Sales order created: %s by %s", order.number, user)
    return reload(order)


def update_sales_order(company, user, order_id, data):
    with transaction.atomic():
        order = locked_for_company(SalesOrder, company, order_id, "update")

        if data.get("customer_id") and int(data["customer_id"]) != order.customer_id:
            order.customer = guard.check_party(company, Customer, data["customer_id"])
        for name, value in header_values(
            data, "delivery_date", "shipping_address"
        ).items():
            setattr(order, name, value)
        order.save()

        if "items" in data:
            if order.any_delivered():
                raise InvalidStatusTransition(
                    "Cannot change the items of a partly delivered order",
                    current=order.status,
                )
            items = payload_items(data)
            guard.check_items_present(items)
            products = guard.check_products(company, items, guard.SALE)
            guard.check_order_stock(items, products)
            guard.check_credit_limit(order.customer, calculate_totals(items).total)
            replace_lines(order, items)
            save_totals(order)

        apply_requested_status(order, data)

        log_action(action="update", instance=order, user=user, changes={"fields": sorted(data)})
    logger.info("Sales order updated: %s by %s", order.number, user)
    return reload(order)


def approve_sales_order(company, user, order_id):
    with transaction.atomic():
        order = locked_for_company(SalesOrder, company, order_id, "approve")
        previous = order.status
        approve_order(order)
        log_action(
            action="approve",
            instance=order,
            user=user,
            changes={"status": [previous, order.status]},
        )
    logger.info("Sales order approved: %s by %s", order.number, user)
    return order


def delete_sales_order(company, user, order_id):
    """Soft delete. Orders with challans or invoices must be unwound first."""
    with transaction.atomic():
        order = locked_for_company(SalesOrder, company, order_id, "delete")
        ensure_no_dependents(order)
        if order.status == DocumentStatus.APPROVED:
            raise InvalidStatusTransition(
                "Cannot delete approved order",
                current=order.status,
                target=DocumentStatus.CANCELLED,
            )
        order.transition_to(DocumentStatus.CANCELLED)
        log_action(action="delete", instance=order, user=user)
    logger.info("Sales order deleted: %s by %s", order.number, user)
    return order


def recompute_order_status(order):
    """Derive the order status from the delivered quantities of its lines.

    Fully delivered -> RECEIVED. Partly delivered while APPROVED -> RECEIVED.
    Nothing delivered any more while RECEIVED -> back to APPROVED, or to
    DRAFT when the order was never approved.
    """
    order = lock(order)
    if order.status in (DocumentStatus.COMPLETED, DocumentStatus.CANCELLED):
        return order

    target = order.status
    if order.is_fully_delivered():
        target = DocumentStatus.RECEIVED
    elif order.any_delivered():
        if order.status == DocumentStatus.APPROVED:
            target = DocumentStatus.RECEIVED
    elif order.status == DocumentStatus.RECEIVED:
        target = DocumentStatus.APPROVED if order.approved_at else DocumentStatus.DRAFT

    if target != order.status:
        order.transition_to(target)
    return order
