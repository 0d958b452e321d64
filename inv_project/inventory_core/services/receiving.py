import logging
from decimal import Decimal

from django.db import transaction

from ..exceptions import ValidationError
from ..lifecycle import DocumentStatus, ensure_no_dependents
from ..models import GoodsReceipt, MovementType, PurchaseOrder, PurchaseOrderLine, Vendor
from . import guard, ledger
from .audit_helper import log_action
from .common import (header_values, locked_for_company, payload_items,
                     reference_kwargs, reload, save_totals)
from .numbering import next_document_number
from .purchase import recompute_purchase_order_status
from .totals import to_decimal

logger = logging.getLogger(__name__)


def _accepted(item):
    # "quantity" is the accepted quantity; "accepted_qty" is accepted as an alias
    accepted = item.get("accepted_qty")
    return to_decimal(item.get("quantity") if accepted is None else accepted)


def _receipt_items(items):
    prepared = []
    for item in items:
        item = dict(item)
        item["quantity"] = _accepted(item)
        rejected = to_decimal(item.get("rejected_qty"))
        if rejected < 0:
            raise ValidationError("Rejected quantity must be >= 0")
        item["rejected_qty"] = rejected
        prepared.append(item)
    return prepared


def _match_order_lines(order, items):
    order_lines = {line.pk: line for line in order.lines.select_for_update()}
    taking = {pk: Decimal("0") for pk in order_lines}

    matched = []
    for item in items:
        product_id = int(item.get("product_id") or item.get("product"))
        line = None
        if item.get("order_line_id"):
            line = order_lines.get(int(item["order_line_id"]))
        else:
            for candidate in order_lines.values():
                if candidate.product_id == product_id and candidate.pending_qty - taking[candidate.pk] > 0:
                    line = candidate
                    break
        if line is None or line.product_id != product_id:
            raise ValidationError(f"Product {product_id} not in purchase order {order.number}")

        if taking[line.pk] + item["quantity"] > line.pending_qty:
            raise ValidationError(f"Cannot receive more than ordered for product {line.product}")
        taking[line.pk] += item["quantity"]
        matched.append((item, line))
    return matched


def create_goods_receipt(company, user, data):
    """Receive goods into one warehouse.

    Accepted quantities post positive PURCHASE movements and advance the
    purchase order lines; rejected quantities are recorded only.
    """
    items = _receipt_items(payload_items(data))
    with transaction.atomic():
        guard.check_items_present(items)
        vendor = guard.check_party(company, Vendor, data.get("vendor_id"))
        products = guard.check_products(company, items, guard.PURCHASE)
        warehouse = ledger.resolve_warehouse(company, data.get("warehouse_id"))

        order = None
        matched = [(item, None) for item in items]
        if data.get("purchase_order_id"):
            order = PurchaseOrder.objects.select_for_update().get_for_company(
                company, data["purchase_order_id"]
            )
            if order.vendor_id != vendor.pk:
                raise ValidationError("Purchase order belongs to another vendor")
            if order.status in (DocumentStatus.COMPLETED, DocumentStatus.CANCELLED):
                raise ValidationError(f"Cannot receive against a {order.status.lower()} order")
            matched = _match_order_lines(order, items)

        receipt = GoodsReceipt.objects.create(
            company=company,
            vendor=vendor,
            purchase_order=order,
            warehouse=warehouse,
            number=next_document_number(company, GoodsReceipt.number_type),
            status=DocumentStatus.RECEIVED,
            created_by=user,
            **header_values(data, "vendor_invoice_no"),
        )

        for item, order_line in matched:
            product = products[int(item.get("product_id") or item.get("product"))]
            line = receipt.lines.model(
                document=receipt,
                product=product,
                description=item.get("description") or "",
                quantity=item["quantity"],
                rejected_qty=item["rejected_qty"],
                ordered_qty=order_line.quantity if order_line else item["quantity"] + item["rejected_qty"],
                unit_price=to_decimal(item.get("unit_price")),
                tax_rate=to_decimal(item.get("tax_rate")),
                discount_amount=to_decimal(item.get("discount_amount")),
                order_line=order_line,
            )
            line.save()

            if product.track_inventory:
                ledger.apply_movement(
                    company=company,
                    product=product,
                    warehouse=warehouse,
                    quantity=line.quantity,
                    movement_type=MovementType.PURCHASE,
                    unit_price=line.unit_price,
                    notes=f"Received via {receipt.number}",
                    user=user,
                    **reference_kwargs(receipt),
                )
            if order_line is not None:
                order_line.received_qty += line.quantity
                order_line.save(update_fields=["received_qty"])

        save_totals(receipt)
        if order is not None:
            recompute_purchase_order_status(order)

        log_action(
            action="create",
            instance=receipt,
            user=user,
            changes={
                "number": receipt.number,
                "purchase_order": order.number if order else None,
                "warehouse": warehouse.code,
            },
        )
    logger.info("Goods receipt created: %s by %s", receipt.number, user)
    return reload(receipt)


def approve_goods_receipt(company, user, receipt_id):
    """Quality check done: RECEIVED -> APPROVED. Stock is not touched."""
    with transaction.atomic():
        receipt = locked_for_company(GoodsReceipt, company, receipt_id, "approve")
        receipt.transition_to(DocumentStatus.APPROVED)
        log_action(action="approve", instance=receipt, user=user)
    logger.info("Goods receipt approved: %s by %s", receipt.number, user)
    return receipt


def delete_goods_receipt(company, user, receipt_id):
    """Cancel a receipt and take its stock back out.

    Fails with InsufficientStock when the received goods were already
    consumed by later movements.
    """
    with transaction.atomic():
        receipt = locked_for_company(GoodsReceipt, company, receipt_id, "delete")
        ensure_no_dependents(receipt)

        reversals = ledger.reverse_movements(
            company=company,
            reference_type=receipt.reference_type,
            reference_id=receipt.pk,
            user=user,
            notes=f"Stock reversed for cancelled goods receipt {receipt.number}",
        )

        lines = list(receipt.lines.all())
        order_lines = {
            line.pk: line
            for line in PurchaseOrderLine.objects.select_for_update().filter(
                pk__in=[line.order_line_id for line in lines if line.order_line_id]
            )
        }
        for line in lines:
            order_line = order_lines.get(line.order_line_id)
            if order_line is None:
                continue
            order_line.received_qty = max(order_line.received_qty - line.quantity, Decimal("0"))
            order_line.save(update_fields=["received_qty"])

        receipt.transition_to(DocumentStatus.CANCELLED)
        if receipt.purchase_order_id:
            recompute_purchase_order_status(receipt.purchase_order)

        log_action(
            action="delete",
            instance=receipt,
            user=user,
            changes={"reversals": len(reversals)},
        )
    logger.info("Goods receipt cancelled and stock reversed: %s by %s", receipt.number, user)
    return receipt
