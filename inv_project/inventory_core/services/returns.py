"""Sales and purchase returns.

A sales return brings goods back into stock and lowers what the customer
owes; a purchase return sends goods back to the vendor and, once approved,
lowers what is owed to the vendor. Every line carries one of the fixed
ReturnReason values.
"""
import logging
from decimal import Decimal

from django.db import models, transaction

from ..exceptions import InvalidStatusTransition, ValidationError
from ..lifecycle import DocumentStatus
from ..models import (Bill, Customer, Invoice, MovementType, PurchaseReturn,
                      PurchaseReturnLine, SalesReturn, SalesReturnLine, Vendor)
from . import guard, ledger
from .audit_helper import log_action
from .common import (adjust_balance, header_values, line_values,
                     locked_for_company, payload_items, reference_kwargs,
                     reload, save_totals)
from .numbering import next_document_number

logger = logging.getLogger(__name__)

BILLED_STATUSES = (DocumentStatus.APPROVED, DocumentStatus.COMPLETED)


def _returned_so_far(line_model, link_field, document):
    """Quantity per product already returned against ``document``."""
    rows = (
        line_model.objects.filter(**{f"document__{link_field}": document})
        .exclude(document__status=DocumentStatus.CANCELLED)
        .values("product_id")
        .annotate(total=models.Sum("quantity"))
        .order_by()
    )
    return {row["product_id"]: row["total"] for row in rows}


def _check_against_source(source, items, line_model, link_field):
    """Returned products must be on the source document, within its quantity."""
    billed = {}
    for line in source.lines.all():
        billed[line.product_id] = billed.get(line.product_id, Decimal("0")) + line.quantity
    returned = _returned_so_far(line_model, link_field, source)

    for pid, quantity in guard.requested_by_product(items).items():
        if pid not in billed:
            raise ValidationError(f"Product {pid} not found in {source.number}")
        remaining = billed[pid] - returned.get(pid, Decimal("0"))
        if quantity > remaining:
            raise ValidationError(
                f"Return quantity for product {pid} exceeds the quantity on "
                f"{source.number} (remaining {remaining})"
            )


# ----------------------------
# Sales returns
# ----------------------------
def create_sales_return(company, user, data):
    """Goods back in, customer balance down. Created APPROVED."""
    items = payload_items(data)
    with transaction.atomic():
        guard.check_items_present(items)
        customer = guard.check_party(company, Customer, data.get("customer_id"))
        for item in items:
            guard.check_return_reason(item.get("return_reason"))

        invoice = None
        if data.get("invoice_id"):
            invoice = Invoice.objects.select_for_update().get_for_company(
                company, data["invoice_id"]
            )
            if invoice.customer_id != customer.pk:
                raise ValidationError("Invoice does not belong to specified customer")
            if invoice.status not in BILLED_STATUSES:
                raise ValidationError(f"Cannot return against a {invoice.status.lower()} invoice")
            _check_against_source(invoice, items, SalesReturnLine, "invoice")

        products = guard.check_products(company, items, guard.RETURN)
        default_warehouse_id = data.get("warehouse_id")
        warehouses = [
            ledger.resolve_warehouse(company, item.get("warehouse_id") or default_warehouse_id)
            for item in items
        ]

        sales_return = SalesReturn.objects.create(
            company=company,
            customer=customer,
            invoice=invoice,
            number=next_document_number(company, SalesReturn.number_type),
            status=DocumentStatus.APPROVED,
            created_by=user,
            **header_values(data, "reason"),
        )

        for item, warehouse in zip(items, warehouses):
            product = products[int(item.get("product_id") or item.get("product"))]
            line = SalesReturnLine(
                document=sales_return,
                warehouse=warehouse,
                return_reason=item["return_reason"],
                **line_values(item),
            )
            line.save()
            if product.track_inventory:
                ledger.apply_movement(
                    company=company,
                    product=product,
                    warehouse=warehouse,
                    quantity=line.quantity,
                    movement_type=MovementType.RETURN,
                    unit_price=line.unit_price,
                    notes=(
                        f"Stock returned via sales return {sales_return.number} "
                        f"- Reason: {line.return_reason}"
                    ),
                    user=user,
                    **reference_kwargs(sales_return),
                )

        save_totals(sales_return)
        customer = Customer.objects.select_for_update().get(pk=customer.pk)
        adjust_balance(customer, -sales_return.total)

        log_action(
            action="create",
            instance=sales_return,
            user=user,
            changes={
                "number": sales_return.number,
                "invoice": invoice.number if invoice else None,
                "total": str(sales_return.total),
            },
        )
    logger.info("Sales return created: %s by %s", sales_return.number, user)
    return reload(sales_return)


# ----------------------------
# Purchase returns
# ----------------------------
def create_purchase_return(company, user, data):
    """Goods leave the warehouse now; the vendor balance moves on approval."""
    items = payload_items(data)
    with transaction.atomic():
        guard.check_items_present(items)
        vendor = guard.check_party(company, Vendor, data.get("vendor_id"))
        for item in items:
            guard.check_return_reason(item.get("return_reason"))

        bill = None
        if data.get("bill_id"):
            bill = Bill.objects.select_for_update().get_for_company(company, data["bill_id"])
            if bill.vendor_id != vendor.pk:
                raise ValidationError("Bill does not belong to specified vendor")
            if bill.status not in BILLED_STATUSES:
                raise ValidationError(f"Cannot return against a {bill.status.lower()} bill")
            _check_against_source(bill, items, PurchaseReturnLine, "bill")

        products = guard.check_products(company, items, guard.RETURN)
        warehouse = ledger.resolve_warehouse(company, data.get("warehouse_id"))
        for pid, quantity in guard.requested_by_product(items).items():
            guard.check_warehouse_stock(products[pid], warehouse, quantity)

        purchase_return = PurchaseReturn.objects.create(
            company=company,
            vendor=vendor,
            bill=bill,
            warehouse=warehouse,
            number=next_document_number(company, PurchaseReturn.number_type),
            status=DocumentStatus.DRAFT,
            created_by=user,
            **header_values(data, "reason"),
        )

        for item in items:
            product = products[int(item.get("product_id") or item.get("product"))]
            line = PurchaseReturnLine(
                document=purchase_return,
                return_reason=item["return_reason"],
                **line_values(item),
            )
            line.save()
            if product.track_inventory:
                ledger.apply_movement(
                    company=company,
                    product=product,
                    warehouse=warehouse,
                    quantity=-line.quantity,
                    movement_type=MovementType.RETURN,
                    unit_price=line.unit_price,
                    notes=f"Returned to vendor via {purchase_return.number}",
                    user=user,
                    **reference_kwargs(purchase_return),
                )

        save_totals(purchase_return)
        log_action(
            action="create",
            instance=purchase_return,
            user=user,
            changes={"number": purchase_return.number, "total": str(purchase_return.total)},
        )
    logger.info("Purchase return created: %s by %s", purchase_return.number, user)
    return reload(purchase_return)


def approve_purchase_return(company, user, return_id):
    with transaction.atomic():
        purchase_return = locked_for_company(PurchaseReturn, company, return_id, "approve")
        purchase_return.transition_to(DocumentStatus.APPROVED)
        vendor = Vendor.objects.select_for_update().get(pk=purchase_return.vendor_id)
        adjust_balance(vendor, -purchase_return.total)
        log_action(
            action="approve",
            instance=purchase_return,
            user=user,
            changes={"vendor_balance": str(vendor.current_balance)},
        )
    logger.info("Purchase return approved: %s by %s", purchase_return.number, user)
    return purchase_return


def delete_purchase_return(company, user, return_id):
    """Only drafts can be deleted; their stock goes back into the warehouse."""
    with transaction.atomic():
        purchase_return = locked_for_company(PurchaseReturn, company, return_id, "delete")
        if purchase_return.status != DocumentStatus.DRAFT:
            raise InvalidStatusTransition(
                "Cannot delete approved return",
                current=purchase_return.status,
                target=DocumentStatus.CANCELLED,
            )
        reversals = ledger.reverse_movements(
            company=company,
            reference_type=purchase_return.reference_type,
            reference_id=purchase_return.pk,
            user=user,
            notes=f"Stock restored for cancelled purchase return {purchase_return.number}",
        )
        purchase_return.transition_to(DocumentStatus.CANCELLED)
        log_action(
            action="delete",
            instance=purchase_return,
            user=user,
            changes={"reversals": len(reversals)},
        )
    logger.info("Purchase return cancelled: %s by %s", purchase_return.number, user)
    return purchase_return
