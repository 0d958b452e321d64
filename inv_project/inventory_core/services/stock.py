"""Manual stock changes that are not driven by a sales or purchase document."""
import logging

from django.db import transaction

from ..conf import get_setting
from ..exceptions import ValidationError
from ..models import MovementType, Product
from . import guard, ledger
from .audit_helper import log_action
from .numbering import next_document_number
from .totals import to_decimal

logger = logging.getLogger(__name__)

ADJUSTMENT_REFERENCE = "STOCK_ADJUSTMENT"
TRANSFER_REFERENCE = "STOCK_TRANSFER"


def _tracked_product(company, product_id):
    product = Product.objects.get_for_company(company, product_id)
    if not product.track_inventory:
        raise ValidationError(f"Product {product.name} does not track inventory")
    return product


def adjust_stock(company, user, data):
    """Signed correction of one product in one warehouse (counts, damage...)."""
    quantity = to_decimal(data.get("quantity"))
    reason = (data.get("reason") or "").strip()
    min_length = get_setting("MIN_ADJUSTMENT_REASON_LENGTH")
    if quantity == 0:
        raise ValidationError("Adjustment quantity cannot be zero")
    if len(reason) < min_length:
        raise ValidationError(f"Adjustment reason must be at least {min_length} characters")

    with transaction.atomic():
        product = _tracked_product(company, data.get("product_id"))
        warehouse = ledger.resolve_warehouse(company, data.get("warehouse_id"))
        number = next_document_number(company, "stock_adjustment")
        movement = ledger.apply_movement(
            company=company,
            product=product,
            warehouse=warehouse,
            quantity=quantity,
            movement_type=MovementType.ADJUSTMENT,
            unit_price=product.purchase_price,
            reference_type=ADJUSTMENT_REFERENCE,
            reference_number=number,
            notes=reason,
            user=user,
        )
        log_action(
            action="adjust",
            instance=movement,
            user=user,
            changes={"number": number, "quantity": str(quantity), "reason": reason},
        )
    logger.info(
        "Stock adjusted: %s %s %s in %s by %s", number, product.sku, quantity, warehouse.code, user
    )
    return movement


def transfer_stock(company, user, data):
    """Move stock between two warehouses of the company.

    Posts an outward and an inward TRANSFER movement sharing one number.
    """
    quantity = to_decimal(data.get("quantity"))
    if quantity <= 0:
        raise ValidationError("Transfer quantity must be > 0")
    if not data.get("from_warehouse_id") or not data.get("to_warehouse_id"):
        raise ValidationError("Source and destination warehouses are required")
    if str(data["from_warehouse_id"]) == str(data["to_warehouse_id"]):
        raise ValidationError("Source and destination warehouses must differ")

    with transaction.atomic():
        product = _tracked_product(company, data.get("product_id"))
        source = ledger.resolve_warehouse(company, data["from_warehouse_id"])
        destination = ledger.resolve_warehouse(company, data["to_warehouse_id"])
        guard.check_warehouse_stock(product, source, quantity)

        number = next_document_number(company, "stock_transfer")
        notes = data.get("notes") or f"Transfer {source.code} -> {destination.code}"
        common = dict(
            company=company,
            product=product,
            movement_type=MovementType.TRANSFER,
            unit_price=product.purchase_price,
            reference_type=TRANSFER_REFERENCE,
            reference_number=number,
            notes=notes,
            user=user,
        )
        outward = ledger.apply_movement(warehouse=source, quantity=-quantity, **common)
        inward = ledger.apply_movement(warehouse=destination, quantity=quantity, **common)

        log_action(
            action="transfer",
            instance=outward,
            user=user,
            changes={
                "number": number,
                "quantity": str(quantity),
                "from": source.code,
                "to": destination.code,
            },
        )
    logger.info(
        "Stock transferred: %s %s %s from %s to %s by %s",
        number,
        product.sku,
        quantity,
        source.code,
        destination.code,
        user,
    )
    return outward, inward
