"""Perpetual inventory ledger.

StockMovement rows are the source of truth: an append-only log of signed
quantity changes per (product, warehouse). Stock rows are a cached
projection of that log. Both are written only through ``apply_movement``
and ``reverse_movements``; ``rebuild_stock`` can recompute the projection
from the log at any time.
"""
import logging
from decimal import Decimal

from django.db import models, transaction

from ..exceptions import InsufficientStock, InvalidStatusTransition, NotFound
from ..models import Stock, StockMovement, Warehouse
from .totals import money, to_decimal

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
REVERSAL_SUFFIX = "-REVERSAL"
REVERSAL_NUMBER_SUFFIX = "-REV"


# ----------------------------
# Warehouses
# ----------------------------
def resolve_warehouse(company, warehouse_id=None):
    """Explicit warehouse, else the default one, else the first active one."""
    active = Warehouse.objects.active(company)
    if warehouse_id:
        try:
            return active.get(pk=warehouse_id)
        except Warehouse.DoesNotExist:
            raise NotFound("Warehouse not found")

    warehouse = active.filter(is_default=True).first() or active.order_by("id").first()
    if warehouse is None:
        raise NotFound("No active warehouse found for this company")
    return warehouse


# ----------------------------
# Balances
# ----------------------------
def _locked_stock(company, product, warehouse):
    # created lazily on the first movement of the pair
    stock, _ = Stock.objects.get_or_create(
        product=product, warehouse=warehouse, defaults={"company": company}
    )
    # Lock the balance row until the transaction finishes
    return Stock.objects.select_for_update().get(pk=stock.pk)


def stock_on_hand(product, warehouse):
    stock = Stock.objects.filter(product=product, warehouse=warehouse).first()
    return stock.quantity if stock else ZERO


def available_quantity(product, warehouse=None):
    """Available (unreserved) quantity in one warehouse or across all of them."""
    qs = Stock.objects.filter(product=product)
    if warehouse is not None:
        qs = qs.filter(warehouse=warehouse)
    else:
        qs = qs.filter(warehouse__is_active=True)
    return qs.aggregate(total=models.Sum("available_qty"))["total"] or ZERO


def ledger_balance(product, warehouse):
    """Running sum of the movement log for one pair."""
    agg = StockMovement.objects.filter(product=product, warehouse=warehouse).aggregate(
        total=models.Sum("quantity")
    )
    return agg["total"] or ZERO


# ----------------------------
# Movements
# ----------------------------
def apply_movement(
    *,
    company,
    product,
    warehouse,
    quantity,
    movement_type,
    reference_type,
    reference_id=None,
    reference_number="",
    unit_price=ZERO,
    notes="",
    user=None,
    movement_date=None,
):
    """Change the balance of (product, warehouse) by a signed quantity.

    Outward movements (deliveries, purchase returns) are negative, inward
    ones (receipts, sales returns) positive. A movement that would take the
    balance below zero raises InsufficientStock and writes nothing.
    """
    quantity = to_decimal(quantity)
    unit_price = to_decimal(unit_price)
    if quantity == 0:
        raise ValueError("Stock movement quantity cannot be zero")
    if warehouse.company_id != company.pk or product.company_id != company.pk:
        raise NotFound("Product or warehouse not found")

    with transaction.atomic():
        stock = _locked_stock(company, product, warehouse)

        new_quantity = stock.quantity + quantity
        if new_quantity < 0:
            raise InsufficientStock(
                product, stock.quantity, -quantity, warehouse=warehouse
            )

        stock.quantity = new_quantity
        stock.available_qty = new_quantity - stock.reserved_qty
        stock.value_amount = money(new_quantity * product.purchase_price)
        stock.save(update_fields=["quantity", "available_qty", "value_amount", "updated_at"])

        fields = dict(
            company=company,
            product=product,
            warehouse=warehouse,
            movement_type=movement_type,
            quantity=quantity,
            unit_price=unit_price,
            total_value=money(quantity * unit_price),
            balance_after=new_quantity,
            reference_type=reference_type,
            reference_id=reference_id,
            reference_number=reference_number or "",
            notes=notes or "",
            created_by=user if getattr(user, "pk", None) else None,
        )
        if movement_date is not None:
            fields["movement_date"] = movement_date
        movement = StockMovement.objects.create(**fields)

    logger.debug(
        "%s %s %s@%s %s -> %s",
        reference_type,
        reference_number,
        product.sku,
        warehouse.code,
        quantity,
        new_quantity,
    )
    return movement


def movements_for(company, reference_type, reference_id):
    return StockMovement.objects.filter(
        company=company, reference_type=reference_type, reference_id=reference_id
    ).select_related("product", "warehouse")


def is_reversed(company, reference_type, reference_id):
    return movements_for(company, reference_type + REVERSAL_SUFFIX, reference_id).exists()


def reverse_movements(*, company, reference_type, reference_id, user=None, notes=""):
    """Post the negation of every movement recorded against a document.

    The original rows stay untouched; the reversals carry the reference type
    suffixed ``-REVERSAL`` and the number suffixed ``-REV``.
    """
    if reference_type.endswith(REVERSAL_SUFFIX):
        raise InvalidStatusTransition("Reversal movements cannot be reversed")
    if is_reversed(company, reference_type, reference_id):
        raise InvalidStatusTransition(
            f"Movements of {reference_type} {reference_id} are already reversed"
        )

    reversals = []
    with transaction.atomic():
        for movement in movements_for(company, reference_type, reference_id):
            reversals.append(
                apply_movement(
                    company=company,
                    product=movement.product,
                    warehouse=movement.warehouse,
                    quantity=-movement.quantity,
                    movement_type=movement.movement_type,
                    reference_type=reference_type + REVERSAL_SUFFIX,
                    reference_id=reference_id,
                    reference_number=f"{movement.reference_number}{REVERSAL_NUMBER_SUFFIX}",
                    unit_price=movement.unit_price,
                    notes=notes or f"Reversal of {movement.reference_number}",
                    user=user,
                )
            )
    return reversals


# ----------------------------
# Projection repair
# ----------------------------
def rebuild_stock(company, fix=True):
    """Recompute every Stock.quantity of ``company`` from the movement log.

    Returns a list of (stock, cached_quantity, ledger_quantity) for the rows
    that had drifted. With ``fix`` the drifted rows are rewritten.
    """
    sums = {
        (row["product_id"], row["warehouse_id"]): row["total"]
        for row in StockMovement.objects.filter(company=company)
        .values("product_id", "warehouse_id")
        .annotate(total=models.Sum("quantity"))
        .order_by()
    }

    drifted = []
    with transaction.atomic():
        for stock in Stock.objects.select_for_update().filter(company=company).select_related("product"):
            expected = sums.get((stock.product_id, stock.warehouse_id)) or ZERO
            if stock.quantity == expected:
                continue
            drifted.append((stock, stock.quantity, expected))
            logger.warning(
                "Stock drift for product %s in warehouse %s: cached %s, ledger %s",
                stock.product_id,
                stock.warehouse_id,
                stock.quantity,
                expected,
            )
            if fix:
                stock.quantity = expected
                stock.available_qty = expected - stock.reserved_qty
                stock.value_amount = money(expected * stock.product.purchase_price)
                stock.save(update_fields=["quantity", "available_qty", "value_amount", "updated_at"])
    return drifted
