"""Checks that run before a document operation writes anything.

Every function either returns the validated objects or raises one of the
typed errors from ``inventory_core.exceptions``. Services call them first
inside their atomic block, so a single failing line aborts the whole
operation.
"""
from collections import OrderedDict
from decimal import Decimal

from ..exceptions import (CreditLimitExceeded, InsufficientStock, NotFound,
                          ValidationError)
from ..models import Product, ReturnReason
from . import ledger
from .totals import to_decimal

SALE = "sale"
PURCHASE = "purchase"
# goods coming back only need to exist
RETURN = "return"


def _product_id(item):
    if isinstance(item, dict):
        return item.get("product_id") or item.get("product")
    return item.product_id


def check_items_present(items):
    if not items:
        raise ValidationError("At least one line item is required")
    for item in items:
        if to_decimal(item.get("quantity")) <= 0:
            raise ValidationError("Quantity must be > 0")
        if to_decimal(item.get("unit_price")) < 0:
            raise ValidationError("Unit price must be >= 0")
        if to_decimal(item.get("discount_amount")) < 0:
            raise ValidationError("Discount must be >= 0")
        if to_decimal(item.get("tax_rate")) < 0:
            raise ValidationError("Tax rate must be >= 0")


def check_party(company, model, party_id):
    """Customer or vendor of ``company``, which must be active."""
    party = model.objects.get_for_company(company, party_id)
    if not party.is_active:
        raise ValidationError(
            f"{model._meta.verbose_name.capitalize()} {party} is inactive"
        )
    return party


def check_products(company, items, direction=SALE):
    """Look up every line's product and check it can be used.

    Returns {product_id: Product}.
    """
    ids = {_product_id(item) for item in items}
    if None in ids:
        raise ValidationError("Every line item needs a product")
    products = {p.pk: p for p in Product.objects.filter(company=company, pk__in=ids)}

    for item in items:
        product = products.get(int(_product_id(item)))
        if product is None:
            raise NotFound("Product not found")
        if direction == RETURN:
            continue
        if not product.is_active:
            raise ValidationError(f"Product {product.name} is inactive")
        if direction == SALE and not product.is_saleable:
            raise ValidationError(f"Product {product.name} is not available for sale")
        if direction == PURCHASE and not product.is_purchasable:
            raise ValidationError(
                f"Product {product.name} is not available for purchase"
            )
    return products


def requested_by_product(items):
    """Total requested quantity per product id, lines of one product summed."""
    totals = OrderedDict()
    for item in items:
        pid = int(_product_id(item))
        totals[pid] = totals.get(pid, Decimal("0")) + to_decimal(item.get("quantity"))
    return totals


def check_order_stock(items, products):
    """Order-level check against stock summed over all active warehouses."""
    for pid, requested in requested_by_product(items).items():
        product = products[pid]
        if not product.track_inventory:
            continue
        available = ledger.available_quantity(product)
        if available < requested:
            raise InsufficientStock(product, available, requested)


def check_warehouse_stock(product, warehouse, quantity):
    """Delivery-level check against a single warehouse."""
    if not product.track_inventory:
        return
    quantity = to_decimal(quantity)
    available = ledger.available_quantity(product, warehouse)
    if available < quantity:
        raise InsufficientStock(product, available, quantity, warehouse=warehouse)


def check_credit_limit(customer, total):
    """A limit of 0 means unlimited credit."""
    if customer.credit_limit <= 0:
        return
    if customer.current_balance + to_decimal(total) > customer.credit_limit:
        raise CreditLimitExceeded(customer, customer.credit_limit - customer.current_balance)


def check_return_reason(reason):
    if reason not in ReturnReason.values:
        raise ValidationError(
            f"Invalid return reason {reason!r}. "
            f"Expected one of: {', '.join(ReturnReason.values)}"
        )
    return reason
