import logging
from decimal import Decimal

from django.db import transaction

from ..exceptions import ValidationError
from ..lifecycle import DocumentStatus, ensure_no_dependents
from ..models import (Customer, DeliveryChallan, MovementType, SalesOrder,
                      SalesOrderLine)
from . import guard, ledger
from .audit_helper import log_action
from .common import (header_values, line_values, locked_for_company,
                     payload_items, reference_kwargs, reload, save_totals)
from .numbering import next_document_number
from .sales import recompute_order_status
from .totals import to_decimal

logger = logging.getLogger(__name__)

TRANSPORT_FIELDS = (
    "shipping_address",
    "vehicle_no",
    "driver_name",
    "driver_phone",
    "transport_mode",
)


def _match_order_lines(order, items):
    """Pair each challan item with the order line it delivers.

    An item may name its ``order_line_id``; otherwise the first order line
    of the same product with quantity still to deliver is used.
    """
    order_lines = {line.pk: line for line in order.lines.select_for_update()}
    # quantity this challan takes from each order line
    taking = {pk: Decimal("0") for pk in order_lines}

    matched = []
    for item in items:
        qty = to_decimal(item.get("quantity"))
        product_id = int(item.get("product_id") or item.get("product"))
        line = None
        if item.get("order_line_id"):
            line = order_lines.get(int(item["order_line_id"]))
            if line is None or line.product_id != product_id:
                raise ValidationError(f"Order line {item['order_line_id']} is not on order {order.number}")
        else:
            for candidate in order_lines.values():
                if candidate.product_id == product_id and candidate.remaining_qty - taking[candidate.pk] > 0:
                    line = candidate
                    break
            if line is None:
                raise ValidationError(
                    f"Product {product_id} has nothing left to deliver on order {order.number}"
                )

        if taking[line.pk] + qty > line.remaining_qty:
            raise ValidationError(
                f"Delivery of {line.product} exceeds the remaining quantity "
                f"({line.remaining_qty}) on order {order.number}"
            )
        taking[line.pk] += qty
        matched.append((item, line))
    return matched


def create_delivery_challan(company, user, data):
    """Deliver goods: stock leaves the warehouse and the order line advances.

    The challan is created APPROVED; each tracked line posts a negative SALE
    movement against its warehouse.
    """
    items = payload_items(data)
    with transaction.atomic():
        guard.check_items_present(items)
        customer = guard.check_party(company, Customer, data.get("customer_id"))
        products = guard.check_products(company, items, guard.SALE)

        order = None
        matched = [(item, None) for item in items]
        if data.get("sales_order_id"):
            order = SalesOrder.objects.select_for_update().get_for_company(
                company, data["sales_order_id"]
            )
            if order.customer_id != customer.pk:
                raise ValidationError("Sales order belongs to another customer")
            if order.status in (DocumentStatus.COMPLETED, DocumentStatus.CANCELLED):
                raise ValidationError(f"Cannot deliver against a {order.status.lower()} order")
            matched = _match_order_lines(order, items)

        # resolve every line's warehouse and check stock per warehouse first
        default_warehouse_id = data.get("warehouse_id")
        targets = []
        requested = {}
        for item in items:
            product = products[int(item.get("product_id") or item.get("product"))]
            warehouse = ledger.resolve_warehouse(
                company, item.get("warehouse_id") or default_warehouse_id
            )
            targets.append((product, warehouse))
            key = (product, warehouse)
            requested[key] = requested.get(key, Decimal("0")) + to_decimal(item.get("quantity"))
        for (product, warehouse), quantity in requested.items():
            guard.check_warehouse_stock(product, warehouse, quantity)

        shipping_address = data.get("shipping_address") or (
            order.shipping_address if order else customer.address
        )

        challan = DeliveryChallan.objects.create(
            company=company,
            customer=customer,
            sales_order=order,
            number=next_document_number(company, DeliveryChallan.number_type),
            status=DocumentStatus.APPROVED,
            shipping_address=shipping_address,
            created_by=user,
            **header_values(data, *TRANSPORT_FIELDS[1:]),
        )

        for (item, order_line), (product, warehouse) in zip(matched, targets):
            line = challan.lines.model(
                document=challan,
                warehouse=warehouse,
                order_line=order_line,
                **line_values(item),
            )
            line.save()

            if product.track_inventory:
                ledger.apply_movement(
                    company=company,
                    product=product,
                    warehouse=warehouse,
                    quantity=-line.quantity,
                    movement_type=MovementType.SALE,
                    unit_price=line.unit_price,
                    notes=f"Delivered via {challan.number}",
                    user=user,
                    **reference_kwargs(challan),
                )

            if order_line is not None:
                order_line.delivered_qty += line.quantity
                order_line.save(update_fields=["delivered_qty"])

        save_totals(challan)
        if order is not None:
            recompute_order_status(order)

        log_action(
            action="create",
            instance=challan,
            user=user,
            changes={
                "number": challan.number,
                "sales_order": order.number if order else None,
            },
        )
    logger.info("Delivery challan created: %s by %s", challan.number, user)
    return reload(challan)


def delete_delivery_challan(company, user, challan_id):
    """Undo a delivery: reverse its stock and give back the order quantities.

    The challan row is removed (cancelled instead while cancelled invoices
    still reference it); its movements and their reversals stay in the ledger.
    """
    with transaction.atomic():
        challan = locked_for_company(DeliveryChallan, company, challan_id, "delete")
        ensure_no_dependents(challan)

        reversals = ledger.reverse_movements(
            company=company,
            reference_type=challan.reference_type,
            reference_id=challan.pk,
            user=user,
            notes=f"Stock reversed for deleted delivery challan {challan.number}",
        )

        order_line_ids = [
            line.order_line_id for line in challan.lines.all() if line.order_line_id
        ]
        order_lines = {
            line.pk: line
            for line in SalesOrderLine.objects.select_for_update().filter(pk__in=order_line_ids)
        }
        for line in challan.lines.all():
            order_line = order_lines.get(line.order_line_id)
            if order_line is None:
                continue
            order_line.delivered_qty = max(
                order_line.delivered_qty - line.quantity, Decimal("0")
            )
            order_line.save(update_fields=["delivered_qty"])

        order = challan.sales_order
        number = challan.number
        log_action(
            action="delete",
            instance=challan,
            user=user,
            changes={"number": number, "reversals": len(reversals)},
        )
        if challan.invoices.exists():
            # cancelled invoices still point at it, keep the row
            challan.transition_to(DocumentStatus.CANCELLED)
        else:
            challan.delete()

        if order is not None:
            recompute_order_status(order)
    logger.info("Delivery challan deleted and stock reversed: %s by %s", number, user)
    return reversals

