"""Helpers shared by the document services."""
import datetime

from django.db.models import F
from django.utils import timezone

from ..exceptions import InvalidStatusTransition
from ..lifecycle import (DocumentKind, DocumentStatus, check_requested_status,
                         ensure_editable)
from .totals import to_decimal

# Header fields a payload may set directly on any document
HEADER_FIELDS = ("date", "notes", "terms")

LINE_FIELDS = ("quantity", "unit_price", "tax_rate", "discount_amount")


def line_values(item):
    """Model field values of one payload line item."""
    values = {
        "product_id": item.get("product_id") or item.get("product"),
        "description": item.get("description") or "",
    }
    for name in LINE_FIELDS:
        values[name] = to_decimal(item.get(name))
    return values


def header_values(data, *names):
    """Pick the given header fields that are present in the payload."""
    return {
        name: data[name]
        for name in HEADER_FIELDS + names
        if name in data and data[name] is not None
    }


def create_lines(document, items, **extra):
    line_model = document.lines.model
    lines = []
    for item in items:
        line = line_model(document=document, **line_values(item), **extra)
        # save() recomputes amount from the same calculator as the header
        line.save()
        lines.append(line)
    return lines


def copy_lines(source, target, **extra):
    """Snapshot the lines of ``source`` onto ``target`` without re-pricing."""
    line_model = target.lines.model
    lines = []
    for src in source.lines.all():
        line = line_model(
            document=target,
            product_id=src.product_id,
            description=src.description,
            quantity=src.quantity,
            unit_price=src.unit_price,
            tax_rate=src.tax_rate,
            discount_amount=src.discount_amount,
            **extra,
        )
        line.save()
        lines.append(line)
    return lines


def replace_lines(document, items):
    document.lines.all().delete()
    return create_lines(document, items)


def save_totals(document):
    document.recalc_totals()
    document.save(
        update_fields=["subtotal", "tax_amount", "discount_amount", "total", "updated_at"]
    )
    return document


def lock(document):
    """Re-read ``document`` with a row lock held until commit."""
    return type(document).objects.select_for_update().get(pk=document.pk)


def locked_for_company(model, company, pk, action="modify"):
    document = model.objects.select_for_update().get_for_company(company, pk)
    ensure_editable(document, action)
    return document


def reload(document):
    """Fresh copy with lines (and their products) prefetched."""
    return type(document).objects.prefetch_related("lines__product").get(pk=document.pk)


def payload_items(data):
    items = data.get("items") or []
    return [dict(item) for item in items]


def reference_kwargs(document):
    return {
        "reference_type": document.reference_type,
        "reference_id": document.pk,
        "reference_number": document.number,
    }


def adjust_balance(party, delta):
    """Atomically add ``delta`` to a customer's or vendor's current balance."""
    type(party).objects.filter(pk=party.pk).update(
        current_balance=F("current_balance") + delta
    )
    party.refresh_from_db(fields=["current_balance"])
    return party.current_balance


def due_date_for(date, days):
    if isinstance(date, str):
        date = datetime.date.fromisoformat(date)
    return date + datetime.timedelta(days=days)


def approve_order(order):
    """Approve a sales or purchase order and stamp ``approved_at``.

    An order already fulfilled while still unapproved keeps RECEIVED; only
    the stamp is added so a later reversal falls back to APPROVED.
    """
    if order.approved_at is not None:
        raise InvalidStatusTransition(
            f"{order} is already approved",
            current=order.status,
            target=DocumentStatus.APPROVED,
        )
    if order.status != DocumentStatus.RECEIVED:
        order.transition_to(DocumentStatus.APPROVED)
    order.approved_at = timezone.now()
    order.save(update_fields=["approved_at", "updated_at"])
    return order


def apply_requested_status(document, data):
    """Move ``document`` to the status named in an update payload, if any."""
    target = data.get("status")
    if not target or target == document.status:
        return
    check_requested_status(document.kind, document.status, target)
    if document.kind == DocumentKind.ORDER and target == DocumentStatus.APPROVED:
        approve_order(document)
    else:
        document.transition_to(target)
