"""Sequential document numbers, e.g. ``SO-0001``.

One NumberSeries row per (company, document type) holds the next value.
Allocation locks that row, so numbers are unique and monotonic even when
two documents of the same type are created at the same time.
"""
import logging
import re

from django.apps import apps
from django.db import transaction

from ..conf import get_setting
from ..models import NumberSeries

logger = logging.getLogger(__name__)

_SUFFIX = re.compile(r"(\d+)$")


def document_model_for(doc_type):
    """Concrete document model numbered by ``doc_type``, or None."""
    for model in apps.get_app_config("inventory_core").get_models():
        if getattr(model, "number_type", None) == doc_type:
            return model
    return None


def _highest_existing(company, doc_type, prefix):
    # documents imported before the series existed keep their numbers
    model = document_model_for(doc_type)
    if model is None:
        return 0
    highest = 0
    numbers = model.objects.filter(
        company=company, number__startswith=f"{prefix}-"
    ).values_list("number", flat=True)
    for number in numbers:
        match = _SUFFIX.search(number)
        if match:
            highest = max(highest, int(match.group(1)))
    return highest


def _prefix(doc_type):
    try:
        return get_setting("DOCUMENT_PREFIXES")[doc_type]
    except KeyError:
        raise ValueError(f"Unknown document type {doc_type!r}")


def get_series(company, doc_type):
    prefix = _prefix(doc_type)
    series = NumberSeries.objects.filter(company=company, code=doc_type).first()
    if series is None:
        start = _highest_existing(company, doc_type, prefix) + 1
        series, _ = NumberSeries.objects.get_or_create(
            company=company,
            code=doc_type,
            defaults={"prefix": prefix, "next_number": start},
        )
    return series


def next_document_number(company, doc_type):
    """Allocate the next number of ``doc_type`` for ``company``.

    Must run inside the transaction that stores the document: a rollback
    gives the number back.
    """
    with transaction.atomic():
        series = get_series(company, doc_type)
        number = series.allocate(width=get_setting("NUMBER_WIDTH"))
    logger.debug("Allocated %s for company %s", number, company.pk)
    return number


def peek_document_number(company, doc_type):
    """Number the next allocation would return, without consuming it."""
    prefix = _prefix(doc_type)
    series = NumberSeries.objects.filter(company=company, code=doc_type).first()
    if series is None:
        start = _highest_existing(company, doc_type, prefix) + 1
        return f"{prefix}-{str(start).zfill(get_setting('NUMBER_WIDTH'))}"
    return series.format(series.next_number, get_setting("NUMBER_WIDTH"))
