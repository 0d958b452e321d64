import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task  # register this function as a Celery task
def reconcile_stock_ledger(company_id, fix=True):
    """Compare every cached Stock balance of a company with its movement log."""
    # import lazily to avoid circular imports at module import time
    from .models import Company
    from .services.ledger import rebuild_stock

    company = Company.objects.get(pk=company_id)
    drifted = rebuild_stock(company, fix=fix)
    if drifted:
        logger.warning("Company %s: %d stock rows drifted from the ledger", company_id, len(drifted))
    # Celery results must be serialisable
    return [
        {
            "product_id": stock.product_id,
            "warehouse_id": stock.warehouse_id,
            "cached": str(cached),
            "ledger": str(expected),
        }
        for stock, cached, expected in drifted
    ]


@shared_task
def reconcile_all_companies(fix=True):
    from .models import Company

    results = {}
    for company_id in Company.objects.values_list("pk", flat=True):
        results[company_id] = reconcile_stock_ledger(company_id, fix=fix)
    return results
