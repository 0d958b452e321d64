from django.core.exceptions import ValidationError
from django.db.models.signals import pre_delete
from django.dispatch import receiver

from .lifecycle import ensure_no_dependents
from .models import (Bill, DeliveryChallan, GoodsReceipt, Invoice,
                     PurchaseOrder, PurchaseQuotation, SalesOrder,
                     SalesQuotation, Stock, StockMovement)

"""Stock balances are a projection of the movement log, never removed."""


# pre_delete fires just before Django deletes an instance, including
# queryset.delete(), which bypasses StockMovement.delete()
@receiver(pre_delete, sender=Stock)
def prevent_delete_stock(sender, instance, **kwargs):
    raise ValidationError("Stock balances cannot be deleted.")


@receiver(pre_delete, sender=StockMovement)
def prevent_delete_stock_movement(sender, instance, **kwargs):
    raise ValidationError("Stock movements cannot be deleted, post a reversal instead.")


"""Block hard deletes of documents that still have live successors."""


@receiver(pre_delete, sender=SalesQuotation)
@receiver(pre_delete, sender=SalesOrder)
@receiver(pre_delete, sender=DeliveryChallan)
@receiver(pre_delete, sender=Invoice)
@receiver(pre_delete, sender=PurchaseQuotation)
@receiver(pre_delete, sender=PurchaseOrder)
@receiver(pre_delete, sender=GoodsReceipt)
@receiver(pre_delete, sender=Bill)
def prevent_delete_document_with_dependents(sender, instance, **kwargs):
    ensure_no_dependents(instance)
