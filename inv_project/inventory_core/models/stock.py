from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from ..managers import TenantManager
from .company import Company
from .product import Product
from .warehouse import Warehouse


class MovementType(models.TextChoices):
    PURCHASE = "PURCHASE", "Purchase"
    SALE = "SALE", "Sale"
    RETURN = "RETURN", "Return"
    ADJUSTMENT = "ADJUSTMENT", "Adjustment"
    TRANSFER = "TRANSFER", "Transfer"


# ---------- Stock balance (projection) ----------
class Stock(models.Model):
    """Cached balance of one product in one warehouse.

    ``quantity`` always equals the running sum of the StockMovement rows of
    the same (product, warehouse). Only services.ledger writes it; rows are
    created lazily on the first movement and never deleted.
    """

    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    product = models.ForeignKey(
        Product, on_delete=models.PROTECT, related_name="stock_levels"
    )
    warehouse = models.ForeignKey(
        Warehouse, on_delete=models.PROTECT, related_name="stock_levels"
    )

    quantity = models.DecimalField(
        max_digits=14, decimal_places=4, default=Decimal("0")
    )
    reserved_qty = models.DecimalField(
        max_digits=14, decimal_places=4, default=Decimal("0")
    )
    # quantity - reserved_qty
    available_qty = models.DecimalField(
        max_digits=14, decimal_places=4, default=Decimal("0")
    )
    value_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )

    updated_at = models.DateTimeField(auto_now=True)

    objects = TenantManager()

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["product", "warehouse"], name="uq_stock_product_warehouse"
            ),
            models.CheckConstraint(
                condition=models.Q(quantity__gte=0), name="stock_non_negative"
            ),
        ]
        indexes = [
            models.Index(fields=["company", "product"], name="ix_stock_company_product")
        ]

    def __str__(self):
        return f"{self.product} @ {self.warehouse}: {self.quantity}"


# ---------- Stock movement (append-only ledger) ----------
class StockMovement(models.Model):
    """Immutable ledger row. Reversals are new rows, never edits."""

    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    product = models.ForeignKey(
        Product, on_delete=models.PROTECT, related_name="movements"
    )
    warehouse = models.ForeignKey(
        Warehouse, on_delete=models.PROTECT, related_name="movements"
    )

    movement_type = models.CharField(max_length=20, choices=MovementType.choices)

    # signed: outward (sales, deliveries) < 0, inward (receipts, returns) > 0
    quantity = models.DecimalField(max_digits=14, decimal_places=4)
    unit_price = models.DecimalField(
        max_digits=18, decimal_places=4, default=Decimal("0.00")
    )
    total_value = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    # Stock.quantity right after this movement
    balance_after = models.DecimalField(max_digits=14, decimal_places=4)

    # originating document, e.g. ("DELIVERY_CHALLAN", 12, "DC-0003")
    reference_type = models.CharField(max_length=50)
    reference_id = models.PositiveBigIntegerField(null=True, blank=True)
    reference_number = models.CharField(max_length=64, blank=True, default="")

    notes = models.TextField(blank=True, default="")
    movement_date = models.DateTimeField(default=timezone.now)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TenantManager()

    class Meta:
        ordering = ["id"]
        indexes = [
            models.Index(fields=["product", "warehouse"], name="ix_movement_product_wh"),
            models.Index(
                fields=["company", "reference_type", "reference_id"],
                name="ix_movement_reference",
            ),
        ]

    def __str__(self):
        return f"{self.reference_type} {self.reference_number}: {self.product} {self.quantity:+}"

    def save(self, *args, **kwargs):
        # Append-only: once written a movement is never updated
        if self.pk and not self._state.adding:
            raise ValidationError("Stock movements are immutable")
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError(
            "Stock movements cannot be deleted, post a reversal instead"
        )
