from decimal import Decimal

from django.db import models

from ..managers import TenantManager
from .company import Company


# ---------- Products ----------
# Read-only to the document engine: flags are checked, never changed
class Product(models.Model):
    company = models.ForeignKey(Company, on_delete=models.CASCADE)

    sku = models.CharField(max_length=80)
    name = models.CharField(max_length=200)
    unit = models.CharField(max_length=20, blank=True, default="pcs")

    is_active = models.BooleanField(default=True)
    is_saleable = models.BooleanField(default=True)
    is_purchasable = models.BooleanField(default=True)
    # services and non-stock items skip availability checks
    track_inventory = models.BooleanField(default=True)

    sale_price = models.DecimalField(
        max_digits=18, decimal_places=4, default=Decimal("0.00")
    )
    purchase_price = models.DecimalField(
        max_digits=18, decimal_places=4, default=Decimal("0.00")
    )

    objects = TenantManager()

    class Meta:
        indexes = [models.Index(fields=["company", "name"], name="ix_product_company_name")]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "sku"], name="uq_company_product_sku"
            )
        ]

    def __str__(self):
        return self.name
