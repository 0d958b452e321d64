from django.db import models

from ..managers import TenantManager
from .company import Company


# ---------- Warehouses ----------
# Scoping dimension for stock balances
class Warehouse(models.Model):
    company = models.ForeignKey(Company, on_delete=models.CASCADE)

    code = models.CharField(max_length=20)
    name = models.CharField(max_length=200)

    # used when a document line does not name a warehouse
    is_default = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)

    objects = TenantManager()

    class Meta:
        ordering = ["id"]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "code"], name="uq_company_warehouse_code"
            )
        ]

    def __str__(self):
        return self.name
