from django.db import models


# ---------- Tenant / Company ----------
class Company(models.Model):
    """Tenant / Organization"""

    name = models.CharField(max_length=200)
    # URL-friendly identifier, no two companies can share it
    slug = models.SlugField(max_length=80, unique=True)

    # all document amounts of a company are in this currency
    currency_code = models.CharField(max_length=10, default="USD")

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name_plural = "companies"

    def __str__(self):
        return self.name
