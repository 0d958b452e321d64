from decimal import Decimal

from django.db import models

from ..exceptions import DuplicateEntry
from ..managers import TenantManager
from .company import Company


class Party(models.Model):
    """Fields shared by customers and vendors."""

    # Multi-tenant: every party belongs to a single company
    company = models.ForeignKey(Company, on_delete=models.CASCADE)

    name = models.CharField(max_length=200)
    email = models.EmailField(null=True, blank=True)
    phone = models.CharField(max_length=32, blank=True, default="")
    address = models.TextField(blank=True, default="")

    # Amount currently owed (customer) or payable (vendor).
    # Written only by the document services, never edited by hand
    current_balance = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )

    # Suspend a party without deleting its history
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)

    objects = TenantManager()

    class Meta:
        abstract = True

    def __str__(self):
        return self.name

    def _check_unique_email(self):
        if not self.email:
            return
        clash = type(self).objects.filter(
            company_id=self.company_id, email__iexact=self.email
        ).exclude(pk=self.pk)
        if clash.exists():
            raise DuplicateEntry(
                f"{self._meta.verbose_name.capitalize()} with email {self.email} already exists"
            )

    def save(self, *args, **kwargs):
        self._check_unique_email()
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)


# ---------- Customer ----------
# Receives quotations, orders, deliveries and invoices (AR side)
class Customer(Party):
    # 0 means "no limit"
    credit_limit = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    # Invoice due date = invoice date + credit_days
    credit_days = models.PositiveIntegerField(default=30)

    class Meta:
        indexes = [models.Index(fields=["company", "name"], name="ix_customer_company_name")]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "name"], name="uq_company_customer_name"
            ),
            models.UniqueConstraint(
                fields=["company", "email"], name="uq_company_customer_email"
            ),
        ]

    @property
    def available_credit(self):
        return self.credit_limit - self.current_balance


# ---------- Vendor ----------
# Mirrors Customer but for Accounts Payable (AP)
class Vendor(Party):
    payment_terms_days = models.PositiveIntegerField(default=30)

    class Meta:
        indexes = [models.Index(fields=["company", "name"], name="ix_vendor_company_name")]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "name"], name="uq_company_vendor_name"
            ),
            models.UniqueConstraint(
                fields=["company", "email"], name="uq_company_vendor_email"
            ),
        ]
