from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from ..lifecycle import DocumentStatus, check_transition
from ..services.totals import calculate_line, calculate_totals
from .company import Company
from .product import Product


class ReturnReason(models.TextChoices):
    DAMAGED = "DAMAGED", "Damaged"
    DEFECTIVE = "DEFECTIVE", "Defective"
    WRONG_ITEM = "WRONG_ITEM", "Wrong item"
    QUALITY_ISSUE = "QUALITY_ISSUE", "Quality issue"
    OTHER = "OTHER", "Other"


# ---------- Document header (shared by every document type) ----------
class Document(models.Model):
    # Set by each concrete document
    kind = None  # lifecycle.DocumentKind
    number_type = None  # NumberSeries.code, e.g. "sales_order"
    reference_type = None  # StockMovement.reference_type for stock effects

    company = models.ForeignKey(Company, on_delete=models.CASCADE)

    # human-readable, e.g. "SO-0007"; unique per company and type
    number = models.CharField(max_length=64)
    date = models.DateField(default=timezone.localdate)

    status = models.CharField(
        max_length=20, choices=DocumentStatus.choices, default=DocumentStatus.DRAFT
    )

    # Totals are always the sum of the lines (see recalc_totals)
    subtotal = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    tax_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    discount_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    total = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )

    notes = models.TextField(blank=True, default="")
    terms = models.TextField(blank=True, default="")

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
        ordering = ["-date", "-id"]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "number"],
                name="uq_%(class)s_company_number",
            )
        ]

    def __str__(self):
        return f"{self._meta.verbose_name.title()} {self.number or self.pk}"

    def recalc_totals(self):
        """Recompute header totals from the stored lines.

        Uses the same calculator as document creation, so the header can
        never drift from the sum of its lines.
        """
        if not self.pk:
            totals = calculate_totals([])
        else:
            totals = calculate_totals(list(self.lines.all()))
        self.subtotal = totals.subtotal
        self.tax_amount = totals.tax_amount
        self.discount_amount = totals.discount_amount
        self.total = totals.total
        return totals

    def transition_to(self, new_status):
        # validation lives in the per-kind transition table
        check_transition(self.kind, self.status, new_status)
        self.status = new_status
        self.save(update_fields=["status", "updated_at"])

    def dependent_documents(self):
        """Names of live successor documents that block deletion."""
        return []


# ---------- Document line (shared by every document type) ----------
class DocumentLine(models.Model):
    # concrete lines add: document = FK(<Document>, related_name="lines")
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name="+")
    description = models.TextField(blank=True, default="")

    quantity = models.DecimalField(max_digits=14, decimal_places=4)
    unit_price = models.DecimalField(
        max_digits=18, decimal_places=4, default=Decimal("0.00")
    )
    # percent, e.g. 18 for 18%
    tax_rate = models.DecimalField(
        max_digits=6, decimal_places=2, default=Decimal("0.00")
    )
    discount_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    # (quantity * unit_price - discount) + tax, always recomputed on save
    amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )

    class Meta:
        abstract = True
        ordering = ["id"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gt=0) & models.Q(unit_price__gte=0),
                name="%(class)s_positive_amounts",
            ),
        ]

    def __str__(self):
        return f"{self.product} x {self.quantity}"

    def clean(self):
        if self.quantity is None or self.quantity <= 0:
            raise ValidationError("Quantity must be > 0")
        if self.unit_price < 0:
            raise ValidationError("Unit price must be >= 0")
        if self.discount_amount < 0:
            raise ValidationError("Discount must be >= 0")

    def save(self, *args, **kwargs):
        self.clean()
        # Force amount to be recomputed before save, regardless of input
        self.amount = calculate_line(self).amount
        return super().save(*args, **kwargs)
