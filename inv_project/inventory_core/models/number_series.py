from django.db import models, transaction

from ..managers import TenantManager
from .company import Company


class NumberSeries(models.Model):
    """Per-company counter for one document type.

    Numbers are allocated by locking this row (select_for_update) and
    incrementing ``next_number`` inside the caller's transaction, so two
    concurrent creates can never read the same value. A rolled back
    transaction gives its number back.
    """

    company = models.ForeignKey(
        Company, on_delete=models.CASCADE, related_name="number_series"
    )

    # document type, e.g. "sales_order"
    code = models.CharField(max_length=50)
    prefix = models.CharField(max_length=20)
    next_number = models.PositiveIntegerField(default=1)

    objects = TenantManager()

    class Meta:
        ordering = ["code"]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "code"], name="uq_company_number_series"
            )
        ]

    def __str__(self):
        return f"{self.company} {self.code}"

    def format(self, number, width):
        return f"{self.prefix}-{str(number).zfill(width)}"

    @transaction.atomic
    def allocate(self, width=4) -> str:
        """Allocate the next number without duplicates.

        The row lock is held until the outer transaction commits, so no
        other allocation can read the old next_number in parallel.
        """
        series = type(self).objects.select_for_update().get(pk=self.pk)

        current = series.next_number
        series.next_number = current + 1
        series.save(update_fields=["next_number"])
        self.next_number = series.next_number

        return series.format(current, width)
