from django.db import models

from .exceptions import NotFound


# -----------------------------------------
# Enforce tenant scoping across all models
# that belong to a company
# -----------------------------------------
class TenantQuerySet(models.QuerySet):
    def for_company(self, company):
        return self.filter(company=company)

    def active(self, company):
        return self.filter(company=company, is_active=True)

    def get_for_company(self, company, pk, label=None):
        """Fetch one row of this tenant or raise NotFound.

        Rows of other companies are reported exactly like missing rows,
        so callers never learn that another tenant's id exists.
        """
        try:
            return self.get(company=company, pk=pk)
        except self.model.DoesNotExist:
            label = label or self.model._meta.verbose_name.capitalize()
            raise NotFound(f"{label} not found")


class TenantManager(models.Manager.from_queryset(TenantQuerySet)):
    pass


# Lines have no company column of their own, they are scoped via the document
class LineQuerySet(models.QuerySet):
    def for_company(self, company):
        return self.filter(document__company=company)


class LineManager(models.Manager.from_queryset(LineQuerySet)):
    pass
