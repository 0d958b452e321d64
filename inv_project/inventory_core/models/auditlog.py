from django.conf import settings
from django.db import models

from ..managers import TenantManager
from .company import Company


# ---------- Audit / Event log ----------
class AuditLog(models.Model):
    # Nullable because some actions are system-wide (e.g. reconciliation)
    company = models.ForeignKey(
        Company, null=True, blank=True, on_delete=models.SET_NULL
    )
    # Nullable for automated actions (celery task, import script)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )
    # create, update, delete, convert, approve, cancel, reverse ...
    action = models.CharField(max_length=50)
    object_type = models.CharField(max_length=100)  # e.g. "SalesOrder"
    object_id = models.CharField(max_length=100)
    # before/after details of what changed
    changes = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "created_at"], name="ix_audit_company_created"),
            models.Index(
                fields=["company", "object_type", "object_id"],
                name="ix_audit_company_object",
            ),
        ]

    def __str__(self):
        return f"[{self.created_at:%Y-%m-%d %H:%M}] {self.user} {self.action} {self.object_type}({self.object_id})"
