from django.apps import AppConfig


class InventoryCoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "inventory_core"

    # ensure receivers are registered
    def ready(self):
        import inventory_core.signals  # noqa: F401
