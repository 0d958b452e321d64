# Celery instance is defined in inv_project/celery.py
# Importing it here makes sure the app is loaded when Django starts,
# so @shared_task in inventory_core binds to it
from .celery import celery_app

__all__ = ("celery_app",)
