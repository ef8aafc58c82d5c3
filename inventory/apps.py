"""
Inventory application configuration.
"""

from django.apps import AppConfig


class InventoryConfig(AppConfig):
    """Configuration for the inventory Django application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "inventory"
    verbose_name = "Store Inventory"
