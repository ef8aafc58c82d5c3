"""
Inventory URL configuration.

URL patterns for the inventory API endpoints.
"""

from django.urls import path
from . import views

app_name = "inventory"

urlpatterns = [
    path("inventory/process/", views.process_inventory, name="process-inventory"),
]
