"""
Celery configuration for the Grocery Inventory Service.

Category crawl jobs and match jobs run on separate queues so a large
store crawl cannot starve shopping-list matching.
"""

import os
from celery import Celery

# Set the default Django settings module for the 'celery' program.
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("grocery_inventory")

# - namespace='CELERY' means all celery-related configuration keys
#   should have a `CELERY_` prefix.
app.config_from_object("django.conf:settings", namespace="CELERY")

# Load task modules from all registered Django apps.
app.autodiscover_tasks()

app.conf.task_queues = {
    "crawl": {
        "exchange": "crawl",
        "routing_key": "crawl",
    },
    "matching": {
        "exchange": "matching",
        "routing_key": "matching",
    },
    "default": {
        "exchange": "default",
        "routing_key": "default",
    },
}

app.conf.task_default_queue = "default"
app.conf.task_default_exchange = "default"
app.conf.task_default_routing_key = "default"

app.conf.task_routes = {
    "inventory.tasks.crawl_category": {"queue": "crawl"},
    "inventory.tasks.resolve_matches": {"queue": "matching"},
}
