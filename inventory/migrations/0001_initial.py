"""
Initial schema: inventory records, crawl status and visits, store summaries,
match sets.
"""

import uuid
from django.db import migrations, models
import django.utils.timezone


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="InventoryRecord",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "store_id",
                    models.CharField(help_text="Catalog provider store id", max_length=100),
                ),
                (
                    "product_id",
                    models.CharField(
                        help_text="Provider product id, unique per store", max_length=100
                    ),
                ),
                ("name", models.CharField(max_length=500)),
                (
                    "price",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Price in major currency units",
                        max_digits=10,
                        null=True,
                    ),
                ),
                ("unit_size", models.CharField(blank=True, default="", max_length=50)),
                (
                    "unit_of_measurement",
                    models.CharField(blank=True, default="", max_length=50),
                ),
                ("description", models.TextField(blank=True, default="")),
                ("image_url", models.URLField(blank=True, default="", max_length=2000)),
                ("is_available", models.BooleanField(default=True)),
                ("upc", models.CharField(blank=True, max_length=32, null=True)),
                ("first_seen_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("last_crawled_at", models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={
                "db_table": "inventory_records",
                "ordering": ["store_id", "first_seen_at"],
            },
        ),
        migrations.AddConstraint(
            model_name="inventoryrecord",
            constraint=models.UniqueConstraint(
                fields=("store_id", "product_id"), name="unique_store_product"
            ),
        ),
        migrations.AddIndex(
            model_name="inventoryrecord",
            index=models.Index(
                fields=["store_id", "name"], name="inventory_store_name_idx"
            ),
        ),
        migrations.CreateModel(
            name="CrawlStatus",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("store_id", models.CharField(max_length=100, unique=True)),
                ("is_processing", models.BooleanField(default=False)),
                ("time_start", models.DateTimeField(blank=True, null=True)),
                ("time_end", models.DateTimeField(blank=True, null=True)),
                ("run_id", models.UUIDField(blank=True, db_index=True, null=True)),
                ("pending_jobs", models.IntegerField(default=0)),
                ("jobs_enqueued", models.IntegerField(default=0)),
                ("jobs_failed", models.IntegerField(default=0)),
                ("records_upserted", models.IntegerField(default=0)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "crawl_status",
                "verbose_name_plural": "Crawl statuses",
            },
        ),
        migrations.CreateModel(
            name="CrawlVisit",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("run_id", models.UUIDField()),
                ("store_id", models.CharField(max_length=100)),
                ("subcategory_id", models.CharField(max_length=200)),
                ("depth", models.IntegerField(default=0)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={
                "db_table": "crawl_visits",
            },
        ),
        migrations.AddConstraint(
            model_name="crawlvisit",
            constraint=models.UniqueConstraint(
                fields=("run_id", "subcategory_id"), name="unique_run_subcategory"
            ),
        ),
        migrations.CreateModel(
            name="StoreSummary",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("store_id", models.CharField(max_length=100, unique=True)),
                ("name", models.CharField(max_length=300)),
                ("store_type", models.CharField(blank=True, default="", max_length=50)),
                ("street_num", models.CharField(blank=True, default="", max_length=50)),
                ("street_name", models.CharField(blank=True, default="", max_length=200)),
                ("street_addr", models.CharField(blank=True, default="", max_length=300)),
                ("city", models.CharField(blank=True, default="", max_length=100)),
                ("state", models.CharField(blank=True, default="", max_length=50)),
                ("zip_code", models.CharField(blank=True, default="", max_length=20)),
                ("country", models.CharField(blank=True, default="", max_length=50)),
                ("latitude", models.FloatField()),
                ("longitude", models.FloatField()),
                ("is_open", models.BooleanField(default=False)),
                (
                    "miles",
                    models.FloatField(default=0.0, help_text="Distance from the query point"),
                ),
                ("last_updated", models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={
                "db_table": "store_summaries",
                "ordering": ["miles"],
                "verbose_name_plural": "Store summaries",
            },
        ),
        migrations.AddIndex(
            model_name="storesummary",
            index=models.Index(
                fields=["latitude", "longitude"], name="store_summary_latlong_idx"
            ),
        ),
        migrations.AddIndex(
            model_name="storesummary",
            index=models.Index(
                fields=["last_updated"], name="store_summary_updated_idx"
            ),
        ),
        migrations.CreateModel(
            name="MatchSet",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("store_id", models.CharField(max_length=100)),
                ("influencer_id", models.CharField(max_length=100)),
                (
                    "matches",
                    models.JSONField(
                        blank=True, default=list, help_text="Ordered list of resolved items"
                    ),
                ),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "match_sets",
            },
        ),
        migrations.AddConstraint(
            model_name="matchset",
            constraint=models.UniqueConstraint(
                fields=("store_id", "influencer_id"), name="unique_store_influencer"
            ),
        ),
    ]
