"""
Migration: Create watched_urls and generations tables.
"""

import uuid
import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models

import sitewatch.models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="WatchedUrl",
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
                ("url", models.URLField(db_index=True, max_length=2000, unique=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("last_checked_at", models.DateTimeField(blank=True, null=True)),
                (
                    "check_interval_minutes",
                    models.PositiveIntegerField(
                        default=sitewatch.models.default_check_interval,
                        validators=[django.core.validators.MinValueValidator(1)],
                    ),
                ),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                ("last_signature", models.TextField(blank=True, null=True)),
                (
                    "last_signature_method",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("header", "HTTP metadata"),
                            ("content", "Canonical HTML hash"),
                        ],
                        max_length=10,
                    ),
                ),
            ],
            options={
                "verbose_name": "Watched URL",
                "verbose_name_plural": "Watched URLs",
                "db_table": "watched_urls",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["is_active", "last_checked_at"],
                        name="watched_url_is_acti_4b1c2e_idx",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Generation",
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
                (
                    "job_id",
                    models.UUIDField(
                        db_index=True, default=uuid.uuid4, editable=False, unique=True
                    ),
                ),
                ("url", models.URLField(max_length=2000)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("in_progress", "In Progress"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                            ("deleted", "Deleted"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=20,
                    ),
                ),
                (
                    "trigger",
                    models.CharField(
                        choices=[
                            ("manual", "Manual"),
                            ("automatic", "Automatic (change detected)"),
                        ],
                        default="manual",
                        max_length=20,
                    ),
                ),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("started_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("deleted_at", models.DateTimeField(blank=True, null=True)),
                ("options", models.JSONField(blank=True, default=dict)),
                ("output_reference", models.CharField(blank=True, max_length=255)),
                ("error_message", models.TextField(blank=True)),
                ("pages_crawled", models.IntegerField(default=0)),
                ("page_errors", models.JSONField(blank=True, default=list)),
                (
                    "watched_url",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="generations",
                        to="sitewatch.watchedurl",
                    ),
                ),
            ],
            options={
                "db_table": "generations",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "created_at"],
                        name="generations_status_8d0f3a_idx",
                    ),
                    models.Index(
                        fields=["watched_url", "created_at"],
                        name="generations_watched_2e7b91_idx",
                    ),
                    models.Index(
                        fields=["url", "created_at"],
                        name="generations_url_c5a9d4_idx",
                    ),
                ],
            },
        ),
    ]
