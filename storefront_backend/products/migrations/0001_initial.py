from __future__ import annotations

import uuid

from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Product",
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
                ("name", models.CharField(db_index=True, max_length=255)),
                ("description", models.TextField(blank=True, default="")),
                ("price", models.DecimalField(decimal_places=2, max_digits=10)),
                ("is_active", models.BooleanField(default=True)),
                ("provides_tokens", models.BooleanField(default=False)),
                (
                    "token_quantity",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Tokens credited per unit purchased (only when provides_tokens is set).",
                    ),
                ),
                ("is_live_session", models.BooleanField(default=False)),
                ("session_starts_at", models.DateTimeField(blank=True, null=True)),
                ("session_join_url", models.URLField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["name"], name="products_pr_name_9ff0a3_idx"),
                    models.Index(
                        fields=["provides_tokens"], name="products_pr_provide_4c1e2b_idx"
                    ),
                ],
            },
        ),
    ]
