import django.db.models.deletion
import uuid6
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Item",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid6.uuid7, editable=False, primary_key=True, serialize=False
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("seller_id", models.CharField(db_index=True, max_length=64)),
                ("title", models.CharField(max_length=255)),
                ("base_price", models.PositiveIntegerField()),
                ("delivery_fee", models.PositiveIntegerField(default=0)),
                ("is_active", models.BooleanField(default=True)),
            ],
            options={
                "db_table": "item",
                "ordering": ["title"],
            },
        ),
        migrations.CreateModel(
            name="ReformProposal",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid6.uuid7, editable=False, primary_key=True, serialize=False
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("seller_id", models.CharField(db_index=True, max_length=64)),
                ("title", models.CharField(max_length=255)),
                ("price", models.PositiveIntegerField()),
                ("delivery_fee", models.PositiveIntegerField(default=0)),
            ],
            options={
                "db_table": "reform_proposal",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="OptionGroup",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid6.uuid7, editable=False, primary_key=True, serialize=False
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("name", models.CharField(max_length=100)),
                (
                    "item",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="option_groups",
                        to="catalog.item",
                    ),
                ),
            ],
            options={
                "db_table": "option_group",
                "ordering": ["created_at"],
            },
        ),
        migrations.CreateModel(
            name="OptionItem",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid6.uuid7, editable=False, primary_key=True, serialize=False
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("name", models.CharField(max_length=100)),
                ("extra_price", models.PositiveIntegerField(default=0)),
                ("quantity", models.PositiveIntegerField(blank=True, default=None, null=True)),
                (
                    "option_group",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="option_items",
                        to="catalog.optiongroup",
                    ),
                ),
            ],
            options={
                "db_table": "option_item",
                "ordering": ["created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("quantity__isnull", True), ("quantity__gte", 0), _connector="OR"),
                        name="option_item_quantity_non_negative",
                    ),
                ],
            },
        ),
    ]
