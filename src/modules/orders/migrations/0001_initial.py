import django.db.models.deletion
import uuid6
from django.db import migrations, models

import shared.domain.events


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("addresses", "0001_initial"),
        ("catalog", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Receipt",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid6.uuid7, editable=False, primary_key=True, serialize=False
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("merchant_reference", models.CharField(max_length=64, unique=True)),
                ("total_amount", models.PositiveBigIntegerField(default=0)),
                (
                    "payment_status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("paid", "Paid"),
                            ("cancelled", "Cancelled"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("payment_method", models.CharField(blank=True, default="", max_length=50)),
                ("payment_gateway", models.CharField(blank=True, default="", max_length=50)),
                ("transaction", models.JSONField(blank=True, default=None, null=True)),
            ],
            options={
                "db_table": "receipt",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["payment_status"], name="receipt_payment_status_idx"),
                ],
            },
            bases=(shared.domain.events.DomainEventMixin, models.Model),
        ),
        migrations.CreateModel(
            name="Order",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid6.uuid7, editable=False, primary_key=True, serialize=False
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("order_number", models.CharField(editable=False, max_length=20, unique=True)),
                ("buyer_id", models.CharField(max_length=64)),
                ("seller_id", models.CharField(db_index=True, max_length=64)),
                (
                    "target_kind",
                    models.CharField(
                        choices=[("ITEM", "Catalog item"), ("REFORM", "Reform proposal")],
                        default="ITEM",
                        max_length=10,
                    ),
                ),
                ("target_id", models.UUIDField()),
                ("title", models.CharField(blank=True, default="", max_length=255)),
                ("quantity", models.PositiveIntegerField(default=1)),
                ("price", models.PositiveBigIntegerField()),
                ("delivery_fee", models.PositiveIntegerField(default=0)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("PENDING", "Pending"),
                            ("PAID", "Paid"),
                            ("CANCELLED", "Cancelled"),
                        ],
                        default="PENDING",
                        max_length=20,
                    ),
                ),
                (
                    "address",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to="addresses.deliveryaddress",
                    ),
                ),
                (
                    "receipt",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="orders",
                        to="orders.receipt",
                    ),
                ),
            ],
            options={
                "db_table": "orders",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["buyer_id", "-created_at"], name="orders_buyer_created_idx"
                    ),
                    models.Index(fields=["status"], name="orders_status_idx"),
                ],
            },
            bases=(shared.domain.events.DomainEventMixin, models.Model),
        ),
        migrations.CreateModel(
            name="OrderOption",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid6.uuid7, editable=False, primary_key=True, serialize=False
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("label", models.CharField(blank=True, default="", max_length=255)),
                ("extra_price", models.PositiveIntegerField(default=0)),
                (
                    "option_item",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                        to="catalog.optionitem",
                    ),
                ),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="options",
                        to="orders.order",
                    ),
                ),
            ],
            options={
                "db_table": "order_option",
                "constraints": [
                    models.UniqueConstraint(fields=("order", "option_item"), name="uq_order_option"),
                ],
            },
        ),
    ]
