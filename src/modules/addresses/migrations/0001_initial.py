import uuid6
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="DeliveryAddress",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid6.uuid7, editable=False, primary_key=True, serialize=False
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("buyer_id", models.CharField(db_index=True, max_length=64)),
                ("recipient", models.CharField(blank=True, default="", max_length=100)),
                ("phone", models.CharField(blank=True, default="", max_length=20)),
                ("postal_code", models.CharField(max_length=10)),
                ("address", models.CharField(max_length=255)),
                ("address_detail", models.CharField(blank=True, default="", max_length=255)),
                ("is_default", models.BooleanField(default=False)),
            ],
            options={
                "db_table": "delivery_address",
                "ordering": ["-is_default", "-created_at"],
            },
        ),
    ]
