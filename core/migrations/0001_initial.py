from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.db import migrations, models

import core.models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Tenant",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(help_text="Tenant name (HTML tags will be stripped)", max_length=200)),
                ("slug", models.SlugField(max_length=80, unique=True)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["name"],
                "indexes": [models.Index(fields=["slug"], name="core_tenant_slug_idx")],
            },
        ),
        migrations.CreateModel(
            name="Restaurant",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("slug", models.SlugField(max_length=80)),
                ("timezone", models.CharField(default="UTC", help_text="Timezone in format 'Region/City' or 'UTC'", max_length=50, validators=[django.core.validators.RegexValidator(message="Timezone must be in format 'Region/City' or 'UTC'.", regex="^[A-Za-z_]+/[A-Za-z_]+$|^UTC$")])),
                ("tax_rate", models.DecimalField(decimal_places=4, default=Decimal("0.0500"), help_text="Tax rate as a fraction (0.05 = 5%)", max_digits=5, validators=[django.core.validators.MinValueValidator(Decimal("0")), django.core.validators.MaxValueValidator(Decimal("1"))])),
                ("tax_split", models.CharField(choices=[("intrastate", "Intrastate (CGST + SGST)"), ("interstate", "Interstate (IGST)")], default="intrastate", help_text="How the tax amount is split across CGST/SGST/IGST", max_length=20)),
                ("delivery_fee", models.DecimalField(decimal_places=2, default=Decimal("0.00"), help_text="Flat delivery fee charged below the threshold", max_digits=10, validators=[django.core.validators.MinValueValidator(Decimal("0.00"))])),
                ("delivery_fee_threshold", models.DecimalField(decimal_places=2, default=Decimal("0.00"), help_text="Subtotal at or above which delivery is free", max_digits=10, validators=[django.core.validators.MinValueValidator(Decimal("0.00"))])),
                ("operating_hours", models.JSONField(blank=True, default=core.models.default_operating_hours, help_text='Per weekday {"open": "HH:MM", "close": "HH:MM", "is_open": bool}')),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="restaurants", to="core.tenant")),
            ],
            options={
                "ordering": ["tenant", "name"],
                "indexes": [models.Index(fields=["tenant", "is_active"], name="core_restaurant_active_idx")],
                "constraints": [
                    models.UniqueConstraint(fields=("tenant", "slug"), name="unique_restaurant_slug_per_tenant"),
                    models.CheckConstraint(condition=models.Q(("tax_rate__gte", 0), ("tax_rate__lte", 1)), name="restaurant_tax_rate_fraction"),
                ],
            },
        ),
    ]
