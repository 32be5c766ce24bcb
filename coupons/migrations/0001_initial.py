from decimal import Decimal

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("core", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Coupon",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(help_text="Coupon code, unique per restaurant (stored upper-case)", max_length=64)),
                ("description", models.TextField(blank=True, help_text="Public description shown to customers", max_length=500)),
                ("discount_type", models.CharField(choices=[("percentage", "Percentage"), ("fixed", "Fixed Amount")], default="percentage", max_length=20)),
                ("discount_value", models.DecimalField(decimal_places=2, help_text="Percent (0-100) for percentage coupons, amount for fixed coupons", max_digits=10, validators=[django.core.validators.MinValueValidator(Decimal("0.00"))])),
                ("min_order_value", models.DecimalField(decimal_places=2, default=Decimal("0.00"), help_text="Minimum order subtotal required to use this coupon", max_digits=10, validators=[django.core.validators.MinValueValidator(Decimal("0.00"))])),
                ("is_active", models.BooleanField(default=True)),
                ("valid_from", models.DateTimeField(blank=True, null=True)),
                ("valid_to", models.DateTimeField(blank=True, null=True)),
                ("max_usage", models.PositiveIntegerField(blank=True, help_text="Total redemptions allowed (blank = unlimited)", null=True)),
                ("current_usage", models.PositiveIntegerField(default=0, help_text="Redemptions so far; only changed by an atomic increment")),
                ("per_user_usage_cap", models.PositiveIntegerField(blank=True, help_text="Redemptions allowed per customer (blank = unlimited)", null=True)),
                ("new_users_only", models.BooleanField(default=False, help_text="Only customers without a previous order may use this coupon")),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now, editable=False)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("restaurant", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="coupons", to="core.restaurant")),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="coupons", to="core.tenant")),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["tenant", "restaurant", "code"], name="coupon_lookup_idx"),
                    models.Index(fields=["is_active", "valid_from", "valid_to"], name="coupon_window_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("tenant", "restaurant", "code"), name="unique_coupon_code_per_restaurant"),
                    models.CheckConstraint(condition=models.Q(("max_usage__isnull", True), ("current_usage__lte", models.F("max_usage")), _connector="OR"), name="coupon_usage_within_cap"),
                ],
            },
        ),
        migrations.CreateModel(
            name="CouponRedemption",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("order_reference", models.CharField(blank=True, max_length=64)),
                ("discount_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=10)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("coupon", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="redemptions", to="coupons.coupon")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="coupon_redemptions", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["coupon", "user"], name="coupon_redemption_user_idx")],
            },
        ),
    ]
