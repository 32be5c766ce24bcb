from decimal import Decimal

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

STATUS_CHOICES = [
    ("pending", "Pending"),
    ("confirmed", "Confirmed"),
    ("preparing", "Preparing"),
    ("ready", "Ready for Pickup/Delivery"),
    ("out_for_delivery", "Out for Delivery"),
    ("delivered", "Delivered"),
    ("cancelled", "Cancelled"),
]


def money(**kwargs):
    return models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12, **kwargs)


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("core", "0001_initial"),
        ("menu", "0001_initial"),
        ("coupons", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Order",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("order_number", models.CharField(help_text="Human readable order number", max_length=32, unique=True)),
                ("status", models.CharField(choices=STATUS_CHOICES, db_index=True, default="pending", max_length=20)),
                ("subtotal", money()),
                ("cgst", money()),
                ("sgst", money()),
                ("igst", money()),
                ("tax_amount", money()),
                ("delivery_fee", money()),
                ("discount_amount", money()),
                ("rounding_adjustment", models.DecimalField(decimal_places=2, default=Decimal("0.00"), help_text="Residue from rounding independently rounded components", max_digits=6)),
                ("total_amount", money()),
                ("coupon_code", models.CharField(blank=True, max_length=64)),
                ("payment_reference", models.CharField(blank=True, help_text="Payment gateway intent id", max_length=255)),
                ("idempotency_key", models.CharField(help_text="Client supplied key; unique per tenant and user", max_length=128)),
                ("estimated_delivery_time", models.DateTimeField(blank=True, null=True)),
                ("scheduled_for", models.DateTimeField(blank=True, null=True)),
                ("actual_delivery_time", models.DateTimeField(blank=True, null=True)),
                ("delivery_address", models.JSONField(blank=True, default=dict)),
                ("delivery_metadata", models.JSONField(blank=True, default=dict, help_text="Delivery person, location, eta and tracking notes")),
                ("notes", models.TextField(blank=True, max_length=1000)),
                ("cancellation_reason", models.TextField(blank=True, max_length=500)),
                ("refund_amount", money()),
                ("refund_percentage", models.PositiveSmallIntegerField(default=0, validators=[django.core.validators.MaxValueValidator(100)])),
                ("refund_reference", models.CharField(blank=True, max_length=255)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("coupon", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="orders", to="coupons.coupon")),
                ("restaurant", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="orders", to="core.restaurant")),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="orders", to="core.tenant")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="orders", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["tenant", "restaurant", "status", "created_at"], name="order_restaurant_status_idx"),
                    models.Index(fields=["tenant", "user", "-created_at"], name="order_user_recent_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("tenant", "user", "idempotency_key"), name="unique_order_idempotency_key"),
                    models.CheckConstraint(condition=models.Q(("total_amount__gte", 0)), name="order_total_non_negative"),
                    models.CheckConstraint(condition=models.Q(("refund_amount__lte", models.F("total_amount"))), name="order_refund_not_exceeding_total"),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("menu_item_name", models.CharField(max_length=200)),
                ("unit_base_price", models.DecimalField(decimal_places=2, max_digits=10)),
                ("modifiers", models.JSONField(blank=True, default=list)),
                ("quantity", models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(50)])),
                ("special_instructions", models.TextField(blank=True, max_length=500)),
                ("unit_price", models.DecimalField(decimal_places=2, max_digits=10)),
                ("total_price", models.DecimalField(decimal_places=2, max_digits=12)),
                ("menu_item", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="order_items", to="menu.menuitem")),
                ("order", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="items", to="orders.order")),
            ],
            options={
                "ordering": ["id"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("quantity__gte", 1)), name="order_item_quantity_positive"),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderStatusHistory",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("status", models.CharField(choices=STATUS_CHOICES, max_length=20)),
                ("previous_status", models.CharField(blank=True, choices=STATUS_CHOICES, max_length=20)),
                ("notes", models.TextField(blank=True, max_length=1000)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("changed_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="order_status_changes", to=settings.AUTH_USER_MODEL)),
                ("order", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="timeline", to="orders.order")),
            ],
            options={
                "verbose_name_plural": "Order status history",
                "ordering": ["created_at", "id"],
                "indexes": [models.Index(fields=["order", "created_at"], name="order_timeline_idx")],
            },
        ),
    ]
