from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from orders.services.pricing import q2


class Coupon(models.Model):
    """Restaurant-scoped discount code with a time window and usage caps."""

    TYPE_PERCENTAGE = "percentage"
    TYPE_FIXED = "fixed"

    DISCOUNT_TYPE_CHOICES = [
        (TYPE_PERCENTAGE, "Percentage"),
        (TYPE_FIXED, "Fixed Amount"),
    ]

    tenant = models.ForeignKey(
        "core.Tenant",
        on_delete=models.CASCADE,
        related_name="coupons",
    )
    restaurant = models.ForeignKey(
        "core.Restaurant",
        on_delete=models.CASCADE,
        related_name="coupons",
    )
    code = models.CharField(
        max_length=64,
        help_text="Coupon code, unique per restaurant (stored upper-case)"
    )
    description = models.TextField(
        blank=True,
        max_length=500,
        help_text="Public description shown to customers"
    )

    discount_type = models.CharField(
        max_length=20,
        choices=DISCOUNT_TYPE_CHOICES,
        default=TYPE_PERCENTAGE,
    )
    discount_value = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
        help_text="Percent (0-100) for percentage coupons, amount for fixed coupons"
    )
    min_order_value = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
        help_text="Minimum order subtotal required to use this coupon"
    )

    is_active = models.BooleanField(default=True)
    valid_from = models.DateTimeField(null=True, blank=True)
    valid_to = models.DateTimeField(null=True, blank=True)

    max_usage = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Total redemptions allowed (blank = unlimited)"
    )
    current_usage = models.PositiveIntegerField(
        default=0,
        help_text="Redemptions so far; only changed by an atomic increment"
    )
    per_user_usage_cap = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Redemptions allowed per customer (blank = unlimited)"
    )
    new_users_only = models.BooleanField(
        default=False,
        help_text="Only customers without a previous order may use this coupon"
    )

    created_at = models.DateTimeField(default=timezone.now, editable=False)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(fields=["tenant", "restaurant", "code"], name="unique_coupon_code_per_restaurant"),
            models.CheckConstraint(
                condition=models.Q(max_usage__isnull=True) | models.Q(current_usage__lte=models.F("max_usage")),
                name="coupon_usage_within_cap",
            ),
        ]
        indexes = [
            models.Index(fields=["tenant", "restaurant", "code"], name="coupon_lookup_idx"),
            models.Index(fields=["is_active", "valid_from", "valid_to"], name="coupon_window_idx"),
        ]

    def __str__(self):
        return f"{self.code} ({self.get_discount_type_display()})"

    def clean(self):
        super().clean()
        if self.discount_type == self.TYPE_PERCENTAGE and self.discount_value > 100:
            raise ValidationError({"discount_value": "Invalid discount value for the discount type"})
        if self.valid_from and self.valid_to and self.valid_to <= self.valid_from:
            raise ValidationError({"valid_to": "Valid to date must be after valid from date"})
        if self.restaurant_id and self.tenant_id and self.restaurant.tenant_id != self.tenant_id:
            raise ValidationError({"restaurant": "Restaurant belongs to a different tenant"})

    def save(self, *args, **kwargs):
        self.code = (self.code or "").strip().upper()
        super().save(*args, **kwargs)

    @property
    def is_exhausted(self) -> bool:
        return self.max_usage is not None and self.current_usage >= self.max_usage

    def validity_problem(self, order_value=None, now=None):
        """Reason the coupon cannot be applied, or ``None``.

        Checks run in a fixed order and the first failure wins.
        """
        now = now or timezone.now()
        if not self.is_active:
            return "Coupon is not active"
        if self.valid_from and now < self.valid_from:
            return "Coupon is not yet valid"
        if self.valid_to and now > self.valid_to:
            return "Coupon has expired"
        if self.is_exhausted:
            return "Coupon usage limit reached"
        if order_value is not None and Decimal(str(order_value)) < self.min_order_value:
            return f"Minimum order value of ₹{self.min_order_value} required"
        return None

    def calculate_discount(self, order_value) -> Decimal:
        order_value = Decimal(str(order_value))
        if self.discount_type == self.TYPE_PERCENTAGE:
            return q2(order_value * self.discount_value / Decimal("100"))
        return q2(min(self.discount_value, order_value))


class CouponRedemption(models.Model):
    """One row per successful redemption; backs the per-customer cap."""

    coupon = models.ForeignKey(
        Coupon,
        on_delete=models.CASCADE,
        related_name="redemptions",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="coupon_redemptions",
    )
    order_reference = models.CharField(max_length=64, blank=True)
    discount_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["coupon", "user"], name="coupon_redemption_user_idx"),
        ]

    def __str__(self):
        return f"{self.coupon.code} by {self.user_id} ({self.order_reference or '-'})"
