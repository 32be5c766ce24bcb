from __future__ import annotations

import uuid
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.html import strip_tags


class OrderStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    CONFIRMED = "confirmed", "Confirmed"
    PREPARING = "preparing", "Preparing"
    READY = "ready", "Ready for Pickup/Delivery"
    OUT_FOR_DELIVERY = "out_for_delivery", "Out for Delivery"
    DELIVERED = "delivered", "Delivered"
    CANCELLED = "cancelled", "Cancelled"


# Every status must appear as a key; terminal states map to an empty set.
ALLOWED_TRANSITIONS = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY, OrderStatus.CANCELLED}),
    OrderStatus.READY: frozenset({OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED}),
    OrderStatus.OUT_FOR_DELIVERY: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(status for status, targets in ALLOWED_TRANSITIONS.items() if not targets)
ACTIVE_STATUSES = frozenset(OrderStatus) - TERMINAL_STATUSES


def can_transition(current, requested) -> bool:
    try:
        current, requested = OrderStatus(current), OrderStatus(requested)
    except ValueError:
        return False
    return requested in ALLOWED_TRANSITIONS[current]


def generate_order_number(now=None) -> str:
    """Human readable order number: ``ORD-YYYYMMDD-XXXXXX``."""
    now = now or timezone.now()
    return f"ORD-{now:%Y%m%d}-{uuid.uuid4().hex[:6].upper()}"


class Order(models.Model):
    """
    A placed order. Money fields are a snapshot of the server-side pricing at
    creation time and never change afterwards; only status, delivery metadata
    and cancellation fields move.
    """

    tenant = models.ForeignKey(
        "core.Tenant",
        on_delete=models.CASCADE,
        related_name="orders",
    )
    restaurant = models.ForeignKey(
        "core.Restaurant",
        on_delete=models.CASCADE,
        related_name="orders",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="orders",
    )
    order_number = models.CharField(
        max_length=32,
        unique=True,
        help_text="Human readable order number"
    )
    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
        db_index=True,
    )

    # Pricing snapshot
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    cgst = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    sgst = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    igst = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    tax_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    delivery_fee = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    discount_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    rounding_adjustment = models.DecimalField(
        max_digits=6,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Residue from rounding independently rounded components"
    )
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))

    coupon = models.ForeignKey(
        "coupons.Coupon",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders",
    )
    coupon_code = models.CharField(max_length=64, blank=True)

    payment_reference = models.CharField(
        max_length=255,
        blank=True,
        help_text="Payment gateway intent id"
    )
    idempotency_key = models.CharField(
        max_length=128,
        help_text="Client supplied key; unique per tenant and user"
    )

    estimated_delivery_time = models.DateTimeField(null=True, blank=True)
    scheduled_for = models.DateTimeField(null=True, blank=True)
    actual_delivery_time = models.DateTimeField(null=True, blank=True)
    delivery_address = models.JSONField(default=dict, blank=True)
    delivery_metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Delivery person, location, eta and tracking notes"
    )
    notes = models.TextField(blank=True, max_length=1000)

    # Cancellation metadata
    cancellation_reason = models.TextField(blank=True, max_length=500)
    refund_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    refund_percentage = models.PositiveSmallIntegerField(
        default=0,
        validators=[MaxValueValidator(100)],
    )
    refund_reference = models.CharField(max_length=255, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["tenant", "restaurant", "status", "created_at"], name="order_restaurant_status_idx"),
            models.Index(fields=["tenant", "user", "-created_at"], name="order_user_recent_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["tenant", "user", "idempotency_key"],
                name="unique_order_idempotency_key",
            ),
            models.CheckConstraint(condition=models.Q(total_amount__gte=0), name="order_total_non_negative"),
            models.CheckConstraint(
                condition=models.Q(refund_amount__lte=models.F("total_amount")),
                name="order_refund_not_exceeding_total",
            ),
        ]

    def __str__(self):
        return f"{self.order_number} ({self.status})"

    def clean(self):
        super().clean()
        if self.restaurant_id and self.tenant_id and self.restaurant.tenant_id != self.tenant_id:
            raise ValidationError({"restaurant": "Restaurant belongs to a different tenant"})
        if self.notes:
            self.notes = strip_tags(self.notes).strip()

    def save(self, *args, **kwargs):
        if not self.order_number:
            self.order_number = generate_order_number(self.created_at)
        super().save(*args, **kwargs)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items.all())


class OrderItem(models.Model):
    """Immutable copy of a cart line at order time."""

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    menu_item = models.ForeignKey(
        "menu.MenuItem",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="order_items",
    )
    menu_item_name = models.CharField(max_length=200)
    unit_base_price = models.DecimalField(max_digits=10, decimal_places=2)
    modifiers = models.JSONField(default=list, blank=True)
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1), MaxValueValidator(50)])
    special_instructions = models.TextField(blank=True, max_length=500)
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    total_price = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        ordering = ["id"]
        constraints = [
            models.CheckConstraint(condition=models.Q(quantity__gte=1), name="order_item_quantity_positive"),
        ]

    def __str__(self):
        return f"{self.quantity} x {self.menu_item_name}"


class OrderStatusHistory(models.Model):
    """Append-only order timeline."""

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="timeline")
    status = models.CharField(max_length=20, choices=OrderStatus.choices)
    previous_status = models.CharField(max_length=20, choices=OrderStatus.choices, blank=True)
    changed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="order_status_changes",
    )
    notes = models.TextField(blank=True, max_length=1000)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        verbose_name_plural = "Order status history"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["order", "created_at"], name="order_timeline_idx"),
        ]

    def __str__(self):
        return f"{self.order_id}: {self.previous_status or '-'} -> {self.status}"

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise ValidationError("Timeline entries cannot be modified")
        super().save(*args, **kwargs)

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "previous_status": self.previous_status or None,
            "timestamp": self.created_at.isoformat(),
            "actor_id": self.changed_by_id,
            "notes": self.notes,
        }
