from __future__ import annotations

import re
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator, RegexValidator
from django.db import models
from django.utils.html import strip_tags

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def default_operating_hours() -> dict:
    return {day: {"open": "09:00", "close": "22:00", "is_open": True} for day in WEEKDAYS}


class Tenant(models.Model):
    """A brand or operator; every restaurant, coupon and order belongs to exactly one."""

    name = models.CharField(
        max_length=200,
        help_text="Tenant name (HTML tags will be stripped)"
    )
    slug = models.SlugField(max_length=80, unique=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        indexes = [
            models.Index(fields=["slug"], name="core_tenant_slug_idx"),
        ]

    def clean(self):
        super().clean()
        if self.name:
            self.name = strip_tags(self.name).strip()
            if not self.name:
                raise ValidationError({"name": "Tenant name cannot be empty after sanitization."})

    def __str__(self):
        return self.name


class Restaurant(models.Model):
    TAX_SPLIT_INTRASTATE = "intrastate"
    TAX_SPLIT_INTERSTATE = "interstate"
    TAX_SPLIT_CHOICES = [
        (TAX_SPLIT_INTRASTATE, "Intrastate (CGST + SGST)"),
        (TAX_SPLIT_INTERSTATE, "Interstate (IGST)"),
    ]

    timezone_regex = RegexValidator(
        regex=r"^[A-Za-z_]+/[A-Za-z_]+$|^UTC$",
        message="Timezone must be in format 'Region/City' or 'UTC'."
    )

    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        related_name="restaurants"
    )
    name = models.CharField(max_length=200)
    slug = models.SlugField(max_length=80)
    timezone = models.CharField(
        max_length=50,
        default="UTC",
        validators=[timezone_regex],
        help_text="Timezone in format 'Region/City' or 'UTC'"
    )
    tax_rate = models.DecimalField(
        max_digits=5,
        decimal_places=4,
        default=Decimal("0.0500"),
        validators=[MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("1"))],
        help_text="Tax rate as a fraction (0.05 = 5%)"
    )
    tax_split = models.CharField(
        max_length=20,
        choices=TAX_SPLIT_CHOICES,
        default=TAX_SPLIT_INTRASTATE,
        help_text="How the tax amount is split across CGST/SGST/IGST"
    )
    delivery_fee = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
        help_text="Flat delivery fee charged below the threshold"
    )
    delivery_fee_threshold = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
        help_text="Subtotal at or above which delivery is free"
    )
    operating_hours = models.JSONField(
        default=default_operating_hours,
        blank=True,
        help_text='Per weekday {"open": "HH:MM", "close": "HH:MM", "is_open": bool}'
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["tenant", "name"]
        constraints = [
            models.UniqueConstraint(fields=["tenant", "slug"], name="unique_restaurant_slug_per_tenant"),
            models.CheckConstraint(
                condition=models.Q(tax_rate__gte=0) & models.Q(tax_rate__lte=1),
                name="restaurant_tax_rate_fraction",
            ),
        ]
        indexes = [
            models.Index(fields=["tenant", "is_active"], name="core_restaurant_active_idx"),
        ]

    def clean(self):
        super().clean()
        hours = self.operating_hours or {}
        if not isinstance(hours, dict):
            raise ValidationError({"operating_hours": "Operating hours must be a mapping of weekdays."})
        for day, entry in hours.items():
            if day not in WEEKDAYS:
                raise ValidationError({"operating_hours": f"Unknown weekday '{day}'."})
            if not isinstance(entry, dict):
                raise ValidationError({"operating_hours": f"Hours for {day} must be an object."})
            for key in ("open", "close"):
                value = entry.get(key)
                if value is not None and not _HHMM.match(str(value)):
                    raise ValidationError({"operating_hours": f"{day}.{key} must be HH:MM."})

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.tenant.name} - {self.name}"
