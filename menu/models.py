from __future__ import annotations

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils.html import strip_tags


class MenuCategory(models.Model):
    """Category grouping for a restaurant's menu items."""

    restaurant = models.ForeignKey(
        "core.Restaurant",
        on_delete=models.CASCADE,
        related_name="menu_categories",
    )
    name = models.CharField(
        max_length=100,
        help_text="Category name (HTML tags will be stripped)"
    )
    description = models.TextField(blank=True, max_length=500)
    sort_order = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["sort_order", "name"]
        verbose_name_plural = "menu categories"
        indexes = [
            models.Index(fields=["restaurant", "is_active", "sort_order"], name="menu_category_listing_idx"),
        ]

    def clean(self):
        super().clean()
        if self.name:
            self.name = strip_tags(self.name).strip()
            if not self.name:
                raise ValidationError({"name": "Category name cannot be empty after sanitization."})

    def __str__(self):
        return self.name


class MenuItem(models.Model):
    restaurant = models.ForeignKey(
        "core.Restaurant",
        on_delete=models.CASCADE,
        related_name="menu_items",
    )
    category = models.ForeignKey(
        MenuCategory,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="items",
    )
    name = models.CharField(max_length=150)
    description = models.TextField(blank=True, max_length=1000)
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
        help_text="Base price before modifiers"
    )
    is_available = models.BooleanField(
        default=True,
        help_text="Unavailable items cannot be added to carts or ordered"
    )
    sort_order = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["sort_order", "name"]
        indexes = [
            models.Index(fields=["restaurant", "is_available"], name="menu_item_available_idx"),
            models.Index(fields=["category", "sort_order"], name="menu_item_category_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=models.Q(price__gte=0), name="menu_item_price_non_negative"),
        ]

    def clean(self):
        super().clean()
        if self.category_id and self.category.restaurant_id != self.restaurant_id:
            raise ValidationError({"category": "Category belongs to a different restaurant."})

    def __str__(self):
        return f"{self.name} ({self.price})"


class ModifierGroup(models.Model):
    """
    A choice the customer makes for an item, e.g. 'Size' or 'Toppings'.
    The individual options are ``Modifier`` rows.
    """
    menu_item = models.ForeignKey(
        MenuItem,
        on_delete=models.CASCADE,
        related_name="modifier_groups",
    )
    name = models.CharField(
        max_length=100,
        help_text="Modifier group name (e.g., 'Size', 'Toppings')"
    )
    is_required = models.BooleanField(default=False)
    min_selections = models.PositiveIntegerField(default=0)
    max_selections = models.PositiveIntegerField(default=1)
    sort_order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["sort_order", "name"]

    def clean(self):
        super().clean()
        if self.max_selections and self.min_selections > self.max_selections:
            raise ValidationError({"min_selections": "Minimum selections cannot exceed maximum selections."})

    def __str__(self):
        return f"{self.menu_item.name} / {self.name}"


class Modifier(models.Model):
    modifier_group = models.ForeignKey(
        ModifierGroup,
        on_delete=models.CASCADE,
        related_name="modifiers",
    )
    name = models.CharField(
        max_length=100,
        help_text="Modifier option name (e.g., 'Large', 'Extra Cheese')"
    )
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Price delta added to the item's base price"
    )
    is_available = models.BooleanField(default=True)
    sort_order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["sort_order", "name"]

    def __str__(self):
        return f"{self.name} (+{self.price})"
