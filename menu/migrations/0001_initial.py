from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("core", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="MenuCategory",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(help_text="Category name (HTML tags will be stripped)", max_length=100)),
                ("description", models.TextField(blank=True, max_length=500)),
                ("sort_order", models.PositiveIntegerField(default=0)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("restaurant", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="menu_categories", to="core.restaurant")),
            ],
            options={
                "verbose_name_plural": "menu categories",
                "ordering": ["sort_order", "name"],
                "indexes": [models.Index(fields=["restaurant", "is_active", "sort_order"], name="menu_category_listing_idx")],
            },
        ),
        migrations.CreateModel(
            name="MenuItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=150)),
                ("description", models.TextField(blank=True, max_length=1000)),
                ("price", models.DecimalField(decimal_places=2, help_text="Base price before modifiers", max_digits=10, validators=[django.core.validators.MinValueValidator(Decimal("0.00"))])),
                ("is_available", models.BooleanField(default=True, help_text="Unavailable items cannot be added to carts or ordered")),
                ("sort_order", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("category", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="items", to="menu.menucategory")),
                ("restaurant", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="menu_items", to="core.restaurant")),
            ],
            options={
                "ordering": ["sort_order", "name"],
                "indexes": [
                    models.Index(fields=["restaurant", "is_available"], name="menu_item_available_idx"),
                    models.Index(fields=["category", "sort_order"], name="menu_item_category_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("price__gte", 0)), name="menu_item_price_non_negative"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ModifierGroup",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(help_text="Modifier group name (e.g., 'Size', 'Toppings')", max_length=100)),
                ("is_required", models.BooleanField(default=False)),
                ("min_selections", models.PositiveIntegerField(default=0)),
                ("max_selections", models.PositiveIntegerField(default=1)),
                ("sort_order", models.PositiveIntegerField(default=0)),
                ("menu_item", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="modifier_groups", to="menu.menuitem")),
            ],
            options={
                "ordering": ["sort_order", "name"],
            },
        ),
        migrations.CreateModel(
            name="Modifier",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(help_text="Modifier option name (e.g., 'Large', 'Extra Cheese')", max_length=100)),
                ("price", models.DecimalField(decimal_places=2, default=Decimal("0.00"), help_text="Price delta added to the item's base price", max_digits=10)),
                ("is_available", models.BooleanField(default=True)),
                ("sort_order", models.PositiveIntegerField(default=0)),
                ("modifier_group", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="modifiers", to="menu.modifiergroup")),
            ],
            options={
                "ordering": ["sort_order", "name"],
            },
        ),
    ]
