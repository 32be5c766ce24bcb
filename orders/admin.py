from __future__ import annotations

import csv

from django.contrib import admin
from django.http import HttpResponse

from .models import Order, OrderItem, OrderStatusHistory


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    raw_id_fields = ("menu_item",)
    readonly_fields = ("unit_base_price", "modifiers", "unit_price", "total_price")


class OrderStatusHistoryInline(admin.TabularInline):
    """The timeline is append-only, so the inline never edits or deletes."""
    model = OrderStatusHistory
    extra = 0
    can_delete = False
    readonly_fields = ("status", "previous_status", "changed_by", "notes", "created_at")

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = (
        "order_number",
        "restaurant",
        "user",
        "status",
        "subtotal",
        "discount_amount",
        "total_amount",
        "created_at",
    )
    list_filter = ("status", "restaurant", "created_at")
    date_hierarchy = "created_at"
    inlines = [OrderItemInline, OrderStatusHistoryInline]
    search_fields = ("=id", "order_number", "user__username", "coupon_code")
    raw_id_fields = ("user", "coupon")
    ordering = ("-created_at",)
    # Money and lifecycle fields only change through the ordering services
    readonly_fields = (
        "order_number", "status", "idempotency_key",
        "subtotal", "cgst", "sgst", "igst", "tax_amount", "delivery_fee",
        "discount_amount", "rounding_adjustment", "total_amount",
        "payment_reference", "refund_amount", "refund_percentage", "refund_reference",
        "cancelled_at", "actual_delivery_time",
    )
    actions = ["export_sales_csv"]

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("user", "restaurant")

    def export_sales_csv(self, request, queryset):
        response = HttpResponse(content_type="text/csv")
        response["Content-Disposition"] = 'attachment; filename="sales.csv"'
        writer = csv.writer(response)
        writer.writerow([
            "Order", "Created At", "Restaurant", "User", "Status",
            "Subtotal", "Tax", "Delivery Fee", "Discount", "Total",
        ])
        for o in queryset:
            writer.writerow([
                o.order_number,
                o.created_at.isoformat(),
                o.restaurant_id,
                getattr(o.user, "username", "") if o.user_id else "",
                o.status,
                str(o.subtotal),
                str(o.tax_amount),
                str(o.delivery_fee),
                str(o.discount_amount),
                str(o.total_amount),
            ])
        return response
    export_sales_csv.short_description = "Export Sales (CSV)"
