from django.contrib import admin

from .models import Coupon, CouponRedemption


@admin.register(Coupon)
class CouponAdmin(admin.ModelAdmin):
    list_display = (
        "code", "restaurant", "discount_type", "discount_value", "min_order_value",
        "current_usage", "max_usage", "is_active", "valid_from", "valid_to",
    )
    list_filter = ("tenant", "restaurant", "discount_type", "is_active", "new_users_only")
    search_fields = ("code", "description")
    readonly_fields = ("current_usage", "created_at", "updated_at")


@admin.register(CouponRedemption)
class CouponRedemptionAdmin(admin.ModelAdmin):
    list_display = ("coupon", "user", "order_reference", "discount_amount", "created_at")
    search_fields = ("coupon__code", "order_reference")
    readonly_fields = ("coupon", "user", "order_reference", "discount_amount", "created_at")
