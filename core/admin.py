from django.contrib import admin

from .models import Restaurant, Tenant


class RestaurantInline(admin.TabularInline):
    model = Restaurant
    extra = 0
    fields = ('name', 'slug', 'tax_rate', 'delivery_fee', 'delivery_fee_threshold', 'is_active')


@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    list_display = ('name', 'slug', 'is_active', 'created_at')
    list_filter = ('is_active',)
    search_fields = ('name', 'slug')
    prepopulated_fields = {'slug': ('name',)}
    inlines = [RestaurantInline]


@admin.register(Restaurant)
class RestaurantAdmin(admin.ModelAdmin):
    list_display = ('name', 'tenant', 'tax_rate', 'tax_split', 'delivery_fee', 'delivery_fee_threshold', 'is_active')
    list_filter = ('tenant', 'tax_split', 'is_active')
    search_fields = ('name', 'slug', 'tenant__name')
    readonly_fields = ('created_at', 'updated_at')

    fieldsets = (
        ('Basic Information', {
            'fields': ('tenant', 'name', 'slug', 'timezone', 'is_active')
        }),
        ('Pricing', {
            'fields': ('tax_rate', 'tax_split', 'delivery_fee', 'delivery_fee_threshold')
        }),
        ('Operating Hours', {
            'fields': ('operating_hours',)
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )
