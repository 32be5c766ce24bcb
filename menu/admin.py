from django.contrib import admin

from .models import MenuCategory, MenuItem, Modifier, ModifierGroup


class ModifierInline(admin.TabularInline):
    model = Modifier
    extra = 0
    fields = ("name", "price", "is_available", "sort_order")


class ModifierGroupInline(admin.TabularInline):
    model = ModifierGroup
    extra = 0
    fields = ("name", "is_required", "min_selections", "max_selections", "sort_order")
    show_change_link = True


@admin.register(MenuCategory)
class MenuCategoryAdmin(admin.ModelAdmin):
    list_display = ("name", "restaurant", "sort_order", "is_active")
    list_filter = ("restaurant", "is_active")
    search_fields = ("name",)
    list_editable = ("sort_order", "is_active")


@admin.register(MenuItem)
class MenuItemAdmin(admin.ModelAdmin):
    list_display = ("name", "restaurant", "category", "price", "is_available")
    list_filter = ("restaurant", "category", "is_available")
    search_fields = ("name", "description")
    list_editable = ("price", "is_available")
    inlines = [ModifierGroupInline]
    actions = ["mark_available", "mark_unavailable"]

    @admin.action(description="Mark selected items available")
    def mark_available(self, request, queryset):
        # Saved one by one so post_save invalidates each restaurant's cache
        for item in queryset:
            item.is_available = True
            item.save(update_fields=["is_available", "updated_at"])

    @admin.action(description="Mark selected items unavailable")
    def mark_unavailable(self, request, queryset):
        for item in queryset:
            item.is_available = False
            item.save(update_fields=["is_available", "updated_at"])


@admin.register(ModifierGroup)
class ModifierGroupAdmin(admin.ModelAdmin):
    list_display = ("name", "menu_item", "is_required", "min_selections", "max_selections")
    search_fields = ("name", "menu_item__name")
    inlines = [ModifierInline]
