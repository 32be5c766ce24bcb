from __future__ import annotations

from django.urls import path

from .api_views import MenuCategoryListView, MenuItemListView

urlpatterns = [
    path("restaurants/<int:restaurant_id>/menu/categories/", MenuCategoryListView.as_view(), name="menu-categories"),
    path("restaurants/<int:restaurant_id>/menu/items/", MenuItemListView.as_view(), name="menu-items"),
    path(
        "restaurants/<int:restaurant_id>/menu/categories/<int:category_id>/items/",
        MenuItemListView.as_view(),
        name="menu-category-items",
    ),
]
