from __future__ import annotations

from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from core.api import TenantScopedMixin
from core.results import ValidationFailed

from .services import MenuListingService


class _ListingView(TenantScopedMixin, APIView):
    """Base for conditional (ETag) menu listings."""

    permission_classes = [AllowAny]
    listing_service_class = MenuListingService

    def get_listing(self, restaurant, if_none_match):
        raise NotImplementedError

    def get(self, request, *args, **kwargs):
        restaurant = self.get_restaurant()
        listing = self.get_listing(restaurant, request.headers.get("If-None-Match"))
        if listing.not_modified:
            response = Response(status=status.HTTP_304_NOT_MODIFIED)
        else:
            response = Response({"success": True, "data": listing.data})
        response["ETag"] = listing.etag
        response["Cache-Control"] = "private, max-age=0, must-revalidate"
        return response


class MenuCategoryListView(_ListingView):
    def get_listing(self, restaurant, if_none_match):
        return self.listing_service_class().categories(restaurant.tenant_id, restaurant.pk, if_none_match)


class MenuItemListView(_ListingView):
    def get_listing(self, restaurant, if_none_match):
        category_id = self.kwargs.get("category_id") or self.request.query_params.get("category_id")
        try:
            category_id = int(category_id) if category_id else None
        except ValueError:
            raise ValidationFailed("category_id must be an integer", field="category_id")
        return self.listing_service_class().items(
            restaurant.tenant_id,
            restaurant.pk,
            category_id=category_id,
            if_none_match=if_none_match,
        )
