from django.conf import settings

DEFAULTS = {
    "CART_TTL_SECONDS": 86400,
    "CART_IDEMPOTENCY_TTL_SECONDS": 300,
    "CART_CALCULATION_TTL_SECONDS": 300,
    "MENU_LISTING_TTL_SECONDS": 3600,
    "PRICE_TOLERANCE": "0.01",
    "TOTAL_TOLERANCE": "0.02",
    "MAX_ITEM_QUANTITY": 50,
    "MAX_SPECIAL_INSTRUCTIONS": 500,
    "BULK_MAX_ORDERS": 50,
    "FULL_REFUND_WINDOW_MINUTES": 15,
    "PARTIAL_REFUND_WINDOW_MINUTES": 30,
    "PARTIAL_REFUND_PERCENTAGE": 75,
    "BASE_PREPARATION_MINUTES": 15,
    "PER_ITEM_PREPARATION_MINUTES": 3,
    "DELIVERY_MINUTES": 20,
    "BUFFER_MINUTES": 5,
    "DEFAULT_TAX_SPLIT": "intrastate",
}


def ordering_setting(name: str):
    """Value from ``settings.ORDERING``, falling back to the built-in default."""
    return getattr(settings, "ORDERING", {}).get(name, DEFAULTS[name])
