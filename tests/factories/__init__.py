from .accounts import UserFactory, StaffUserFactory
from .core import TenantFactory, RestaurantFactory
from .menu import MenuCategoryFactory, MenuItemFactory, ModifierGroupFactory, ModifierFactory
from .coupons import CouponFactory
from .orders import OrderFactory, OrderItemFactory

__all__ = [
    "UserFactory",
    "StaffUserFactory",
    "TenantFactory",
    "RestaurantFactory",
    "MenuCategoryFactory",
    "MenuItemFactory",
    "ModifierGroupFactory",
    "ModifierFactory",
    "CouponFactory",
    "OrderFactory",
    "OrderItemFactory",
]
