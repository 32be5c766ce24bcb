import factory
from decimal import Decimal

from menu import models as menu_models
from .core import RestaurantFactory


class MenuCategoryFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = menu_models.MenuCategory

    restaurant = factory.SubFactory(RestaurantFactory)
    name = factory.Sequence(lambda n: f"Category {n}")
    description = ""
    is_active = True
    sort_order = 0


class MenuItemFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = menu_models.MenuItem

    restaurant = factory.SubFactory(RestaurantFactory)
    category = factory.SubFactory(MenuCategoryFactory, restaurant=factory.SelfAttribute("..restaurant"))
    name = factory.Sequence(lambda n: f"Item {n}")
    description = ""
    price = Decimal("250.00")
    is_available = True
    sort_order = 0


class ModifierGroupFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = menu_models.ModifierGroup

    menu_item = factory.SubFactory(MenuItemFactory)
    name = factory.Sequence(lambda n: f"Group {n}")
    is_required = False
    min_selections = 0
    max_selections = 3
    sort_order = 0


class ModifierFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = menu_models.Modifier

    modifier_group = factory.SubFactory(ModifierGroupFactory)
    name = factory.Sequence(lambda n: f"Option {n}")
    price = Decimal("30.00")
    is_available = True
    sort_order = 0
