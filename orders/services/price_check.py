from __future__ import annotations

from dataclasses import replace
from decimal import Decimal
from typing import Optional

from .pricing import LineItem, ModifierSelection


def price_problem(line: LineItem, catalog_item, tolerance: Decimal) -> Optional[dict]:
    """Compare a client-priced line with the live menu; ``None`` when it agrees.

    The returned dict names the item and says what disagreed, so callers can
    list every offending line in one response.
    """
    label = line.name or f"item {line.reference_id}"
    if catalog_item is None:
        return {"reference_id": line.reference_id, "name": label, "problem": "not_found",
                "message": f"{label} is no longer on the menu"}
    label = catalog_item.name
    if not catalog_item.available:
        return {"reference_id": line.reference_id, "name": label, "problem": "unavailable",
                "message": f"{label} is currently unavailable"}
    if abs(Decimal(line.unit_base_price) - catalog_item.base_price) > tolerance:
        return {
            "reference_id": line.reference_id,
            "name": label,
            "problem": "price_changed",
            "submitted": str(line.unit_base_price),
            "current": str(catalog_item.base_price),
            "message": f"Price has changed for {label}. Please refresh and try again.",
        }
    for selection in line.modifiers:
        option = catalog_item.modifier(selection.group_id, selection.modifier_id)
        if option is None or not option.available:
            return {
                "reference_id": line.reference_id,
                "name": label,
                "problem": "modifier_unavailable",
                "modifier_id": selection.modifier_id,
                "message": f"A selected option for {label} is no longer available",
            }
        if abs(Decimal(selection.price_delta) - option.price) > tolerance:
            return {
                "reference_id": line.reference_id,
                "name": label,
                "problem": "modifier_price_changed",
                "modifier_id": selection.modifier_id,
                "submitted": str(selection.price_delta),
                "current": str(option.price),
                "message": f"Price has changed for {label}. Please refresh and try again.",
            }
    return None


def reprice(line: LineItem, catalog_item) -> LineItem:
    """Copy of ``line`` carrying the menu's own prices and names."""
    modifiers = []
    for selection in line.modifiers:
        option = catalog_item.modifier(selection.group_id, selection.modifier_id)
        modifiers.append(ModifierSelection(
            group_id=option.group_id,
            modifier_id=option.modifier_id,
            price_delta=option.price,
            name=option.name,
        ))
    return replace(
        line,
        unit_base_price=catalog_item.base_price,
        modifiers=tuple(modifiers),
        name=catalog_item.name,
    )
