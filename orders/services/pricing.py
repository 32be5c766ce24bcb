"""
Cart and order pricing.

Everything here is pure: no ORM, no cache, no clock. Money is ``Decimal``
quantized to two places with ROUND_HALF_UP at each named step, so the same
inputs always reconcile to the same paisa.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, Optional, Sequence, Tuple

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")


def q2(value) -> Decimal:
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(TWOPLACES, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class ModifierSelection:
    group_id: int
    modifier_id: int
    price_delta: Decimal
    name: str = ""

    def to_dict(self) -> dict:
        return {
            "group_id": self.group_id,
            "modifier_id": self.modifier_id,
            "price_delta": str(q2(self.price_delta)),
            "name": self.name,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ModifierSelection":
        return cls(
            group_id=int(data["group_id"]),
            modifier_id=int(data["modifier_id"]),
            price_delta=Decimal(str(data.get("price_delta", "0"))),
            name=data.get("name", ""),
        )


@dataclass(frozen=True)
class LineItem:
    """A priced cart/order line. Unit and total prices are always derived."""

    reference_id: int
    unit_base_price: Decimal
    quantity: int
    modifiers: Tuple[ModifierSelection, ...] = ()
    special_instructions: str = ""
    name: str = ""
    line_id: Optional[str] = None

    @property
    def computed_unit_price(self) -> Decimal:
        return q2(self.unit_base_price + sum((m.price_delta for m in self.modifiers), ZERO))

    @property
    def computed_total_price(self) -> Decimal:
        return q2(self.computed_unit_price * self.quantity)

    @property
    def modifier_set(self) -> frozenset:
        """Order-independent identity of the selected options."""
        return frozenset((m.group_id, m.modifier_id) for m in self.modifiers)

    def same_configuration(self, other: "LineItem") -> bool:
        return int(self.reference_id) == int(other.reference_id) and self.modifier_set == other.modifier_set

    def to_dict(self) -> dict:
        return {
            "line_id": self.line_id,
            "reference_id": self.reference_id,
            "name": self.name,
            "unit_base_price": str(q2(self.unit_base_price)),
            "modifiers": [m.to_dict() for m in self.modifiers],
            "quantity": self.quantity,
            "special_instructions": self.special_instructions,
            "computed_unit_price": str(self.computed_unit_price),
            "computed_total_price": str(self.computed_total_price),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LineItem":
        return cls(
            reference_id=int(data["reference_id"]),
            unit_base_price=Decimal(str(data["unit_base_price"])),
            quantity=int(data["quantity"]),
            modifiers=tuple(ModifierSelection.from_dict(m) for m in data.get("modifiers") or ()),
            special_instructions=data.get("special_instructions") or "",
            name=data.get("name") or "",
            line_id=data.get("line_id"),
        )


@dataclass(frozen=True)
class TaxBreakdown:
    cgst: Decimal = ZERO
    sgst: Decimal = ZERO
    igst: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.cgst + self.sgst + self.igst

    def to_dict(self) -> dict:
        return {"cgst": str(self.cgst), "sgst": str(self.sgst), "igst": str(self.igst)}


class IntrastateTaxSplit:
    """Seller and buyer in the same state: tax is shared evenly by CGST and SGST."""

    name = "intrastate"

    def split(self, tax_amount: Decimal) -> TaxBreakdown:
        half = q2(tax_amount / 2)
        return TaxBreakdown(cgst=half, sgst=half, igst=ZERO)


class InterstateTaxSplit:
    name = "interstate"

    def split(self, tax_amount: Decimal) -> TaxBreakdown:
        return TaxBreakdown(igst=q2(tax_amount))


TAX_SPLIT_POLICIES = {
    IntrastateTaxSplit.name: IntrastateTaxSplit(),
    InterstateTaxSplit.name: InterstateTaxSplit(),
}


def get_tax_split_policy(name: Optional[str]):
    return TAX_SPLIT_POLICIES.get(name or IntrastateTaxSplit.name, TAX_SPLIT_POLICIES[IntrastateTaxSplit.name])


@dataclass(frozen=True)
class CartTotal:
    subtotal: Decimal = ZERO
    tax_breakdown: TaxBreakdown = field(default_factory=TaxBreakdown)
    delivery_fee: Decimal = ZERO
    discount: Decimal = ZERO
    rounding_adjustment: Decimal = ZERO
    total: Decimal = ZERO
    item_count: int = 0

    @property
    def tax(self) -> Decimal:
        return self.tax_breakdown.total

    def to_dict(self) -> dict:
        return {
            "subtotal": str(self.subtotal),
            "tax_breakdown": self.tax_breakdown.to_dict(),
            "tax": str(self.tax),
            "delivery_fee": str(self.delivery_fee),
            "discount": str(self.discount),
            "rounding_adjustment": str(self.rounding_adjustment),
            "total": str(self.total),
            "item_count": self.item_count,
        }


def subtotal_of(items: Iterable[LineItem]) -> Decimal:
    return q2(sum((item.computed_total_price for item in items), ZERO))


def compute_total(
    items: Sequence[LineItem],
    tax_rate,
    delivery_fee_threshold,
    delivery_fee_amount,
    discount=ZERO,
    tax_split=None,
) -> CartTotal:
    """Price a set of line items.

    Raises ``ValueError`` for a negative discount or a tax rate outside
    [0, 1]; those are caller bugs, not customer errors.
    """
    tax_rate = Decimal(str(tax_rate))
    discount = Decimal(str(discount or 0))
    if tax_rate < 0 or tax_rate > 1:
        raise ValueError(f"tax_rate must be within [0, 1], got {tax_rate}")
    if discount < 0:
        raise ValueError(f"discount must not be negative, got {discount}")

    items: List[LineItem] = list(items)
    if not items:
        return CartTotal()

    policy = tax_split or get_tax_split_policy(None)
    subtotal = subtotal_of(items)
    breakdown = policy.split(subtotal * tax_rate)

    threshold = Decimal(str(delivery_fee_threshold or 0))
    delivery_fee = q2(delivery_fee_amount or 0) if ZERO < subtotal < threshold else ZERO

    discount = q2(min(max(discount, ZERO), subtotal))

    pre_round_total = subtotal + breakdown.total + delivery_fee - discount
    total = q2(pre_round_total)
    rounding_adjustment = total - pre_round_total
    total = max(ZERO, total)

    return CartTotal(
        subtotal=subtotal,
        tax_breakdown=breakdown,
        delivery_fee=delivery_fee,
        discount=discount,
        rounding_adjustment=q2(rounding_adjustment),
        total=total,
        item_count=sum(item.quantity for item in items),
    )
