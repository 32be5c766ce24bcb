"""
Cache-backed shopping carts.

A cart lives under one key per (tenant, user) and carries the restaurant it
was filled for. Reading or mutating it for another restaurant starts from an
empty cart; the stale one is replaced on the next write, never merged.
"""
from __future__ import annotations

import hashlib
import json
import logging
import uuid
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Callable, List, Optional

from django.utils import timezone

from core.cache_config import (
    cart_calculation_key,
    cart_idempotency_key,
    cart_key,
)
from core.conf import ordering_setting
from core.results import (
    ErrorKind,
    NotFound,
    OrderingError,
    PriceMismatch,
    Result,
    UpstreamTimeout,
    ValidationFailed,
    error_from_dict,
    returns_result,
)

from .price_check import price_problem, reprice
from .pricing import CartTotal, LineItem, compute_total, get_tax_split_policy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CartKey:
    tenant_id: int
    user_id: int
    restaurant_id: int


@dataclass
class Cart:
    restaurant_id: int
    items: List[LineItem] = field(default_factory=list)
    updated_at: Optional[str] = None

    def find(self, line_id: str) -> Optional[int]:
        for index, line in enumerate(self.items):
            if line.line_id == line_id:
                return index
        return None

    def contents_hash(self) -> str:
        """Order-independent digest of what is in the cart."""
        rows = sorted(
            (
                line.reference_id,
                sorted(line.modifier_set),
                line.quantity,
                str(line.computed_unit_price),
            )
            for line in self.items
        )
        return hashlib.sha256(json.dumps(rows).encode()).hexdigest()[:32]

    def to_dict(self) -> dict:
        return {
            "restaurant_id": self.restaurant_id,
            "items": [line.to_dict() for line in self.items],
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Cart":
        return cls(
            restaurant_id=int(data["restaurant_id"]),
            items=[LineItem.from_dict(row) for row in data.get("items") or []],
            updated_at=data.get("updated_at"),
        )


class CartStore:
    """
    Cart operations for one cache. Every public method returns a ``Result``.

    Mutations re-validate prices against the live menu, refresh the cart TTL
    and answer with the recomputed totals. When an idempotency key is given
    the first answer (success or failure) is replayed for repeats of that key.
    """

    def __init__(self, cache, catalog, profiles, coupons=None, clock: Callable = timezone.now):
        self.cache = cache
        self.catalog = catalog
        self.profiles = profiles
        self.coupons = coupons
        self.clock = clock
        self.cart_ttl = ordering_setting("CART_TTL_SECONDS")
        self.idempotency_ttl = ordering_setting("CART_IDEMPOTENCY_TTL_SECONDS")
        self.calculation_ttl = ordering_setting("CART_CALCULATION_TTL_SECONDS")
        self.tolerance = Decimal(str(ordering_setting("PRICE_TOLERANCE")))
        self.max_quantity = int(ordering_setting("MAX_ITEM_QUANTITY"))
        self.max_instructions = int(ordering_setting("MAX_SPECIAL_INSTRUCTIONS"))

    # ------------------------------------------------------------------
    # storage
    # ------------------------------------------------------------------

    def load(self, key: CartKey) -> Cart:
        data = self.cache.get(cart_key(key.tenant_id, key.user_id))
        if not data:
            return Cart(restaurant_id=key.restaurant_id)
        if int(data.get("restaurant_id", 0)) != int(key.restaurant_id):
            logger.info(
                "Cart for user %s was filled at restaurant %s; starting fresh for %s",
                key.user_id, data.get("restaurant_id"), key.restaurant_id,
            )
            return Cart(restaurant_id=key.restaurant_id)
        return Cart.from_dict(data)

    def _save(self, key: CartKey, cart: Cart) -> None:
        cart.updated_at = self.clock().isoformat()
        self.cache.set(cart_key(key.tenant_id, key.user_id), cart.to_dict(), self.cart_ttl)

    def _profile(self, key: CartKey):
        profile = self.profiles.get_profile(key.tenant_id, key.restaurant_id)
        if profile is None:
            raise NotFound("Restaurant not found", field="restaurant_id")
        return profile

    def totals(self, key: CartKey, cart: Cart, discount=Decimal("0")) -> CartTotal:
        profile = self._profile(key)
        return compute_total(
            cart.items,
            tax_rate=profile.tax_rate,
            delivery_fee_threshold=profile.delivery_fee_threshold,
            delivery_fee_amount=profile.delivery_fee_amount,
            discount=discount,
            tax_split=get_tax_split_policy(profile.tax_split),
        )

    def _view(self, key: CartKey, cart: Cart) -> dict:
        data = cart.to_dict()
        data["totals"] = self.totals(key, cart).to_dict()
        return data

    def _idempotent(self, key: CartKey, idempotency_key: Optional[str], operation: Callable[[], dict]) -> Result:
        if not idempotency_key:
            return self._run(operation)
        replay_key = cart_idempotency_key(key.tenant_id, key.user_id, idempotency_key)
        try:
            cached = self.cache.get(replay_key)
        except UpstreamTimeout as e:
            return Result.failure(e)
        if cached is not None:
            logger.debug("Replaying cart response for idempotency key %s", idempotency_key)
            if cached.get("ok"):
                return Result.success(cached["value"], replayed=True)
            return Result.failure(error_from_dict(cached["error"]))

        result = self._run(operation)
        if result.ok:
            stored = {"ok": True, "value": result.value}
        elif result.kind == ErrorKind.UPSTREAM_TIMEOUT:
            # Infrastructure failures are never replayed
            return result
        else:
            stored = {"ok": False, "error": result.error.to_dict()}
        try:
            self.cache.set(replay_key, stored, self.idempotency_ttl)
        except UpstreamTimeout:
            logger.warning("Could not store cart idempotency record %s", idempotency_key)
        return result

    @staticmethod
    def _run(operation: Callable[[], dict]) -> Result:
        try:
            return Result.success(operation())
        except OrderingError as exc:
            logger.info("Cart operation failed: %s (%s)", exc.message, exc.kind.value)
            return Result.failure(exc)

    # ------------------------------------------------------------------
    # validation
    # ------------------------------------------------------------------

    def _check_quantity(self, quantity) -> int:
        try:
            quantity = int(quantity)
        except (TypeError, ValueError):
            raise ValidationFailed("Quantity must be a whole number", field="quantity")
        if quantity < 1 or quantity > self.max_quantity:
            raise ValidationFailed(f"Quantity must be between 1 and {self.max_quantity}", field="quantity")
        return quantity

    def validated_line(self, key: CartKey, line: LineItem) -> LineItem:
        """Line re-priced from the live menu; raises when the client disagrees."""
        if len(line.special_instructions or "") > self.max_instructions:
            raise ValidationFailed(
                f"Special instructions cannot exceed {self.max_instructions} characters",
                field="special_instructions",
            )
        catalog_item = self.catalog.get_item(key.tenant_id, key.restaurant_id, line.reference_id)
        problem = price_problem(line, catalog_item, self.tolerance)
        if problem is not None:
            kind = problem["problem"]
            if kind == "not_found":
                raise NotFound(problem["message"], field="reference_id", details=problem)
            if kind in ("unavailable", "modifier_unavailable"):
                raise ValidationFailed(problem["message"], field="reference_id", details=problem)
            raise PriceMismatch(problem["message"], field="unit_base_price", details=problem)
        return reprice(line, catalog_item)

    # ------------------------------------------------------------------
    # operations
    # ------------------------------------------------------------------

    @returns_result
    def get(self, key: CartKey) -> dict:
        return self._view(key, self.load(key))

    def add_item(self, key: CartKey, line: LineItem, idempotency_key: Optional[str] = None) -> Result:
        def operation():
            quantity = self._check_quantity(line.quantity)
            priced = self.validated_line(key, replace(line, quantity=quantity))
            cart = self.load(key)
            index = next((i for i, existing in enumerate(cart.items) if existing.same_configuration(priced)), None)
            if index is None:
                cart.items.append(replace(priced, line_id=uuid.uuid4().hex))
            else:
                existing = cart.items[index]
                merged = existing.quantity + priced.quantity
                if merged > self.max_quantity:
                    raise ValidationFailed(
                        f"Quantity must be between 1 and {self.max_quantity}",
                        field="quantity",
                        details={"line_id": existing.line_id, "current_quantity": existing.quantity},
                    )
                cart.items[index] = replace(
                    priced,
                    line_id=existing.line_id,
                    quantity=merged,
                    special_instructions=priced.special_instructions or existing.special_instructions,
                )
            self._save(key, cart)
            return self._view(key, cart)

        return self._idempotent(key, idempotency_key, operation)

    def update_quantity(self, key: CartKey, line_id: str, quantity, idempotency_key: Optional[str] = None) -> Result:
        def operation():
            try:
                requested = int(quantity)
            except (TypeError, ValueError):
                raise ValidationFailed("Quantity must be a whole number", field="quantity")
            cart = self.load(key)
            index = cart.find(line_id)
            if index is None:
                raise NotFound("Cart item not found", field="line_id")
            if requested == 0:
                del cart.items[index]
            else:
                cart.items[index] = replace(cart.items[index], quantity=self._check_quantity(requested))
            self._save(key, cart)
            return self._view(key, cart)

        return self._idempotent(key, idempotency_key, operation)

    def remove_item(self, key: CartKey, line_id: str, idempotency_key: Optional[str] = None) -> Result:
        def operation():
            cart = self.load(key)
            index = cart.find(line_id)
            if index is None:
                raise NotFound("Cart item not found", field="line_id")
            del cart.items[index]
            self._save(key, cart)
            return self._view(key, cart)

        return self._idempotent(key, idempotency_key, operation)

    def clear(self, key: CartKey, idempotency_key: Optional[str] = None) -> Result:
        def operation():
            self.cache.delete(cart_key(key.tenant_id, key.user_id))
            return self._view(key, Cart(restaurant_id=key.restaurant_id))

        return self._idempotent(key, idempotency_key, operation)

    @returns_result
    def calculate_total(self, key: CartKey, coupon_code: Optional[str] = None) -> dict:
        """Display-only pricing snapshot, cached briefly by contents and coupon."""
        cart = self.load(key)
        code = (coupon_code or "").strip().upper() or None
        snapshot_key = cart_calculation_key(
            key.tenant_id, key.user_id, key.restaurant_id, cart.contents_hash(), code,
        )
        try:
            cached = self.cache.get(snapshot_key)
        except UpstreamTimeout:
            cached = None
        if cached is not None:
            return cached

        quote = None
        discount = Decimal("0")
        if code and cart.items:
            if self.coupons is None:
                raise ValidationFailed("Coupons are not supported here", field="coupon_code")
            subtotal = self.totals(key, cart).subtotal
            quote = self.coupons.quote(key.tenant_id, key.restaurant_id, code, subtotal, key.user_id)
            discount = quote.discount

        data = {
            "restaurant_id": cart.restaurant_id,
            "item_count": sum(line.quantity for line in cart.items),
            "coupon": quote.to_dict() if quote else None,
            "totals": self.totals(key, cart, discount).to_dict(),
            "calculated_at": self.clock().isoformat(),
        }
        try:
            self.cache.set(snapshot_key, data, self.calculation_ttl)
        except UpstreamTimeout:
            logger.warning("Could not cache cart calculation for user %s", key.user_id)
        return data
