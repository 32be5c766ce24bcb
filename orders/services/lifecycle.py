"""
Order lifecycle: idempotent creation from a priced cart, the status state
machine with its append-only timeline, time-windowed cancellation with
refunds, delivery metadata and bulk operations.

Public methods return ``core.results.Result``. Internally they raise
``OrderingError`` subclasses so that ``transaction.atomic`` rolls back
everything a failed operation touched.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from django.db import IntegrityError, transaction
from django.utils import timezone

from core.conf import ordering_setting
from core.results import (
    CancellationWindowExpired,
    InvalidSchedule,
    InvalidTransition,
    NotCancellable,
    NotFound,
    PriceValidationFailed,
    Result,
    TotalMismatch,
    ValidationFailed,
    returns_result,
)

from ..models import (
    ACTIVE_STATUSES,
    Order,
    OrderItem,
    OrderStatus,
    OrderStatusHistory,
    can_transition,
)
from .price_check import price_problem, reprice
from .pricing import LineItem, compute_total, get_tax_split_policy, q2, subtotal_of

logger = logging.getLogger(__name__)

DELIVERY_METADATA_FIELDS = frozenset({
    "delivery_person_id",
    "delivery_person_name",
    "delivery_person_phone",
    "current_location",
    "eta",
    "tracking_notes",
})

BULK_STATUS_UPDATE = "status_update"
BULK_CANCEL = "cancel"
BULK_ASSIGN_DELIVERY = "assign_delivery"
BULK_ACTIONS = (BULK_STATUS_UPDATE, BULK_CANCEL, BULK_ASSIGN_DELIVERY)

DELIVERY_ASSIGNABLE_STATUSES = frozenset({OrderStatus.READY, OrderStatus.OUT_FOR_DELIVERY})

MAX_REASON_LENGTH = 500


@dataclass(frozen=True)
class OrderDraft:
    """Everything the client submits at checkout."""

    tenant_id: int
    restaurant_id: int
    user_id: int
    idempotency_key: str
    items: Tuple[LineItem, ...]
    client_total: Decimal
    coupon_code: Optional[str] = None
    scheduled_for: Optional[datetime] = None
    delivery_address: dict = field(default_factory=dict)
    notes: str = ""


def _default_collaborators():
    from coupons.services import CouponValidator
    from core.cache_service import get_cache_client
    from core.profiles import OrmRestaurantProfiles
    from menu.catalog import OrmMenuCatalog
    from payments.services import StripePaymentGateway
    from reports.audit import AuditTrail

    from ..notifications import ChannelsOrderNotifier
    from .cart_store import CartStore

    catalog = OrmMenuCatalog()
    profiles = OrmRestaurantProfiles()
    coupons = CouponValidator()
    return {
        "catalog": catalog,
        "profiles": profiles,
        "coupons": coupons,
        "cart_store": CartStore(get_cache_client(), catalog, profiles, coupons),
        "gateway": StripePaymentGateway(),
        "notifier": ChannelsOrderNotifier(),
        "audit": AuditTrail(),
    }


class OrderLifecycleManager:

    def __init__(
        self,
        catalog,
        profiles,
        coupons,
        cart_store,
        gateway,
        notifier,
        audit,
        clock: Callable[[], datetime] = timezone.now,
    ):
        self.catalog = catalog
        self.profiles = profiles
        self.coupons = coupons
        self.cart_store = cart_store
        self.gateway = gateway
        self.notifier = notifier
        self.audit = audit
        self.clock = clock

    @classmethod
    def default(cls, **overrides) -> "OrderLifecycleManager":
        """Manager wired to the ORM, cache, Stripe and the channel layer."""
        collaborators = _default_collaborators()
        collaborators.update(overrides)
        return cls(**collaborators)

    # ------------------------------------------------------------------
    # lookups
    # ------------------------------------------------------------------

    def _find_by_key(self, tenant_id, user_id, idempotency_key) -> Optional[Order]:
        return (
            Order.objects
            .filter(tenant_id=tenant_id, user_id=user_id, idempotency_key=idempotency_key)
            .first()
        )

    def _lock(self, tenant_id, order_id, owner_id=None) -> Order:
        queryset = Order.objects.select_for_update().filter(pk=order_id, tenant_id=tenant_id)
        if owner_id is not None:
            queryset = queryset.filter(user_id=owner_id)
        order = queryset.first()
        if order is None:
            raise NotFound("Order not found", field="order_id")
        return order

    def _get(self, tenant_id, order_id, owner_id=None) -> Order:
        queryset = Order.objects.filter(pk=order_id, tenant_id=tenant_id)
        if owner_id is not None:
            queryset = queryset.filter(user_id=owner_id)
        order = queryset.first()
        if order is None:
            raise NotFound("Order not found", field="order_id")
        return order

    def live_orders(self, tenant_id, restaurant_id):
        """Non-terminal orders for a restaurant, oldest first."""
        return (
            Order.objects
            .filter(tenant_id=tenant_id, restaurant_id=restaurant_id, status__in=ACTIVE_STATUSES)
            .prefetch_related("items")
            .order_by("created_at", "id")
        )

    # ------------------------------------------------------------------
    # creation
    # ------------------------------------------------------------------

    def estimate_delivery_time(self, base_time: datetime, item_count: int) -> datetime:
        minutes = (
            ordering_setting("BASE_PREPARATION_MINUTES")
            + ordering_setting("PER_ITEM_PREPARATION_MINUTES") * item_count
            + ordering_setting("DELIVERY_MINUTES")
            + ordering_setting("BUFFER_MINUTES")
        )
        return base_time + timedelta(minutes=minutes)

    def validated_lines(self, tenant_id, restaurant_id, items: Sequence[LineItem]) -> List[LineItem]:
        """Lines re-priced from the live menu.

        Every offending line is collected before failing so the client can
        refresh them all at once.
        """
        max_quantity = ordering_setting("MAX_ITEM_QUANTITY")
        max_instructions = ordering_setting("MAX_SPECIAL_INSTRUCTIONS")
        tolerance = Decimal(str(ordering_setting("PRICE_TOLERANCE")))

        lines, problems = [], []
        for line in items:
            if not 1 <= int(line.quantity) <= max_quantity:
                raise ValidationFailed(f"Quantity must be between 1 and {max_quantity}", field="quantity")
            if len(line.special_instructions or "") > max_instructions:
                raise ValidationFailed(
                    f"Special instructions cannot exceed {max_instructions} characters",
                    field="special_instructions",
                )
            catalog_item = self.catalog.get_item(tenant_id, restaurant_id, line.reference_id)
            problem = price_problem(line, catalog_item, tolerance)
            if problem is not None:
                problems.append(problem)
            else:
                lines.append(reprice(line, catalog_item))
        if problems:
            raise PriceValidationFailed(details={"items": problems})
        return lines

    def _check_schedule(self, scheduled_for: Optional[datetime], profile, now: datetime) -> None:
        if scheduled_for is None:
            return
        if timezone.is_naive(scheduled_for):
            raise ValidationFailed("Scheduled time must include a timezone", field="scheduled_for")
        if scheduled_for <= now:
            raise InvalidSchedule("Scheduled time must be in the future", field="scheduled_for")
        if not profile.is_open_at(scheduled_for):
            raise InvalidSchedule("Restaurant is closed at the scheduled time", field="scheduled_for")

    @returns_result
    def create_order(self, draft: OrderDraft) -> Result:
        key = (draft.idempotency_key or "").strip()
        if not key:
            raise ValidationFailed("Idempotency key is required", field="idempotency_key")

        existing = self._find_by_key(draft.tenant_id, draft.user_id, key)
        if existing is not None:
            logger.info("Replaying order %s for idempotency key %s", existing.order_number, key)
            return Result.success(existing, replayed=True)

        if not draft.items:
            raise ValidationFailed("Order must contain at least one item", field="items")
        profile = self.profiles.get_profile(draft.tenant_id, draft.restaurant_id)
        if profile is None:
            raise NotFound("Restaurant not found", field="restaurant_id")

        lines = self.validated_lines(draft.tenant_id, draft.restaurant_id, draft.items)

        quote = None
        discount = Decimal("0")
        if draft.coupon_code:
            quote = self.coupons.quote(
                draft.tenant_id, draft.restaurant_id, draft.coupon_code, subtotal_of(lines), draft.user_id,
            )
            discount = quote.discount

        totals = compute_total(
            lines,
            tax_rate=profile.tax_rate,
            delivery_fee_threshold=profile.delivery_fee_threshold,
            delivery_fee_amount=profile.delivery_fee_amount,
            discount=discount,
            tax_split=get_tax_split_policy(profile.tax_split),
        )
        try:
            client_total = q2(draft.client_total)
        except (InvalidOperation, TypeError, ValueError):
            raise ValidationFailed("Total must be a number", field="total")
        if abs(client_total - totals.total) > Decimal(str(ordering_setting("TOTAL_TOLERANCE"))):
            raise TotalMismatch(
                field="total",
                details={
                    "client_total": str(client_total),
                    "server_total": str(totals.total),
                    "totals": totals.to_dict(),
                },
            )

        now = self.clock()
        self._check_schedule(draft.scheduled_for, profile, now)
        eta = self.estimate_delivery_time(draft.scheduled_for or now, totals.item_count)

        try:
            order = self._persist(draft, key, lines, totals, quote, eta, now)
        except IntegrityError:
            winner = self._find_by_key(draft.tenant_id, draft.user_id, key)
            if winner is None:
                raise
            logger.info("Concurrent create for idempotency key %s lost to %s", key, winner.order_number)
            return Result.success(winner, replayed=True)

        logger.info(
            "Order %s created for user %s at restaurant %s (total %s)",
            order.order_number, draft.user_id, draft.restaurant_id, order.total_amount,
        )
        return order

    def _persist(self, draft: OrderDraft, key: str, lines, totals, quote, eta, now) -> Order:
        with transaction.atomic():
            order = Order.objects.create(
                tenant_id=draft.tenant_id,
                restaurant_id=draft.restaurant_id,
                user_id=draft.user_id,
                idempotency_key=key,
                status=OrderStatus.PENDING,
                subtotal=totals.subtotal,
                cgst=totals.tax_breakdown.cgst,
                sgst=totals.tax_breakdown.sgst,
                igst=totals.tax_breakdown.igst,
                tax_amount=totals.tax,
                delivery_fee=totals.delivery_fee,
                discount_amount=totals.discount,
                rounding_adjustment=totals.rounding_adjustment,
                total_amount=totals.total,
                coupon_id=quote.coupon_id if quote else None,
                coupon_code=quote.code if quote else "",
                estimated_delivery_time=eta,
                scheduled_for=draft.scheduled_for,
                delivery_address=draft.delivery_address or {},
                notes=draft.notes or "",
                created_at=now,
            )
            if quote is not None:
                self.coupons.redeem_or_raise(quote.coupon_id, draft.user_id, order.order_number, quote.discount)
            OrderItem.objects.bulk_create([
                OrderItem(
                    order=order,
                    menu_item_id=line.reference_id,
                    menu_item_name=line.name,
                    unit_base_price=line.unit_base_price,
                    modifiers=[m.to_dict() for m in line.modifiers],
                    quantity=line.quantity,
                    special_instructions=line.special_instructions,
                    unit_price=line.computed_unit_price,
                    total_price=line.computed_total_price,
                )
                for line in lines
            ])
            OrderStatusHistory.objects.create(
                order=order,
                status=OrderStatus.PENDING,
                changed_by_id=draft.user_id,
                notes="Order placed",
                created_at=now,
            )
            transaction.on_commit(lambda: self._after_create(draft, order))
        return order

    def _after_create(self, draft: OrderDraft, order: Order) -> None:
        from .cart_store import CartKey

        cleared = self.cart_store.clear(CartKey(draft.tenant_id, draft.user_id, draft.restaurant_id))
        if not cleared.ok:
            logger.warning("Cart for user %s not cleared after order %s: %s",
                           draft.user_id, order.order_number, cleared.error.message)
        self.notifier.notify_new_order(order.restaurant_id, order)
        self.audit.record(order.tenant_id, draft.user_id, "order.created", {
            "order_id": order.pk,
            "order_number": order.order_number,
            "total_amount": order.total_amount,
            "coupon_code": order.coupon_code,
        })

    # ------------------------------------------------------------------
    # status
    # ------------------------------------------------------------------

    def _append_timeline(self, order: Order, previous: str, actor_id, notes: str, now: datetime) -> None:
        OrderStatusHistory.objects.create(
            order=order,
            status=order.status,
            previous_status=previous,
            changed_by_id=actor_id,
            notes=notes or "",
            created_at=now,
        )

    def _announce(self, order: Order, actor_id, action: str, details: dict) -> None:
        tenant_id, restaurant_id, order_id, status = order.tenant_id, order.restaurant_id, order.pk, str(order.status)

        def send():
            self.notifier.notify_status_change(order_id, status, actor_id, restaurant_id=restaurant_id)
            self.audit.record(tenant_id, actor_id, action, dict(details, order_id=order_id, status=status))

        transaction.on_commit(send)

    def _transition(self, order: Order, new_status, actor_id, notes: str = "") -> Order:
        try:
            requested = OrderStatus(new_status)
        except ValueError:
            raise ValidationFailed(f"Unknown status {new_status!r}", field="status")
        if not can_transition(order.status, requested):
            raise InvalidTransition(order.status, requested.value)

        now = self.clock()
        previous = order.status
        order.status = requested.value
        fields = ["status", "updated_at"]
        if requested == OrderStatus.DELIVERED and order.actual_delivery_time is None:
            order.actual_delivery_time = now
            fields.append("actual_delivery_time")
        if requested == OrderStatus.CANCELLED:
            # Staff driven cancellation; the customer path goes through cancel()
            order.cancelled_at = now
            order.cancellation_reason = (notes or "")[:MAX_REASON_LENGTH]
            fields += ["cancelled_at", "cancellation_reason"]
        order.save(update_fields=fields)
        self._append_timeline(order, previous, actor_id, notes, now)
        self._announce(order, actor_id, "order.status_changed", {"previous_status": previous})
        logger.info("Order %s moved %s -> %s by %s", order.order_number, previous, order.status, actor_id)
        return order

    @returns_result
    def update_status(self, tenant_id, order_id, new_status, actor_id, notes: str = "") -> Result:
        with transaction.atomic():
            order = self._lock(tenant_id, order_id)
            return self._transition(order, new_status, actor_id, notes)

    @returns_result
    def update_delivery_metadata(self, tenant_id, order_id, metadata: dict, actor_id) -> Result:
        """Merge delivery details into the order; status is left alone."""
        unknown = set(metadata or {}) - DELIVERY_METADATA_FIELDS
        if unknown:
            raise ValidationFailed(
                f"Unknown delivery fields: {', '.join(sorted(unknown))}",
                field="delivery_metadata",
            )
        if not metadata:
            raise ValidationFailed("No delivery details supplied", field="delivery_metadata")
        with transaction.atomic():
            order = self._lock(tenant_id, order_id)
            if order.status == OrderStatus.CANCELLED:
                raise ValidationFailed("Delivery details cannot change on a cancelled order", field="status")
            self._merge_delivery_metadata(order, metadata, actor_id)
        return order

    def _merge_delivery_metadata(self, order: Order, metadata: dict, actor_id) -> None:
        merged = dict(order.delivery_metadata or {})
        merged.update(metadata)
        merged["updated_at"] = self.clock().isoformat()
        order.delivery_metadata = merged
        order.save(update_fields=["delivery_metadata", "updated_at"])
        logger.info("Delivery details for order %s updated by %s: %s", order.order_number, actor_id, sorted(metadata))

    @returns_result
    def assign_delivery(self, tenant_id, order_id, params: dict, actor_id) -> Result:
        if not params.get("delivery_person_id"):
            raise ValidationFailed("Delivery person is required", field="delivery_person_id")
        metadata = {k: v for k, v in params.items() if k in DELIVERY_METADATA_FIELDS}
        with transaction.atomic():
            order = self._lock(tenant_id, order_id)
            self._check_assignable(order)
            self._merge_delivery_metadata(order, metadata, actor_id)
        return order

    @staticmethod
    def _check_assignable(order: Order) -> None:
        if order.status not in DELIVERY_ASSIGNABLE_STATUSES:
            raise ValidationFailed(
                "Delivery can only be assigned to ready or out for delivery orders",
                field="status",
                details={"current_status": order.status},
            )

    # ------------------------------------------------------------------
    # cancellation
    # ------------------------------------------------------------------

    def refund_percentage(self, order: Order, now: datetime) -> int:
        """Refund tier for cancelling ``order`` at ``now``; raises when not allowed."""
        if order.is_terminal:
            raise NotCancellable(f"Order is already {order.status}", details={"current_status": order.status})
        minutes = (now - order.created_at).total_seconds() / 60
        if minutes <= ordering_setting("FULL_REFUND_WINDOW_MINUTES"):
            return 100
        if order.status == OrderStatus.CONFIRMED and minutes <= ordering_setting("PARTIAL_REFUND_WINDOW_MINUTES"):
            return int(ordering_setting("PARTIAL_REFUND_PERCENTAGE"))
        raise CancellationWindowExpired(
            details={"minutes_since_creation": round(minutes, 1), "current_status": order.status},
        )

    @staticmethod
    def refund_amount(order: Order, percentage: int) -> Decimal:
        return q2(order.total_amount * Decimal(percentage) / Decimal("100"))

    @returns_result
    def check_cancellation_eligibility(self, tenant_id, order_id, owner_id=None) -> Result:
        order = self._get(tenant_id, order_id, owner_id)
        now = self.clock()
        minutes = round((now - order.created_at).total_seconds() / 60, 1)
        eligibility = {
            "order_id": order.pk,
            "status": order.status,
            "minutes_since_creation": minutes,
            "can_cancel": False,
            "reason": None,
            "refund_percentage": 0,
            "estimated_refund": "0.00",
        }
        try:
            percentage = self.refund_percentage(order, now)
        except (NotCancellable, CancellationWindowExpired) as exc:
            eligibility["reason"] = exc.message
            return eligibility
        eligibility.update(
            can_cancel=True,
            refund_percentage=percentage,
            estimated_refund=str(self.refund_amount(order, percentage)),
        )
        return eligibility

    @returns_result
    def cancel(self, tenant_id, order_id, actor_id, reason: str, notes: str = "", owner_id=None) -> Result:
        """Cancel with the tiered refund.

        The gateway refund runs before anything is written, so a refund
        failure leaves the order exactly as it was.
        """
        reason = (reason or "").strip()
        if not reason or len(reason) > MAX_REASON_LENGTH:
            raise ValidationFailed(
                f"Cancellation reason must be between 1 and {MAX_REASON_LENGTH} characters",
                field="reason",
            )
        with transaction.atomic():
            order = self._lock(tenant_id, order_id, owner_id)
            now = self.clock()
            percentage = self.refund_percentage(order, now)
            amount = self.refund_amount(order, percentage)

            refund_reference = ""
            if order.payment_reference and amount > 0:
                receipt = self.gateway.refund(order.payment_reference, amount, reason)
                refund_reference = receipt.refund_id

            previous = order.status
            order.status = OrderStatus.CANCELLED.value
            order.cancellation_reason = reason
            order.refund_percentage = percentage
            order.refund_amount = amount
            order.refund_reference = refund_reference
            order.cancelled_at = now
            order.save(update_fields=[
                "status", "cancellation_reason", "refund_percentage", "refund_amount",
                "refund_reference", "cancelled_at", "updated_at",
            ])
            self._append_timeline(order, previous, actor_id, notes or reason, now)
            self._announce(order, actor_id, "order.cancelled", {
                "previous_status": previous,
                "refund_percentage": percentage,
                "refund_amount": amount,
                "refund_reference": refund_reference,
            })
        logger.info("Order %s cancelled by %s with %s%% refund (%s)", order.order_number, actor_id, percentage, amount)
        return order

    # ------------------------------------------------------------------
    # payment
    # ------------------------------------------------------------------

    @returns_result
    def create_payment_intent(self, tenant_id, order_id, owner_id=None) -> Result:
        with transaction.atomic():
            order = self._lock(tenant_id, order_id, owner_id)
            if order.status != OrderStatus.PENDING:
                raise ValidationFailed("Payment can only be started for pending orders", field="status")
            if order.payment_reference:
                raise ValidationFailed("Payment has already been started for this order", field="payment_reference")
            receipt = self.gateway.create_payment_intent(order.total_amount, reference=order.order_number)
            order.payment_reference = receipt.intent_id
            order.save(update_fields=["payment_reference", "updated_at"])
        return {
            "order_id": order.pk,
            "payment_reference": receipt.intent_id,
            "client_secret": receipt.client_secret,
            "amount": str(order.total_amount),
        }

    # ------------------------------------------------------------------
    # bulk
    # ------------------------------------------------------------------

    def _bulk_params(self, action: str, params: dict) -> dict:
        if action not in BULK_ACTIONS:
            raise ValidationFailed(f"Unknown bulk action {action!r}", field="action")
        params = dict(params or {})
        if action == BULK_STATUS_UPDATE:
            try:
                params["status"] = OrderStatus(params.get("status"))
            except ValueError:
                raise ValidationFailed("A valid status is required", field="status")
        elif action == BULK_CANCEL:
            reason = (params.get("reason") or "").strip()
            if not reason or len(reason) > MAX_REASON_LENGTH:
                raise ValidationFailed(
                    f"Cancellation reason must be between 1 and {MAX_REASON_LENGTH} characters",
                    field="reason",
                )
            params["reason"] = reason
        elif not params.get("delivery_person_id"):
            raise ValidationFailed("Delivery person is required", field="delivery_person_id")
        return params

    def _bulk_ids(self, order_ids: Iterable) -> List[int]:
        try:
            ids = [int(order_id) for order_id in order_ids or ()]
        except (TypeError, ValueError):
            raise ValidationFailed("Order ids must be integers", field="order_ids")
        limit = ordering_setting("BULK_MAX_ORDERS")
        if not 1 <= len(ids) <= limit:
            raise ValidationFailed(f"Between 1 and {limit} orders can be processed at once", field="order_ids")
        if len(set(ids)) != len(ids):
            raise ValidationFailed("Order ids must be distinct", field="order_ids")
        return ids

    @returns_result
    def _dry_run_one(self, tenant_id, order_id, action: str, params: dict) -> Result:
        order = self._get(tenant_id, order_id)
        outcome = {"order_id": order.pk, "status": order.status}
        if action == BULK_STATUS_UPDATE:
            if not can_transition(order.status, params["status"]):
                raise InvalidTransition(order.status, params["status"].value)
            outcome["new_status"] = params["status"].value
        elif action == BULK_CANCEL:
            percentage = self.refund_percentage(order, self.clock())
            outcome.update(refund_percentage=percentage, estimated_refund=str(self.refund_amount(order, percentage)))
        else:
            self._check_assignable(order)
        return outcome

    def _apply_one(self, tenant_id, order_id, action: str, params: dict, actor_id) -> Result:
        if action == BULK_STATUS_UPDATE:
            result = self.update_status(tenant_id, order_id, params["status"], actor_id, params.get("notes", ""))
        elif action == BULK_CANCEL:
            result = self.cancel(tenant_id, order_id, actor_id, params["reason"], params.get("notes", ""))
        else:
            result = self.assign_delivery(tenant_id, order_id, params, actor_id)
        if not result.ok:
            return result
        return Result.success({"order_id": result.value.pk, "status": result.value.status})

    @returns_result
    def bulk_operate(self, tenant_id, order_ids, action: str, params: dict, actor_id, dry_run: bool = False) -> Result:
        """Apply one action to many orders, each on its own.

        A failing order is reported in the tally and never blocks the rest.
        """
        ids = self._bulk_ids(order_ids)
        params = self._bulk_params(action, params)

        tally = {"action": action, "dry_run": dry_run, "processed": 0, "failed": 0, "errors": [], "results": []}
        for order_id in ids:
            if dry_run:
                outcome = self._dry_run_one(tenant_id, order_id, action, params)
            else:
                outcome = self._apply_one(tenant_id, order_id, action, params, actor_id)
            if outcome.ok:
                tally["processed"] += 1
                tally["results"].append(outcome.value)
            else:
                tally["failed"] += 1
                tally["errors"].append({
                    "order_id": order_id,
                    "code": outcome.error.kind.value,
                    "message": outcome.error.message,
                })

        if not dry_run:
            self.audit.record(tenant_id, actor_id, f"order.bulk_{action}", {
                "order_ids": ids,
                "params": {k: str(v) for k, v in params.items()},
                "processed": tally["processed"],
                "failed": tally["failed"],
            })
        logger.info("Bulk %s on %d orders: %d processed, %d failed%s",
                    action, len(ids), tally["processed"], tally["failed"], " (dry run)" if dry_run else "")
        return tally
