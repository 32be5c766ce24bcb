from decimal import Decimal

from rest_framework import serializers

from .models import Order, OrderItem, OrderStatus, OrderStatusHistory
from .services.lifecycle import BULK_ACTIONS, MAX_REASON_LENGTH, OrderDraft
from .services.pricing import LineItem, ModifierSelection


class ModifierSelectionSerializer(serializers.Serializer):
    group_id = serializers.IntegerField(min_value=1)
    modifier_id = serializers.IntegerField(min_value=1)
    price_delta = serializers.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    name = serializers.CharField(max_length=200, required=False, allow_blank=True, default="")


class LineItemSerializer(serializers.Serializer):
    """
    A client-priced line. Prices are only a claim; the services re-check them
    against the live menu before accepting anything.
    """
    reference_id = serializers.IntegerField(min_value=1)
    unit_base_price = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal("0"))
    quantity = serializers.IntegerField(min_value=1, max_value=50)
    modifiers = ModifierSelectionSerializer(many=True, required=False, default=list)
    special_instructions = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")
    name = serializers.CharField(max_length=200, required=False, allow_blank=True, default="")

    def validate_modifiers(self, value):
        seen = set()
        for selection in value:
            key = (selection["group_id"], selection["modifier_id"])
            if key in seen:
                raise serializers.ValidationError("Each option can only be selected once.")
            seen.add(key)
        return value

    @staticmethod
    def to_line_item(data: dict) -> LineItem:
        return LineItem(
            reference_id=data["reference_id"],
            unit_base_price=data["unit_base_price"],
            quantity=data["quantity"],
            modifiers=tuple(ModifierSelection(**m) for m in data.get("modifiers") or ()),
            special_instructions=(data.get("special_instructions") or "").strip(),
            name=data.get("name") or "",
        )


class CartScopeSerializer(serializers.Serializer):
    restaurant_id = serializers.IntegerField(min_value=1)


class CartAddItemSerializer(CartScopeSerializer, LineItemSerializer):
    pass


class CartUpdateItemSerializer(CartScopeSerializer):
    line_id = serializers.CharField(max_length=64)
    quantity = serializers.IntegerField(min_value=0, max_value=50)


class CartRemoveItemSerializer(CartScopeSerializer):
    line_id = serializers.CharField(max_length=64)


class CartCalculateSerializer(CartScopeSerializer):
    coupon_code = serializers.CharField(max_length=64, required=False, allow_blank=True)


class OrderCreateSerializer(serializers.Serializer):
    restaurant_id = serializers.IntegerField(min_value=1)
    items = LineItemSerializer(many=True, allow_empty=False)
    total = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0"))
    coupon_code = serializers.CharField(max_length=64, required=False, allow_blank=True)
    scheduled_for = serializers.DateTimeField(required=False, allow_null=True)
    delivery_address = serializers.JSONField(required=False, default=dict)
    notes = serializers.CharField(max_length=1000, required=False, allow_blank=True, default="")

    def to_draft(self, tenant_id, user_id, idempotency_key) -> OrderDraft:
        data = self.validated_data
        return OrderDraft(
            tenant_id=tenant_id,
            restaurant_id=data["restaurant_id"],
            user_id=user_id,
            idempotency_key=idempotency_key,
            items=tuple(LineItemSerializer.to_line_item(row) for row in data["items"]),
            client_total=data["total"],
            coupon_code=data.get("coupon_code") or None,
            scheduled_for=data.get("scheduled_for"),
            delivery_address=data.get("delivery_address") or {},
            notes=data.get("notes") or "",
        )


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = [
            'id', 'menu_item', 'menu_item_name', 'unit_base_price', 'modifiers',
            'quantity', 'special_instructions', 'unit_price', 'total_price',
        ]
        read_only_fields = fields


class OrderStatusHistorySerializer(serializers.ModelSerializer):
    actor_id = serializers.IntegerField(source='changed_by_id', read_only=True)
    timestamp = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = OrderStatusHistory
        fields = ['status', 'previous_status', 'actor_id', 'notes', 'timestamp']
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)
    timeline = OrderStatusHistorySerializer(many=True, read_only=True)
    tax_breakdown = serializers.SerializerMethodField()
    cancellation = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'tenant', 'restaurant', 'user', 'status',
            'subtotal', 'tax_breakdown', 'tax_amount', 'delivery_fee', 'discount_amount',
            'rounding_adjustment', 'total_amount', 'coupon_code', 'payment_reference',
            'idempotency_key', 'estimated_delivery_time', 'scheduled_for', 'actual_delivery_time',
            'delivery_address', 'delivery_metadata', 'notes', 'cancellation',
            'items', 'timeline', 'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_tax_breakdown(self, obj):
        return {"cgst": str(obj.cgst), "sgst": str(obj.sgst), "igst": str(obj.igst)}

    def get_cancellation(self, obj):
        if obj.status != OrderStatus.CANCELLED:
            return None
        return {
            "reason": obj.cancellation_reason,
            "refund_percentage": obj.refund_percentage,
            "refund_amount": str(obj.refund_amount),
            "refund_reference": obj.refund_reference,
            "cancelled_at": obj.cancelled_at.isoformat() if obj.cancelled_at else None,
        }


class OrderListSerializer(serializers.ModelSerializer):
    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'restaurant', 'status', 'total_amount',
            'estimated_delivery_time', 'scheduled_for', 'created_at',
        ]
        read_only_fields = fields


class OrderStatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)
    notes = serializers.CharField(max_length=1000, required=False, allow_blank=True, default="")


class OrderCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=MAX_REASON_LENGTH)
    notes = serializers.CharField(max_length=1000, required=False, allow_blank=True, default="")


class DeliveryMetadataSerializer(serializers.Serializer):
    delivery_person_id = serializers.CharField(max_length=64, required=False)
    delivery_person_name = serializers.CharField(max_length=120, required=False, allow_blank=True)
    delivery_person_phone = serializers.CharField(max_length=20, required=False, allow_blank=True)
    current_location = serializers.JSONField(required=False)
    eta = serializers.DateTimeField(required=False)
    tracking_notes = serializers.CharField(max_length=500, required=False, allow_blank=True)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("At least one delivery field is required.")
        if "eta" in attrs:
            attrs["eta"] = attrs["eta"].isoformat()
        return attrs


class BulkOperationSerializer(serializers.Serializer):
    order_ids = serializers.ListField(child=serializers.IntegerField(min_value=1), allow_empty=False, max_length=50)
    action = serializers.ChoiceField(choices=BULK_ACTIONS)
    params = serializers.DictField(required=False, default=dict)
    dry_run = serializers.BooleanField(required=False, default=False)
