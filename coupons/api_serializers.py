from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from .models import Coupon


class CouponSerializer(serializers.ModelSerializer):
    class Meta:
        model = Coupon
        fields = [
            'id', 'restaurant', 'code', 'description',
            'discount_type', 'discount_value', 'min_order_value',
            'is_active', 'valid_from', 'valid_to',
            'max_usage', 'current_usage', 'per_user_usage_cap', 'new_users_only',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'current_usage', 'created_at', 'updated_at']

    def validate_code(self, value):
        code = value.strip().upper()
        if not code:
            raise serializers.ValidationError('Coupon code is required')
        return code

    def validate(self, attrs):
        discount_type = attrs.get('discount_type', getattr(self.instance, 'discount_type', Coupon.TYPE_PERCENTAGE))
        value = attrs.get('discount_value', getattr(self.instance, 'discount_value', Decimal('0')))
        if discount_type == Coupon.TYPE_PERCENTAGE and value > 100:
            raise serializers.ValidationError({'discount_value': 'Invalid discount value for the discount type'})
        valid_from = attrs.get('valid_from', getattr(self.instance, 'valid_from', None))
        valid_to = attrs.get('valid_to', getattr(self.instance, 'valid_to', None))
        if valid_from and valid_to and valid_to <= valid_from:
            raise serializers.ValidationError({'valid_to': 'Valid to date must be after valid from date'})

        restaurant = attrs.get('restaurant', getattr(self.instance, 'restaurant', None))
        code = attrs.get('code', getattr(self.instance, 'code', None))
        if restaurant is not None and code:
            # Coupons always share their restaurant's tenant
            clash = Coupon.objects.filter(tenant_id=restaurant.tenant_id, restaurant=restaurant, code=code)
            if self.instance is not None:
                clash = clash.exclude(pk=self.instance.pk)
            if clash.exists():
                raise serializers.ValidationError({'code': 'A coupon with this code already exists for this restaurant'})

        max_usage = attrs.get('max_usage', getattr(self.instance, 'max_usage', None))
        current_usage = getattr(self.instance, 'current_usage', 0)
        if max_usage is not None and max_usage < current_usage:
            raise serializers.ValidationError(
                {'max_usage': f'Usage limit cannot be below the {current_usage} redemptions already made'}
            )
        return attrs


class CouponValidateSerializer(serializers.Serializer):
    restaurant_id = serializers.IntegerField()
    code = serializers.CharField(max_length=64)
    order_value = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0'))
