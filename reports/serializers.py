from __future__ import annotations

from rest_framework import serializers

from .models import AuditLog


class ReportQuerySerializer(serializers.Serializer):
    restaurant_id = serializers.IntegerField(min_value=1)
    date_from = serializers.DateField()
    date_to = serializers.DateField()
    limit = serializers.IntegerField(min_value=1, max_value=100, required=False, default=10)

    def validate(self, attrs):
        if attrs["date_from"] > attrs["date_to"]:
            raise serializers.ValidationError({"date_from": "date_from must not be after date_to."})
        return attrs


class AuditLogSerializer(serializers.ModelSerializer):
    actor_username = serializers.CharField(source='actor.username', read_only=True, default=None)

    class Meta:
        model = AuditLog
        fields = [
            'id', 'tenant', 'actor', 'actor_username', 'action', 'severity',
            'details', 'request_id', 'created_at',
        ]
        read_only_fields = fields
