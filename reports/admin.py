from __future__ import annotations

import csv
import json

from django.contrib import admin
from django.http import HttpResponse

from .models import AuditLog


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ("created_at", "tenant", "actor", "action", "severity", "request_id")
    list_filter = ("action", "severity", "created_at")
    search_fields = ("action", "actor__username", "request_id")
    date_hierarchy = "created_at"
    ordering = ("-created_at",)
    readonly_fields = ("tenant", "actor", "action", "severity", "details", "request_id", "created_at")
    actions = ("export_audit_csv",)

    def export_audit_csv(self, request, queryset):
        response = HttpResponse(content_type='text/csv')
        response['Content-Disposition'] = 'attachment; filename="audit_logs.csv"'
        w = csv.writer(response)
        w.writerow(["created_at", "tenant", "actor", "action", "severity", "request_id", "details"])
        for row in queryset.select_related('actor'):
            w.writerow([
                row.created_at,
                row.tenant_id,
                getattr(row.actor, 'username', ''),
                row.action,
                row.severity,
                row.request_id,
                json.dumps(row.details),
            ])
        return response
    export_audit_csv.short_description = "Export selected audit logs to CSV"
