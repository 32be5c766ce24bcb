from __future__ import annotations

from django.conf import settings
from django.db import models


class AuditLog(models.Model):
    """
    Who did what to which orders/coupons, and when.
    Written by ``reports.audit.AuditTrail``; never edited afterwards.
    """

    SEVERITY_CHOICES = [
        ('LOW', 'Low'),
        ('MEDIUM', 'Medium'),
        ('HIGH', 'High'),
    ]

    tenant = models.ForeignKey(
        "core.Tenant",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="audit_logs",
    )
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="audit_logs",
        help_text="User who performed the action"
    )
    action = models.CharField(
        max_length=64,
        help_text="Dotted action name, e.g. order.cancel or coupon.update"
    )
    severity = models.CharField(max_length=10, choices=SEVERITY_CHOICES, default='LOW')
    details = models.JSONField(
        default=dict,
        blank=True,
        help_text="Action specific payload"
    )
    request_id = models.CharField(max_length=64, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['tenant', '-created_at'], name='audit_tenant_recent_idx'),
            models.Index(fields=['action', '-created_at'], name='audit_action_recent_idx'),
        ]

    def __str__(self) -> str:
        actor = self.actor_id or 'system'
        return f"{actor} {self.action} at {self.created_at}"
