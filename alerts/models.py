"""
Alerts — Models

Deduplicated stock notifications. At most one unresolved notification
exists per (item, location, kind); item-level expiry warnings carry no
location and are deduplicated per (item, kind).

@file alerts/models.py
"""

import uuid

from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from core.models import TimestampMixin


class Notification(TimestampMixin):

    class Kind(models.TextChoices):
        LOW_STOCK = 'low_stock', _('Low stock')
        OUT_OF_STOCK = 'out_of_stock', _('Out of stock')
        OVER_STOCK = 'over_stock', _('Over stock')
        EXPIRY_WARNING = 'expiry_warning', _('Expiry warning')

    class Priority(models.TextChoices):
        LOW = 'low', _('Low')
        MEDIUM = 'medium', _('Medium')
        HIGH = 'high', _('High')
        CRITICAL = 'critical', _('Critical')

    # Sort weight for priority-descending listings.
    PRIORITY_RANK = {
        Priority.LOW: 1,
        Priority.MEDIUM: 2,
        Priority.HIGH: 3,
        Priority.CRITICAL: 4,
    }

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    item = models.ForeignKey(
        'catalog.Item',
        on_delete=models.PROTECT,
        related_name='notifications',
        verbose_name=_('item'),
    )
    location = models.ForeignKey(
        'locations.Location',
        null=True, blank=True,
        on_delete=models.PROTECT,
        related_name='notifications',
        verbose_name=_('location'),
    )
    kind = models.CharField(_('kind'), max_length=20, choices=Kind.choices, db_index=True)
    priority = models.CharField(_('priority'), max_length=10, choices=Priority.choices)
    priority_rank = models.PositiveSmallIntegerField(_('priority rank'), default=1, editable=False)
    message = models.TextField(_('message'))

    is_acknowledged = models.BooleanField(_('acknowledged'), default=False)
    acknowledged_at = models.DateTimeField(_('acknowledged at'), null=True, blank=True)
    acknowledged_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='+',
        verbose_name=_('acknowledged by'),
    )
    is_resolved = models.BooleanField(_('resolved'), default=False, db_index=True)
    resolved_at = models.DateTimeField(_('resolved at'), null=True, blank=True)

    class Meta:
        verbose_name = _('notification')
        verbose_name_plural = _('notifications')
        ordering = ['-priority_rank', '-created_at']
        indexes = [
            models.Index(fields=['is_resolved', 'priority_rank'], name='notif_open_priority_idx'),
            models.Index(fields=['item', 'location', 'kind'], name='notif_item_loc_kind_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['item', 'location', 'kind'],
                condition=models.Q(is_resolved=False, location__isnull=False),
                name='unique_open_notification_per_pair',
            ),
            models.UniqueConstraint(
                fields=['item', 'kind'],
                condition=models.Q(is_resolved=False, location__isnull=True),
                name='unique_open_notification_per_item',
            ),
        ]

    def __str__(self):
        state = 'resolved' if self.is_resolved else 'open'
        return f'[{self.priority}] {self.kind} item={self.item_id} loc={self.location_id} ({state})'

    def save(self, *args, **kwargs):
        self.priority_rank = self.PRIORITY_RANK.get(self.priority, 1)
        super().save(*args, **kwargs)
