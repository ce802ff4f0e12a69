"""
Stock — Models

Ledger-based stock tracking. StockMovement rows are the source of truth and
are INSERT ONLY. StockBalance is the materialized projection per
(item, location), written by the ledger in the same transaction as the
movement insert and guarded by a version counter.

@file stock/models.py
"""

import uuid

from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from catalog.models import QUANTITY_DECIMAL_PLACES, QUANTITY_MAX_DIGITS


class StockMovement(models.Model):
    """
    A single immutable stock movement (insert only).

    quantity is a signed delta: receipts are positive, issues and
    consumptions negative, adjustments either. A transfer is written as two
    rows (-q at the source, +q at the destination) sharing transfer_group.
    """

    class MovementType(models.TextChoices):
        RECEIPT = 'RECEIPT', _('Receipt')
        ISSUE = 'ISSUE', _('Issue')
        TRANSFER = 'TRANSFER', _('Transfer')
        ADJUSTMENT = 'ADJUSTMENT', _('Adjustment')
        CONSUMPTION = 'CONSUMPTION', _('Consumption')

    id = models.UUIDField(
        primary_key=True, default=uuid.uuid4, editable=False,
    )
    item = models.ForeignKey(
        'catalog.Item',
        on_delete=models.PROTECT,
        related_name='movements',
        verbose_name=_('item'),
    )
    location = models.ForeignKey(
        'locations.Location',
        on_delete=models.PROTECT,
        related_name='movements',
        verbose_name=_('location'),
    )
    counter_location = models.ForeignKey(
        'locations.Location',
        null=True, blank=True,
        on_delete=models.PROTECT,
        related_name='+',
        verbose_name=_('counter location'),
        help_text=_('Other side of a transfer'),
    )
    movement_type = models.CharField(
        _('movement type'), max_length=12,
        choices=MovementType.choices, db_index=True,
    )
    quantity = models.DecimalField(
        _('quantity'),
        max_digits=QUANTITY_MAX_DIGITS, decimal_places=QUANTITY_DECIMAL_PLACES,
    )
    transfer_group = models.UUIDField(
        _('transfer group'), null=True, blank=True, db_index=True,
    )
    unit_cost = models.DecimalField(
        _('unit cost'), max_digits=15, decimal_places=2, null=True, blank=True,
    )
    reference_id = models.CharField(
        _('reference ID'), max_length=64, blank=True,
        help_text=_('Identifier of the source record (work order, request, ...)'),
    )
    reference_type = models.CharField(
        _('reference type'), max_length=100, blank=True,
        help_text=_('Kind of source record, e.g. maintenance_request'),
    )
    notes = models.TextField(_('notes'), blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='+',
        verbose_name=_('created by'),
    )
    created_at = models.DateTimeField(
        _('created at'), auto_now_add=True, db_index=True,
    )
    # No updated_at — immutable record.

    class Meta:
        verbose_name = _('stock movement')
        verbose_name_plural = _('stock movements')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['item', 'location', 'created_at'], name='stock_item_loc_created_idx'),
            models.Index(fields=['reference_type', 'reference_id'], name='stock_reference_idx'),
            models.Index(fields=['created_by', 'created_at'], name='stock_created_by_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=~models.Q(quantity=0),
                name='stock_movement_nonzero_quantity',
            ),
        ]

    def __str__(self):
        return f'{self.movement_type} {self.quantity:+} item={self.item_id} loc={self.location_id}'

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise NotImplementedError('StockMovement is insert-only; updates are not allowed.')
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise NotImplementedError('StockMovement records cannot be deleted.')


class StockBalance(models.Model):
    """
    Current quantity of one item at one location.

    Invariant: quantity equals the sum of StockMovement.quantity for the
    pair. Only LedgerService writes this table.
    """

    id = models.BigAutoField(primary_key=True)
    item = models.ForeignKey(
        'catalog.Item',
        on_delete=models.PROTECT,
        related_name='balances',
        verbose_name=_('item'),
    )
    location = models.ForeignKey(
        'locations.Location',
        on_delete=models.PROTECT,
        related_name='balances',
        verbose_name=_('location'),
    )
    quantity = models.DecimalField(
        _('quantity'),
        max_digits=QUANTITY_MAX_DIGITS, decimal_places=QUANTITY_DECIMAL_PLACES,
        default=0,
    )
    version = models.PositiveBigIntegerField(_('version'), default=0)
    last_movement_at = models.DateTimeField(_('last movement at'), null=True, blank=True)

    class Meta:
        verbose_name = _('stock balance')
        verbose_name_plural = _('stock balances')
        ordering = ['item', 'location']
        constraints = [
            models.UniqueConstraint(
                fields=['item', 'location'],
                name='unique_balance_per_item_location',
            ),
        ]

    def __str__(self):
        return f'{self.item_id}@{self.location_id} = {self.quantity} (v{self.version})'
