"""
Catalog — Service Layer

Item lifecycle and per-location thresholds. Stock quantities are never
written here: they move only through the ledger (stock/services.py).
Threshold and expiry changes re-run alert evaluation for what they touch.

@file catalog/services.py
"""

import logging
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from alerts.services import AlertService
from core.constants import (
    AUDIT_ACTION_CREATE,
    AUDIT_ACTION_DEACTIVATE,
    AUDIT_ACTION_REACTIVATE,
    AUDIT_ACTION_UPDATE,
)
from core.exceptions import (
    ActiveBalanceExistsError,
    DuplicateResourceError,
    InactiveResourceError,
    InvalidQuantityError,
    ResourceNotFoundError,
)
from core.services import AuditService
from locations.services import LocationService
from stock.models import StockBalance

from .models import Item, StockThreshold

logger = logging.getLogger('stockledger')


class ItemService:
    """Catalog management for Item and StockThreshold."""

    IMMUTABLE_FIELDS = {'id', 'pk', 'code', 'is_active', 'deactivated_at', 'deactivated_by'}

    @staticmethod
    def get_item(item_id, *, require_active: bool = False) -> Item:
        try:
            item = Item.objects.get(pk=item_id)
        except (Item.DoesNotExist, ValidationError, ValueError):
            raise ResourceNotFoundError(detail='Item not found.')
        if require_active and not item.is_active:
            raise InactiveResourceError(detail=f'Item {item.code} is inactive.')
        return item

    @staticmethod
    @transaction.atomic
    def create_item(*, actor=None, **fields) -> Item:
        code = (fields.get('code') or '').strip()
        if code and Item.objects.filter(code__iexact=code).exists():
            raise DuplicateResourceError(detail=f'Item code {code} already exists.')
        fields['code'] = code

        item = Item(**fields)
        item.created_by = actor
        item.full_clean()
        item.save()

        AuditService.record(item, action=AUDIT_ACTION_CREATE, actor=actor)
        logger.info('Item %s created by %s.', item.code, actor)
        return item

    @classmethod
    @transaction.atomic
    def update_item(cls, *, item_id, actor=None, **fields) -> Item:
        try:
            item = Item.objects.select_for_update().get(pk=item_id)
        except (Item.DoesNotExist, ValidationError, ValueError):
            raise ResourceNotFoundError(detail='Item not found.')

        old_snapshot = AuditService.snapshot(item)
        old_expiry = item.expiry_date

        for field, value in fields.items():
            if hasattr(item, field) and field not in cls.IMMUTABLE_FIELDS:
                setattr(item, field, value)

        item.updated_by = actor
        item.full_clean()
        item.save()

        AuditService.record(item, action=AUDIT_ACTION_UPDATE, actor=actor, old_values=old_snapshot)
        if item.expiry_date != old_expiry:
            AlertService.evaluate_expiry(item.pk)
        return item

    @staticmethod
    @transaction.atomic
    def deactivate_item(*, item_id, actor=None) -> Item:
        """Soft-deactivate an item. Rejected while any location holds a nonzero balance."""
        try:
            item = Item.objects.select_for_update().get(pk=item_id)
        except (Item.DoesNotExist, ValidationError, ValueError):
            raise ResourceNotFoundError(detail='Item not found.')
        if not item.is_active:
            return item

        held = list(
            StockBalance.objects.select_for_update(of=('self',))
            .filter(item=item)
            .exclude(quantity=0)
            .values_list('location__code', flat=True)
        )
        if held:
            raise ActiveBalanceExistsError(
                detail=f'Item {item.code} still has stock at: {", ".join(sorted(held))}.',
            )

        item.deactivate(user=actor)
        resolved = AlertService.resolve_open(item_id=item.pk)

        AuditService.record(item, action=AUDIT_ACTION_DEACTIVATE, actor=actor)
        logger.info('Item %s deactivated by %s (%d notifications resolved).', item.code, actor, resolved)
        return item

    @staticmethod
    @transaction.atomic
    def reactivate_item(*, item_id, actor=None) -> Item:
        try:
            item = Item.objects.select_for_update().get(pk=item_id)
        except (Item.DoesNotExist, ValidationError, ValueError):
            raise ResourceNotFoundError(detail='Item not found.')
        if item.is_active:
            return item

        item.reactivate(user=actor)
        AuditService.record(item, action=AUDIT_ACTION_REACTIVATE, actor=actor)
        for location_id in StockBalance.objects.filter(item=item).values_list('location_id', flat=True):
            AlertService.evaluate(item.pk, location_id)
        AlertService.evaluate_expiry(item.pk)
        return item

    # --- Thresholds ---

    @staticmethod
    def get_threshold(item_id, location_id) -> StockThreshold | None:
        return StockThreshold.objects.filter(item_id=item_id, location_id=location_id).first()

    @classmethod
    @transaction.atomic
    def set_threshold(
        cls,
        *,
        item_id,
        location_id,
        min_level,
        max_level=None,
        actor=None,
    ) -> StockThreshold:
        """
        Create or replace the min/max levels for one (item, location) pair
        and re-evaluate its alerts against the new levels.
        """
        item = cls.get_item(item_id, require_active=True)
        location = LocationService.get_location(location_id, require_active=True)

        min_level = Decimal(min_level)
        max_level = Decimal(max_level) if max_level is not None else None
        if min_level < 0:
            raise InvalidQuantityError(detail='Minimum level cannot be negative.')
        if max_level is not None and min_level > max_level:
            raise InvalidQuantityError(
                detail=f'Minimum level {min_level} exceeds maximum level {max_level}.',
            )

        threshold = (
            StockThreshold.objects.select_for_update()
            .filter(item=item, location=location)
            .first()
        )
        old_snapshot = None
        if threshold is None:
            threshold = StockThreshold(item=item, location=location, created_by=actor)
        else:
            old_snapshot = AuditService.snapshot(threshold)
        threshold.min_level = min_level
        threshold.max_level = max_level
        threshold.updated_by = actor
        threshold.save()

        AuditService.record(
            threshold,
            action=AUDIT_ACTION_CREATE if old_snapshot is None else AUDIT_ACTION_UPDATE,
            actor=actor,
            old_values=old_snapshot,
        )
        AlertService.evaluate(item.pk, location.pk)
        return threshold

    @staticmethod
    def get_expiring(days: int | None = None):
        """Active items whose expiry date falls within `days` (already expired included)."""
        if days is None:
            days = settings.INVENTORY_EXPIRY_LOOKAHEAD_DAYS
        horizon = timezone.localdate() + timedelta(days=days)
        return (
            Item.objects
            .filter(is_active=True, expiry_date__isnull=False, expiry_date__lte=horizon)
            .order_by('expiry_date', 'code')
        )
