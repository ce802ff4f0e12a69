"""
Alerts — Service Layer

Keeps the set of open notifications equal to the set of currently violated
rules. evaluate() is idempotent: a violated rule with no open notification
creates one, a violated rule with an open one updates it in place, and an
open notification whose rule no longer holds is resolved.

Called inside the ledger transaction after every movement, after threshold
and expiry changes, and by the periodic sweep.

@file alerts/services.py
"""

import logging
from collections import Counter
from datetime import date
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.db.models import Sum
from django.utils import timezone

from catalog.models import Item, StockThreshold
from core.constants import AUDIT_ACTION_ACKNOWLEDGE
from core.exceptions import BusinessRuleViolation, ResourceNotFoundError
from core.services import AuditService
from locations.models import Location
from stock.models import StockBalance

from . import rules
from .models import Notification

logger = logging.getLogger('stockledger')


class AlertService:
    """Threshold and expiry alerting."""

    # --- Evaluation ---

    @classmethod
    @transaction.atomic
    def evaluate(cls, item_id, location_id, *, today: date | None = None) -> Counter:
        """
        Re-check the stock rules for one (item, location) pair and the
        item-level expiry rule. Returns counts of created / updated /
        resolved notifications.
        """
        try:
            item = Item.objects.get(pk=item_id)
            location = Location.objects.get(pk=location_id)
        except (Item.DoesNotExist, Location.DoesNotExist):
            raise ResourceNotFoundError(detail='Item or location not found.')

        outcome = cls._evaluate_pair(item, location)
        outcome.update(cls.evaluate_expiry(item.pk, today=today))
        return outcome

    @classmethod
    def _evaluate_pair(cls, item: Item, location: Location) -> Counter:
        violation = None
        if item.is_active and location.is_active:
            balance = (
                StockBalance.objects
                .filter(item=item, location=location)
                .values_list('quantity', flat=True)
                .first()
            )
            threshold = StockThreshold.objects.filter(item=item, location=location).first()
            # A pair never touched by the ledger and without levels is not tracked.
            if balance is not None or threshold is not None:
                violation = rules.check_stock(
                    balance if balance is not None else Decimal('0'),
                    threshold.min_level if threshold else None,
                    threshold.max_level if threshold else None,
                    item_name=item.name,
                    unit=item.unit,
                    location_name=location.name,
                )
        return cls._reconcile_open(item, location, rules.STOCK_KINDS, violation)

    @classmethod
    @transaction.atomic
    def evaluate_expiry(cls, item_id, *, today: date | None = None) -> Counter:
        try:
            item = Item.objects.get(pk=item_id)
        except Item.DoesNotExist:
            raise ResourceNotFoundError(detail='Item not found.')

        violation = None
        if item.is_active and item.expiry_date is not None:
            total = StockBalance.objects.filter(item=item).aggregate(total=Sum('quantity'))['total']
            violation = rules.check_expiry(
                item.expiry_date,
                total if total is not None else Decimal('0'),
                today or timezone.localdate(),
                lookahead_days=settings.INVENTORY_EXPIRY_LOOKAHEAD_DAYS,
                critical_days=settings.INVENTORY_EXPIRY_CRITICAL_DAYS,
                item_name=item.name,
            )
        return cls._reconcile_open(item, None, (rules.EXPIRY_WARNING,), violation)

    @classmethod
    def _reconcile_open(cls, item, location, kinds, violation) -> Counter:
        outcome = Counter()
        open_rows = list(
            Notification.objects.select_for_update()
            .filter(item=item, location=location, kind__in=kinds, is_resolved=False)
        )
        for notification in open_rows:
            if violation is None or notification.kind != violation.kind:
                cls._resolve(notification)
                outcome['resolved'] += 1
        if violation is not None:
            outcome[cls._upsert(item, location, violation, open_rows)] += 1
        return outcome

    @staticmethod
    def _upsert(item, location, violation: rules.Violation, open_rows) -> str:
        current = next((n for n in open_rows if n.kind == violation.kind), None)
        if current is None:
            try:
                with transaction.atomic():
                    notification = Notification.objects.create(
                        item=item,
                        location=location,
                        kind=violation.kind,
                        priority=violation.priority,
                        message=violation.message,
                    )
            except IntegrityError:
                # Another evaluation opened it first; fall through to update it.
                current = Notification.objects.select_for_update().get(
                    item=item, location=location, kind=violation.kind, is_resolved=False,
                )
            else:
                logger.info(
                    'Notification opened: %s [%s] item=%s loc=%s',
                    violation.kind, violation.priority, item.code,
                    location.code if location else '-',
                )
                return 'created'

        if current.priority == violation.priority and current.message == violation.message:
            return 'unchanged'
        current.priority = violation.priority
        current.message = violation.message
        current.save(update_fields=['priority', 'priority_rank', 'message', 'updated_at'])
        return 'updated'

    @staticmethod
    def _resolve(notification: Notification) -> None:
        notification.is_resolved = True
        notification.resolved_at = timezone.now()
        notification.save(update_fields=['is_resolved', 'resolved_at', 'updated_at'])
        logger.info(
            'Notification resolved: %s item=%s loc=%s',
            notification.kind, notification.item_id, notification.location_id,
        )

    @classmethod
    @transaction.atomic
    def resolve_open(cls, *, item_id=None, location_id=None) -> int:
        """Resolve every open notification for an item and/or a location."""
        if item_id is None and location_id is None:
            raise BusinessRuleViolation(detail='item_id or location_id is required.')
        qs = Notification.objects.select_for_update().filter(is_resolved=False)
        if item_id is not None:
            qs = qs.filter(item_id=item_id)
        if location_id is not None:
            qs = qs.filter(location_id=location_id)
        count = 0
        for notification in qs:
            cls._resolve(notification)
            count += 1
        return count

    @classmethod
    def sweep(cls, today: date | None = None) -> dict:
        """
        Re-evaluate every tracked pair and every item with an expiry date
        or an open expiry warning. Each evaluation commits on its own.
        """
        today = today or timezone.localdate()
        pairs = set(StockBalance.objects.values_list('item_id', 'location_id'))
        pairs |= set(StockThreshold.objects.values_list('item_id', 'location_id'))
        pairs |= set(
            Notification.objects
            .filter(is_resolved=False, location__isnull=False)
            .values_list('item_id', 'location_id')
        )
        items = set(Item.objects.filter(expiry_date__isnull=False).values_list('pk', flat=True))
        items |= set(
            Notification.objects
            .filter(is_resolved=False, kind=rules.EXPIRY_WARNING)
            .values_list('item_id', flat=True)
        )

        outcome = Counter()
        for item_id, location_id in pairs:
            with transaction.atomic():
                item = Item.objects.get(pk=item_id)
                location = Location.objects.get(pk=location_id)
                outcome.update(cls._evaluate_pair(item, location))
        for item_id in items:
            outcome.update(cls.evaluate_expiry(item_id, today=today))

        summary = {
            'pairs': len(pairs),
            'items': len(items),
            'created': outcome['created'],
            'updated': outcome['updated'],
            'resolved': outcome['resolved'],
        }
        logger.info('Notification sweep: %s', summary)
        return summary

    # --- Queries ---

    @staticmethod
    def list_notifications(
        *,
        unresolved_only: bool = True,
        min_priority: str | None = None,
        item_id=None,
        location_id=None,
    ):
        """Notifications ordered by priority (critical first), then newest."""
        qs = Notification.objects.select_related('item', 'location', 'acknowledged_by')
        if unresolved_only:
            qs = qs.filter(is_resolved=False)
        if min_priority:
            if min_priority not in Notification.Priority.values:
                raise BusinessRuleViolation(detail=f'Unknown priority: {min_priority}')
            qs = qs.filter(priority_rank__gte=Notification.PRIORITY_RANK[min_priority])
        if item_id is not None:
            qs = qs.filter(item_id=item_id)
        if location_id is not None:
            qs = qs.filter(location_id=location_id)
        return qs.order_by('-priority_rank', '-created_at')

    @staticmethod
    @transaction.atomic
    def acknowledge(notification_id, actor=None) -> Notification:
        """Mark a notification as seen. Idempotent; never blocks resolution."""
        try:
            notification = Notification.objects.select_for_update().get(pk=notification_id)
        except (Notification.DoesNotExist, ValidationError, ValueError):
            raise ResourceNotFoundError(detail='Notification not found.')
        if notification.is_acknowledged:
            return notification

        notification.is_acknowledged = True
        notification.acknowledged_at = timezone.now()
        notification.acknowledged_by = actor if actor is not None and actor.is_authenticated else None
        notification.save(update_fields=['is_acknowledged', 'acknowledged_at', 'acknowledged_by', 'updated_at'])

        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_ACKNOWLEDGE,
            model_name='Notification',
            object_id=str(notification.pk),
            new_values={'kind': notification.kind, 'priority': notification.priority},
        )
        return notification
