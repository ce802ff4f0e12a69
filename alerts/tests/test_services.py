"""
Tests — AlertService: notification lifecycle, idempotent evaluation,
expiry warnings, the periodic sweep and acknowledgement.

@file alerts/tests/test_services.py
"""

import uuid
from datetime import timedelta
from decimal import Decimal

import pytest
from django.db import IntegrityError, transaction
from django.utils import timezone

from alerts.models import Notification
from alerts.services import AlertService
from alerts.tasks import sweep_notifications_task
from catalog.services import ItemService
from core.exceptions import BusinessRuleViolation, ResourceNotFoundError
from core.models import AuditLog
from stock.models import StockMovement
from stock.services import LedgerService
from tests.factories import (
    ItemFactory,
    LocationFactory,
    NotificationFactory,
    PerishableItemFactory,
    StockThresholdFactory,
    UserFactory,
)


pytestmark = pytest.mark.django_db

MovementType = StockMovement.MovementType


def _move(item, location, quantity):
    quantity = Decimal(str(quantity))
    return LedgerService.record_movement(
        item_id=item.pk,
        location_id=location.pk,
        quantity=quantity,
        movement_type=MovementType.RECEIPT if quantity > 0 else MovementType.ISSUE,
    )


def _open(item, location=None):
    qs = Notification.objects.filter(item=item, is_resolved=False)
    if location is not None:
        qs = qs.filter(location=location)
    return list(qs)


class TestStockLifecycle:

    def test_low_stock_escalates_then_resolves(self):
        threshold = StockThresholdFactory(min_level=Decimal('10'), max_level=None)
        item, location = threshold.item, threshold.location

        _move(item, location, 12)
        assert _open(item) == []

        _move(item, location, -5)  # 7 left
        [notification] = _open(item)
        assert notification.kind == Notification.Kind.LOW_STOCK
        assert notification.priority == Notification.Priority.MEDIUM

        _move(item, location, -3)  # 4 left
        [escalated] = _open(item)
        assert escalated.pk == notification.pk
        assert escalated.priority == Notification.Priority.HIGH
        assert '4 pcs' in escalated.message

        _move(item, location, 7)  # 11 left
        assert _open(item) == []
        notification.refresh_from_db()
        assert notification.is_resolved is True
        assert notification.resolved_at is not None
        assert Notification.objects.filter(item=item).count() == 1

    def test_out_of_stock_replaces_low_stock(self):
        threshold = StockThresholdFactory(min_level=Decimal('10'), max_level=None)
        item, location = threshold.item, threshold.location
        _move(item, location, 3)
        [low] = _open(item)

        _move(item, location, -3)

        [out] = _open(item)
        assert out.kind == Notification.Kind.OUT_OF_STOCK
        assert out.priority == Notification.Priority.CRITICAL
        low.refresh_from_db()
        assert low.is_resolved is True

    def test_over_stock(self):
        threshold = StockThresholdFactory(min_level=Decimal('1'), max_level=Decimal('20'))
        _move(threshold.item, threshold.location, 25)
        [notification] = _open(threshold.item)
        assert notification.kind == Notification.Kind.OVER_STOCK
        assert notification.priority == Notification.Priority.LOW

    def test_untracked_pair_has_no_notification(self):
        item, location = ItemFactory(), LocationFactory()
        outcome = AlertService.evaluate(item.pk, location.pk)
        assert sum(outcome.values()) == 0
        assert _open(item) == []

    def test_emptied_pair_without_threshold_is_out_of_stock(self):
        item, location = ItemFactory(), LocationFactory()
        _move(item, location, 2)
        _move(item, location, -2)
        [notification] = _open(item)
        assert notification.kind == Notification.Kind.OUT_OF_STOCK

    def test_threshold_change_reevaluates(self):
        item, location = ItemFactory(), LocationFactory()
        _move(item, location, 8)
        assert _open(item) == []

        ItemService.set_threshold(item_id=item.pk, location_id=location.pk, min_level=Decimal('10'))
        [notification] = _open(item)
        assert notification.kind == Notification.Kind.LOW_STOCK

        ItemService.set_threshold(item_id=item.pk, location_id=location.pk, min_level=Decimal('5'))
        assert _open(item) == []


class TestIdempotence:

    def test_repeated_evaluation_changes_nothing(self):
        threshold = StockThresholdFactory(min_level=Decimal('10'), max_level=None)
        _move(threshold.item, threshold.location, 6)
        before = _open(threshold.item)

        outcome = AlertService.evaluate(threshold.item_id, threshold.location_id)

        assert outcome['created'] == 0
        assert outcome['updated'] == 0
        assert outcome['resolved'] == 0
        assert outcome['unchanged'] == 1
        assert [n.pk for n in _open(threshold.item)] == [n.pk for n in before]

    def test_at_most_one_open_notification_per_kind(self):
        notification = NotificationFactory()
        with pytest.raises(IntegrityError), transaction.atomic():
            NotificationFactory(
                item=notification.item, location=notification.location, kind=notification.kind,
            )

    def test_resolved_rows_do_not_block_new_ones(self):
        notification = NotificationFactory(is_resolved=True)
        NotificationFactory(item=notification.item, location=notification.location, kind=notification.kind)
        assert Notification.objects.filter(item=notification.item).count() == 2

    def test_unknown_pair_is_not_found(self):
        with pytest.raises(ResourceNotFoundError):
            AlertService.evaluate(uuid.uuid4(), LocationFactory().pk)


class TestExpiry:

    def test_warning_opens_inside_lookahead(self):
        item = PerishableItemFactory(expiry_date=timezone.localdate() + timedelta(days=3))
        _move(item, LocationFactory(), 5)
        [notification] = _open(item)
        assert notification.kind == Notification.Kind.EXPIRY_WARNING
        assert notification.location is None
        assert notification.priority == Notification.Priority.HIGH

    def test_no_warning_outside_lookahead(self):
        item = PerishableItemFactory()
        _move(item, LocationFactory(), 5)
        assert _open(item) == []

    def test_warning_resolves_when_expiry_moves_out(self):
        item = PerishableItemFactory(expiry_date=timezone.localdate() + timedelta(days=1))
        _move(item, LocationFactory(), 5)
        assert len(_open(item)) == 1

        ItemService.update_item(item_id=item.pk, expiry_date=timezone.localdate() + timedelta(days=60))
        assert _open(item) == []

    def test_warning_resolves_when_stock_runs_out(self):
        item = PerishableItemFactory(expiry_date=timezone.localdate() + timedelta(days=2))
        location = LocationFactory()
        _move(item, location, 5)
        _move(item, location, -5)
        kinds = {n.kind for n in _open(item)}
        assert Notification.Kind.EXPIRY_WARNING not in kinds

    def test_evaluate_expiry_with_explicit_date(self):
        item = PerishableItemFactory()
        _move(item, LocationFactory(), 5)
        outcome = AlertService.evaluate_expiry(item.pk, today=item.expiry_date - timedelta(days=4))
        assert outcome['created'] == 1


class TestSweep:

    def test_sweep_opens_missing_notifications(self):
        threshold = StockThresholdFactory(min_level=Decimal('10'))
        assert _open(threshold.item) == []

        summary = AlertService.sweep()

        assert summary['created'] == 1
        [notification] = _open(threshold.item)
        assert notification.kind == Notification.Kind.OUT_OF_STOCK

    def test_sweep_catches_date_driven_warnings(self):
        item = PerishableItemFactory(expiry_date=timezone.localdate() + timedelta(days=10))
        _move(item, LocationFactory(), 5)
        assert _open(item) == []

        AlertService.sweep(today=timezone.localdate() + timedelta(days=5))
        [notification] = _open(item)
        assert notification.kind == Notification.Kind.EXPIRY_WARNING

    def test_sweep_resolves_stale_rows(self):
        notification = NotificationFactory(kind=Notification.Kind.LOW_STOCK)
        summary = AlertService.sweep()
        assert summary['resolved'] == 1
        notification.refresh_from_db()
        assert notification.is_resolved is True

    def test_second_sweep_is_a_no_op(self):
        StockThresholdFactory(min_level=Decimal('10'))
        AlertService.sweep()
        summary = AlertService.sweep()
        assert summary['created'] == summary['updated'] == summary['resolved'] == 0

    def test_task_returns_summary(self):
        StockThresholdFactory(min_level=Decimal('10'))
        summary = sweep_notifications_task()
        assert summary['pairs'] == 1


class TestAcknowledge:

    def test_acknowledge_records_actor(self):
        user = UserFactory()
        notification = NotificationFactory()
        result = AlertService.acknowledge(notification.pk, actor=user)
        assert result.is_acknowledged is True
        assert result.acknowledged_by == user
        assert AuditLog.objects.filter(
            model_name='Notification', object_id=str(notification.pk), action='ACKNOWLEDGE',
        ).count() == 1

    def test_acknowledge_is_idempotent(self):
        notification = NotificationFactory()
        first = AlertService.acknowledge(notification.pk)
        second = AlertService.acknowledge(notification.pk)
        assert first.acknowledged_at == second.acknowledged_at

    def test_acknowledged_notification_still_resolves(self):
        threshold = StockThresholdFactory(min_level=Decimal('10'), max_level=None)
        _move(threshold.item, threshold.location, 6)
        [notification] = _open(threshold.item)
        AlertService.acknowledge(notification.pk)

        _move(threshold.item, threshold.location, 10)

        notification.refresh_from_db()
        assert notification.is_acknowledged is True
        assert notification.is_resolved is True

    def test_escalation_keeps_acknowledgement(self):
        threshold = StockThresholdFactory(min_level=Decimal('10'), max_level=None)
        _move(threshold.item, threshold.location, 8)
        [notification] = _open(threshold.item)
        AlertService.acknowledge(notification.pk)

        _move(threshold.item, threshold.location, -5)

        notification.refresh_from_db()
        assert notification.priority == Notification.Priority.HIGH
        assert notification.is_acknowledged is True

    def test_unknown_notification_is_not_found(self):
        with pytest.raises(ResourceNotFoundError):
            AlertService.acknowledge(uuid.uuid4())


class TestListNotifications:

    def test_critical_first(self):
        low = NotificationFactory(priority=Notification.Priority.LOW, kind=Notification.Kind.OVER_STOCK)
        critical = NotificationFactory(
            priority=Notification.Priority.CRITICAL, kind=Notification.Kind.OUT_OF_STOCK,
        )
        medium = NotificationFactory(priority=Notification.Priority.MEDIUM)
        ids = [n.pk for n in AlertService.list_notifications()]
        assert ids == [critical.pk, medium.pk, low.pk]

    def test_min_priority_and_resolved_filters(self):
        NotificationFactory(priority=Notification.Priority.MEDIUM)
        high = NotificationFactory(priority=Notification.Priority.HIGH)
        NotificationFactory(priority=Notification.Priority.CRITICAL, is_resolved=True)
        ids = [n.pk for n in AlertService.list_notifications(min_priority='high')]
        assert ids == [high.pk]
        assert AlertService.list_notifications(unresolved_only=False).count() == 3

    def test_unknown_priority_is_rejected(self):
        with pytest.raises(BusinessRuleViolation):
            AlertService.list_notifications(min_priority='urgent')


class TestResolveOpen:

    def test_resolves_by_location(self):
        location = LocationFactory()
        NotificationFactory(location=location)
        other = NotificationFactory()
        assert AlertService.resolve_open(location_id=location.pk) == 1
        other.refresh_from_db()
        assert other.is_resolved is False

    def test_requires_a_filter(self):
        with pytest.raises(BusinessRuleViolation):
            AlertService.resolve_open()
