"""
Tests — LedgerService and BalanceService.

Balance equals the ledger sum after every operation, transfers are
zero-sum and all-or-nothing, overdraw is rejected without backorder,
lost balance races are retried, and drift is detected on reconcile.

@file stock/tests/test_services.py
"""

import threading
import uuid
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest
from django.db import connection
from django.utils import timezone

from alerts.models import Notification
from core.exceptions import (
    BusinessRuleViolation,
    ConcurrencyConflictError,
    InactiveResourceError,
    InsufficientStockError,
    InvalidQuantityError,
    LedgerDriftError,
    ResourceNotFoundError,
)
from core.models import AuditLog
from stock import services as stock_services
from stock.models import StockBalance, StockMovement
from stock.services import BalanceService, LedgerService, to_quantity
from tests.factories import (
    ItemFactory,
    LocationFactory,
    PerishableItemFactory,
    StockThresholdFactory,
    UserFactory,
)


pytestmark = pytest.mark.django_db

MovementType = StockMovement.MovementType


def _receive(item, location, quantity, **kwargs):
    return LedgerService.record_movement(
        item_id=item.pk,
        location_id=location.pk,
        quantity=quantity,
        movement_type=MovementType.RECEIPT,
        **kwargs,
    )


def _issue(item, location, quantity, **kwargs):
    return LedgerService.record_movement(
        item_id=item.pk,
        location_id=location.pk,
        quantity=-Decimal(str(quantity)),
        movement_type=MovementType.ISSUE,
        **kwargs,
    )


class TestToQuantity:

    def test_parses_strings_and_ints(self):
        assert to_quantity('2.5') == Decimal('2.5')
        assert to_quantity(3) == Decimal('3')

    def test_rejects_more_than_three_places(self):
        with pytest.raises(InvalidQuantityError):
            to_quantity('1.0005')

    @pytest.mark.parametrize('value', ['abc', 'NaN', 'Infinity', None])
    def test_rejects_non_numbers(self, value):
        with pytest.raises(InvalidQuantityError):
            to_quantity(value)

    def test_largest_storable_quantity(self):
        assert to_quantity('999999999999999.999') == Decimal('999999999999999.999')

    @pytest.mark.parametrize('value', ['1e15', '-1e15', '1e20', '1e40'])
    def test_rejects_out_of_range(self, value):
        with pytest.raises(InvalidQuantityError):
            to_quantity(value)


class TestRecordMovement:

    def test_receipt_creates_balance(self):
        item, location = ItemFactory(), LocationFactory()
        movement = _receive(item, location, 50, actor=UserFactory())
        assert movement.quantity == Decimal('50')
        assert BalanceService.get_balance(item.pk, location.pk) == Decimal('50')
        balance = StockBalance.objects.get(item=item, location=location)
        assert balance.version == 1
        assert balance.last_movement_at == movement.created_at

    def test_balance_equals_ledger_sum_after_mixed_movements(self):
        item, location = ItemFactory(), LocationFactory()
        _receive(item, location, 100)
        _issue(item, location, 30)
        LedgerService.record_movement(
            item_id=item.pk, location_id=location.pk,
            quantity=Decimal('-2.5'), movement_type=MovementType.CONSUMPTION,
        )
        LedgerService.record_movement(
            item_id=item.pk, location_id=location.pk,
            quantity=Decimal('4'), movement_type=MovementType.ADJUSTMENT,
        )
        expected = Decimal('71.5')
        assert BalanceService.get_balance(item.pk, location.pk) == expected
        assert BalanceService.replay(item.pk, location.pk) == expected
        assert StockBalance.objects.get(item=item, location=location).version == 4

    def test_untouched_pair_is_zero(self):
        assert BalanceService.get_balance(ItemFactory().pk, LocationFactory().pk) == 0

    def test_reference_and_notes_are_stored(self):
        item, location = ItemFactory(), LocationFactory()
        movement = _receive(item, location, 5, reference_type='purchase_order', reference_id=4411, notes='PO 4411')
        movement.refresh_from_db()
        assert movement.reference_type == 'purchase_order'
        assert movement.reference_id == '4411'
        assert movement.notes == 'PO 4411'

    def test_movement_is_audited(self):
        item, location = ItemFactory(), LocationFactory()
        movement = _receive(item, location, 5, actor=UserFactory())
        log = AuditLog.objects.get(model_name='StockMovement', object_id=str(movement.pk))
        assert log.action == 'MOVEMENT'
        assert log.new_values['quantity'] == '5'

    @pytest.mark.parametrize('movement_type,quantity', [
        (MovementType.RECEIPT, Decimal('-1')),
        (MovementType.RECEIPT, Decimal('0')),
        (MovementType.ISSUE, Decimal('1')),
        (MovementType.CONSUMPTION, Decimal('1')),
        (MovementType.ADJUSTMENT, Decimal('0')),
    ])
    def test_sign_rules(self, movement_type, quantity):
        item, location = ItemFactory(), LocationFactory()
        with pytest.raises(InvalidQuantityError):
            LedgerService.record_movement(
                item_id=item.pk, location_id=location.pk,
                quantity=quantity, movement_type=movement_type,
            )
        assert StockMovement.objects.count() == 0

    def test_transfer_type_is_rejected_as_single_movement(self):
        item, location = ItemFactory(), LocationFactory()
        with pytest.raises(InvalidQuantityError):
            LedgerService.record_movement(
                item_id=item.pk, location_id=location.pk,
                quantity=Decimal('5'), movement_type=MovementType.TRANSFER,
            )

    def test_unknown_type_is_rejected(self):
        item, location = ItemFactory(), LocationFactory()
        with pytest.raises(BusinessRuleViolation):
            LedgerService.record_movement(
                item_id=item.pk, location_id=location.pk,
                quantity=Decimal('5'), movement_type='GIFT',
            )

    def test_issue_beyond_balance_is_rejected(self):
        item, location = ItemFactory(), LocationFactory()
        _receive(item, location, 5)
        with pytest.raises(InsufficientStockError):
            _issue(item, location, 6)
        assert BalanceService.get_balance(item.pk, location.pk) == Decimal('5')
        assert StockMovement.objects.filter(item=item).count() == 1

    def test_negative_adjustment_beyond_balance_is_rejected(self):
        item, location = ItemFactory(), LocationFactory()
        _receive(item, location, 2)
        with pytest.raises(InsufficientStockError):
            LedgerService.record_movement(
                item_id=item.pk, location_id=location.pk,
                quantity=Decimal('-3'), movement_type=MovementType.ADJUSTMENT,
            )

    def test_backorder_allows_negative_balance(self):
        item, location = ItemFactory(allow_backorder=True), LocationFactory()
        _issue(item, location, 4)
        assert BalanceService.get_balance(item.pk, location.pk) == Decimal('-4')

    def test_inactive_item_is_rejected(self):
        item, location = ItemFactory(is_active=False), LocationFactory()
        with pytest.raises(InactiveResourceError):
            _receive(item, location, 1)

    def test_inactive_location_is_rejected(self):
        item, location = ItemFactory(), LocationFactory(is_active=False)
        with pytest.raises(InactiveResourceError):
            _receive(item, location, 1)

    def test_unknown_item_is_not_found(self):
        with pytest.raises(ResourceNotFoundError):
            LedgerService.record_movement(
                item_id=uuid.uuid4(), location_id=LocationFactory().pk,
                quantity=Decimal('1'), movement_type=MovementType.RECEIPT,
            )

    def test_sequential_unit_consumption_drains_exactly(self):
        item, location = ItemFactory(), LocationFactory()
        _receive(item, location, 5)
        for _ in range(5):
            _issue(item, location, 1)
        with pytest.raises(InsufficientStockError):
            _issue(item, location, 1)
        assert BalanceService.get_balance(item.pk, location.pk) == 0

    def test_movement_evaluates_alerts(self):
        threshold = StockThresholdFactory(min_level=Decimal('10'), max_level=None)
        _receive(threshold.item, threshold.location, 7)
        notification = Notification.objects.get(item=threshold.item, is_resolved=False)
        assert notification.kind == Notification.Kind.LOW_STOCK


class TestRecordTransfer:

    def test_transfer_is_zero_sum(self):
        item = ItemFactory()
        source, destination = LocationFactory(), LocationFactory()
        _receive(item, source, 20)

        out_movement, in_movement = LedgerService.record_transfer(
            item_id=item.pk,
            from_location_id=source.pk,
            to_location_id=destination.pk,
            quantity=Decimal('8'),
        )
        assert out_movement.quantity == Decimal('-8')
        assert in_movement.quantity == Decimal('8')
        assert out_movement.transfer_group == in_movement.transfer_group
        assert out_movement.counter_location_id == destination.pk
        assert in_movement.counter_location_id == source.pk
        assert BalanceService.get_balance(item.pk, source.pk) == Decimal('12')
        assert BalanceService.get_balance(item.pk, destination.pk) == Decimal('8')
        assert BalanceService.get_total(item.pk) == Decimal('20')

    def test_transfer_beyond_source_balance_is_rejected(self):
        item = ItemFactory()
        source, destination = LocationFactory(), LocationFactory()
        _receive(item, source, 3)
        with pytest.raises(InsufficientStockError):
            LedgerService.record_transfer(
                item_id=item.pk, from_location_id=source.pk,
                to_location_id=destination.pk, quantity=Decimal('4'),
            )
        assert StockMovement.objects.filter(movement_type=MovementType.TRANSFER).count() == 0

    def test_same_location_is_rejected(self):
        item, location = ItemFactory(), LocationFactory()
        with pytest.raises(InvalidQuantityError):
            LedgerService.record_transfer(
                item_id=item.pk, from_location_id=location.pk,
                to_location_id=location.pk, quantity=Decimal('1'),
            )

    @pytest.mark.parametrize('quantity', [Decimal('0'), Decimal('-2')])
    def test_non_positive_quantity_is_rejected(self, quantity):
        item = ItemFactory()
        with pytest.raises(InvalidQuantityError):
            LedgerService.record_transfer(
                item_id=item.pk, from_location_id=LocationFactory().pk,
                to_location_id=LocationFactory().pk, quantity=quantity,
            )

    def test_inactive_destination_is_rejected(self):
        item = ItemFactory()
        source, destination = LocationFactory(), LocationFactory(is_active=False)
        _receive(item, source, 3)
        with pytest.raises(InactiveResourceError):
            LedgerService.record_transfer(
                item_id=item.pk, from_location_id=source.pk,
                to_location_id=destination.pk, quantity=Decimal('1'),
            )

    def test_failure_after_first_leg_rolls_back_both(self):
        item = ItemFactory()
        source, destination = LocationFactory(), LocationFactory()
        _receive(item, source, 10)
        real_apply = stock_services._apply_delta
        calls = []

        def fail_on_second_leg(balance, delta, moved_at):
            calls.append(delta)
            if len(calls) == 2:
                raise RuntimeError('Simulated failure')
            return real_apply(balance, delta, moved_at)

        with patch('stock.services._apply_delta', side_effect=fail_on_second_leg):
            with pytest.raises(RuntimeError):
                LedgerService.record_transfer(
                    item_id=item.pk, from_location_id=source.pk,
                    to_location_id=destination.pk, quantity=Decimal('4'),
                )

        assert StockMovement.objects.filter(movement_type=MovementType.TRANSFER).count() == 0
        assert BalanceService.get_balance(item.pk, source.pk) == Decimal('10')
        assert BalanceService.get_balance(item.pk, destination.pk) == 0


class TestAdjustTo:

    def _adjust(self, item, location, target):
        return LedgerService.adjust_to(
            item_id=item.pk, location_id=location.pk, target=Decimal(str(target)),
        )

    def test_raises_and_lowers_to_target(self):
        item, location = ItemFactory(), LocationFactory()
        _receive(item, location, 10)

        up = self._adjust(item, location, 15)
        down = self._adjust(item, location, 4)

        assert up.movement_type == MovementType.ADJUSTMENT
        assert up.quantity == Decimal('5')
        assert down.quantity == Decimal('-11')
        assert BalanceService.get_balance(item.pk, location.pk) == Decimal('4')

    def test_matching_balance_books_nothing(self):
        item, location = ItemFactory(), LocationFactory()
        _receive(item, location, 6)
        assert self._adjust(item, location, 6) is None
        assert StockMovement.objects.filter(item=item).count() == 1

    def test_untracked_pair_at_zero_stays_untracked(self):
        item, location = ItemFactory(), LocationFactory()
        assert self._adjust(item, location, 0) is None
        assert not StockBalance.objects.filter(item=item, location=location).exists()

    def test_negative_target_needs_backorder(self):
        item, location = ItemFactory(), LocationFactory()
        with pytest.raises(InsufficientStockError):
            self._adjust(item, location, -3)

        backorder = ItemFactory(allow_backorder=True)
        self._adjust(backorder, location, -3)
        assert BalanceService.get_balance(backorder.pk, location.pk) == Decimal('-3')

    def test_movement_landing_before_the_lock_is_accounted_for(self):
        item, location = ItemFactory(), LocationFactory()
        _receive(item, location, 10)
        real_lock = stock_services._lock_balance
        pending = [True]

        def lock_after_concurrent_issue(item_id, location_id):
            if pending:
                pending.pop()
                _issue(item, location, 3)
            return real_lock(item_id, location_id)

        with patch.object(stock_services, '_lock_balance', side_effect=lock_after_concurrent_issue):
            movement = self._adjust(item, location, 15)

        assert movement.quantity == Decimal('8')
        assert BalanceService.get_balance(item.pk, location.pk) == Decimal('15')
        assert BalanceService.replay(item.pk, location.pk) == Decimal('15')

    def test_balance_cannot_leave_supported_range(self):
        item, location = ItemFactory(), LocationFactory()
        _receive(item, location, Decimal('999999999999999'))
        with pytest.raises(InvalidQuantityError):
            _receive(item, location, 1)
        assert BalanceService.get_balance(item.pk, location.pk) == Decimal('999999999999999')


class TestConflictRetry:

    def test_lost_race_is_retried(self):
        item, location = ItemFactory(), LocationFactory()
        real_apply = stock_services._apply_delta
        calls = []

        def lose_first_race(balance, delta, moved_at):
            calls.append(delta)
            if len(calls) == 1:
                raise ConcurrencyConflictError()
            return real_apply(balance, delta, moved_at)

        with patch('stock.services._apply_delta', side_effect=lose_first_race):
            _receive(item, location, 5)

        assert len(calls) == 2
        assert StockMovement.objects.filter(item=item).count() == 1
        assert BalanceService.get_balance(item.pk, location.pk) == Decimal('5')

    def test_gives_up_after_max_retries(self, settings):
        settings.INVENTORY_CONFLICT_MAX_RETRIES = 2
        item, location = ItemFactory(), LocationFactory()

        with patch('stock.services._apply_delta', side_effect=ConcurrencyConflictError()) as mocked:
            with pytest.raises(ConcurrencyConflictError):
                _receive(item, location, 5)

        assert mocked.call_count == 3
        assert StockMovement.objects.filter(item=item).count() == 0

    def test_stale_version_raises_conflict(self):
        item, location = ItemFactory(), LocationFactory()
        _receive(item, location, 5)
        stale = StockBalance.objects.get(item=item, location=location)
        _receive(item, location, 1)
        with pytest.raises(ConcurrencyConflictError):
            stock_services._apply_delta(stale, Decimal('1'), timezone.now())


class TestListMovements:

    def test_newest_first_with_limit(self):
        item, location = ItemFactory(), LocationFactory()
        first = _receive(item, location, 1)
        second = _receive(item, location, 2)
        third = _receive(item, location, 3)
        movements = list(LedgerService.list_movements(item_id=item.pk))
        assert [m.pk for m in movements] == [third.pk, second.pk, first.pk]
        assert len(LedgerService.list_movements(item_id=item.pk, limit=2)) == 2

    def test_filters_by_location(self):
        item = ItemFactory()
        here, there = LocationFactory(), LocationFactory()
        _receive(item, here, 1)
        _receive(item, there, 2)
        movements = LedgerService.list_movements(item_id=item.pk, location_id=there.pk)
        assert [m.location_id for m in movements] == [there.pk]

    def test_since_excludes_older(self):
        item, location = ItemFactory(), LocationFactory()
        _receive(item, location, 1)
        future = timezone.now() + timedelta(minutes=5)
        assert list(LedgerService.list_movements(item_id=item.pk, since=future)) == []

    def test_unknown_item_is_not_found(self):
        with pytest.raises(ResourceNotFoundError):
            LedgerService.list_movements(item_id=uuid.uuid4())


class TestReconcile:

    def test_consistent_pair_matches(self):
        item, location = ItemFactory(), LocationFactory()
        _receive(item, location, 9)
        _issue(item, location, 4)
        result = BalanceService.reconcile(item.pk, location.pk)
        assert result.matches
        assert result.projected == result.replayed == Decimal('5')

    def test_drift_is_reported(self):
        item, location = ItemFactory(), LocationFactory()
        _receive(item, location, 9)
        StockBalance.objects.filter(item=item, location=location).update(quantity=Decimal('11'))

        result = BalanceService.reconcile(item.pk, location.pk)
        assert not result.matches
        assert result.projected == Decimal('11')
        assert result.replayed == Decimal('9')

        with pytest.raises(LedgerDriftError):
            BalanceService.reconcile(item.pk, location.pk, raise_on_drift=True)

    def test_reconcile_all_lists_every_pair(self):
        item = ItemFactory()
        here, there = LocationFactory(), LocationFactory()
        _receive(item, here, 3)
        _receive(item, there, 4)
        StockBalance.objects.filter(item=item, location=there).update(quantity=Decimal('1'))

        results = BalanceService.reconcile_all()
        assert len(results) == 2
        drifted = [r for r in results if not r.matches]
        assert [(r.location_id, r.projected, r.replayed) for r in drifted] == [
            (there.pk, Decimal('1'), Decimal('4')),
        ]


class TestRestockSuggestions:

    def test_suggests_pairs_at_or_below_minimum(self):
        threshold = StockThresholdFactory(min_level=Decimal('10'), max_level=Decimal('50'))
        _receive(threshold.item, threshold.location, 6)
        StockThresholdFactory(min_level=Decimal('1'), max_level=None)  # empty, min 1

        suggestions = BalanceService.restock_suggestions(location_id=threshold.location_id)
        assert len(suggestions) == 1
        suggestion = suggestions[0]
        assert suggestion.current == Decimal('6')
        assert suggestion.suggested_quantity == Decimal('44')
        assert suggestion.estimated_cost == Decimal('550.00')

    def test_minimum_doubled_when_larger(self):
        threshold = StockThresholdFactory(min_level=Decimal('10'), max_level=Decimal('12'))
        _receive(threshold.item, threshold.location, 5)
        suggestion = BalanceService.restock_suggestions()[0]
        assert suggestion.suggested_quantity == Decimal('20')

    def test_pairs_above_minimum_are_skipped(self):
        threshold = StockThresholdFactory(min_level=Decimal('10'))
        _receive(threshold.item, threshold.location, 11)
        assert BalanceService.restock_suggestions() == []

    def test_empty_pairs_come_first(self):
        full = StockThresholdFactory(min_level=Decimal('10'))
        _receive(full.item, full.location, 3)
        empty = StockThresholdFactory(min_level=Decimal('10'))
        suggestions = BalanceService.restock_suggestions()
        assert [s.item_id for s in suggestions] == [empty.item_id, full.item_id]


class TestDisposeExpiredStock:

    def test_writes_off_expired_balances(self):
        item = PerishableItemFactory(expiry_date=timezone.localdate() - timedelta(days=1))
        here, there = LocationFactory(), LocationFactory()
        _receive(item, here, Decimal('2.5'))
        _receive(item, there, 4)

        disposed = LedgerService.dispose_expired_stock()

        assert len(disposed) == 2
        assert all(m.movement_type == MovementType.CONSUMPTION for m in disposed)
        assert all(m.reference_type == 'expiry_disposal' for m in disposed)
        assert disposed[0].notes.startswith('Automatic disposal - expired on ')
        assert BalanceService.get_total(item.pk) == 0

    def test_leaves_fresh_items_alone(self):
        item = PerishableItemFactory()
        location = LocationFactory()
        _receive(item, location, 5)
        assert LedgerService.dispose_expired_stock() == []
        assert BalanceService.get_balance(item.pk, location.pk) == Decimal('5')


def _run_concurrently(jobs):
    """Start every job at the same moment on its own thread and connection; collect outcomes."""
    barrier = threading.Barrier(len(jobs))
    outcomes = []
    lock = threading.Lock()

    def run(job):
        try:
            barrier.wait()
            result = job()
        except InsufficientStockError:
            result = 'short'
        except Exception as exc:  # any other failure is reported by the assertions
            result = repr(exc)
        finally:
            connection.close()
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=run, args=(job,)) for job in jobs]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return outcomes


@pytest.mark.skipif(connection.vendor != 'postgresql', reason='needs row-level locking')
@pytest.mark.django_db(transaction=True)
class TestConcurrentLedger:

    def test_n_consumers_share_n_units(self):
        item, location = ItemFactory(), LocationFactory()
        _receive(item, location, 8)

        def consume():
            _issue(item, location, 1)
            return 'ok'

        outcomes = _run_concurrently([consume] * 8)

        assert outcomes == ['ok'] * 8
        assert BalanceService.get_balance(item.pk, location.pk) == 0
        assert BalanceService.replay(item.pk, location.pk) == 0

    def test_parallel_issues_never_overdraw(self):
        item, location = ItemFactory(), LocationFactory()
        _receive(item, location, 5)

        def consume():
            _issue(item, location, 1)
            return 'ok'

        outcomes = _run_concurrently([consume] * 8)

        assert outcomes.count('ok') == 5
        assert outcomes.count('short') == 3
        assert BalanceService.get_balance(item.pk, location.pk) == 0
        assert BalanceService.replay(item.pk, location.pk) == 0

    def test_opposite_transfers_do_not_deadlock(self):
        item = ItemFactory()
        east, west = LocationFactory(code='EAST'), LocationFactory(code='WEST')
        _receive(item, east, 20)
        _receive(item, west, 20)

        def transfer(source, destination):
            def job():
                for _ in range(3):
                    LedgerService.record_transfer(
                        item_id=item.pk,
                        from_location_id=source.pk,
                        to_location_id=destination.pk,
                        quantity=1,
                    )
                return 'ok'
            return job

        outcomes = _run_concurrently(
            [transfer(east, west), transfer(west, east)] * 4,
        )

        assert outcomes == ['ok'] * 8
        for location in (east, west):
            assert BalanceService.get_balance(item.pk, location.pk) == Decimal('20')
            assert BalanceService.replay(item.pk, location.pk) == Decimal('20')
        assert StockMovement.objects.filter(movement_type=MovementType.TRANSFER).count() == 48
