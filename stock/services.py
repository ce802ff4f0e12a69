"""
StockLedger — Stock Service Layer

Movement ledger and balance projection.

Every stock change is one StockMovement row (two for a transfer). In the
same transaction the ledger locks the StockBalance row of each touched
(item, location) pair, validates against the locked quantity, inserts the
movement and applies a version-checked update to the balance. Alerts for
the touched pairs are re-evaluated before the transaction commits.

A lost version check surfaces as ConcurrencyConflictError and the whole
operation is retried from scratch (validation included) a bounded number
of times. INSERT ONLY — StockMovement rows are never updated or deleted.

@file stock/services.py
"""

import functools
import logging
import time
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from uuid import UUID

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F, Sum
from django.utils import timezone

from alerts.services import AlertService
from catalog.models import QUANTITY_DECIMAL_PLACES, QUANTITY_MAX_DIGITS, Item, StockThreshold
from catalog.services import ItemService
from core.constants import AUDIT_ACTION_MOVEMENT
from core.exceptions import (
    BusinessRuleViolation,
    ConcurrencyConflictError,
    InsufficientStockError,
    InvalidQuantityError,
    LedgerDriftError,
)
from core.services import AuditService
from locations.services import LocationService

from .models import StockBalance, StockMovement

logger = logging.getLogger('stockledger')

ZERO = Decimal('0')
QUANTUM = Decimal('0.001')
# Exclusive bound of a Decimal(18,3) column.
QUANTITY_LIMIT = Decimal(10) ** (QUANTITY_MAX_DIGITS - QUANTITY_DECIMAL_PLACES)

MovementType = StockMovement.MovementType

# Movements that take stock out and must not overdraw without backorder.
OUTBOUND_TYPES = {MovementType.ISSUE, MovementType.CONSUMPTION}

DISPOSAL_REFERENCE_TYPE = 'expiry_disposal'


def to_quantity(value) -> Decimal:
    """Parse a quantity into a Decimal with at most three decimal places."""
    try:
        quantity = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidQuantityError(detail=f'Invalid quantity: {value!r}.')
    if not quantity.is_finite():
        raise InvalidQuantityError(detail=f'Invalid quantity: {value!r}.')
    if abs(quantity) >= QUANTITY_LIMIT:
        raise InvalidQuantityError(detail=f'Quantity {quantity} is out of range.')
    if quantity != quantity.quantize(QUANTUM):
        raise InvalidQuantityError(detail='Quantity supports at most 3 decimal places.')
    return quantity


def _validate_sign(movement_type: str, quantity: Decimal) -> None:
    if movement_type not in MovementType.values:
        raise BusinessRuleViolation(detail=f'Invalid movement_type: {movement_type}')
    if movement_type == MovementType.TRANSFER:
        raise InvalidQuantityError(detail='Transfers must be recorded as a transfer between two locations.')
    if movement_type == MovementType.RECEIPT and quantity <= 0:
        raise InvalidQuantityError(detail='A receipt must have a positive quantity.')
    if movement_type in OUTBOUND_TYPES and quantity >= 0:
        raise InvalidQuantityError(
            detail=f'A {movement_type.lower()} must have a negative quantity.',
        )
    if movement_type == MovementType.ADJUSTMENT and quantity == 0:
        raise InvalidQuantityError(detail='An adjustment cannot be zero.')


def retry_on_conflict(func):
    """
    Re-run a ledger operation when it loses a balance race.

    Wraps the outside of the transaction so each attempt starts a fresh
    atomic block and re-validates against current balances.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        max_retries = settings.INVENTORY_CONFLICT_MAX_RETRIES
        backoff = settings.INVENTORY_CONFLICT_BACKOFF_SECONDS
        attempt = 0
        while True:
            try:
                return func(*args, **kwargs)
            except ConcurrencyConflictError:
                if attempt >= max_retries:
                    logger.warning(
                        '%s gave up after %d conflict retries.', func.__name__, attempt,
                    )
                    raise
                attempt += 1
                logger.warning(
                    '%s lost a balance race; retry %d/%d.', func.__name__, attempt, max_retries,
                )
                if backoff:
                    time.sleep(backoff * (2 ** (attempt - 1)))
    return wrapper


def _lock_balance(item_id, location_id) -> StockBalance:
    """Create the balance row on first touch, then lock it for this transaction."""
    try:
        StockBalance.objects.get_or_create(item_id=item_id, location_id=location_id)
    except IntegrityError:
        raise ConcurrencyConflictError(detail='Balance row was created concurrently.')
    return StockBalance.objects.select_for_update().get(item_id=item_id, location_id=location_id)


def _apply_delta(balance: StockBalance, delta: Decimal, moved_at) -> StockBalance:
    """Version-checked increment of a locked balance row."""
    updated = StockBalance.objects.filter(pk=balance.pk, version=balance.version).update(
        quantity=F('quantity') + delta,
        version=F('version') + 1,
        last_movement_at=moved_at,
    )
    if updated != 1:
        raise ConcurrencyConflictError(
            detail=f'Balance {balance.item_id}@{balance.location_id} changed concurrently.',
        )
    balance.quantity += delta
    balance.version += 1
    balance.last_movement_at = moved_at
    return balance


def _ensure_available(item: Item, balance: StockBalance, delta: Decimal, location_code: str) -> None:
    if item.allow_backorder:
        return
    if balance.quantity + delta < 0:
        raise InsufficientStockError(
            detail=(
                f'Insufficient stock of {item.code} at {location_code}: '
                f'balance={balance.quantity}, requested={-delta}.'
            ),
        )


def _audit_movement(movement: StockMovement, actor) -> None:
    AuditService.log(
        actor=actor,
        action=AUDIT_ACTION_MOVEMENT,
        model_name='StockMovement',
        object_id=str(movement.pk),
        new_values={
            'item_id': str(movement.item_id),
            'location_id': str(movement.location_id),
            'counter_location_id': str(movement.counter_location_id) if movement.counter_location_id else None,
            'movement_type': movement.movement_type,
            'quantity': str(movement.quantity),
            'transfer_group': str(movement.transfer_group) if movement.transfer_group else None,
            'reference_type': movement.reference_type,
            'reference_id': movement.reference_id,
        },
    )


def _book(item: Item, location, balance: StockBalance, quantity: Decimal, movement_type: str, *,
          reference_type='', reference_id=None, notes='', unit_cost=None, actor=None) -> StockMovement:
    """Insert one movement against a locked balance and move the balance with it."""
    if abs(balance.quantity + quantity) >= QUANTITY_LIMIT:
        raise InvalidQuantityError(
            detail=f'Balance of {item.code} at {location.code} would leave the supported range.',
        )
    movement = StockMovement.objects.create(
        item=item,
        location=location,
        movement_type=movement_type,
        quantity=quantity,
        unit_cost=unit_cost,
        reference_type=reference_type or '',
        reference_id=str(reference_id) if reference_id is not None else '',
        notes=notes or '',
        created_by=actor if actor is not None and actor.is_authenticated else None,
    )
    _apply_delta(balance, quantity, movement.created_at)

    _audit_movement(movement, actor)
    AlertService.evaluate(item.pk, location.pk)
    logger.info(
        'StockMovement %s %s qty=%s item=%s loc=%s balance=%s',
        movement_type, movement.pk, quantity, item.code, location.code, balance.quantity,
    )
    return movement


class LedgerService:
    """Append-only movement ledger."""

    @staticmethod
    @retry_on_conflict
    @transaction.atomic
    def record_movement(
        *,
        item_id: UUID,
        location_id: UUID,
        quantity,
        movement_type: str,
        reference_type: str = '',
        reference_id=None,
        actor=None,
        notes: str = '',
        unit_cost=None,
    ) -> StockMovement:
        """
        Record a single receipt, issue, consumption or adjustment.

        quantity is the signed delta. Issues, consumptions and negative
        adjustments may not take the balance below zero unless the item
        allows backorder.
        """
        quantity = to_quantity(quantity)
        _validate_sign(movement_type, quantity)

        item = ItemService.get_item(item_id, require_active=True)
        location = LocationService.get_location(location_id, require_active=True)

        balance = _lock_balance(item.pk, location.pk)
        if quantity < 0:
            _ensure_available(item, balance, quantity, location.code)

        return _book(
            item, location, balance, quantity, movement_type,
            reference_type=reference_type, reference_id=reference_id,
            notes=notes, unit_cost=unit_cost, actor=actor,
        )

    @staticmethod
    @retry_on_conflict
    @transaction.atomic
    def adjust_to(
        *,
        item_id: UUID,
        location_id: UUID,
        target,
        reference_type: str = '',
        reference_id=None,
        actor=None,
        notes: str = '',
    ) -> StockMovement | None:
        """
        Bring a balance to a stated level with one ADJUSTMENT.

        The difference is taken against the locked balance row, so movements
        committed concurrently are accounted for. Returns None when the
        balance already matches; an untracked pair stated at zero stays
        untracked.
        """
        target = to_quantity(target)
        item = ItemService.get_item(item_id, require_active=True)
        location = LocationService.get_location(location_id, require_active=True)

        if target == 0 and not StockBalance.objects.filter(item=item, location=location).exists():
            return None
        balance = _lock_balance(item.pk, location.pk)
        delta = target - balance.quantity
        if delta == 0:
            return None
        if delta < 0:
            _ensure_available(item, balance, delta, location.code)

        return _book(
            item, location, balance, delta, MovementType.ADJUSTMENT,
            reference_type=reference_type, reference_id=reference_id,
            notes=notes, actor=actor,
        )

    @staticmethod
    @retry_on_conflict
    @transaction.atomic
    def record_transfer(
        *,
        item_id: UUID,
        from_location_id: UUID,
        to_location_id: UUID,
        quantity,
        actor=None,
        reference_type: str = '',
        reference_id=None,
        notes: str = '',
    ) -> tuple[StockMovement, StockMovement]:
        """
        Atomic dual movement: -q at the source, +q at the destination,
        sharing one transfer_group. Rolls back both if any step fails.
        """
        quantity = to_quantity(quantity)
        if quantity <= 0:
            raise InvalidQuantityError(detail='Transfer quantity must be positive.')
        if str(from_location_id) == str(to_location_id):
            raise InvalidQuantityError(detail='Source and destination locations must differ.')

        item = ItemService.get_item(item_id, require_active=True)
        source = LocationService.get_location(from_location_id, require_active=True)
        destination = LocationService.get_location(to_location_id, require_active=True)

        # Lock both rows in location-id order so opposite transfers cannot deadlock.
        locked = {
            loc.pk: _lock_balance(item.pk, loc.pk)
            for loc in sorted((source, destination), key=lambda loc: str(loc.pk))
        }
        source_balance = locked[source.pk]
        destination_balance = locked[destination.pk]
        _ensure_available(item, source_balance, -quantity, source.code)
        if destination_balance.quantity + quantity >= QUANTITY_LIMIT:
            raise InvalidQuantityError(
                detail=f'Balance of {item.code} at {destination.code} would leave the supported range.',
            )

        group = uuid.uuid4()
        common = {
            'item': item,
            'movement_type': MovementType.TRANSFER,
            'transfer_group': group,
            'reference_type': reference_type or '',
            'reference_id': str(reference_id) if reference_id is not None else '',
            'notes': notes or '',
            'created_by': actor if actor is not None and actor.is_authenticated else None,
        }
        out_movement = StockMovement.objects.create(
            location=source, counter_location=destination, quantity=-quantity, **common,
        )
        in_movement = StockMovement.objects.create(
            location=destination, counter_location=source, quantity=quantity, **common,
        )
        _apply_delta(source_balance, -quantity, out_movement.created_at)
        _apply_delta(destination_balance, quantity, in_movement.created_at)

        for movement in (out_movement, in_movement):
            _audit_movement(movement, actor)
        AlertService.evaluate(item.pk, source.pk)
        AlertService.evaluate(item.pk, destination.pk)
        logger.info(
            'Transfer %s: %s %s from %s to %s',
            group, quantity, item.code, source.code, destination.code,
        )
        return out_movement, in_movement

    @staticmethod
    def list_movements(*, item_id: UUID, location_id: UUID | None = None, since=None, limit: int | None = None):
        """Movements for an item (optionally one location), newest first."""
        ItemService.get_item(item_id)
        qs = (
            StockMovement.objects
            .filter(item_id=item_id)
            .select_related('item', 'location', 'counter_location', 'created_by')
            .order_by('-created_at', '-pk')
        )
        if location_id is not None:
            LocationService.get_location(location_id)
            qs = qs.filter(location_id=location_id)
        if since is not None:
            qs = qs.filter(created_at__gte=since)
        if limit is not None:
            if limit < 0:
                raise BusinessRuleViolation(detail='limit must be zero or positive.')
            qs = qs[:limit]
        return qs

    @classmethod
    def dispose_expired_stock(cls, *, today: date | None = None, actor=None) -> list[StockMovement]:
        """
        Write off the remaining stock of every active item past its expiry
        date with one CONSUMPTION movement per location still holding it.
        Each write-off commits on its own.
        """
        today = today or timezone.localdate()
        balances = (
            StockBalance.objects
            .filter(
                item__is_active=True,
                item__expiry_date__lt=today,
                location__is_active=True,
                quantity__gt=0,
            )
            .select_related('item', 'location')
            .order_by('item__code', 'location__code')
        )
        disposed = []
        for balance in balances:
            movement = cls.record_movement(
                item_id=balance.item_id,
                location_id=balance.location_id,
                quantity=-balance.quantity,
                movement_type=MovementType.CONSUMPTION,
                reference_type=DISPOSAL_REFERENCE_TYPE,
                notes=f'Automatic disposal - expired on {balance.item.expiry_date.isoformat()}',
                actor=actor,
            )
            disposed.append(movement)
        if disposed:
            logger.info('Disposed expired stock: %d movements.', len(disposed))
        return disposed


# ---------------------------------------------------------------------------
# Balance projection
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ReconcileResult:
    item_id: UUID
    location_id: UUID
    projected: Decimal
    replayed: Decimal

    @property
    def matches(self) -> bool:
        return self.projected == self.replayed


@dataclass(frozen=True)
class RestockSuggestion:
    item_id: UUID
    item_code: str
    item_name: str
    unit: str
    location_id: UUID
    location_code: str
    current: Decimal
    min_level: Decimal
    max_level: Decimal | None
    suggested_quantity: Decimal
    estimated_cost: Decimal | None


class BalanceService:
    """Read side of the ledger: materialized balances and their verification."""

    @staticmethod
    def get_balance(item_id: UUID, location_id: UUID) -> Decimal:
        """Current quantity for the pair; zero when it was never touched."""
        quantity = (
            StockBalance.objects
            .filter(item_id=item_id, location_id=location_id)
            .values_list('quantity', flat=True)
            .first()
        )
        return quantity if quantity is not None else ZERO

    @staticmethod
    def get_balances(item_id: UUID) -> dict[UUID, Decimal]:
        return dict(
            StockBalance.objects
            .filter(item_id=item_id)
            .values_list('location_id', 'quantity')
        )

    @staticmethod
    def get_total(item_id: UUID) -> Decimal:
        total = StockBalance.objects.filter(item_id=item_id).aggregate(total=Sum('quantity'))['total']
        return total if total is not None else ZERO

    @staticmethod
    def replay(item_id: UUID, location_id: UUID) -> Decimal:
        """Balance recomputed from the movement ledger alone."""
        total = (
            StockMovement.objects
            .filter(item_id=item_id, location_id=location_id)
            .aggregate(total=Sum('quantity'))['total']
        )
        return total if total is not None else ZERO

    @classmethod
    @transaction.atomic
    def reconcile(cls, item_id: UUID, location_id: UUID, *, raise_on_drift: bool = False) -> ReconcileResult:
        """
        Compare the materialized balance with a replay of the ledger.

        The balance row is locked while the ledger is summed so no movement
        for the pair can land in between. Drift is logged and optionally
        raised; it is never corrected here.
        """
        projected = (
            StockBalance.objects.select_for_update()
            .filter(item_id=item_id, location_id=location_id)
            .values_list('quantity', flat=True)
            .first()
        )
        projected = projected if projected is not None else ZERO
        result = ReconcileResult(
            item_id=item_id,
            location_id=location_id,
            projected=projected,
            replayed=cls.replay(item_id, location_id),
        )
        if not result.matches:
            logger.error(
                'Ledger drift item=%s loc=%s projected=%s replayed=%s',
                item_id, location_id, result.projected, result.replayed,
            )
            if raise_on_drift:
                raise LedgerDriftError(
                    detail=(
                        f'Balance {result.projected} does not match ledger total '
                        f'{result.replayed} for item {item_id} at location {location_id}.'
                    ),
                )
        return result

    @classmethod
    def reconcile_all(cls) -> list[ReconcileResult]:
        """
        Integrity sweep over every pair. Pairs that look drifted in the bulk
        pass are re-checked under lock to rule out in-flight movements.
        """
        projected = {
            (row['item_id'], row['location_id']): row['quantity']
            for row in StockBalance.objects.values('item_id', 'location_id', 'quantity')
        }
        replayed = {
            (row['item_id'], row['location_id']): row['total']
            for row in (
                StockMovement.objects
                .values('item_id', 'location_id')
                .annotate(total=Sum('quantity'))
                .order_by()
            )
        }
        results = []
        for item_id, location_id in sorted(set(projected) | set(replayed), key=str):
            result = ReconcileResult(
                item_id=item_id,
                location_id=location_id,
                projected=projected.get((item_id, location_id), ZERO),
                replayed=replayed.get((item_id, location_id), ZERO),
            )
            if not result.matches:
                result = cls.reconcile(item_id, location_id)
            results.append(result)
        return results

    @staticmethod
    def restock_suggestions(*, location_id: UUID | None = None) -> list[RestockSuggestion]:
        """
        Pairs at or below their minimum level, with the quantity to order:
        max(max_level - current, min_level * 2).
        """
        thresholds = (
            StockThreshold.objects
            .filter(item__is_active=True, location__is_active=True)
            .select_related('item', 'location')
        )
        if location_id is not None:
            thresholds = thresholds.filter(location_id=location_id)

        balances = {
            (row['item_id'], row['location_id']): row['quantity']
            for row in StockBalance.objects.values('item_id', 'location_id', 'quantity')
        }
        suggestions = []
        for threshold in thresholds:
            current = balances.get((threshold.item_id, threshold.location_id), ZERO)
            if current > threshold.min_level:
                continue
            candidates = [threshold.min_level * 2]
            if threshold.max_level is not None:
                candidates.append(threshold.max_level - current)
            suggested = max(candidates)
            if suggested <= 0:
                continue
            unit_cost = threshold.item.unit_cost
            suggestions.append(RestockSuggestion(
                item_id=threshold.item_id,
                item_code=threshold.item.code,
                item_name=threshold.item.name,
                unit=threshold.item.unit,
                location_id=threshold.location_id,
                location_code=threshold.location.code,
                current=current,
                min_level=threshold.min_level,
                max_level=threshold.max_level,
                suggested_quantity=suggested,
                estimated_cost=(suggested * unit_cost).quantize(Decimal('0.01')) if unit_cost is not None else None,
            ))
        suggestions.sort(key=lambda s: (s.current > 0, s.current - s.min_level, s.item_code))
        return suggestions
