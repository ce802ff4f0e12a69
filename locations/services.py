"""
Locations — Service Layer

Registry management for storage locations: creation, primary-location
designation, and guarded deactivation (a location holding stock cannot
be deactivated until that stock is transferred or adjusted out).

@file locations/services.py
"""

import logging

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Q

from alerts.services import AlertService
from catalog.models import StockThreshold
from core.constants import (
    AUDIT_ACTION_CREATE,
    AUDIT_ACTION_DEACTIVATE,
    AUDIT_ACTION_REACTIVATE,
    AUDIT_ACTION_SET_PRIMARY,
    AUDIT_ACTION_UPDATE,
)
from core.exceptions import (
    ActiveBalanceExistsError,
    BusinessRuleViolation,
    DuplicateResourceError,
    InactiveResourceError,
    ResourceNotFoundError,
)
from core.services import AuditService
from stock.models import StockBalance

from .models import Location

logger = logging.getLogger('stockledger')


class LocationService:
    """Registry management for Location."""

    @staticmethod
    def get_location(location_id, *, require_active: bool = False) -> Location:
        try:
            location = Location.objects.get(pk=location_id)
        except (Location.DoesNotExist, ValidationError, ValueError):
            raise ResourceNotFoundError(detail='Location not found.')
        if require_active and not location.is_active:
            raise InactiveResourceError(detail=f'Location {location.code} is inactive.')
        return location

    @staticmethod
    def get_primary() -> Location | None:
        return Location.objects.filter(is_primary=True, is_active=True).first()

    @staticmethod
    def find(value: str) -> Location | None:
        """Look up a location by code or, failing that, by name (case-insensitive)."""
        value = (value or '').strip()
        if not value:
            return None
        return (
            Location.objects.filter(code__iexact=value).first()
            or Location.objects.filter(name__iexact=value).first()
        )

    @classmethod
    def get_default_location(cls) -> Location | None:
        """Configured default location, else the primary one."""
        code = getattr(settings, 'INVENTORY_DEFAULT_LOCATION_CODE', None)
        if code:
            location = Location.objects.filter(code__iexact=code, is_active=True).first()
            if location is not None:
                return location
            logger.warning('INVENTORY_DEFAULT_LOCATION_CODE=%s matches no active location.', code)
        return cls.get_primary()

    @staticmethod
    @transaction.atomic
    def create_location(*, actor=None, **fields) -> Location:
        code = (fields.get('code') or '').strip().upper()
        if code and Location.objects.filter(code=code).exists():
            raise DuplicateResourceError(detail=f'Location code {code} already exists.')

        wants_primary = fields.pop('is_primary', False)
        has_primary = Location.objects.select_for_update().filter(
            is_primary=True, is_active=True,
        ).exists()

        location = Location(**fields)
        location.created_by = actor
        location.full_clean(exclude=['is_primary'])
        if wants_primary and has_primary:
            Location.objects.filter(is_primary=True).update(is_primary=False)
        location.is_primary = wants_primary or not has_primary
        location.save()

        AuditService.record(location, action=AUDIT_ACTION_CREATE, actor=actor)
        logger.info('Location %s created (primary=%s).', location.code, location.is_primary)
        return location

    @staticmethod
    @transaction.atomic
    def update_location(*, location_id, actor=None, **fields) -> Location:
        try:
            location = Location.objects.select_for_update().get(pk=location_id)
        except Location.DoesNotExist:
            raise ResourceNotFoundError(detail='Location not found.')

        old_snapshot = AuditService.snapshot(location)
        protected = {'id', 'pk', 'is_primary', 'is_active', 'deactivated_at', 'deactivated_by'}
        for field, value in fields.items():
            if hasattr(location, field) and field not in protected:
                setattr(location, field, value)

        location.updated_by = actor
        location.full_clean()
        location.save()

        AuditService.record(
            location, action=AUDIT_ACTION_UPDATE, actor=actor, old_values=old_snapshot,
        )
        return location

    @staticmethod
    @transaction.atomic
    def set_primary(*, location_id, actor=None) -> Location:
        try:
            location = Location.objects.select_for_update().get(pk=location_id)
        except Location.DoesNotExist:
            raise ResourceNotFoundError(detail='Location not found.')
        if not location.is_active:
            raise InactiveResourceError(detail='An inactive location cannot be primary.')
        if location.is_primary:
            return location

        previous = list(
            Location.objects.select_for_update()
            .filter(is_primary=True)
            .values_list('code', flat=True)
        )
        Location.objects.filter(is_primary=True).update(is_primary=False)
        location.is_primary = True
        location.updated_by = actor
        location.save(update_fields=['is_primary', 'updated_by', 'updated_at'])

        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_SET_PRIMARY,
            model_name='Location',
            object_id=str(location.pk),
            old_values={'primary': previous},
            new_values={'primary': location.code},
        )
        logger.info('Location %s is now primary (was %s).', location.code, previous or 'none')
        return location

    @staticmethod
    @transaction.atomic
    def deactivate_location(*, location_id, actor=None) -> Location:
        """
        Soft-deactivate a location. Rejected while any item holds a
        nonzero balance there, and for the primary location while other
        active locations exist.
        """
        try:
            location = Location.objects.select_for_update().get(pk=location_id)
        except Location.DoesNotExist:
            raise ResourceNotFoundError(detail='Location not found.')
        if not location.is_active:
            return location

        # Lock the balances so no movement lands between the check and the flag flip.
        held = list(
            StockBalance.objects.select_for_update(of=('self',))
            .filter(location=location)
            .exclude(quantity=0)
            .values_list('item__code', flat=True)
        )
        if held:
            raise ActiveBalanceExistsError(
                detail=f'Location {location.code} still holds stock for: {", ".join(sorted(held))}.',
            )
        if location.is_primary and Location.objects.filter(
            ~Q(pk=location.pk), is_active=True,
        ).exists():
            raise BusinessRuleViolation(
                detail='Designate another primary location before deactivating this one.',
            )

        location.is_primary = False
        location.save(update_fields=['is_primary', 'updated_at'])
        location.deactivate(user=actor)
        AlertService.resolve_open(location_id=location.pk)

        AuditService.record(location, action=AUDIT_ACTION_DEACTIVATE, actor=actor)
        logger.info('Location %s deactivated by %s.', location.code, actor)
        return location

    @staticmethod
    @transaction.atomic
    def reactivate_location(*, location_id, actor=None) -> Location:
        try:
            location = Location.objects.select_for_update().get(pk=location_id)
        except Location.DoesNotExist:
            raise ResourceNotFoundError(detail='Location not found.')
        if location.is_active:
            return location

        location.reactivate(user=actor)
        if not Location.objects.filter(is_primary=True, is_active=True).exists():
            location.is_primary = True
            location.save(update_fields=['is_primary', 'updated_at'])

        AuditService.record(location, action=AUDIT_ACTION_REACTIVATE, actor=actor)
        tracked = set(StockBalance.objects.filter(location=location).values_list('item_id', flat=True))
        tracked |= set(StockThreshold.objects.filter(location=location).values_list('item_id', flat=True))
        for item_id in tracked:
            AlertService.evaluate(item_id, location.pk)
        return location
