"""
StockLedger — Test Factories

Factory Boy factories for generating test data. Used across all test
modules. Factories write rows directly; tests that need balances to
match the ledger record stock through LedgerService instead.

@file tests/factories.py
"""

import uuid
from datetime import timedelta
from decimal import Decimal

import factory
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.utils import timezone

from alerts.models import Notification
from catalog.models import Item, StockThreshold
from core.models import AuditLog
from locations.models import Location
from stock.models import StockMovement


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

class UserFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = get_user_model()
        skip_postgeneration_save = True

    username = factory.Sequence(lambda n: f'user{n}')
    email = factory.LazyAttribute(lambda o: f'{o.username}@stockledger.test')
    first_name = factory.Faker('first_name')
    last_name = factory.Faker('last_name')
    is_active = True

    @factory.post_generation
    def password(self, create, extracted, **kwargs):
        password = extracted or 'TestPass2026!'
        self.set_password(password)
        if create:
            self.save(update_fields=['password'])


class SuperuserFactory(UserFactory):
    is_staff = True
    is_superuser = True


class InventoryManagerFactory(UserFactory):
    @factory.post_generation
    def manager_group(self, create, extracted, **kwargs):
        if not create:
            return
        group, _ = Group.objects.get_or_create(name='INVENTORY_MANAGER')
        self.groups.add(group)


# ---------------------------------------------------------------------------
# Registry & catalog
# ---------------------------------------------------------------------------

class LocationFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Location

    code = factory.Sequence(lambda n: f'LOC-{n:03d}')
    name = factory.Sequence(lambda n: f'Store {n}')
    description = factory.Faker('sentence')
    is_primary = False
    is_active = True


class ItemFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Item

    code = factory.Sequence(lambda n: f'ITM-{n:04d}')
    name = factory.Sequence(lambda n: f'Item {n}')
    description = factory.Faker('sentence')
    category = Item.CategoryChoices.SPARE_PART
    unit = 'pcs'
    unit_cost = factory.LazyFunction(lambda: Decimal('12.50'))
    supplier_name = factory.Faker('company')
    supplier_code = factory.Sequence(lambda n: f'SUP-{n:03d}')
    expiry_date = None
    batch_number = ''
    allow_backorder = False
    is_active = True


class PerishableItemFactory(ItemFactory):
    category = Item.CategoryChoices.FOOD
    unit = 'kg'
    expiry_date = factory.LazyFunction(lambda: timezone.localdate() + timedelta(days=90))
    batch_number = factory.Sequence(lambda n: f'LOT-{n:06d}')


class StockThresholdFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = StockThreshold

    item = factory.SubFactory(ItemFactory)
    location = factory.SubFactory(LocationFactory)
    min_level = Decimal('10')
    max_level = Decimal('100')


# ---------------------------------------------------------------------------
# Ledger & alerts
# ---------------------------------------------------------------------------

class StockMovementFactory(factory.django.DjangoModelFactory):
    """Raw ledger row; does not touch StockBalance."""

    class Meta:
        model = StockMovement

    item = factory.SubFactory(ItemFactory)
    location = factory.SubFactory(LocationFactory)
    movement_type = StockMovement.MovementType.RECEIPT
    quantity = Decimal('10')
    reference_type = ''
    created_by = factory.SubFactory(UserFactory)


class NotificationFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Notification

    item = factory.SubFactory(ItemFactory)
    location = factory.SubFactory(LocationFactory)
    kind = Notification.Kind.LOW_STOCK
    priority = Notification.Priority.MEDIUM
    message = factory.Faker('sentence')


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------

class AuditLogFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = AuditLog

    actor = factory.SubFactory(UserFactory)
    action = AuditLog.ActionChoices.CREATE
    model_name = 'Item'
    object_id = factory.LazyFunction(lambda: str(uuid.uuid4()))
