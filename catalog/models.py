"""
Catalog — Models

Trackable items and their per-location stock thresholds. An item never
stores a quantity: stock lives in the movement ledger and its balance
projection (see stock/models.py).

@file catalog/models.py
"""

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from core.models import BaseModel, ReferenceModel

QUANTITY_MAX_DIGITS = 18
QUANTITY_DECIMAL_PLACES = 3


class Item(ReferenceModel):
    """
    A stocked item: spare part, kitchen or bar good, linen, consumable.

    Perishable or lot-tracked items carry an expiry_date and batch_number;
    the alerting engine raises expiry warnings from them. allow_backorder
    lets issues and consumptions drive the balance below zero.
    """

    class CategoryChoices(models.TextChoices):
        FOOD = 'FOOD', _('Food')
        BEVERAGE = 'BEVERAGE', _('Beverage')
        CLEANING = 'CLEANING', _('Cleaning supplies')
        LINEN = 'LINEN', _('Linen')
        SPARE_PART = 'SPARE_PART', _('Spare part')
        CONSUMABLE = 'CONSUMABLE', _('Consumable')
        OFFICE = 'OFFICE', _('Office supplies')
        OTHER = 'OTHER', _('Other')

    code = models.CharField(
        _('code'), max_length=50, unique=True,
        help_text=_('Unique item code (e.g. SP-0042)'),
    )
    name = models.CharField(_('name'), max_length=255)
    description = models.TextField(_('description'), blank=True)
    category = models.CharField(
        _('category'), max_length=12,
        choices=CategoryChoices.choices,
        default=CategoryChoices.OTHER,
        db_index=True,
    )
    unit = models.CharField(
        _('unit of measure'), max_length=20,
        help_text=_('e.g. pcs, kg, l, box'),
    )
    unit_cost = models.DecimalField(
        _('unit cost'), max_digits=15, decimal_places=2,
        null=True, blank=True,
        validators=[MinValueValidator(0)],
    )
    supplier_name = models.CharField(_('supplier'), max_length=255, blank=True)
    supplier_code = models.CharField(_('supplier code'), max_length=100, blank=True)
    expiry_date = models.DateField(_('expiry date'), null=True, blank=True, db_index=True)
    batch_number = models.CharField(_('batch number'), max_length=100, blank=True)
    allow_backorder = models.BooleanField(
        _('allow backorder'), default=False,
        help_text=_('Allow issues and consumptions to drive the balance below zero'),
    )

    class Meta:
        verbose_name = _('item')
        verbose_name_plural = _('items')
        ordering = ['code']
        indexes = [
            models.Index(fields=['category', 'is_active'], name='item_category_active_idx'),
            models.Index(fields=['is_active', 'expiry_date'], name='item_active_expiry_idx'),
        ]

    def __str__(self):
        return f'{self.code} {self.name}'

    @property
    def days_to_expiry(self) -> int | None:
        if not self.expiry_date:
            return None
        return (self.expiry_date - timezone.localdate()).days

    @property
    def is_expired(self) -> bool:
        days = self.days_to_expiry
        return days is not None and days < 0


class StockThreshold(BaseModel):
    """
    Minimum / maximum stock levels for one item at one location.

    A pair without a threshold row is only checked for out-of-stock and
    expiry; low-stock and over-stock rules need levels to compare against.
    """

    item = models.ForeignKey(
        Item,
        on_delete=models.PROTECT,
        related_name='thresholds',
        verbose_name=_('item'),
    )
    location = models.ForeignKey(
        'locations.Location',
        on_delete=models.PROTECT,
        related_name='thresholds',
        verbose_name=_('location'),
    )
    min_level = models.DecimalField(
        _('minimum level'),
        max_digits=QUANTITY_MAX_DIGITS, decimal_places=QUANTITY_DECIMAL_PLACES,
        default=0,
        validators=[MinValueValidator(0)],
    )
    max_level = models.DecimalField(
        _('maximum level'),
        max_digits=QUANTITY_MAX_DIGITS, decimal_places=QUANTITY_DECIMAL_PLACES,
        null=True, blank=True,
    )

    class Meta:
        verbose_name = _('stock threshold')
        verbose_name_plural = _('stock thresholds')
        ordering = ['item', 'location']
        constraints = [
            models.UniqueConstraint(
                fields=['item', 'location'],
                name='unique_threshold_per_item_location',
            ),
            models.CheckConstraint(
                condition=models.Q(min_level__gte=0),
                name='threshold_min_non_negative',
            ),
            models.CheckConstraint(
                condition=models.Q(max_level__isnull=True) | models.Q(max_level__gte=models.F('min_level')),
                name='threshold_min_lte_max',
            ),
        ]

    def __str__(self):
        return f'{self.item_id}@{self.location_id} min={self.min_level} max={self.max_level}'

    def clean(self):
        super().clean()
        if self.min_level is not None and self.min_level < 0:
            raise ValidationError({'min_level': _('Minimum level cannot be negative.')})
        if (
            self.max_level is not None
            and self.min_level is not None
            and self.min_level > self.max_level
        ):
            raise ValidationError({
                'max_level': _('Maximum level must be greater than or equal to the minimum level.'),
            })
