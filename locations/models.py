"""
Locations — Models

Storage locations (warehouses, stores, bars, technical rooms) against
which every balance is tracked. Locations are deactivated, never deleted,
while ledger rows reference them.

@file locations/models.py
"""

from django.db import models
from django.utils.translation import gettext_lazy as _

from core.models import ReferenceModel


class Location(ReferenceModel):
    """
    A storage location.

    At most one active location is primary; the primary location is the
    fallback target for catalog imports that do not name a location.
    """

    code = models.CharField(
        _('code'), max_length=30, unique=True,
        help_text=_('Short unique code, stored upper case (e.g. MAIN, BAR-1)'),
    )
    name = models.CharField(_('name'), max_length=255)
    description = models.TextField(_('description'), blank=True)
    is_primary = models.BooleanField(_('primary'), default=False, db_index=True)

    class Meta:
        verbose_name = _('location')
        verbose_name_plural = _('locations')
        ordering = ['-is_primary', 'code']
        indexes = [
            models.Index(fields=['is_active', 'is_primary'], name='location_active_primary_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['is_primary'],
                condition=models.Q(is_primary=True, is_active=True),
                name='unique_active_primary_location',
            ),
        ]

    def __str__(self):
        return f'{self.code} — {self.name}'

    def save(self, *args, **kwargs):
        if self.code:
            self.code = self.code.strip().upper()
        super().save(*args, **kwargs)
