"""
Core — Base Models & Audit Infrastructure

Provides reusable abstract models for timestamps, activation state and
audit trail fields. Also defines the AuditLog model for tracking every
write operation across the engine.

@file core/models.py
"""

import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


# ---------------------------------------------------------------------------
# Abstract base models (mixins)
# ---------------------------------------------------------------------------

class TimestampMixin(models.Model):
    """Adds created_at / updated_at to any model."""

    created_at = models.DateTimeField(
        _('created at'), auto_now_add=True, db_index=True,
    )
    updated_at = models.DateTimeField(
        _('updated at'), auto_now=True,
    )

    class Meta:
        abstract = True


class AuditFieldsMixin(models.Model):
    """Adds created_by / updated_by foreign keys for actor tracking."""

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='+',
        verbose_name=_('created by'),
    )
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='+',
        verbose_name=_('updated by'),
    )

    class Meta:
        abstract = True


class ActivatableMixin(models.Model):
    """
    Soft state for records referenced by the ledger. Rows are never
    physically removed; instead is_active is cleared and the moment and
    actor of deactivation are kept.
    """

    is_active = models.BooleanField(_('active'), default=True, db_index=True)
    deactivated_at = models.DateTimeField(_('deactivated at'), null=True, blank=True)
    deactivated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='+',
        verbose_name=_('deactivated by'),
    )

    class Meta:
        abstract = True

    def deactivate(self, user=None):
        self.is_active = False
        self.deactivated_at = timezone.now()
        self.deactivated_by = user
        self.updated_by = user
        self.save(update_fields=['is_active', 'deactivated_at', 'deactivated_by', 'updated_by', 'updated_at'])

    def reactivate(self, user=None):
        self.is_active = True
        self.deactivated_at = None
        self.deactivated_by = None
        self.updated_by = user
        self.save(update_fields=['is_active', 'deactivated_at', 'deactivated_by', 'updated_by', 'updated_at'])


class BaseModel(TimestampMixin, AuditFieldsMixin):
    """
    Standard base for all StockLedger models.
    UUID PK + timestamps + actor audit fields.
    """

    id = models.UUIDField(
        primary_key=True, default=uuid.uuid4, editable=False,
    )

    class Meta:
        abstract = True


class ReferenceModel(BaseModel, ActivatableMixin):
    """
    Base for catalog and registry records that ledger rows point at and
    that must never be hard-deleted.
    """

    class Meta:
        abstract = True


# ---------------------------------------------------------------------------
# Audit Log — immutable record of every write operation
# ---------------------------------------------------------------------------

class AuditLog(models.Model):
    """
    Immutable audit trail. One row per catalog or registry write, ledger
    movement, primary switch, import run and acknowledgement.

    old_values and new_values hold JSON snapshots; changed_fields lists the
    keys that differ between them so updates can be filtered without
    loading both payloads.
    """

    class ActionChoices(models.TextChoices):
        CREATE = 'CREATE', _('Create')
        UPDATE = 'UPDATE', _('Update')
        DEACTIVATE = 'DEACTIVATE', _('Deactivate')
        REACTIVATE = 'REACTIVATE', _('Reactivate')
        SET_PRIMARY = 'SET_PRIMARY', _('Set Primary')
        MOVEMENT = 'MOVEMENT', _('Stock Movement')
        ACKNOWLEDGE = 'ACKNOWLEDGE', _('Acknowledge')
        IMPORT = 'IMPORT', _('Import')

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='audit_logs',
        verbose_name=_('actor'),
    )
    action = models.CharField(
        _('action'), max_length=20,
        choices=ActionChoices.choices, db_index=True,
    )
    model_name = models.CharField(_('model'), max_length=100, db_index=True)
    object_id = models.CharField(_('object ID'), max_length=40, db_index=True)

    old_values = models.JSONField(_('old values'), null=True, blank=True)
    new_values = models.JSONField(_('new values'), null=True, blank=True)

    changed_fields = models.JSONField(_('changed fields'), default=list, blank=True)

    timestamp = models.DateTimeField(_('timestamp'), auto_now_add=True, db_index=True)

    class Meta:
        verbose_name = _('audit log')
        verbose_name_plural = _('audit logs')
        ordering = ['-timestamp']
        indexes = [
            models.Index(fields=['model_name', 'object_id'], name='audit_model_object_idx'),
            models.Index(fields=['actor', 'timestamp'], name='audit_actor_ts_idx'),
            models.Index(fields=['action', 'timestamp'], name='audit_action_ts_idx'),
        ]

    def __str__(self):
        return f'{self.action} {self.model_name}:{self.object_id} by {self.actor_id}'
