"""
Core — Audit Service

Writes AuditLog rows for catalog, registry, ledger and alert changes.
Services call it inside their own transaction so the audit row commits
or rolls back with the write it describes.

@file core/services.py
"""

import logging
from decimal import Decimal
from typing import Any

from django.forms.models import model_to_dict

from core.models import AuditLog

logger = logging.getLogger('stockledger')


class AuditService:

    @staticmethod
    def log(
        *,
        actor,
        action: str,
        model_name: str,
        object_id: str,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
        changed_fields: list[str] | None = None,
    ) -> AuditLog:
        # Anonymous users and system jobs are stored as a null actor.
        if actor is not None and not actor.is_authenticated:
            actor = None
        if changed_fields is None and old_values is not None and new_values is not None:
            changed_fields = sorted(AuditService.diff(old_values, new_values))
        entry = AuditLog.objects.create(
            actor=actor,
            action=action,
            model_name=model_name,
            object_id=str(object_id),
            old_values=old_values,
            new_values=new_values,
            changed_fields=changed_fields or [],
        )
        logger.debug('Audit %s %s:%s', action, model_name, object_id)
        return entry

    @classmethod
    def record(cls, instance, *, action: str, actor=None, old_values=None) -> AuditLog:
        """Log a write against a model instance, snapshotting its current state."""
        return cls.log(
            actor=actor,
            action=action,
            model_name=type(instance).__name__,
            object_id=str(instance.pk),
            old_values=old_values,
            new_values=cls.snapshot(instance),
        )

    @staticmethod
    def snapshot(instance, fields=None) -> dict[str, Any]:
        """
        JSON-safe dict of a model instance. Quantities and costs keep their
        exact Decimal text; UUIDs become strings; dates are ISO-formatted.
        Audit bookkeeping columns are left out so they never show up as
        changed fields.
        """
        data = model_to_dict(instance, fields=fields, exclude=['created_by', 'updated_by'])
        cleaned: dict[str, Any] = {}
        for key, value in data.items():
            if isinstance(value, Decimal):
                cleaned[key] = str(value)
            elif hasattr(value, 'isoformat'):
                cleaned[key] = value.isoformat()
            elif hasattr(value, 'hex'):
                cleaned[key] = str(value)
            else:
                cleaned[key] = value
        return cleaned

    @staticmethod
    def diff(old: dict[str, Any], new: dict[str, Any]) -> dict[str, Any]:
        """Keys whose value changed between two snapshots, with the old value."""
        return {key: old.get(key) for key, value in new.items() if old.get(key) != value}
