"""
Core — Audit Service

Writes audit log entries from any app. `log` is the strict write used
inside transactions; `emit` is the fire-and-forget variant used after a
ledger commit, where a failing audit sink must never surface to the caller.

@file core/services.py
"""

import logging
import uuid
from decimal import Decimal
from typing import Any

from django.forms.models import model_to_dict

from core.models import AuditLog

logger = logging.getLogger('prodtrack')


class AuditService:
    """Centralised audit logging for every write operation."""

    @staticmethod
    def log(
        *,
        actor,
        action: str,
        model_name: str,
        object_id: str,
        description: str = '',
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
    ) -> AuditLog:
        return AuditLog.objects.create(
            actor=actor,
            action=action,
            model_name=model_name,
            object_id=str(object_id),
            description=description[:255],
            old_values=old_values,
            new_values=new_values,
        )

    @staticmethod
    def emit(**kwargs) -> AuditLog | None:
        """
        Best-effort audit write. Any failure is logged and swallowed;
        returns None in that case.
        """
        try:
            return AuditService.log(**kwargs)
        except Exception:
            logger.warning(
                'Failed to log activity %s %s:%s',
                kwargs.get('action'), kwargs.get('model_name'), kwargs.get('object_id'),
                exc_info=True,
            )
            return None

    @staticmethod
    def snapshot(instance, fields=None) -> dict[str, Any]:
        """
        Serialise a model instance to a plain dict suitable for JSON
        storage. Decimals and UUIDs stringified; dates ISO-formatted.
        """
        data = model_to_dict(instance, fields=fields)
        return {key: AuditService.jsonable(value) for key, value in data.items()}

    @staticmethod
    def jsonable(value):
        if value is None:
            return None
        if isinstance(value, Decimal):
            return str(value)
        if hasattr(value, 'isoformat'):
            return value.isoformat()
        if isinstance(value, uuid.UUID):
            return str(value)
        if hasattr(value, 'pk'):
            return str(value.pk)
        return value
