"""
Inventory — Signals

Audit logging for Material and Product create/update events. Balance
changes do not pass through here: the ledger writes them with queryset
updates and audits them itself.

@file inventory/signals.py
"""

import logging

from django.db.models.signals import post_save, pre_save
from django.dispatch import receiver

from core.constants import AUDIT_ACTION_CREATE, AUDIT_ACTION_UPDATE
from core.services import AuditService

from .models import Material, Product

logger = logging.getLogger('prodtrack')

_pre_save_snapshots: dict = {}


def _remember(sender, instance):
    if instance._state.adding or not instance.pk:
        return
    try:
        old = sender.objects.get(pk=instance.pk)
    except sender.DoesNotExist:
        return
    _pre_save_snapshots[(sender.__name__, str(instance.pk))] = AuditService.snapshot(old)


def _record(sender, instance, created):
    action = AUDIT_ACTION_CREATE if created else AUDIT_ACTION_UPDATE
    old = _pre_save_snapshots.pop((sender.__name__, str(instance.pk)), None)
    new = AuditService.snapshot(instance)
    if not created and old == new:
        return
    verb = 'added' if created else 'updated'
    AuditService.log(
        actor=getattr(instance, '_current_user', None),
        action=action,
        model_name=sender.__name__,
        object_id=str(instance.pk),
        description=f'{sender._meta.verbose_name.capitalize()} {instance} was {verb}',
        old_values=old,
        new_values=new,
    )


@receiver(pre_save, sender=Material)
def material_pre_save(sender, instance, **kwargs):
    _remember(sender, instance)


@receiver(post_save, sender=Material)
def material_post_save(sender, instance, created, **kwargs):
    _record(sender, instance, created)


@receiver(pre_save, sender=Product)
def product_pre_save(sender, instance, **kwargs):
    _remember(sender, instance)


@receiver(post_save, sender=Product)
def product_post_save(sender, instance, created, **kwargs):
    _record(sender, instance, created)
