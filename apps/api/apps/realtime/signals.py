"""
Publish model writes to the change feed.
"""
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from apps.cashier.models import Payment
from apps.clinical.models import Patient, Prescription, Visit
from apps.lab.models import LabRequest
from apps.realtime.feed import OP_DELETE, OP_INSERT, OP_UPDATE, publish

WATCHED_MODELS = (Visit, Patient, Prescription, LabRequest, Payment)


@receiver(post_save)
def publish_save(sender, instance, created, raw=False, **kwargs):
    if raw or sender not in WATCHED_MODELS:
        return
    publish(sender._meta.db_table, OP_INSERT if created else OP_UPDATE, instance.pk)


@receiver(post_delete)
def publish_delete(sender, instance, **kwargs):
    if sender not in WATCHED_MODELS:
        return
    publish(sender._meta.db_table, OP_DELETE, instance.pk)
