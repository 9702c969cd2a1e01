"""
Whole-clinic backup: export every clinical table to one JSON document and
load it back.

The document is an envelope around Django's serialization format::

    {"format": "clinic-backup", "version": 1, "exported_at": "...",
     "counts": {"clinical.patient": 12, ...}, "records": [...]}

Import upserts by primary key inside one transaction. Payments are
append-only, so a payment that already exists is skipped rather than
overwritten.
"""
from collections import Counter

from django.core import serializers
from django.core.exceptions import ValidationError
from django.core.serializers.base import DeserializationError
from django.db import DatabaseError, transaction
from django.utils import timezone

from apps.authz.models import Doctor, Role, User, UserRole
from apps.cashier.models import Payment
from apps.clinical.models import Diagnosis, Patient, Prescription, PrescriptionTemplate, Visit
from apps.core.observability import get_sanitized_logger
from apps.lab.models import LabRequest
from apps.library.models import Book

logger = get_sanitized_logger(__name__)

BACKUP_FORMAT = 'clinic-backup'
BACKUP_VERSION = 1

# Dependency order: every model only references models listed before it
BACKUP_MODELS = (
    User,
    Role,
    UserRole,
    Doctor,
    Patient,
    Visit,
    Diagnosis,
    Prescription,
    PrescriptionTemplate,
    LabRequest,
    Payment,
    Book,
)


def _label(model):
    return model._meta.label_lower


def export_clinic_data() -> dict:
    """Serialize every backed-up table into a JSON-ready document."""
    records = []
    counts = {}
    for model in BACKUP_MODELS:
        rows = serializers.serialize('python', model._default_manager.order_by('pk'))
        records.extend(rows)
        counts[_label(model)] = len(rows)

    logger.info('Clinic data exported', extra={'event': 'backup_exported', 'records': len(records)})
    return {
        'format': BACKUP_FORMAT,
        'version': BACKUP_VERSION,
        'exported_at': timezone.now().isoformat(),
        'counts': counts,
        'records': records,
    }


def import_clinic_data(document) -> dict:
    """
    Load a document produced by ``export_clinic_data``.

    Rows are created or updated by primary key; rows missing from the
    document are left alone. All or nothing.

    Returns:
        {'created': {label: n}, 'updated': {label: n}, 'skipped': {label: n}}

    Raises:
        ValidationError: not a clinic backup, unknown table, or rows that do not load
    """
    if not isinstance(document, dict) or document.get('format') != BACKUP_FORMAT:
        raise ValidationError('Not a clinic backup document')
    if document.get('version') != BACKUP_VERSION:
        raise ValidationError(f"Unsupported backup version: {document.get('version')}")
    records = document.get('records')
    if not isinstance(records, list):
        raise ValidationError('Backup document has no records list')

    allowed = {_label(model) for model in BACKUP_MODELS}
    unknown = sorted({
        str(row.get('model')) for row in records
        if not isinstance(row, dict) or row.get('model') not in allowed
    })
    if unknown:
        raise ValidationError(f"Backup contains unsupported tables: {', '.join(unknown)}")

    created, updated, skipped = Counter(), Counter(), Counter()
    try:
        with transaction.atomic():
            for deserialized in serializers.deserialize('python', records):
                instance = deserialized.object
                model = type(instance)
                label = _label(model)
                exists = model._default_manager.filter(pk=instance.pk).exists()
                if exists and model is Payment:
                    skipped[label] += 1
                    continue
                deserialized.save()
                (updated if exists else created)[label] += 1
    except (DeserializationError, DatabaseError) as e:
        raise ValidationError(f'Backup could not be loaded: {e}') from e

    logger.info(
        'Clinic data imported',
        extra={
            'event': 'backup_imported',
            'created': sum(created.values()),
            'updated': sum(updated.values()),
            'skipped': sum(skipped.values()),
        }
    )
    return {'created': dict(created), 'updated': dict(updated), 'skipped': dict(skipped)}
