"""
Lab services: ordering tests, the technician worklist and result entry.
"""
from typing import Iterable, List, Tuple

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from apps.authz.context import CallerContext
from apps.clinical.models import Visit
from apps.clinical.services import mark_lab_ready
from apps.core.observability import get_sanitized_logger, metrics
from apps.core.observability.events import log_lab_test_completed
from apps.core.storage import UploadManifest, upload_files
from apps.lab.models import LabRequest, LabRequestStatusChoices, ResultFlagChoices

logger = get_sanitized_logger(__name__)

RESULT_FIELDS = ('test_name', 'result', 'unit', 'normal_range')


def clean_result_rows(rows) -> List[dict]:
    """
    Normalize technician rows to [{test_name, result, unit, normal_range, flag}].

    Rows with a blank test name are dropped. A missing flag means normal.

    Raises:
        ValidationError: a flag outside N / H / L / A
    """
    cleaned = []
    for index, row in enumerate(rows or []):
        if not isinstance(row, dict):
            continue
        test_name = str(row.get('test_name') or '').strip()
        if not test_name:
            continue

        flag = str(row.get('flag') or ResultFlagChoices.NORMAL).strip().upper()
        if flag not in ResultFlagChoices.values:
            raise ValidationError(
                f'Row {index + 1} ({test_name}): flag must be one of {", ".join(ResultFlagChoices.values)}'
            )

        item = {field: str(row.get(field) or '').strip() for field in RESULT_FIELDS}
        item['test_name'] = test_name
        item['flag'] = flag
        cleaned.append(item)
    return cleaned


def create_lab_request(ctx: CallerContext, visit_id, test_name: str, price) -> LabRequest:
    """
    Doctor orders a test. The request waits for payment; the visit status
    is left alone (the doctor holds the visit separately).
    """
    test_name = (test_name or '').strip()
    if not test_name:
        raise ValidationError('Test name is required')

    visit = Visit.objects.get(id=visit_id)
    lab_request = LabRequest.objects.create(
        visit=visit,
        patient_id=visit.patient_id,
        doctor=ctx.doctor or visit.doctor,
        test_name=test_name,
        price=price or 0,
        status=LabRequestStatusChoices.PENDING_PAYMENT,
    )
    logger.info(
        'Lab test ordered',
        extra={
            'event': 'lab_request_created',
            'lab_request_id': str(lab_request.id),
            'visit_id': str(visit.id),
        }
    )
    return lab_request


def start_processing(ctx: CallerContext, request_id) -> LabRequest:
    """Technician picks up a paid request."""
    with transaction.atomic():
        lab_request = LabRequest.objects.select_for_update().get(id=request_id)
        if lab_request.status != LabRequestStatusChoices.PAID:
            raise ValidationError(
                f'Only paid requests can be started (current status: {lab_request.status})'
            )
        lab_request.status = LabRequestStatusChoices.PROCESSING
        lab_request.save(update_fields=['status', 'updated_at'])

    logger.info(
        'Lab test processing',
        extra={'event': 'lab_request_processing', 'lab_request_id': str(lab_request.id), 'user_id': str(ctx.user_id)}
    )
    return lab_request


def complete_lab_test(
    ctx: CallerContext,
    request_id,
    files: Iterable = (),
    technician_notes: str = '',
    results=None,
) -> Tuple[LabRequest, UploadManifest]:
    """
    Store the technician's results and hand the visit back to the doctor.

    Files are uploaded first; a file that fails is reported in the manifest
    and the rest of the completion goes ahead. The parent visit moves to
    ``lab_ready``.

    Returns:
        (lab_request, upload manifest)

    Raises:
        ValidationError: already completed, or a bad result flag
        LabRequest.DoesNotExist
    """
    rows = clean_result_rows(results)
    lab_request = LabRequest.objects.get(id=request_id)
    if lab_request.status == LabRequestStatusChoices.COMPLETED:
        raise ValidationError('This lab request is already completed')

    manifest = upload_files(
        settings.MINIO_LAB_RESULTS_BUCKET,
        f'lab/{lab_request.id}',
        list(files or []),
        lab_request_id=str(lab_request.id),
    )

    with transaction.atomic():
        lab_request = LabRequest.objects.select_for_update().get(id=request_id)
        if lab_request.status == LabRequestStatusChoices.COMPLETED:
            raise ValidationError('This lab request is already completed')
        lab_request.status = LabRequestStatusChoices.COMPLETED
        lab_request.completed_at = timezone.now()
        lab_request.technician_notes = technician_notes or ''
        lab_request.structured_results = rows
        lab_request.result_files = list(lab_request.result_files or []) + manifest.stored
        lab_request.save()
        mark_lab_ready(lab_request.visit_id)

    metrics.lab_tests_completed_total.inc()
    log_lab_test_completed(
        lab_request,
        files_stored=len(manifest.stored),
        files_failed=len(manifest.failed),
        rows=len(rows),
    )
    return lab_request, manifest


# ============================================================================
# Projections
# ============================================================================

def worklist():
    """Paid or in-progress requests, oldest first."""
    return (
        LabRequest.objects
        .filter(status__in=LabRequest.WORKLIST_STATUSES)
        .select_related('patient', 'doctor', 'visit')
        .order_by('created_at')
    )


def archive(limit=None):
    """Most recently completed requests."""
    limit = limit or settings.LAB_ARCHIVE_LIMIT
    return (
        LabRequest.objects
        .filter(status=LabRequestStatusChoices.COMPLETED)
        .select_related('patient', 'doctor', 'visit')
        .order_by('-completed_at', '-created_at')[:limit]
    )
