"""
Triage / consult mailbox for the central review room.

A view over the visit lifecycle restricted to pending_review and reviewed
visits, plus the reviewer's AI tooling.
"""
from typing import Iterable

from django.db import transaction

from apps.ai import services as ai_services
from apps.authz.context import CallerContext
from apps.clinical.models import Visit, VisitStatusChoices
from apps.clinical.services import respond_to_consult, upsert_diagnosis
from apps.core.observability import get_sanitized_logger
from apps.library.services import reference_texts

logger = get_sanitized_logger(__name__)

__all__ = [
    'list_consults',
    'pending_consults',
    'reviewed_consults',
    'run_admin_diagnosis',
    'update_ai_diagnosis',
    'respond_to_consult',
]


def _consults(statuses):
    return (
        Visit.objects
        .filter(status__in=statuses)
        .select_related('patient', 'doctor', 'diagnosis')
        .order_by('-created_at')
    )


def list_consults():
    """Pending and reviewed consults, newest first."""
    return _consults(Visit.CONSULT_STATUSES)


def pending_consults():
    return _consults([VisitStatusChoices.PENDING_REVIEW])


def reviewed_consults():
    return _consults([VisitStatusChoices.REVIEWED])


def run_admin_diagnosis(ctx: CallerContext, visit_id, book_ids: Iterable = (), use_web: bool = False):
    """
    Run the AI on a consult and store the result as the visit's Diagnosis.

    The AI call happens outside any transaction. Running it again on the
    same visit updates the existing Diagnosis row.

    Returns:
        (diagnosis, DiagnosisResult)

    Raises:
        Visit.DoesNotExist, AIServiceError
    """
    visit = Visit.objects.select_related('patient').get(id=visit_id)
    references = reference_texts(book_ids)

    result = ai_services.analyze_patient(
        visit.patient,
        visit.symptoms,
        vitals=visit.vitals,
        reference_texts=references,
        use_web=use_web,
        user=ctx.user,
        visit=visit,
    )

    diagnosis, _created = upsert_diagnosis(visit, result)
    logger.info(
        'Consult diagnosis run',
        extra={
            'event': 'consult_diagnosis_run',
            'visit_id': str(visit.id),
            'books': len(references),
            'use_web': use_web,
            'confidence': result.confidence,
        }
    )
    return diagnosis, result


def update_ai_diagnosis(ctx: CallerContext, visit_id, result, final_diagnosis=None):
    """
    Reviewer edits the stored analysis by hand. Insert-if-absent,
    update-if-present, keyed by visit.
    """
    with transaction.atomic():
        visit = Visit.objects.select_for_update().get(id=visit_id)
        diagnosis, _created = upsert_diagnosis(visit, result, final_diagnosis)

    logger.info(
        'Consult diagnosis edited',
        extra={'event': 'consult_diagnosis_edited', 'visit_id': str(visit.id), 'user_id': str(ctx.user_id)}
    )
    return diagnosis
