"""
Visit lifecycle engine.

One function per transition. Every function takes the caller's
CallerContext explicitly; none of them look up the current user.

    (new) ---------> waiting ----------> pending_lab ---> lab_ready
                        |                      ^              |
                        |                      +--------------+
                        v                                     |
                    completed <-------------------------------+
    (new) ---------> pending_review ---> reviewed
"""
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from apps.ai.schemas import DiagnosisResult
from apps.authz.context import CallerContext
from apps.authz.models import Doctor
from apps.cashier.models import Payment, PaymentTypeChoices
from apps.cashier.services import record_payment
from apps.clinical.exceptions import OpenVisitExistsError
from apps.clinical.models import (
    Diagnosis,
    Patient,
    PaymentStatusChoices,
    Prescription,
    Visit,
    VisitStatusChoices,
)
from apps.core.clock import local_midnight, local_today
from apps.core.observability import get_sanitized_logger, metrics
from apps.core.observability.events import log_visit_transition
from apps.core.storage import UploadManifest, upload_files

logger = get_sanitized_logger(__name__)


def _record_transition(visit, from_status, to_status, **extra):
    metrics.visit_transition_total.labels(
        from_status=from_status or 'new',
        to_status=to_status,
        result='success'
    ).inc()
    log_visit_transition(visit, from_status or 'new', to_status, **extra)


def _set_status(visit_id, new_status, check_allowed=True) -> Visit:
    """Lock the visit row and move it to ``new_status``."""
    with transaction.atomic():
        visit = Visit.objects.select_for_update().get(id=visit_id)
        if check_allowed:
            old_status = visit.transition_status(new_status)
        else:
            old_status, visit.status = visit.status, new_status
        visit.save(update_fields=['status', 'updated_at'])
    _record_transition(visit, old_status, new_status)
    return visit


# ============================================================================
# Medications
# ============================================================================

def clean_medications(medications) -> List[dict]:
    """
    Normalize a medication list to [{name, dosage, instructions}].

    Rows without a name are dropped.

    Raises:
        ValidationError: no row has a name
    """
    cleaned = []
    for item in medications or []:
        if not isinstance(item, dict):
            continue
        name = str(item.get('name') or '').strip()
        if not name:
            continue
        cleaned.append({
            'name': name,
            'dosage': str(item.get('dosage') or '').strip(),
            'instructions': str(item.get('instructions') or '').strip(),
        })
    if not cleaned:
        raise ValidationError('At least one medication with a name is required')
    return cleaned


# ============================================================================
# Queue numbers
# ============================================================================

def next_queue_number(doctor, now=None) -> int:
    """
    Same-day queue number for ``doctor``: visits created for that doctor
    since local midnight, plus one.

    Must run inside the transaction holding the doctor's row lock, otherwise
    two concurrent callers can read the same count.
    """
    prior = Visit.objects.filter(doctor=doctor, created_at__gte=local_midnight(now)).count()
    return prior + 1


# ============================================================================
# Reception
# ============================================================================

def create_visit(
    ctx: CallerContext,
    patient_id,
    doctor_id,
    fee=None,
    is_paid: bool = False,
    symptoms: str = '',
    vitals: Optional[dict] = None,
) -> Tuple[Visit, int, Optional[Payment]]:
    """
    Reception checks a patient in for ``doctor_id``.

    Creates a ``waiting`` visit with the next queue number. When ``is_paid``
    the VISIT_FEE payment is inserted in the same transaction.

    Returns:
        (visit, queue_number, payment or None)

    Raises:
        OpenVisitExistsError: the patient already has a waiting / pending_lab / lab_ready visit
        Patient.DoesNotExist, Doctor.DoesNotExist
    """
    fee = Decimal(str(fee if fee not in (None, '') else settings.DEFAULT_VISIT_FEE))
    now = timezone.now()

    with transaction.atomic():
        patient = Patient.objects.get(id=patient_id)
        # Serializes queue numbering per doctor
        doctor = Doctor.objects.select_for_update().get(id=doctor_id)

        open_visit = (
            Visit.objects
            .filter(patient=patient, status__in=Visit.OPEN_STATUSES)
            .order_by('-created_at')
            .first()
        )
        if open_visit is not None:
            raise OpenVisitExistsError(open_visit)

        queue_number = next_queue_number(doctor, now)
        visit = Visit.objects.create(
            patient=patient,
            doctor=doctor,
            visit_date=now,
            symptoms=symptoms or '',
            vitals=vitals or {},
            status=VisitStatusChoices.WAITING,
            payment_status=PaymentStatusChoices.PAID if is_paid else PaymentStatusChoices.UNPAID,
            fee=fee,
            queue_date=local_today(now),
            queue_number=queue_number,
            created_by=ctx.user,
        )

        payment = None
        if is_paid:
            payment = record_payment(
                ctx,
                PaymentTypeChoices.VISIT_FEE,
                visit.id,
                fee,
                patient_id=patient.id,
            )

    metrics.visits_created_total.labels(origin='reception').inc()
    _record_transition(visit, None, VisitStatusChoices.WAITING, queue_number=queue_number, paid=is_paid)
    return visit, queue_number, payment


# ============================================================================
# Doctor
# ============================================================================

def hold_for_lab(ctx: CallerContext, visit_id) -> Visit:
    """
    Park a visit until lab results arrive.

    Unconditional: works from any status, including terminal ones, so a
    doctor can re-open a visit for a late test.
    """
    visit = _set_status(visit_id, VisitStatusChoices.PENDING_LAB, check_allowed=False)
    logger.info(
        'Visit held for lab',
        extra={'event': 'visit_held_for_lab', 'visit_id': str(visit.id), 'user_id': str(ctx.user_id)}
    )
    return visit


def mark_lab_ready(visit_id) -> Visit:
    """
    Lab results are in. Called by lab completion; moves the visit to
    ``lab_ready`` whatever its current status.
    """
    return _set_status(visit_id, VisitStatusChoices.LAB_READY, check_allowed=False)


def upsert_diagnosis(visit, result=None, final_diagnosis: Optional[str] = None) -> Tuple[Diagnosis, bool]:
    """
    Insert or update the single Diagnosis row of ``visit``.

    ``result`` is a DiagnosisResult or its dict form. ``final_diagnosis``
    defaults to the AI's diagnosis text when a result is given.

    Returns:
        (diagnosis, created)
    """
    if isinstance(result, dict):
        try:
            result = DiagnosisResult.from_dict(result)
        except ValueError as e:
            raise ValidationError(str(e))

    defaults = {}
    if result is not None:
        defaults['ai_analysis'] = result.to_dict()
        defaults['confidence_score'] = result.confidence
    if final_diagnosis is not None:
        defaults['final_diagnosis'] = final_diagnosis.strip()
    elif result is not None:
        defaults['final_diagnosis'] = result.diagnosis

    if not defaults:
        raise ValidationError('Nothing to store: provide an AI result or a final diagnosis')

    with transaction.atomic():
        diagnosis, created = Diagnosis.objects.update_or_create(visit=visit, defaults=defaults)

    logger.info(
        'Diagnosis stored',
        extra={
            'event': 'diagnosis_upserted',
            'visit_id': str(visit.id),
            'created': created,
            'has_ai_analysis': result is not None,
        }
    )
    return diagnosis, created


def find_open_visit(patient) -> Optional[Visit]:
    """Most recent visit of ``patient`` that a doctor can complete."""
    return (
        Visit.objects
        .select_for_update()
        .filter(patient=patient, status__in=Visit.WAITING_ROOM_STATUSES)
        .order_by('-created_at')
        .first()
    )


def complete_visit(
    ctx: CallerContext,
    patient_id,
    medications,
    notes: str = '',
    diagnosis=None,
    images: Iterable = (),
    visit_id=None,
    final_diagnosis: Optional[str] = None,
    lab_findings: str = '',
) -> Tuple[Visit, Prescription, UploadManifest]:
    """
    Save the prescription and close the visit.

    With ``visit_id`` that visit is completed (it must be waiting or
    lab_ready). Without it the patient's most recent waiting / lab_ready
    visit is used, and when there is none a new visit is created directly
    in ``completed`` (walk-in, prescription only).

    Images are uploaded before the database work; individual upload
    failures are reported in the returned manifest and do not abort the save.

    Returns:
        (visit, prescription, upload manifest)

    Raises:
        ValidationError: no named medication
        InvalidTransitionError: ``visit_id`` given but not completable
        Patient.DoesNotExist, Visit.DoesNotExist
    """
    medications = clean_medications(medications)
    patient = Patient.objects.get(id=patient_id)

    manifest = upload_files(
        settings.MINIO_VISIT_IMAGES_BUCKET,
        f'patients/{patient.id}',
        list(images or []),
        patient_id=str(patient.id),
    )

    with transaction.atomic():
        if visit_id:
            visit = Visit.objects.select_for_update().get(id=visit_id, patient=patient)
        else:
            visit = find_open_visit(patient)

        if visit is not None:
            old_status = visit.transition_status(VisitStatusChoices.COMPLETED)
            visit.save(update_fields=['status', 'updated_at'])
            origin = None
        else:
            old_status = None
            visit = Visit.objects.create(
                patient=patient,
                doctor=ctx.doctor,
                status=VisitStatusChoices.COMPLETED,
                created_by=ctx.user,
            )
            origin = 'walk_in'

        if diagnosis is not None or final_diagnosis:
            upsert_diagnosis(visit, diagnosis, final_diagnosis)

        diagnosis_text = final_diagnosis
        if not diagnosis_text and diagnosis is not None:
            diagnosis_text = diagnosis.get('diagnosis') if isinstance(diagnosis, dict) else diagnosis.diagnosis

        prescription = Prescription.objects.create(
            patient=patient,
            visit=visit,
            doctor=ctx.doctor,
            diagnosis=(diagnosis_text or '').strip(),
            medications=medications,
            notes=notes or '',
            lab_findings=lab_findings or '',
            image_keys=manifest.stored,
        )

    if origin:
        metrics.visits_created_total.labels(origin=origin).inc()
    _record_transition(
        visit,
        old_status,
        VisitStatusChoices.COMPLETED,
        prescription_id=str(prescription.id),
        images_stored=len(manifest.stored),
        images_failed=len(manifest.failed),
    )
    return visit, prescription, manifest


def request_consult(
    ctx: CallerContext,
    patient_id,
    symptoms: str,
    vitals: Optional[dict] = None,
    ai_result=None,
) -> Visit:
    """
    Send a case to the central review room.

    Creates a ``pending_review`` visit for the requesting doctor and stores
    the AI result (if the doctor already ran one) as its Diagnosis.

    Raises:
        ValidationError: empty symptoms
        Patient.DoesNotExist
    """
    if not (symptoms or '').strip():
        raise ValidationError('Symptoms are required to request a consult')

    with transaction.atomic():
        patient = Patient.objects.get(id=patient_id)
        visit = Visit.objects.create(
            patient=patient,
            doctor=ctx.doctor,
            symptoms=symptoms.strip(),
            vitals=vitals or {},
            status=VisitStatusChoices.PENDING_REVIEW,
            created_by=ctx.user,
        )
        if ai_result is not None:
            upsert_diagnosis(visit, ai_result)

    metrics.visits_created_total.labels(origin='consult').inc()
    _record_transition(visit, None, VisitStatusChoices.PENDING_REVIEW, has_ai_result=ai_result is not None)
    return visit


def respond_to_consult(ctx: CallerContext, visit_id, feedback: str = '') -> Visit:
    """
    Central reviewer closes a consult.

    ``feedback`` is accepted but not stored; only whether it was given is
    logged. Where reviewer feedback should live is still an open product
    question.
    """
    with transaction.atomic():
        visit = Visit.objects.select_for_update().get(id=visit_id)
        old_status = visit.transition_status(VisitStatusChoices.REVIEWED)
        visit.save(update_fields=['status', 'updated_at'])

    _record_transition(
        visit,
        old_status,
        VisitStatusChoices.REVIEWED,
        reviewer_id=str(ctx.user_id),
        feedback_provided=bool((feedback or '').strip()),
    )
    return visit


def append_document_text(ctx: CallerContext, visit_id, text: str) -> Visit:
    """Append text extracted from an uploaded document to the visit's symptoms."""
    text = (text or '').strip()
    if not text:
        raise ValidationError('The document contains no readable text')

    with transaction.atomic():
        visit = Visit.objects.select_for_update().get(id=visit_id)
        separator = '\n\n' if visit.symptoms else ''
        visit.symptoms = f"{visit.symptoms}{separator}[Attached document]\n{text}"
        visit.save(update_fields=['symptoms', 'updated_at'])

    logger.info(
        'Document text appended to visit',
        extra={'event': 'visit_document_appended', 'visit_id': str(visit.id), 'chars': len(text)}
    )
    return visit


# ============================================================================
# Projections
# ============================================================================

def waiting_room(doctor=None):
    """Visits a doctor can pick up (waiting or lab_ready), in arrival order."""
    queryset = (
        Visit.objects
        .filter(status__in=Visit.WAITING_ROOM_STATUSES)
        .select_related('patient', 'doctor', 'diagnosis')
        .order_by('created_at')
    )
    if doctor is not None:
        queryset = queryset.filter(doctor=doctor)
    return queryset


def patient_history(patient):
    """All visits and prescriptions of a patient, newest first."""
    visits = (
        Visit.objects
        .filter(patient=patient)
        .select_related('doctor', 'diagnosis')
        .order_by('-created_at')
    )
    prescriptions = Prescription.objects.filter(patient=patient).select_related('doctor').order_by('-created_at')
    return visits, prescriptions
