"""
Tests for the visit lifecycle engine (apps.clinical.services).

Covers reception check-in and queue numbers, holding for lab, completing
a visit with a prescription, consult requests and the status machine.
"""
from datetime import timedelta
from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError
from django.utils import timezone

from apps.cashier.models import Payment, PaymentTypeChoices
from apps.clinical.exceptions import InvalidTransitionError, OpenVisitExistsError
from apps.clinical.models import (
    Diagnosis,
    PaymentStatusChoices,
    Prescription,
    Visit,
    VisitStatusChoices,
)
from apps.clinical.services import (
    append_document_text,
    clean_medications,
    complete_visit,
    create_visit,
    hold_for_lab,
    mark_lab_ready,
    request_consult,
    respond_to_consult,
    waiting_room,
)
from apps.core.clock import local_today

MEDICATIONS = [{'name': 'Amoxicillin', 'dosage': '500mg', 'instructions': 'Three times daily'}]


def _age_visit(visit, days=1):
    """Move a visit to a previous clinic day."""
    earlier = timezone.now() - timedelta(days=days)
    Visit.objects.filter(id=visit.id).update(created_at=earlier, queue_date=local_today(earlier))


@pytest.mark.django_db
class TestCreateVisit:

    def test_unpaid_visit_creates_no_payment(self, reception_ctx, patient, doctor):
        visit, queue_number, payment = create_visit(reception_ctx, patient.id, doctor.id, fee='200')

        visit.refresh_from_db()
        assert visit.status == VisitStatusChoices.WAITING
        assert visit.payment_status == PaymentStatusChoices.UNPAID
        assert visit.fee == Decimal('200.00')
        assert queue_number == 1
        assert payment is None
        assert Payment.objects.count() == 0

    def test_paid_visit_records_one_visit_fee_payment(self, reception_ctx, reception_user, patient, doctor):
        visit, _queue_number, payment = create_visit(
            reception_ctx, patient.id, doctor.id, fee='250', is_paid=True
        )

        visit.refresh_from_db()
        assert visit.payment_status == PaymentStatusChoices.PAID
        payments = Payment.objects.filter(reference_id=visit.id)
        assert payments.count() == 1
        receipt = payments.get()
        assert receipt == payment
        assert receipt.payment_type == PaymentTypeChoices.VISIT_FEE
        assert receipt.amount == Decimal('250.00')
        assert receipt.patient_id == patient.id
        assert receipt.cashier == reception_user

    def test_default_fee_from_settings(self, reception_ctx, patient, doctor, settings):
        settings.DEFAULT_VISIT_FEE = '300'

        visit, _queue_number, _payment = create_visit(reception_ctx, patient.id, doctor.id)

        assert visit.fee == Decimal('300')

    def test_queue_numbers_count_todays_visits_per_doctor(self, reception_ctx, make_patient, doctor, other_doctor):
        numbers = [
            create_visit(reception_ctx, make_patient().id, doctor.id)[1]
            for _ in range(3)
        ]
        _visit, other_number, _payment = create_visit(reception_ctx, make_patient().id, other_doctor.id)

        assert numbers == [1, 2, 3]
        assert other_number == 1

    def test_queue_number_ignores_previous_days(self, reception_ctx, make_patient, doctor):
        yesterday_visit, _n, _p = create_visit(reception_ctx, make_patient().id, doctor.id)
        _age_visit(yesterday_visit)

        _visit, queue_number, _payment = create_visit(reception_ctx, make_patient().id, doctor.id)

        assert queue_number == 1

    def test_rejects_second_open_visit(self, reception_ctx, patient, doctor, waiting_visit):
        with pytest.raises(OpenVisitExistsError) as exc_info:
            create_visit(reception_ctx, patient.id, doctor.id)

        assert exc_info.value.visit == waiting_visit
        assert Visit.objects.filter(patient=patient).count() == 1

    def test_patient_held_for_lab_still_counts_as_open(self, reception_ctx, doctor_ctx, patient, doctor, waiting_visit):
        hold_for_lab(doctor_ctx, waiting_visit.id)

        with pytest.raises(OpenVisitExistsError):
            create_visit(reception_ctx, patient.id, doctor.id)

    def test_new_visit_allowed_after_completion(self, reception_ctx, doctor_ctx, patient, doctor, waiting_visit):
        complete_visit(doctor_ctx, patient.id, MEDICATIONS)

        visit, queue_number, _payment = create_visit(reception_ctx, patient.id, doctor.id)

        assert visit.id != waiting_visit.id
        assert queue_number == 2

    def test_unknown_doctor(self, reception_ctx, patient):
        from apps.authz.models import Doctor

        with pytest.raises(Doctor.DoesNotExist):
            create_visit(reception_ctx, patient.id, '00000000-0000-0000-0000-000000000000')

        assert Visit.objects.count() == 0


@pytest.mark.django_db
class TestHoldForLab:

    def test_waiting_visit_moves_to_pending_lab(self, doctor_ctx, waiting_visit):
        visit = hold_for_lab(doctor_ctx, waiting_visit.id)

        assert visit.status == VisitStatusChoices.PENDING_LAB
        waiting_visit.refresh_from_db()
        assert waiting_visit.status == VisitStatusChoices.PENDING_LAB

    @pytest.mark.parametrize('status', [
        VisitStatusChoices.LAB_READY,
        VisitStatusChoices.COMPLETED,
        VisitStatusChoices.REVIEWED,
    ])
    def test_hold_is_unconditional(self, doctor_ctx, waiting_visit, status):
        Visit.objects.filter(id=waiting_visit.id).update(status=status)

        visit = hold_for_lab(doctor_ctx, waiting_visit.id)

        assert visit.status == VisitStatusChoices.PENDING_LAB

    def test_lab_ready_from_pending_lab(self, doctor_ctx, waiting_visit):
        hold_for_lab(doctor_ctx, waiting_visit.id)

        visit = mark_lab_ready(waiting_visit.id)

        assert visit.status == VisitStatusChoices.LAB_READY

    def test_missing_visit(self, doctor_ctx, db):
        with pytest.raises(Visit.DoesNotExist):
            hold_for_lab(doctor_ctx, '00000000-0000-0000-0000-000000000000')


@pytest.mark.django_db
class TestCompleteVisit:

    def test_completes_the_open_visit(self, doctor_ctx, doctor, patient, waiting_visit):
        visit, prescription, manifest = complete_visit(
            doctor_ctx, patient.id, MEDICATIONS, notes='Review in a week'
        )

        assert visit.id == waiting_visit.id
        assert Visit.objects.filter(patient=patient).count() == 1
        waiting_visit.refresh_from_db()
        assert waiting_visit.status == VisitStatusChoices.COMPLETED
        assert prescription.visit_id == waiting_visit.id
        assert prescription.doctor == doctor
        assert prescription.medications == MEDICATIONS
        assert prescription.notes == 'Review in a week'
        assert manifest.stored == []
        assert manifest.complete

    def test_completes_lab_ready_visit(self, doctor_ctx, patient, waiting_visit):
        hold_for_lab(doctor_ctx, waiting_visit.id)
        mark_lab_ready(waiting_visit.id)

        visit, _prescription, _manifest = complete_visit(doctor_ctx, patient.id, MEDICATIONS)

        assert visit.id == waiting_visit.id
        assert visit.status == VisitStatusChoices.COMPLETED

    def test_walk_in_creates_completed_visit(self, doctor_ctx, doctor, patient):
        visit, prescription, _manifest = complete_visit(doctor_ctx, patient.id, MEDICATIONS)

        assert visit.status == VisitStatusChoices.COMPLETED
        assert visit.doctor == doctor
        assert visit.queue_number is None
        assert visit.payment_status == PaymentStatusChoices.UNPAID
        assert Visit.objects.filter(patient=patient).count() == 1
        assert prescription.visit == visit

    def test_pending_lab_visit_is_not_picked_up(self, doctor_ctx, patient, waiting_visit):
        hold_for_lab(doctor_ctx, waiting_visit.id)

        visit, _prescription, _manifest = complete_visit(doctor_ctx, patient.id, MEDICATIONS)

        assert visit.id != waiting_visit.id
        waiting_visit.refresh_from_db()
        assert waiting_visit.status == VisitStatusChoices.PENDING_LAB

    def test_explicit_visit_id(self, doctor_ctx, patient, waiting_visit):
        visit, _prescription, _manifest = complete_visit(
            doctor_ctx, patient.id, MEDICATIONS, visit_id=waiting_visit.id
        )

        assert visit.id == waiting_visit.id

    def test_explicit_visit_id_in_terminal_status(self, doctor_ctx, patient, waiting_visit):
        Visit.objects.filter(id=waiting_visit.id).update(status=VisitStatusChoices.COMPLETED)

        with pytest.raises(InvalidTransitionError):
            complete_visit(doctor_ctx, patient.id, MEDICATIONS, visit_id=waiting_visit.id)

        assert Prescription.objects.count() == 0

    def test_requires_a_named_medication(self, doctor_ctx, patient, waiting_visit):
        with pytest.raises(ValidationError):
            complete_visit(doctor_ctx, patient.id, [{'name': '  ', 'dosage': '5mg'}])

        waiting_visit.refresh_from_db()
        assert waiting_visit.status == VisitStatusChoices.WAITING
        assert Prescription.objects.count() == 0

    def test_stores_ai_diagnosis(self, doctor_ctx, patient, waiting_visit, diagnosis_reply):
        visit, prescription, _manifest = complete_visit(
            doctor_ctx, patient.id, MEDICATIONS, diagnosis=diagnosis_reply
        )

        diagnosis = Diagnosis.objects.get(visit=visit)
        assert diagnosis.final_diagnosis == 'Acute bronchitis'
        assert diagnosis.confidence_score == 82
        assert diagnosis.ai_analysis['suggestedMedications'][0]['name'] == 'Azithromycin'
        assert prescription.diagnosis == 'Acute bronchitis'

    def test_final_diagnosis_overrides_ai_text(self, doctor_ctx, patient, waiting_visit, diagnosis_reply):
        visit, prescription, _manifest = complete_visit(
            doctor_ctx, patient.id, MEDICATIONS,
            diagnosis=diagnosis_reply, final_diagnosis='Viral bronchitis',
        )

        assert Diagnosis.objects.get(visit=visit).final_diagnosis == 'Viral bronchitis'
        assert prescription.diagnosis == 'Viral bronchitis'

    def test_without_diagnosis_stores_no_diagnosis_row(self, doctor_ctx, patient, waiting_visit):
        complete_visit(doctor_ctx, patient.id, MEDICATIONS)

        assert Diagnosis.objects.count() == 0

    def test_uploads_images(self, doctor_ctx, patient, waiting_visit, mock_minio, upload_factory, settings):
        _visit, prescription, manifest = complete_visit(
            doctor_ctx, patient.id, MEDICATIONS,
            images=[upload_factory('xray.jpg'), upload_factory('rash.png', content_type='image/png')],
        )

        assert mock_minio.put_object.call_count == 2
        kwargs = mock_minio.put_object.call_args_list[0][1]
        assert kwargs['bucket_name'] == settings.MINIO_VISIT_IMAGES_BUCKET
        assert kwargs['object_name'].startswith(f'patients/{patient.id}/')
        assert len(prescription.image_keys) == 2
        assert manifest.complete

    def test_failed_upload_is_reported_not_raised(self, doctor_ctx, patient, waiting_visit, mock_minio, upload_factory):
        mock_minio.put_object.side_effect = [None, OSError('connection reset')]

        visit, prescription, manifest = complete_visit(
            doctor_ctx, patient.id, MEDICATIONS,
            images=[upload_factory('first.jpg'), upload_factory('second.jpg')],
        )

        assert visit.status == VisitStatusChoices.COMPLETED
        assert len(prescription.image_keys) == 1
        assert prescription.image_keys == manifest.stored
        assert not manifest.complete
        assert manifest.to_dict()['failed'] == [{'filename': 'second.jpg', 'error': 'connection reset'}]


@pytest.mark.django_db
class TestConsultTransitions:

    def test_request_consult_creates_pending_review_visit(self, doctor_ctx, doctor, patient):
        visit = request_consult(doctor_ctx, patient.id, '  Persistent cough  ', vitals={'temperature': '38.2'})

        assert visit.status == VisitStatusChoices.PENDING_REVIEW
        assert visit.doctor == doctor
        assert visit.symptoms == 'Persistent cough'
        assert visit.vitals == {'temperature': '38.2'}
        assert not Diagnosis.objects.filter(visit=visit).exists()

    def test_request_consult_with_ai_result(self, doctor_ctx, patient, diagnosis_reply):
        visit = request_consult(doctor_ctx, patient.id, 'Cough', ai_result=diagnosis_reply)

        assert Diagnosis.objects.get(visit=visit).final_diagnosis == 'Acute bronchitis'

    @pytest.mark.parametrize('symptoms', ['', '   ', None])
    def test_request_consult_requires_symptoms(self, doctor_ctx, patient, symptoms):
        with pytest.raises(ValidationError):
            request_consult(doctor_ctx, patient.id, symptoms)

        assert Visit.objects.count() == 0

    def test_respond_marks_reviewed(self, doctor_ctx, reviewer_ctx, patient):
        visit = request_consult(doctor_ctx, patient.id, 'Cough')

        reviewed = respond_to_consult(reviewer_ctx, visit.id, feedback='Agree, start antibiotics')

        assert reviewed.status == VisitStatusChoices.REVIEWED

    def test_respond_twice_is_rejected(self, doctor_ctx, reviewer_ctx, patient):
        visit = request_consult(doctor_ctx, patient.id, 'Cough')
        respond_to_consult(reviewer_ctx, visit.id)

        with pytest.raises(InvalidTransitionError):
            respond_to_consult(reviewer_ctx, visit.id)

    def test_respond_to_non_consult_is_rejected(self, reviewer_ctx, waiting_visit):
        with pytest.raises(InvalidTransitionError):
            respond_to_consult(reviewer_ctx, waiting_visit.id)


@pytest.mark.django_db
class TestStatusMachine:

    @pytest.mark.parametrize('from_status,to_status', [
        (VisitStatusChoices.WAITING, VisitStatusChoices.PENDING_LAB),
        (VisitStatusChoices.WAITING, VisitStatusChoices.COMPLETED),
        (VisitStatusChoices.PENDING_LAB, VisitStatusChoices.LAB_READY),
        (VisitStatusChoices.LAB_READY, VisitStatusChoices.PENDING_LAB),
        (VisitStatusChoices.LAB_READY, VisitStatusChoices.COMPLETED),
        (VisitStatusChoices.PENDING_REVIEW, VisitStatusChoices.REVIEWED),
    ])
    def test_allowed(self, from_status, to_status):
        visit = Visit(status=from_status)

        assert visit.transition_status(to_status) == from_status
        assert visit.status == to_status

    @pytest.mark.parametrize('from_status,to_status', [
        (VisitStatusChoices.COMPLETED, VisitStatusChoices.WAITING),
        (VisitStatusChoices.REVIEWED, VisitStatusChoices.PENDING_REVIEW),
        (VisitStatusChoices.WAITING, VisitStatusChoices.REVIEWED),
        (VisitStatusChoices.PENDING_LAB, VisitStatusChoices.COMPLETED),
    ])
    def test_rejected(self, from_status, to_status):
        visit = Visit(status=from_status)

        with pytest.raises(InvalidTransitionError) as exc_info:
            visit.transition_status(to_status)

        assert visit.status == from_status
        assert exc_info.value.from_status == from_status
        assert exc_info.value.to_status == to_status


@pytest.mark.django_db
class TestWaitingRoom:

    def test_only_waiting_and_lab_ready(self, reception_ctx, doctor_ctx, make_patient, doctor):
        visits = {}
        for status in VisitStatusChoices.values:
            visit, _n, _p = create_visit(reception_ctx, make_patient().id, doctor.id)
            Visit.objects.filter(id=visit.id).update(status=status)
            visits[status] = visit.id

        listed = set(waiting_room().values_list('id', flat=True))

        assert listed == {visits[VisitStatusChoices.WAITING], visits[VisitStatusChoices.LAB_READY]}

    def test_arrival_order_and_doctor_filter(self, reception_ctx, make_patient, doctor, other_doctor):
        first, _n, _p = create_visit(reception_ctx, make_patient().id, doctor.id)
        create_visit(reception_ctx, make_patient().id, other_doctor.id)
        second, _n, _p = create_visit(reception_ctx, make_patient().id, doctor.id)

        assert list(waiting_room(doctor).values_list('id', flat=True)) == [first.id, second.id]
        assert waiting_room().count() == 3


@pytest.mark.django_db
class TestDocumentsAndMedications:

    def test_append_document_text(self, doctor_ctx, waiting_visit):
        Visit.objects.filter(id=waiting_visit.id).update(symptoms='Headache')

        visit = append_document_text(doctor_ctx, waiting_visit.id, '  MRI: no findings  ')

        assert visit.symptoms == 'Headache\n\n[Attached document]\nMRI: no findings'

    def test_append_empty_document_text(self, doctor_ctx, waiting_visit):
        with pytest.raises(ValidationError):
            append_document_text(doctor_ctx, waiting_visit.id, '   ')

    def test_clean_medications_drops_unnamed_rows(self):
        cleaned = clean_medications([
            {'name': ' Ibuprofen ', 'dosage': '400mg'},
            {'name': '', 'dosage': '10mg'},
            'not a row',
        ])

        assert cleaned == [{'name': 'Ibuprofen', 'dosage': '400mg', 'instructions': ''}]

    @pytest.mark.parametrize('medications', [None, [], [{'dosage': '5mg'}]])
    def test_clean_medications_requires_a_name(self, medications):
        with pytest.raises(ValidationError):
            clean_medications(medications)
