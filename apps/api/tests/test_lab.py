"""
Tests for lab requests: ordering, payment, worklist, completion and the
report-photo parser endpoint.
"""
import io
from datetime import timedelta
from unittest.mock import patch

import pytest
from django.core.exceptions import ValidationError
from django.core.files.uploadedfile import SimpleUploadedFile
from django.utils import timezone
from PIL import Image

from apps.cashier.models import PaymentTypeChoices
from apps.cashier.services import process_payment
from apps.clinical.models import Visit, VisitStatusChoices
from apps.clinical.services import waiting_room
from apps.core.storage import UploadManifest
from apps.lab.models import LabRequest, LabRequestStatusChoices
from apps.lab.services import (
    archive,
    clean_result_rows,
    complete_lab_test,
    create_lab_request,
    start_processing,
    worklist,
)

LAB_URL = '/api/v1/lab/requests/'

ROWS = [
    {'test_name': 'Hemoglobin', 'result': '10.1', 'unit': 'g/dL', 'normal_range': '12-16', 'flag': 'l'},
    {'test_name': 'WBC', 'result': '7.2', 'unit': '10^9/L', 'normal_range': '4-11'},
]


def _png(name='report.png'):
    buf = io.BytesIO()
    Image.new('RGB', (40, 30), color='white').save(buf, format='PNG')
    return SimpleUploadedFile(name, buf.getvalue(), content_type='image/png')


@pytest.fixture
def paid_lab_request(reception_ctx, lab_request):
    process_payment(reception_ctx, PaymentTypeChoices.LAB_TEST, lab_request.id, lab_request.price)
    lab_request.refresh_from_db()
    return lab_request


@pytest.mark.django_db
class TestCreateLabRequest:

    def test_waits_for_payment_and_leaves_visit_alone(self, doctor_ctx, doctor, waiting_visit):
        lab_request = create_lab_request(doctor_ctx, waiting_visit.id, ' Lipid panel ', '300')

        assert lab_request.status == LabRequestStatusChoices.PENDING_PAYMENT
        assert lab_request.test_name == 'Lipid panel'
        assert lab_request.patient_id == waiting_visit.patient_id
        assert lab_request.doctor == doctor
        waiting_visit.refresh_from_db()
        assert waiting_visit.status == VisitStatusChoices.WAITING

    def test_blank_test_name(self, doctor_ctx, waiting_visit):
        with pytest.raises(ValidationError):
            create_lab_request(doctor_ctx, waiting_visit.id, '   ', '100')

    def test_falls_back_to_visit_doctor(self, reception_ctx, doctor, waiting_visit):
        lab_request = create_lab_request(reception_ctx, waiting_visit.id, 'CBC', '150')

        assert lab_request.doctor == doctor


@pytest.mark.django_db
class TestWorklist:

    def test_payment_moves_request_onto_worklist(self, lab_request, paid_lab_request):
        assert paid_lab_request.status == LabRequestStatusChoices.PAID
        assert list(worklist()) == [paid_lab_request]

    def test_unpaid_and_completed_are_not_listed(self, lab_ctx, lab_request):
        assert list(worklist()) == []

        LabRequest.objects.filter(id=lab_request.id).update(status=LabRequestStatusChoices.COMPLETED)

        assert list(worklist()) == []

    def test_oldest_first(self, doctor_ctx, reception_ctx, waiting_visit):
        first = create_lab_request(doctor_ctx, waiting_visit.id, 'CBC', '150')
        second = create_lab_request(doctor_ctx, waiting_visit.id, 'ESR', '80')
        LabRequest.objects.filter(id=first.id).update(created_at=timezone.now() - timedelta(hours=2))
        for request_id in (second.id, first.id):
            process_payment(reception_ctx, PaymentTypeChoices.LAB_TEST, request_id, '100')

        assert [r.id for r in worklist()] == [first.id, second.id]

    def test_start_processing(self, lab_ctx, paid_lab_request):
        lab_request = start_processing(lab_ctx, paid_lab_request.id)

        assert lab_request.status == LabRequestStatusChoices.PROCESSING
        assert list(worklist()) == [lab_request]

    def test_start_requires_payment(self, lab_ctx, lab_request):
        with pytest.raises(ValidationError):
            start_processing(lab_ctx, lab_request.id)


@pytest.mark.django_db
class TestCompleteLabTest:

    def test_completes_and_returns_visit_to_doctor(self, lab_ctx, doctor, paid_lab_request):
        visit = paid_lab_request.visit
        assert Visit.objects.get(id=visit.id).status == VisitStatusChoices.PENDING_LAB

        lab_request, manifest = complete_lab_test(
            lab_ctx, paid_lab_request.id, technician_notes='Sample slightly hemolysed', results=ROWS
        )

        assert lab_request.status == LabRequestStatusChoices.COMPLETED
        assert lab_request.completed_at is not None
        assert lab_request.technician_notes == 'Sample slightly hemolysed'
        assert lab_request.structured_results == [
            {'test_name': 'Hemoglobin', 'result': '10.1', 'unit': 'g/dL', 'normal_range': '12-16', 'flag': 'L'},
            {'test_name': 'WBC', 'result': '7.2', 'unit': '10^9/L', 'normal_range': '4-11', 'flag': 'N'},
        ]
        assert lab_request.has_abnormal_results
        assert manifest.complete

        visit.refresh_from_db()
        assert visit.status == VisitStatusChoices.LAB_READY
        assert visit in waiting_room(doctor)

    def test_no_payment_check(self, lab_ctx, lab_request):
        lab_request, _manifest = complete_lab_test(lab_ctx, lab_request.id, results=ROWS)

        assert lab_request.status == LabRequestStatusChoices.COMPLETED

    def test_second_completion_rejected(self, lab_ctx, paid_lab_request):
        complete_lab_test(lab_ctx, paid_lab_request.id, results=ROWS)

        with pytest.raises(ValidationError):
            complete_lab_test(lab_ctx, paid_lab_request.id, results=ROWS)

    def test_completion_during_upload_is_not_overwritten(self, lab_ctx, paid_lab_request):
        calls = []

        def upload_while_another_technician_completes(bucket, prefix, files, **log_context):
            calls.append(prefix)
            if len(calls) == 1:
                complete_lab_test(lab_ctx, paid_lab_request.id, technician_notes='first', results=ROWS)
            return UploadManifest(bucket=bucket)

        with patch('apps.lab.services.upload_files', side_effect=upload_while_another_technician_completes):
            with pytest.raises(ValidationError):
                complete_lab_test(lab_ctx, paid_lab_request.id, technician_notes='second', results=ROWS)

        paid_lab_request.refresh_from_db()
        assert paid_lab_request.status == LabRequestStatusChoices.COMPLETED
        assert paid_lab_request.technician_notes == 'first'

    def test_bad_flag_rejected_before_any_write(self, lab_ctx, paid_lab_request, mock_minio, upload_factory):
        with pytest.raises(ValidationError):
            complete_lab_test(
                lab_ctx, paid_lab_request.id,
                files=[upload_factory('cbc.pdf', content_type='application/pdf')],
                results=[{'test_name': 'CRP', 'flag': 'X'}],
            )

        mock_minio.put_object.assert_not_called()
        paid_lab_request.refresh_from_db()
        assert paid_lab_request.status == LabRequestStatusChoices.PAID

    def test_partial_upload_failure(self, lab_ctx, paid_lab_request, mock_minio, upload_factory, settings):
        mock_minio.put_object.side_effect = [OSError('timeout'), None]

        lab_request, manifest = complete_lab_test(
            lab_ctx, paid_lab_request.id,
            files=[upload_factory('page1.jpg'), upload_factory('page2.jpg')],
            results=ROWS,
        )

        assert lab_request.status == LabRequestStatusChoices.COMPLETED
        assert len(lab_request.result_files) == 1
        assert lab_request.result_files[0].startswith(f'lab/{lab_request.id}/')
        assert manifest.bucket == settings.MINIO_LAB_RESULTS_BUCKET
        assert [f.filename for f in manifest.failed] == ['page1.jpg']

    def test_clean_result_rows_drops_unnamed(self):
        rows = clean_result_rows([{'test_name': ''}, 'junk', {'test_name': ' ALT ', 'result': 40, 'flag': 'h'}])

        assert rows == [{'test_name': 'ALT', 'result': '40', 'unit': '', 'normal_range': '', 'flag': 'H'}]


@pytest.mark.django_db
class TestArchive:

    def test_newest_first_and_capped(self, lab_ctx, doctor_ctx, waiting_visit, settings):
        settings.LAB_ARCHIVE_LIMIT = 2
        requests = [create_lab_request(doctor_ctx, waiting_visit.id, f'Test {i}', '10') for i in range(3)]
        for lab_request in requests:
            complete_lab_test(lab_ctx, lab_request.id)

        now = timezone.now()
        for offset, lab_request in enumerate(requests):
            LabRequest.objects.filter(id=lab_request.id).update(completed_at=now - timedelta(minutes=10 - offset))

        assert [r.test_name for r in archive()] == ['Test 2', 'Test 1']
        assert len(archive(limit=10)) == 3


@pytest.mark.django_db
class TestLabAPI:

    def test_doctor_orders_test(self, doctor_client, waiting_visit):
        response = doctor_client.post(LAB_URL, {
            'visit_id': str(waiting_visit.id),
            'test_name': 'Urinalysis',
            'price': '120.00',
        }, format='json')

        assert response.status_code == 201
        assert response.data['status'] == LabRequestStatusChoices.PENDING_PAYMENT
        assert response.data['patient_name'] == 'Sara Ahmadi'

    def test_lab_cannot_order(self, lab_client, waiting_visit):
        response = lab_client.post(LAB_URL, {'visit_id': str(waiting_visit.id), 'test_name': 'CBC'}, format='json')

        assert response.status_code == 403

    def test_worklist_endpoint(self, lab_client, paid_lab_request):
        response = lab_client.get(f'{LAB_URL}worklist/')

        assert response.status_code == 200
        assert [row['id'] for row in response.data] == [str(paid_lab_request.id)]

    def test_complete_multipart(self, lab_client, paid_lab_request, mock_minio, upload_factory):
        response = lab_client.post(f'{LAB_URL}{paid_lab_request.id}/complete/', {
            'technician_notes': 'Fasting sample',
            'results': '[{"test_name": "Glucose", "result": "180", "flag": "H"}]',
            'files': [upload_factory('glucose.jpg')],
        }, format='multipart')

        assert response.status_code == 200
        assert response.data['lab_request']['status'] == LabRequestStatusChoices.COMPLETED
        assert response.data['lab_request']['has_abnormal_results'] is True
        assert len(response.data['uploads']['stored']) == 1
        assert response.data['uploads']['complete'] is True

    def test_complete_bad_flag_is_400(self, lab_client, paid_lab_request):
        response = lab_client.post(f'{LAB_URL}{paid_lab_request.id}/complete/', {
            'results': [{'test_name': 'Glucose', 'flag': 'Z'}],
        }, format='json')

        assert response.status_code == 400
        assert 'flag' in response.data['error']

    def test_doctor_cannot_complete(self, doctor_client, paid_lab_request):
        response = doctor_client.post(f'{LAB_URL}{paid_lab_request.id}/complete/', {}, format='json')

        assert response.status_code == 403

    def test_reception_reads_but_cannot_start(self, reception_client, paid_lab_request):
        assert reception_client.get(LAB_URL).status_code == 200
        assert reception_client.post(f'{LAB_URL}{paid_lab_request.id}/start/').status_code == 403

    def test_parse_report(self, lab_client, mock_openai, completion_factory):
        mock_openai.chat.completions.create.return_value = completion_factory({'rows': [
            {'testName': 'TSH', 'result': '6.8', 'unit': 'mIU/L', 'normalRange': '0.4-4.0', 'flag': 'h'},
            {'testName': 'Free T4', 'result': '1.1', 'unit': 'ng/dL', 'normalRange': '0.8-1.8'},
        ]})

        response = lab_client.post(f'{LAB_URL}parse-report/', {'image': _png()}, format='multipart')

        assert response.status_code == 200
        assert response.data['rows'][0] == {
            'test_name': 'TSH', 'result': '6.8', 'unit': 'mIU/L', 'normal_range': '0.4-4.0', 'flag': 'H',
        }
        assert response.data['rows'][1]['flag'] == 'N'
        image_part = mock_openai.chat.completions.create.call_args[1]['messages'][1]['content'][0]
        assert image_part['image_url']['url'].startswith('data:image/jpeg;base64,')
