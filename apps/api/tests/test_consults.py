"""
Tests for the triage / consult mailbox: services, Celery task and endpoints.
"""

import pytest
from openai import OpenAIError

from apps.ai.exceptions import AIServiceError
from apps.ai.models import AIUsageLog
from apps.clinical.consults import (
    list_consults,
    pending_consults,
    reviewed_consults,
    run_admin_diagnosis,
    update_ai_diagnosis,
)
from apps.clinical.models import Diagnosis, Visit, VisitStatusChoices
from apps.clinical.services import request_consult, respond_to_consult
from apps.clinical.tasks import run_consult_diagnosis
from apps.library.models import Book

CONSULTS_URL = '/api/v1/clinical/consults/'


@pytest.fixture
def consult(doctor_ctx, patient):
    return request_consult(doctor_ctx, patient.id, 'Productive cough for five days', vitals={'temperature': '38.1'})


@pytest.fixture
def diagnosis_completion(mock_openai, completion_factory, diagnosis_reply):
    mock_openai.chat.completions.create.return_value = completion_factory(diagnosis_reply)
    return mock_openai


@pytest.mark.django_db
class TestConsultMailbox:

    def test_pending_and_reviewed_lists(self, doctor_ctx, reviewer_ctx, patient, make_patient, waiting_visit):
        open_consult = request_consult(doctor_ctx, patient.id, 'Cough')
        closed_consult = request_consult(doctor_ctx, make_patient().id, 'Rash')
        respond_to_consult(reviewer_ctx, closed_consult.id)

        assert list(pending_consults()) == [open_consult]
        assert list(reviewed_consults()) == [closed_consult]
        assert set(list_consults()) == {open_consult, closed_consult}
        assert waiting_visit not in list_consults()


@pytest.mark.django_db
class TestRunAdminDiagnosis:

    def test_stores_diagnosis_and_usage_log(self, reviewer_ctx, reviewer_user, consult, diagnosis_completion):
        diagnosis, result = run_admin_diagnosis(reviewer_ctx, consult.id)

        assert result.diagnosis == 'Acute bronchitis'
        assert diagnosis.visit_id == consult.id
        assert diagnosis.final_diagnosis == 'Acute bronchitis'
        assert diagnosis.confidence_score == 82

        log = AIUsageLog.objects.get()
        assert log.action == 'diagnosis'
        assert log.succeeded is True
        assert log.user == reviewer_user
        assert log.visit_id == consult.id
        assert log.prompt_tokens == 12
        assert log.completion_tokens == 34

    def test_second_run_updates_the_same_row(self, reviewer_ctx, consult, diagnosis_completion,
                                             completion_factory, diagnosis_reply):
        first, _result = run_admin_diagnosis(reviewer_ctx, consult.id)
        diagnosis_completion.chat.completions.create.return_value = completion_factory(
            dict(diagnosis_reply, diagnosis='Community-acquired pneumonia', confidence=64)
        )

        second, _result = run_admin_diagnosis(reviewer_ctx, consult.id)

        assert Diagnosis.objects.filter(visit=consult).count() == 1
        assert second.id == first.id
        assert second.final_diagnosis == 'Community-acquired pneumonia'
        assert second.confidence_score == 64

    def test_prompt_contains_clinical_context_without_name(self, reviewer_ctx, consult, patient, diagnosis_completion):
        run_admin_diagnosis(reviewer_ctx, consult.id)

        request = diagnosis_completion.chat.completions.create.call_args[1]
        prompt = request['messages'][1]['content'][0]['text']
        assert 'Productive cough for five days' in prompt
        assert 'temperature: 38.1' in prompt
        assert 'Penicillin' in prompt
        assert patient.full_name not in prompt
        assert request['response_format'] == {'type': 'json_object'}

    def test_reference_books_are_included(self, reviewer_ctx, consult, diagnosis_completion):
        book = Book.objects.create(title='Respiratory Handbook', content='Bronchitis chapter text')
        Book.objects.create(title='Unselected', content='Should not be sent')

        run_admin_diagnosis(reviewer_ctx, consult.id, book_ids=[str(book.id)])

        prompt = diagnosis_completion.chat.completions.create.call_args[1]['messages'][1]['content'][0]['text']
        assert 'REFERENCE BOOK: Respiratory Handbook' in prompt
        assert 'Bronchitis chapter text' in prompt
        assert 'Should not be sent' not in prompt

    def test_web_search_uses_search_model(self, reviewer_ctx, consult, diagnosis_completion, settings):
        run_admin_diagnosis(reviewer_ctx, consult.id, use_web=True)

        request = diagnosis_completion.chat.completions.create.call_args[1]
        assert request['model'] == settings.AI_SEARCH_MODEL
        assert 'response_format' not in request
        assert 'web_search_options' in request

    def test_ai_failure_leaves_no_diagnosis(self, reviewer_ctx, consult, mock_openai):
        mock_openai.chat.completions.create.side_effect = OpenAIError('connection refused')

        with pytest.raises(AIServiceError):
            run_admin_diagnosis(reviewer_ctx, consult.id)

        assert not Diagnosis.objects.filter(visit=consult).exists()
        log = AIUsageLog.objects.get()
        assert log.succeeded is False
        assert log.error


@pytest.mark.django_db
class TestUpdateAIDiagnosis:

    def test_inserts_when_absent(self, reviewer_ctx, consult, diagnosis_reply):
        diagnosis = update_ai_diagnosis(reviewer_ctx, consult.id, diagnosis_reply)

        assert diagnosis.final_diagnosis == 'Acute bronchitis'
        assert diagnosis.ai_analysis['diagnosis'] == 'Acute bronchitis'

    def test_updates_final_text_only(self, reviewer_ctx, consult, diagnosis_reply):
        update_ai_diagnosis(reviewer_ctx, consult.id, diagnosis_reply)

        diagnosis = update_ai_diagnosis(reviewer_ctx, consult.id, None, final_diagnosis='Asthma exacerbation')

        assert Diagnosis.objects.filter(visit=consult).count() == 1
        assert diagnosis.final_diagnosis == 'Asthma exacerbation'
        assert diagnosis.ai_analysis['diagnosis'] == 'Acute bronchitis'


@pytest.mark.django_db
class TestConsultDiagnosisTask:

    def test_task_runs_eagerly(self, reviewer_user, consult, diagnosis_completion):
        outcome = run_consult_diagnosis.delay(str(consult.id), str(reviewer_user.id)).get()

        assert outcome['status'] == 'completed'
        assert outcome['confidence'] == 82
        assert outcome['diagnosis_id'] == str(Diagnosis.objects.get(visit=consult).id)

    def test_task_reports_ai_failure(self, reviewer_user, consult, mock_openai, completion_factory):
        mock_openai.chat.completions.create.return_value = completion_factory('')

        outcome = run_consult_diagnosis(str(consult.id), str(reviewer_user.id))

        assert outcome['status'] == 'failed'
        assert outcome['visit_id'] == str(consult.id)
        assert 'empty reply' in outcome['error']
        assert not Diagnosis.objects.filter(visit=consult).exists()


@pytest.mark.django_db
class TestConsultAPI:

    def test_doctor_requests_consult(self, doctor_client, patient, diagnosis_reply):
        response = doctor_client.post(CONSULTS_URL, {
            'patient_id': str(patient.id),
            'symptoms': 'Chest tightness',
            'vitals': {'oxygenLevel': '95'},
            'ai_result': diagnosis_reply,
        }, format='json')

        assert response.status_code == 201
        assert response.data['status'] == VisitStatusChoices.PENDING_REVIEW
        assert response.data['diagnosis']['final_diagnosis'] == 'Acute bronchitis'

    def test_empty_symptoms_rejected(self, doctor_client, patient):
        response = doctor_client.post(CONSULTS_URL, {
            'patient_id': str(patient.id),
            'symptoms': '',
        }, format='json')

        assert response.status_code == 400
        assert 'error' in response.data
        assert Visit.objects.count() == 0

    def test_reception_cannot_read_consults(self, reception_client):
        response = reception_client.get(CONSULTS_URL)

        assert response.status_code == 403

    def test_list_filters_by_status(self, reviewer_client, reviewer_ctx, doctor_ctx, consult, make_patient):
        closed = request_consult(doctor_ctx, make_patient().id, 'Rash')
        respond_to_consult(reviewer_ctx, closed.id)

        response = reviewer_client.get(CONSULTS_URL, {'status': 'pending_review'})

        assert response.status_code == 200
        assert [row['id'] for row in response.data] == [str(consult.id)]

    def test_run_diagnosis_sync(self, reviewer_client, consult, diagnosis_completion):
        response = reviewer_client.post(f'{CONSULTS_URL}{consult.id}/run-diagnosis/', {}, format='json')

        assert response.status_code == 200
        assert response.data['final_diagnosis'] == 'Acute bronchitis'
        assert response.data['ai_analysis']['confidence'] == 82

    def test_run_diagnosis_async(self, reviewer_client, consult, diagnosis_completion):
        response = reviewer_client.post(
            f'{CONSULTS_URL}{consult.id}/run-diagnosis/', {'run_async': True}, format='json'
        )

        assert response.status_code == 202
        assert response.data['visit_id'] == str(consult.id)
        assert response.data['task_id']
        assert Diagnosis.objects.filter(visit=consult).exists()

    def test_run_diagnosis_ai_failure_is_502(self, reviewer_client, consult, mock_openai, completion_factory):
        mock_openai.chat.completions.create.return_value = completion_factory('not json at all')

        response = reviewer_client.post(f'{CONSULTS_URL}{consult.id}/run-diagnosis/', {}, format='json')

        assert response.status_code == 502
        assert response.data['action'] == 'diagnosis'

    def test_doctor_cannot_run_diagnosis(self, doctor_client, consult):
        response = doctor_client.post(f'{CONSULTS_URL}{consult.id}/run-diagnosis/', {}, format='json')

        assert response.status_code == 403

    def test_reviewer_edits_diagnosis(self, reviewer_client, consult):
        response = reviewer_client.put(
            f'{CONSULTS_URL}{consult.id}/diagnosis/', {'final_diagnosis': 'Allergic rhinitis'}, format='json'
        )

        assert response.status_code == 200
        assert response.data['final_diagnosis'] == 'Allergic rhinitis'

    def test_edit_requires_some_content(self, reviewer_client, consult):
        response = reviewer_client.put(f'{CONSULTS_URL}{consult.id}/diagnosis/', {}, format='json')

        assert response.status_code == 400

    def test_respond(self, reviewer_client, consult):
        response = reviewer_client.post(
            f'{CONSULTS_URL}{consult.id}/respond/', {'feedback': 'Start inhaler'}, format='json'
        )

        assert response.status_code == 200
        assert response.data['status'] == VisitStatusChoices.REVIEWED

    def test_respond_twice_is_400(self, reviewer_client, consult):
        reviewer_client.post(f'{CONSULTS_URL}{consult.id}/respond/', {}, format='json')

        response = reviewer_client.post(f'{CONSULTS_URL}{consult.id}/respond/', {}, format='json')

        assert response.status_code == 400
