"""
Global test fixtures for pytest.

Provides reusable fixtures for API testing:
- Authenticated API clients by role
- Caller contexts for calling services directly
- Model instances (Doctor, Patient, Visit, LabRequest)
- Mocked MinIO and OpenAI clients
"""
import json
from unittest.mock import MagicMock, patch

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from rest_framework.test import APIClient

from apps.ai.client import reset_client
from apps.authz.context import CallerContext
from apps.authz.models import Doctor, Role, RoleChoices, User, UserRole
from apps.clinical.models import Patient
from apps.realtime.feed import clear_subscribers


def _create_user(email, role_name, **extra):
    user = User.objects.create_user(email=email, password='testpass123', is_active=True, **extra)
    role, _ = Role.objects.get_or_create(name=role_name, defaults={'name': role_name})
    UserRole.objects.create(user=user, role=role)
    return user


def _client_for(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.fixture(autouse=True)
def _isolate_module_state():
    """Cached AI client and change-feed subscribers never leak between tests."""
    reset_client()
    clear_subscribers()
    yield
    reset_client()
    clear_subscribers()


# ============================================================================
# Users
# ============================================================================

@pytest.fixture
def admin_user(db):
    return _create_user('admin@test.com', RoleChoices.ADMIN, is_staff=True, is_superuser=True)


@pytest.fixture
def doctor_user(db):
    """Doctor role user with a Doctor profile."""
    user = _create_user('doctor@test.com', RoleChoices.DOCTOR)
    Doctor.objects.create(user=user, display_name='Dr. Test Doctor', medical_system_number='MS-1001')
    return user


@pytest.fixture
def doctor(doctor_user):
    return doctor_user.doctor


@pytest.fixture
def other_doctor(db):
    user = _create_user('doctor2@test.com', RoleChoices.DOCTOR)
    return Doctor.objects.create(user=user, display_name='Dr. Second Doctor')


@pytest.fixture
def reception_user(db):
    return _create_user('reception@test.com', RoleChoices.RECEPTION)


@pytest.fixture
def lab_user(db):
    return _create_user('lab@test.com', RoleChoices.LAB)


@pytest.fixture
def reviewer_user(db):
    return _create_user('reviewer@test.com', RoleChoices.REVIEWER)


# ============================================================================
# API Clients
# ============================================================================

@pytest.fixture
def api_client():
    """Unauthenticated DRF API client."""
    return APIClient()


@pytest.fixture
def admin_client(admin_user):
    return _client_for(admin_user)


@pytest.fixture
def doctor_client(doctor_user):
    return _client_for(doctor_user)


@pytest.fixture
def reception_client(reception_user):
    return _client_for(reception_user)


@pytest.fixture
def lab_client(lab_user):
    return _client_for(lab_user)


@pytest.fixture
def reviewer_client(reviewer_user):
    return _client_for(reviewer_user)


# ============================================================================
# Caller contexts
# ============================================================================

@pytest.fixture
def reception_ctx(reception_user):
    return CallerContext.for_user(reception_user)


@pytest.fixture
def doctor_ctx(doctor_user):
    return CallerContext.for_user(doctor_user)


@pytest.fixture
def lab_ctx(lab_user):
    return CallerContext.for_user(lab_user)


@pytest.fixture
def reviewer_ctx(reviewer_user):
    return CallerContext.for_user(reviewer_user)


# ============================================================================
# Clinical data
# ============================================================================

@pytest.fixture
def make_patient(db):
    """Factory: make_patient(full_name='...', **fields)."""
    counter = {'n': 0}

    def _make(**fields):
        counter['n'] += 1
        defaults = {
            'full_name': f'Patient {counter["n"]}',
            'age': 35,
            'gender': 'Female',
            'phone': f'0700{counter["n"]:06d}',
        }
        defaults.update(fields)
        return Patient.objects.create(**defaults)

    return _make


@pytest.fixture
def patient(make_patient):
    return make_patient(
        full_name='Sara Ahmadi',
        allergies='Penicillin',
        medical_history='Asthma',
    )


@pytest.fixture
def waiting_visit(reception_ctx, patient, doctor):
    """A visit checked in by reception, status waiting, unpaid."""
    from apps.clinical.services import create_visit
    visit, _queue_number, _payment = create_visit(reception_ctx, patient.id, doctor.id, fee='200')
    return visit


@pytest.fixture
def lab_request(doctor_ctx, waiting_visit):
    """A lab request awaiting payment, with its visit held for the lab."""
    from apps.clinical.services import hold_for_lab
    from apps.lab.services import create_lab_request
    hold_for_lab(doctor_ctx, waiting_visit.id)
    return create_lab_request(doctor_ctx, waiting_visit.id, 'CBC', '150')


# ============================================================================
# External services
# ============================================================================

@pytest.fixture
def mock_minio():
    """MinIO client whose put_object succeeds unless a test sets side_effect."""
    client = MagicMock()
    with patch('apps.core.storage.get_minio_client', return_value=client):
        yield client


def make_upload(name='scan.jpg', content=b'fake-bytes', content_type='image/jpeg'):
    return SimpleUploadedFile(name, content, content_type=content_type)


def make_completion(content, prompt_tokens=12, completion_tokens=34, annotations=None):
    """Shape of an OpenAI chat completion response, as far as the services read it."""
    message = MagicMock()
    message.content = content if isinstance(content, str) else json.dumps(content)
    message.annotations = annotations or []
    response = MagicMock()
    response.choices = [MagicMock(message=message)]
    response.usage = MagicMock(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens)
    return response


@pytest.fixture
def mock_openai():
    """
    OpenAI client stub. Set ``mock_openai.chat.completions.create.return_value``
    (see ``make_completion``) or ``side_effect`` in the test.
    """
    client = MagicMock()
    with patch('apps.ai.services.get_client', return_value=client):
        yield client


@pytest.fixture
def diagnosis_reply():
    return {
        'diagnosis': 'Acute bronchitis',
        'confidence': 82,
        'reasoning': 'Productive cough for five days with mild fever.',
        'simplifiedExplanation': 'An infection of the airways.',
        'labAnalysis': '',
        'safetyWarnings': ['Patient is allergic to penicillin'],
        'suggestedMedications': [
            {'name': 'Azithromycin', 'dosage': '500mg daily', 'reason': 'Penicillin allergy'},
        ],
        'treatmentPlan': ['Rest', 'Fluids'],
        'dietaryAdvice': {'recommended': ['Warm soup'], 'avoid': ['Cold drinks']},
        'traditionalMedicine': {
            'temperament': 'Cold and wet',
            'recommendedFoods': ['Honey'],
            'forbiddenFoods': ['Yogurt'],
            'herbalRemedies': ['Thyme tea'],
            'lifestyleTips': ['Steam inhalation'],
        },
        'sources': [],
    }


@pytest.fixture
def upload_factory():
    return make_upload


@pytest.fixture
def completion_factory():
    return make_completion
