"""
Dashboard report: activity counts and most frequent diagnoses/medications
over a rolling window.
"""
from collections import Counter
from datetime import timedelta

from django.core.exceptions import ValidationError
from django.db.models import Count
from django.utils import timezone

from apps.ai.models import AIUsageLog
from apps.clinical.models import Patient, Prescription
from apps.library.models import Book

WINDOWS = {
    '24H': timedelta(hours=24),
    '48H': timedelta(hours=48),
    'ALL': None,
}

UNSPECIFIED_DIAGNOSIS = 'Unspecified'
TOP_N = 3


def _since(window, now):
    if window not in WINDOWS:
        raise ValidationError(f'Unknown window {window!r}; expected one of {", ".join(WINDOWS)}')
    span = WINDOWS[window]
    return None if span is None else now - span


def dashboard_report(window='24H', now=None):
    now = now or timezone.now()
    since = _since(window, now)

    patients = Patient.objects.all()
    prescriptions = Prescription.objects.all()
    ai_usage = AIUsageLog.objects.all()
    if since is not None:
        patients = patients.filter(registered_at__gte=since)
        prescriptions = prescriptions.filter(created_at__gte=since)
        ai_usage = ai_usage.filter(created_at__gte=since)

    diagnoses = Counter()
    medications = Counter()
    for diagnosis, meds in prescriptions.values_list('diagnosis', 'medications'):
        diagnoses[diagnosis.strip() or UNSPECIFIED_DIAGNOSIS] += 1
        for med in meds or []:
            name = str(med.get('name') or '').strip() if isinstance(med, dict) else ''
            if name:
                medications[name] += 1

    return {
        'window': window,
        'new_patients': patients.count(),
        'total_patients': Patient.objects.count(),
        'prescriptions': prescriptions.count(),
        'total_prescriptions': Prescription.objects.count(),
        'ai_interactions': ai_usage.count(),
        'ai_interactions_by_action': dict(
            ai_usage.order_by().values('action').annotate(n=Count('id')).values_list('action', 'n')
        ),
        'library_books': Book.objects.count(),
        'top_diagnoses': [{'name': name, 'count': n} for name, n in diagnoses.most_common(TOP_N)],
        'top_medications': [{'name': name, 'count': n} for name, n in medications.most_common(TOP_N)],
    }
