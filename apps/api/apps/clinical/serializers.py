"""
Clinical serializers: patients, visits, diagnoses, prescriptions.
"""
import json

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import serializers

from apps.ai.schemas import DiagnosisResult
from apps.authz.models import RoleChoices
from apps.authz.permissions import get_user_roles
from apps.clinical.models import (
    Diagnosis,
    Patient,
    Prescription,
    PrescriptionTemplate,
    Visit,
)
from apps.clinical.reports import WINDOWS
from apps.clinical.services import clean_medications


class FormJSONField(serializers.JSONField):
    """JSON value that may also arrive as a string in multipart form data."""

    def to_internal_value(self, data):
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except ValueError:
                self.fail('invalid')
        return super().to_internal_value(data)


def validate_diagnosis_result(value):
    """Shared validator for an AI analysis payload (camelCase or snake_case keys)."""
    if value is None:
        return None
    try:
        return DiagnosisResult.from_dict(value)
    except ValueError as e:
        raise serializers.ValidationError(str(e))


# ============================================================================
# Patients
# ============================================================================

class PatientListSerializer(serializers.ModelSerializer):
    """Serializer for Patient list view (limited fields)"""

    class Meta:
        model = Patient
        fields = ['id', 'full_name', 'age', 'gender', 'phone', 'registered_at']
        read_only_fields = fields


class PatientDetailSerializer(serializers.ModelSerializer):
    """
    Serializer for Patient detail/create/update.

    BUSINESS RULE: the lab does not see medical history or allergies.
    """

    class Meta:
        model = Patient
        fields = [
            'id',
            'full_name',
            'age',
            'gender',
            'phone',
            'medical_history',
            'allergies',
            'registered_at',
            'updated_at',
        ]
        read_only_fields = ['id', 'registered_at', 'updated_at']

    def validate_full_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Full name is required')
        return value

    def validate_age(self, value):
        if value is not None and value > 150:
            raise serializers.ValidationError('Age must be between 0 and 150')
        return value

    def to_representation(self, instance):
        data = super().to_representation(instance)
        request = self.context.get('request')
        if request is not None:
            roles = get_user_roles(request.user)
            if roles and roles <= {RoleChoices.LAB}:
                data.pop('medical_history', None)
                data.pop('allergies', None)
        return data


# ============================================================================
# Diagnoses
# ============================================================================

class DiagnosisSerializer(serializers.ModelSerializer):
    class Meta:
        model = Diagnosis
        fields = ['id', 'visit', 'final_diagnosis', 'ai_analysis', 'confidence_score', 'created_at', 'updated_at']
        read_only_fields = fields


class DiagnosisUpdateSerializer(serializers.Serializer):
    """Reviewer edit: a full analysis, a final diagnosis text, or both."""
    ai_analysis = serializers.JSONField(required=False, allow_null=True)
    final_diagnosis = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    def validate_ai_analysis(self, value):
        return validate_diagnosis_result(value)

    def validate(self, attrs):
        if attrs.get('ai_analysis') is None and attrs.get('final_diagnosis') is None:
            raise serializers.ValidationError('Provide ai_analysis or final_diagnosis')
        return attrs


# ============================================================================
# Visits
# ============================================================================

class VisitListSerializer(serializers.ModelSerializer):
    """Waiting room / consult rows: patient and doctor joined at read time."""
    patient_name = serializers.CharField(source='patient.full_name', read_only=True)
    doctor_name = serializers.CharField(source='doctor.display_name', read_only=True, default=None)
    final_diagnosis = serializers.SerializerMethodField()

    class Meta:
        model = Visit
        fields = [
            'id',
            'patient',
            'patient_name',
            'doctor',
            'doctor_name',
            'visit_date',
            'status',
            'payment_status',
            'fee',
            'queue_number',
            'final_diagnosis',
            'created_at',
        ]
        read_only_fields = fields

    def get_final_diagnosis(self, obj):
        diagnosis = getattr(obj, 'diagnosis', None)
        return diagnosis.final_diagnosis if diagnosis else None


class VisitDetailSerializer(VisitListSerializer):
    diagnosis = DiagnosisSerializer(read_only=True, allow_null=True)

    class Meta(VisitListSerializer.Meta):
        fields = VisitListSerializer.Meta.fields + ['symptoms', 'vitals', 'diagnosis', 'updated_at']
        read_only_fields = fields


class VisitCreateSerializer(serializers.Serializer):
    """Reception check-in."""
    patient_id = serializers.UUIDField()
    doctor_id = serializers.UUIDField()
    fee = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, allow_null=True, min_value=0)
    is_paid = serializers.BooleanField(default=False)
    symptoms = serializers.CharField(required=False, allow_blank=True, default='')
    vitals = serializers.JSONField(required=False, default=dict)

    def validate_vitals(self, value):
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise serializers.ValidationError('vitals must be an object')
        return value


class VisitCompleteSerializer(serializers.Serializer):
    """
    Doctor completes a visit. ``images`` come in as multipart files; the
    structured fields may be sent as JSON strings in that case.
    """
    patient_id = serializers.UUIDField()
    visit_id = serializers.UUIDField(required=False, allow_null=True)
    medications = FormJSONField()
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    diagnosis = FormJSONField(required=False, allow_null=True)
    final_diagnosis = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    lab_findings = serializers.CharField(required=False, allow_blank=True, default='')
    images = serializers.ListField(child=serializers.FileField(), required=False, default=list)

    def validate_medications(self, value):
        if not isinstance(value, list):
            raise serializers.ValidationError('medications must be a list')
        return value

    def validate_diagnosis(self, value):
        return validate_diagnosis_result(value)


class DocumentUploadSerializer(serializers.Serializer):
    file = serializers.FileField()


# ============================================================================
# Consults
# ============================================================================

class ConsultRequestSerializer(serializers.Serializer):
    patient_id = serializers.UUIDField()
    symptoms = serializers.CharField(allow_blank=True)
    vitals = serializers.JSONField(required=False, default=dict)
    ai_result = serializers.JSONField(required=False, allow_null=True)

    def validate_ai_result(self, value):
        return validate_diagnosis_result(value)


class ConsultRespondSerializer(serializers.Serializer):
    feedback = serializers.CharField(required=False, allow_blank=True, default='')


class RunDiagnosisSerializer(serializers.Serializer):
    book_ids = serializers.ListField(child=serializers.UUIDField(), required=False, default=list)
    use_web = serializers.BooleanField(default=False)
    run_async = serializers.BooleanField(default=False)


# ============================================================================
# Prescriptions
# ============================================================================

class PrescriptionSerializer(serializers.ModelSerializer):
    patient_name = serializers.CharField(source='patient.full_name', read_only=True)
    doctor_name = serializers.CharField(source='doctor.display_name', read_only=True, default=None)

    class Meta:
        model = Prescription
        fields = [
            'id',
            'patient',
            'patient_name',
            'visit',
            'doctor',
            'doctor_name',
            'diagnosis',
            'medications',
            'notes',
            'lab_findings',
            'image_keys',
            'created_at',
        ]
        read_only_fields = fields


class PrescriptionTemplateSerializer(serializers.ModelSerializer):
    class Meta:
        model = PrescriptionTemplate
        fields = ['id', 'name', 'diagnosis', 'medications', 'notes', 'created_at', 'updated_at']
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Template name is required')
        return value

    def validate_medications(self, value):
        try:
            return clean_medications(value)
        except DjangoValidationError as e:
            raise serializers.ValidationError(e.messages)


class DashboardQuerySerializer(serializers.Serializer):
    window = serializers.ChoiceField(choices=list(WINDOWS), default='24H')
