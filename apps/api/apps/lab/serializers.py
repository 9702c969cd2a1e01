"""
Lab serializers.
"""
from rest_framework import serializers

from apps.clinical.serializers import FormJSONField
from apps.lab.models import LabRequest


class LabRequestSerializer(serializers.ModelSerializer):
    patient_name = serializers.CharField(source='patient.full_name', read_only=True)
    doctor_name = serializers.CharField(source='doctor.display_name', read_only=True, default=None)
    has_abnormal_results = serializers.BooleanField(read_only=True)

    class Meta:
        model = LabRequest
        fields = [
            'id',
            'visit',
            'patient',
            'patient_name',
            'doctor',
            'doctor_name',
            'test_name',
            'price',
            'status',
            'technician_notes',
            'structured_results',
            'result_files',
            'has_abnormal_results',
            'created_at',
            'completed_at',
        ]
        read_only_fields = fields


class LabRequestCreateSerializer(serializers.Serializer):
    visit_id = serializers.UUIDField()
    test_name = serializers.CharField(max_length=255)
    price = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, required=False, default=0)


class LabCompleteSerializer(serializers.Serializer):
    """
    Multipart: ``files`` (any number), ``technician_notes`` and ``results``
    as a JSON string. JSON bodies carry ``results`` as a list.
    """
    technician_notes = serializers.CharField(required=False, allow_blank=True, default='')
    results = FormJSONField(required=False, default=list)
    files = serializers.ListField(child=serializers.FileField(), required=False, default=list)

    def validate_results(self, value):
        if value in (None, ''):
            return []
        if not isinstance(value, list):
            raise serializers.ValidationError('results must be a list of rows')
        return value


class LabReportImageSerializer(serializers.Serializer):
    image = serializers.FileField()
