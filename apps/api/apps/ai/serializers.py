"""
AI assistant serializers.
"""
from rest_framework import serializers

from apps.ai.models import AIUsageLog
from apps.clinical.serializers import FormJSONField


class AnalyzePatientSerializer(serializers.Serializer):
    """
    Doctor's on-the-spot analysis. Multipart when images are attached;
    ``vitals`` and ``book_ids`` may then arrive as JSON strings.
    """
    patient_id = serializers.UUIDField()
    symptoms = serializers.CharField()
    vitals = FormJSONField(required=False, default=dict)
    images = serializers.ListField(child=serializers.FileField(), required=False, default=list)
    book_ids = FormJSONField(required=False, default=list)
    use_web = serializers.BooleanField(default=False)

    def validate_vitals(self, value):
        if value in (None, ''):
            return {}
        if not isinstance(value, dict):
            raise serializers.ValidationError('vitals must be an object')
        return value

    def validate_book_ids(self, value):
        if value in (None, ''):
            return []
        if not isinstance(value, list):
            raise serializers.ValidationError('book_ids must be a list')
        return [str(book_id) for book_id in value]


class ImageSerializer(serializers.Serializer):
    image = serializers.FileField()


class SafetyCheckSerializer(serializers.Serializer):
    patient_id = serializers.UUIDField()
    medications = serializers.ListField(child=serializers.DictField(), allow_empty=False)


class TimelineSerializer(serializers.Serializer):
    patient_id = serializers.UUIDField()
    visit_id = serializers.UUIDField(required=False, allow_null=True)


class AIUsageLogSerializer(serializers.ModelSerializer):
    user_email = serializers.EmailField(source='user.email', read_only=True, default=None)

    class Meta:
        model = AIUsageLog
        fields = [
            'id',
            'user',
            'user_email',
            'visit',
            'action',
            'model',
            'succeeded',
            'error',
            'prompt_tokens',
            'completion_tokens',
            'duration_ms',
            'created_at',
        ]
        read_only_fields = fields
