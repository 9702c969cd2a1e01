"""
AI assistant endpoints.
"""
from rest_framework import viewsets
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.ai import services
from apps.ai.models import AIUsageLog
from apps.ai.permissions import AIAssistantPermission
from apps.ai.serializers import (
    AIUsageLogSerializer,
    AnalyzePatientSerializer,
    ImageSerializer,
    SafetyCheckSerializer,
    TimelineSerializer,
)
from apps.authz.permissions import IsAdmin
from apps.clinical.models import Patient, Visit
from apps.clinical.services import clean_medications
from apps.core.api import ServiceViewMixin
from apps.library.services import reference_texts


class AnalyzePatientView(ServiceViewMixin, APIView):
    """
    POST /api/v1/ai/analyze/ - structured diagnosis for a patient's complaint.

    Nothing is stored besides the usage log; the doctor passes the result
    on to visit completion or a consult request.
    """
    permission_classes = [AIAssistantPermission]
    parser_classes = [JSONParser, MultiPartParser, FormParser]

    def post(self, request):
        serializer = AnalyzePatientSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        patient = Patient.objects.get(id=data['patient_id'])
        result = services.analyze_patient(
            patient,
            data['symptoms'],
            vitals=data['vitals'],
            images=data['images'],
            reference_texts=reference_texts(data['book_ids']),
            use_web=data['use_web'],
            user=request.user,
        )
        return Response(result.to_dict())


class ExtractTextView(ServiceViewMixin, APIView):
    """POST /api/v1/ai/ocr/ - text of a photographed document."""
    permission_classes = [AIAssistantPermission]
    parser_classes = [MultiPartParser, FormParser]

    def post(self, request):
        serializer = ImageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        text = services.extract_text(serializer.validated_data['image'], user=request.user)
        return Response({'text': text})


class SafetyCheckView(ServiceViewMixin, APIView):
    """POST /api/v1/ai/safety-check/ - interactions and risks of a draft prescription."""
    permission_classes = [AIAssistantPermission]

    def post(self, request):
        serializer = SafetyCheckSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        patient = Patient.objects.get(id=serializer.validated_data['patient_id'])
        medications = clean_medications(serializer.validated_data['medications'])
        result = services.check_prescription_safety(patient, medications, user=request.user)
        return Response(result.to_dict())


class DigitizePrescriptionView(ServiceViewMixin, APIView):
    """
    POST /api/v1/ai/digitize-prescription/ - draft medications, diagnosis and
    vitals read from a photographed handwritten prescription.
    """
    permission_classes = [AIAssistantPermission]
    parser_classes = [MultiPartParser, FormParser]

    def post(self, request):
        serializer = ImageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        draft = services.digitize_prescription(serializer.validated_data['image'], user=request.user)
        return Response(draft)


class TimelineView(ServiceViewMixin, APIView):
    """POST /api/v1/ai/timeline/ - trends across a patient's visits, latest visit by default."""
    permission_classes = [AIAssistantPermission]

    def post(self, request):
        serializer = TimelineSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        patient = Patient.objects.get(id=data['patient_id'])
        visit = Visit.objects.get(id=data['visit_id']) if data.get('visit_id') else None
        report = services.analyze_timeline(patient, visit=visit, user=request.user)
        return Response({'report': report})


class AIUsageLogViewSet(viewsets.ReadOnlyModelViewSet):
    """
    GET /api/v1/ai/usage/?action=<action> - Admin only
    """
    permission_classes = [IsAdmin]
    serializer_class = AIUsageLogSerializer

    def get_queryset(self):
        queryset = AIUsageLog.objects.select_related('user')
        action_filter = self.request.query_params.get('action')
        if action_filter:
            queryset = queryset.filter(action=action_filter)
        return queryset.order_by('-created_at')
