"""
Lab endpoints: ordering, worklist, result entry.
"""
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.response import Response

from apps.ai import services as ai_services
from apps.authz.models import RoleChoices
from apps.core.api import ServiceViewMixin
from apps.lab import services
from apps.lab.models import LabRequest
from apps.lab.permissions import LabRequestPermission
from apps.lab.serializers import (
    LabCompleteSerializer,
    LabReportImageSerializer,
    LabRequestCreateSerializer,
    LabRequestSerializer,
)


class LabRequestViewSet(ServiceViewMixin,
                        mixins.ListModelMixin,
                        mixins.RetrieveModelMixin,
                        viewsets.GenericViewSet):
    """
    Endpoints:
    - GET /api/v1/lab/requests/?visit=<id>&status=<status>
    - GET /api/v1/lab/requests/{id}/
    - POST /api/v1/lab/requests/ - doctor orders a test (pending_payment)
    - GET /api/v1/lab/requests/worklist/ - paid / processing, oldest first
    - GET /api/v1/lab/requests/archive/ - completed, newest first
    - POST /api/v1/lab/requests/{id}/start/
    - POST /api/v1/lab/requests/{id}/complete/ - multipart files + results
    - POST /api/v1/lab/requests/parse-report/ - AI reads a report photo into rows
    """
    permission_classes = [LabRequestPermission]
    serializer_class = LabRequestSerializer
    parser_classes = [JSONParser, MultiPartParser, FormParser]

    action_roles = {
        'create': {RoleChoices.DOCTOR},
        'start': {RoleChoices.LAB},
        'complete': {RoleChoices.LAB},
        'parse_report': {RoleChoices.LAB},
    }

    def get_queryset(self):
        queryset = LabRequest.objects.select_related('patient', 'doctor', 'visit').order_by('-created_at')

        visit_id = self.request.query_params.get('visit')
        if visit_id:
            queryset = queryset.filter(visit_id=visit_id)

        status_filter = self.request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status=status_filter)

        return queryset

    def create(self, request):
        serializer = LabRequestCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        lab_request = services.create_lab_request(self.caller(), **serializer.validated_data)
        return Response(LabRequestSerializer(lab_request).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['get'])
    def worklist(self, request):
        return Response(LabRequestSerializer(services.worklist(), many=True).data)

    @action(detail=False, methods=['get'])
    def archive(self, request):
        return Response(LabRequestSerializer(services.archive(), many=True).data)

    @action(detail=True, methods=['post'])
    def start(self, request, pk=None):
        lab_request = services.start_processing(self.caller(), pk)
        return Response(LabRequestSerializer(lab_request).data)

    @action(detail=True, methods=['post'])
    def complete(self, request, pk=None):
        serializer = LabCompleteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        lab_request, manifest = services.complete_lab_test(
            self.caller(),
            pk,
            files=serializer.validated_data['files'],
            technician_notes=serializer.validated_data['technician_notes'],
            results=serializer.validated_data['results'],
        )
        return Response({
            'lab_request': LabRequestSerializer(lab_request).data,
            'uploads': manifest.to_dict(),
        })

    @action(detail=False, methods=['post'], url_path='parse-report')
    def parse_report(self, request):
        serializer = LabReportImageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        rows = ai_services.parse_lab_report(serializer.validated_data['image'], user=request.user)
        return Response({'rows': rows})
