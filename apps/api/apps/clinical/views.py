"""
Clinical endpoints: patients, visits, consults, prescriptions, dashboard.

All workflow writes go through ``apps.clinical.services``; views only
validate input, build the caller context and serialize the result.
"""
from django.db.models import Q
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.ai import services as ai_services
from apps.authz.models import RoleChoices
from apps.cashier.serializers import PaymentSerializer
from apps.clinical import consults, services
from apps.clinical.models import Patient, Prescription, PrescriptionTemplate, Visit
from apps.clinical.permissions import (
    ConsultPermission,
    PatientPermission,
    PrescriptionPermission,
    ReportPermission,
    VisitPermission,
)
from apps.clinical.reports import dashboard_report
from apps.clinical.serializers import (
    ConsultRequestSerializer,
    ConsultRespondSerializer,
    DashboardQuerySerializer,
    DiagnosisSerializer,
    DiagnosisUpdateSerializer,
    DocumentUploadSerializer,
    PatientDetailSerializer,
    PatientListSerializer,
    PrescriptionSerializer,
    PrescriptionTemplateSerializer,
    RunDiagnosisSerializer,
    VisitCompleteSerializer,
    VisitCreateSerializer,
    VisitDetailSerializer,
    VisitListSerializer,
)
from apps.clinical.tasks import run_consult_diagnosis
from apps.core.api import ServiceViewMixin
from apps.library.services import extract_upload_text

IMAGE_EXTENSIONS = ('.jpg', '.jpeg', '.png', '.webp', '.heic', '.heif')


def is_image_upload(upload):
    name = (getattr(upload, 'name', '') or '').lower()
    content_type = getattr(upload, 'content_type', '') or ''
    return content_type.startswith('image/') or name.endswith(IMAGE_EXTENSIONS)


# ============================================================================
# Patients
# ============================================================================

class PatientViewSet(ServiceViewMixin, viewsets.ModelViewSet):
    """
    ViewSet for Patient endpoints.

    Endpoints:
    - GET /api/v1/clinical/patients/?q=term - search name or phone
    - POST /api/v1/clinical/patients/
    - GET /api/v1/clinical/patients/{id}/
    - PATCH /api/v1/clinical/patients/{id}/
    - DELETE /api/v1/clinical/patients/{id}/ - Admin only, patients without visits
    - GET /api/v1/clinical/patients/{id}/history/
    """
    permission_classes = [PatientPermission]
    http_method_names = ['get', 'post', 'patch', 'delete', 'head', 'options']

    def get_queryset(self):
        queryset = Patient.objects.all()

        q = self.request.query_params.get('q')
        if q:
            queryset = queryset.filter(Q(full_name__icontains=q) | Q(phone__icontains=q))

        return queryset.order_by('-registered_at')

    def get_serializer_class(self):
        if self.action == 'list':
            return PatientListSerializer
        return PatientDetailSerializer

    def perform_create(self, serializer):
        serializer.save(created_by=self.request.user)

    def destroy(self, request, pk=None):
        patient = self.get_object()
        if patient.visits.exists() or patient.prescriptions.exists():
            return Response(
                {'error': 'Patients with visits or prescriptions cannot be deleted'},
                status=status.HTTP_409_CONFLICT
            )
        patient.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['get'])
    def history(self, request, pk=None):
        patient = self.get_object()
        visits, prescriptions = services.patient_history(patient)
        return Response({
            'patient': PatientDetailSerializer(patient, context={'request': request}).data,
            'visits': VisitDetailSerializer(visits, many=True).data,
            'prescriptions': PrescriptionSerializer(prescriptions, many=True).data,
        })


# ============================================================================
# Visits
# ============================================================================

class VisitViewSet(ServiceViewMixin,
                   mixins.ListModelMixin,
                   mixins.RetrieveModelMixin,
                   viewsets.GenericViewSet):
    """
    ViewSet for the visit lifecycle.

    Endpoints:
    - GET /api/v1/clinical/visits/?patient=<id>&status=<status>
    - GET /api/v1/clinical/visits/{id}/
    - POST /api/v1/clinical/visits/ - reception check-in (queue number + optional receipt)
    - GET /api/v1/clinical/visits/waiting-room/?doctor=<id>|me
    - POST /api/v1/clinical/visits/{id}/hold-for-lab/
    - POST /api/v1/clinical/visits/complete/ - prescription + close (multipart images allowed)
    - POST /api/v1/clinical/visits/{id}/document/ - append PDF/TXT/image text to symptoms
    """
    permission_classes = [VisitPermission]
    parser_classes = [JSONParser, MultiPartParser, FormParser]

    action_roles = {
        'create': {RoleChoices.RECEPTION},
        'hold_for_lab': {RoleChoices.DOCTOR},
        'complete': {RoleChoices.DOCTOR},
        'document': {RoleChoices.DOCTOR},
    }

    def get_queryset(self):
        queryset = Visit.objects.select_related('patient', 'doctor', 'diagnosis').order_by('-created_at')

        patient_id = self.request.query_params.get('patient')
        if patient_id:
            queryset = queryset.filter(patient_id=patient_id)

        status_filter = self.request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status=status_filter)

        return queryset

    def get_serializer_class(self):
        if self.action == 'retrieve':
            return VisitDetailSerializer
        return VisitListSerializer

    def create(self, request):
        serializer = VisitCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        visit, queue_number, payment = services.create_visit(self.caller(), **serializer.validated_data)
        return Response(
            {
                'visit': VisitDetailSerializer(visit).data,
                'queue_number': queue_number,
                'receipt': PaymentSerializer(payment).data if payment else None,
            },
            status=status.HTTP_201_CREATED
        )

    @action(detail=False, methods=['get'], url_path='waiting-room')
    def waiting_room(self, request):
        ctx = self.caller()
        doctor = None
        doctor_param = request.query_params.get('doctor')
        if doctor_param == 'me':
            if ctx.doctor is None:
                return Response(
                    {'error': 'Only doctors have their own waiting room; pass a doctor id instead'},
                    status=status.HTTP_400_BAD_REQUEST
                )
            doctor = ctx.doctor
        elif doctor_param:
            doctor = doctor_param
        return Response(VisitListSerializer(services.waiting_room(doctor), many=True).data)

    @action(detail=True, methods=['post'], url_path='hold-for-lab')
    def hold_for_lab(self, request, pk=None):
        visit = services.hold_for_lab(self.caller(), pk)
        return Response(VisitDetailSerializer(visit).data)

    @action(detail=False, methods=['post'])
    def complete(self, request):
        serializer = VisitCompleteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        visit, prescription, manifest = services.complete_visit(self.caller(), **serializer.validated_data)
        return Response(
            {
                'visit': VisitDetailSerializer(visit).data,
                'prescription': PrescriptionSerializer(prescription).data,
                'uploads': manifest.to_dict(),
            },
            status=status.HTTP_201_CREATED
        )

    @action(detail=True, methods=['post'])
    def document(self, request, pk=None):
        serializer = DocumentUploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        upload = serializer.validated_data['file']

        if is_image_upload(upload):
            text = ai_services.extract_text(upload, user=request.user)
        else:
            text, _file_type = extract_upload_text(upload)

        visit = services.append_document_text(self.caller(), pk, text)
        return Response(VisitDetailSerializer(visit).data)


# ============================================================================
# Consults
# ============================================================================

class ConsultViewSet(ServiceViewMixin, viewsets.GenericViewSet):
    """
    Triage / consult mailbox.

    Endpoints:
    - GET /api/v1/clinical/consults/?status=pending_review|reviewed
    - GET /api/v1/clinical/consults/{id}/
    - POST /api/v1/clinical/consults/ - doctor sends a case for review
    - POST /api/v1/clinical/consults/{id}/run-diagnosis/ - reviewer runs the AI (sync or queued)
    - PUT /api/v1/clinical/consults/{id}/diagnosis/ - reviewer edits the stored analysis
    - POST /api/v1/clinical/consults/{id}/respond/ - reviewer closes the consult
    """
    permission_classes = [ConsultPermission]
    serializer_class = VisitDetailSerializer

    action_roles = {
        'create': {RoleChoices.DOCTOR},
        'run_diagnosis': {RoleChoices.REVIEWER},
        'diagnosis': {RoleChoices.REVIEWER},
        'respond': {RoleChoices.REVIEWER},
    }

    def get_queryset(self):
        status_filter = self.request.query_params.get('status')
        if status_filter == 'pending_review':
            return consults.pending_consults()
        if status_filter == 'reviewed':
            return consults.reviewed_consults()
        return consults.list_consults()

    def list(self, request):
        return Response(VisitListSerializer(self.get_queryset(), many=True).data)

    def retrieve(self, request, pk=None):
        return Response(VisitDetailSerializer(self.get_object()).data)

    def create(self, request):
        serializer = ConsultRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        visit = services.request_consult(self.caller(), **serializer.validated_data)
        return Response(VisitDetailSerializer(visit).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], url_path='run-diagnosis')
    def run_diagnosis(self, request, pk=None):
        visit = self.get_object()
        serializer = RunDiagnosisSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        book_ids = [str(book_id) for book_id in serializer.validated_data['book_ids']]
        use_web = serializer.validated_data['use_web']

        if serializer.validated_data['run_async']:
            task = run_consult_diagnosis.delay(str(visit.id), str(request.user.id), book_ids, use_web)
            return Response({'task_id': task.id, 'visit_id': str(visit.id)}, status=status.HTTP_202_ACCEPTED)

        diagnosis, _result = consults.run_admin_diagnosis(self.caller(), visit.id, book_ids, use_web)
        return Response(DiagnosisSerializer(diagnosis).data)

    @action(detail=True, methods=['put'])
    def diagnosis(self, request, pk=None):
        serializer = DiagnosisUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        diagnosis = consults.update_ai_diagnosis(
            self.caller(),
            pk,
            serializer.validated_data.get('ai_analysis'),
            serializer.validated_data.get('final_diagnosis'),
        )
        return Response(DiagnosisSerializer(diagnosis).data)

    @action(detail=True, methods=['post'])
    def respond(self, request, pk=None):
        serializer = ConsultRespondSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        visit = consults.respond_to_consult(self.caller(), pk, serializer.validated_data['feedback'])
        return Response(VisitDetailSerializer(visit).data)


# ============================================================================
# Prescriptions
# ============================================================================

class PrescriptionViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Prescriptions are written by visit completion only.

    - GET /api/v1/clinical/prescriptions/?patient=<id>
    - GET /api/v1/clinical/prescriptions/{id}/
    """
    permission_classes = [PrescriptionPermission]
    serializer_class = PrescriptionSerializer

    def get_queryset(self):
        queryset = Prescription.objects.select_related('patient', 'doctor')
        patient_id = self.request.query_params.get('patient')
        if patient_id:
            queryset = queryset.filter(patient_id=patient_id)
        return queryset.order_by('-created_at')


class PrescriptionTemplateViewSet(viewsets.ModelViewSet):
    """
    Full CRUD on reusable prescription templates.
    """
    permission_classes = [PrescriptionPermission]
    serializer_class = PrescriptionTemplateSerializer
    http_method_names = ['get', 'post', 'patch', 'delete', 'head', 'options']

    def get_queryset(self):
        queryset = PrescriptionTemplate.objects.all()
        q = self.request.query_params.get('q')
        if q:
            queryset = queryset.filter(Q(name__icontains=q) | Q(diagnosis__icontains=q))
        return queryset.order_by('name')

    def perform_create(self, serializer):
        serializer.save(created_by=self.request.user)


class DashboardView(ServiceViewMixin, APIView):
    """
    GET /api/v1/clinical/dashboard/?window=24H|48H|ALL
    """
    permission_classes = [ReportPermission]

    def get(self, request):
        serializer = DashboardQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        return Response(dashboard_report(serializer.validated_data['window']))
