"""
Authz views for doctors and the caller's profile.
"""
from rest_framework import viewsets, status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.authz.models import Doctor
from apps.authz.serializers import (
    DoctorSerializer,
    DoctorProfileUpdateSerializer,
    MeSerializer,
)
from apps.authz.permissions import DoctorPermission


class DoctorViewSet(viewsets.ModelViewSet):
    """
    ViewSet for Doctor endpoints.

    Endpoints:
    - GET /api/v1/doctors/ - List doctors (active only unless ?include_inactive=true)
    - GET /api/v1/doctors/{id}/
    - POST /api/v1/doctors/ - Admin only
    - PATCH /api/v1/doctors/{id}/ - Admin only

    Query parameters:
    - ?q=search_term - Search by display_name
    """
    permission_classes = [DoctorPermission]
    serializer_class = DoctorSerializer
    http_method_names = ['get', 'post', 'patch', 'head', 'options']

    def get_queryset(self):
        queryset = Doctor.objects.select_related('user').all()

        include_inactive = self.request.query_params.get('include_inactive', 'false').lower() == 'true'
        if not include_inactive:
            queryset = queryset.filter(is_active=True)

        q = self.request.query_params.get('q')
        if q:
            queryset = queryset.filter(display_name__icontains=q)

        return queryset.order_by('display_name')


class MeView(APIView):
    """
    GET /api/v1/me/ - the caller's user, roles and doctor profile.
    PATCH /api/v1/me/ - a doctor edits their own profile.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response(MeSerializer(request.user).data)

    def patch(self, request):
        doctor = Doctor.objects.filter(user=request.user).first()
        if doctor is None:
            return Response(
                {'error': 'Only doctors have an editable profile'},
                status=status.HTTP_400_BAD_REQUEST
            )

        serializer = DoctorProfileUpdateSerializer(doctor, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(MeSerializer(request.user).data)
