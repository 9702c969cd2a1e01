"""
Admin backup endpoints.
"""
from rest_framework.parsers import JSONParser
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.authz.permissions import IsAdmin
from apps.core.api import ServiceViewMixin
from apps.core.backup import export_clinic_data, import_clinic_data


class BackupView(ServiceViewMixin, APIView):
    """
    GET /api/v1/backup/ - download the whole clinic as one JSON document
    POST /api/v1/backup/ - load a document from GET (upsert by id)

    Admin only.
    """
    permission_classes = [IsAdmin]
    parser_classes = [JSONParser]

    def get(self, request):
        return Response(export_clinic_data())

    def post(self, request):
        return Response(import_clinic_data(request.data))
