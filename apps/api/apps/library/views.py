"""
Reference library endpoints.
"""
from django.db.models import Q
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.response import Response

from apps.core.api import ServiceViewMixin
from apps.library import services
from apps.library.models import Book
from apps.library.permissions import LibraryPermission
from apps.library.serializers import (
    AttachContentSerializer,
    BookCreateSerializer,
    BookDetailSerializer,
    BookListSerializer,
)


class BookViewSet(ServiceViewMixin,
                  mixins.ListModelMixin,
                  mixins.RetrieveModelMixin,
                  viewsets.GenericViewSet):
    """
    Endpoints:
    - GET /api/v1/library/books/?q=term - search title, author and text
    - GET /api/v1/library/books/{id}/
    - POST /api/v1/library/books/ - JSON or multipart with ``file`` (PDF/TXT)
    - POST /api/v1/library/books/{id}/content/ - attach text to a placeholder
    - DELETE /api/v1/library/books/{id}/
    """
    permission_classes = [LibraryPermission]
    parser_classes = [JSONParser, MultiPartParser, FormParser]

    def get_queryset(self):
        queryset = Book.objects.all()
        q = self.request.query_params.get('q')
        if q:
            queryset = queryset.filter(
                Q(title__icontains=q) | Q(author__icontains=q) | Q(content__icontains=q)
            )
        return queryset

    def get_serializer_class(self):
        if self.action == 'retrieve':
            return BookDetailSerializer
        return BookListSerializer

    def create(self, request):
        serializer = BookCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        upload = data.pop('file', None)
        book = services.add_book(upload=upload, **data)
        return Response(BookListSerializer(book).data, status=status.HTTP_201_CREATED)

    def destroy(self, request, pk=None):
        services.delete_book(pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['post'], url_path='content')
    def content(self, request, pk=None):
        serializer = AttachContentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        book = services.attach_content(
            pk,
            content=serializer.validated_data.get('content', ''),
            upload=serializer.validated_data.get('file'),
        )
        return Response(BookListSerializer(book).data)
