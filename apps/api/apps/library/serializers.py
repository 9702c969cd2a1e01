from rest_framework import serializers
from apps.library.models import Book, BookAccessTypeChoices, BookFileTypeChoices


class BookListSerializer(serializers.ModelSerializer):
    """Shelf view; omits the (large) text body."""
    is_downloaded = serializers.BooleanField(read_only=True)
    content_length = serializers.SerializerMethodField()

    class Meta:
        model = Book
        fields = [
            'id', 'title', 'author', 'summary', 'category', 'file_type',
            'source_url', 'access_type', 'is_placeholder', 'is_downloaded',
            'content_length', 'date_added',
        ]
        read_only_fields = fields

    def get_content_length(self, obj):
        return len(obj.content)


class BookDetailSerializer(BookListSerializer):
    class Meta(BookListSerializer.Meta):
        fields = BookListSerializer.Meta.fields + ['content']
        read_only_fields = fields


class BookCreateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=500)
    author = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')
    summary = serializers.CharField(required=False, allow_blank=True, default='')
    category = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    content = serializers.CharField(required=False, allow_blank=True, default='', trim_whitespace=False)
    file_type = serializers.ChoiceField(choices=BookFileTypeChoices.choices, required=False)
    source_url = serializers.URLField(required=False, allow_blank=True, default='')
    access_type = serializers.ChoiceField(
        choices=BookAccessTypeChoices.choices, required=False, default=BookAccessTypeChoices.FREE
    )
    file = serializers.FileField(required=False)


class AttachContentSerializer(serializers.Serializer):
    content = serializers.CharField(required=False, allow_blank=True, default='', trim_whitespace=False)
    file = serializers.FileField(required=False)

    def validate(self, attrs):
        if not attrs.get('content', '').strip() and not attrs.get('file'):
            raise serializers.ValidationError('Provide either content or a file')
        return attrs
