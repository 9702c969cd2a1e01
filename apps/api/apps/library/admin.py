from django.contrib import admin
from .models import Book


@admin.register(Book)
class BookAdmin(admin.ModelAdmin):
    list_display = ['title', 'author', 'category', 'file_type', 'access_type', 'is_placeholder', 'date_added']
    list_filter = ['file_type', 'access_type', 'is_placeholder']
    search_fields = ['title', 'author']
    readonly_fields = ['id', 'date_added', 'updated_at']
