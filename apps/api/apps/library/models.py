"""
Library models: book
"""
import uuid
from django.db import models


class BookFileTypeChoices(models.TextChoices):
    PDF = 'PDF', 'PDF'
    TXT = 'TXT', 'Text'
    WEB = 'WEB', 'Web'
    MANUAL = 'MANUAL', 'Manual entry'


class BookAccessTypeChoices(models.TextChoices):
    FREE = 'FREE', 'Free'
    PAID = 'PAID', 'Paid'


class Book(models.Model):
    """
    Reference book whose text is handed to the AI as diagnosis context.

    A placeholder is a recommended title with no text yet; it becomes usable
    once content is attached.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    title = models.CharField(max_length=500)
    author = models.CharField(max_length=255, blank=True)
    summary = models.TextField(blank=True)
    category = models.CharField(max_length=100, blank=True)
    content = models.TextField(blank=True)
    file_type = models.CharField(
        max_length=10,
        choices=BookFileTypeChoices.choices,
        default=BookFileTypeChoices.MANUAL
    )
    source_url = models.URLField(max_length=1000, blank=True)
    access_type = models.CharField(
        max_length=10,
        choices=BookAccessTypeChoices.choices,
        default=BookAccessTypeChoices.FREE
    )
    is_placeholder = models.BooleanField(default=False)
    date_added = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'book'
        verbose_name = 'Book'
        verbose_name_plural = 'Books'
        indexes = [
            models.Index(fields=['title'], name='idx_book_title'),
            models.Index(fields=['category'], name='idx_book_category'),
        ]
        ordering = ['-date_added']

    def __str__(self):
        return self.title

    @property
    def is_downloaded(self):
        return bool(self.content)
