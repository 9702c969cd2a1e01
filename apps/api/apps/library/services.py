"""
Reference library services.

Books hold plain text only. Uploaded PDFs are converted with pypdf at the
moment they are attached; the original file is not kept.
"""
from typing import Iterable, List, Tuple

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from apps.core.observability import get_sanitized_logger
from apps.library.models import Book, BookFileTypeChoices

logger = get_sanitized_logger(__name__)

# Upper bound on stored text per book
MAX_BOOK_CONTENT_CHARS = 5_000_000


def extract_pdf_text(file) -> str:
    """
    Extract the text layer of a PDF, page by page.

    Raises:
        ValidationError: the file is not a readable PDF
    """
    try:
        reader = PdfReader(file)
        pages = [page.extract_text() or '' for page in reader.pages]
    except PdfReadError as e:
        raise ValidationError(f'Could not read PDF: {e}') from e
    return '\n'.join(pages).strip()


def extract_upload_text(upload) -> Tuple[str, str]:
    """
    Text of an uploaded PDF or plain-text file.

    Returns ``(text, file_type)``.
    """
    name = (getattr(upload, 'name', '') or '').lower()
    content_type = getattr(upload, 'content_type', '') or ''

    if name.endswith('.pdf') or content_type == 'application/pdf':
        return extract_pdf_text(upload), BookFileTypeChoices.PDF

    if name.endswith('.txt') or content_type.startswith('text/'):
        raw = upload.read()
        return raw.decode('utf-8', errors='replace').strip(), BookFileTypeChoices.TXT

    raise ValidationError('Only PDF and plain-text files are supported')


def _check_content(content):
    if len(content) > MAX_BOOK_CONTENT_CHARS:
        raise ValidationError(
            f'Book text is too large ({len(content)} characters, limit {MAX_BOOK_CONTENT_CHARS})'
        )


def add_book(title, author='', summary='', category='', content='', file_type=None,
             source_url='', access_type='FREE', upload=None) -> Book:
    """
    Add a book. With no content and no upload it is stored as a placeholder.
    """
    if not (title or '').strip():
        raise ValidationError('Title is required')

    if upload is not None:
        content, file_type = extract_upload_text(upload)

    content = (content or '').strip()
    _check_content(content)

    book = Book.objects.create(
        title=title.strip(),
        author=author,
        summary=summary,
        category=category,
        content=content,
        file_type=file_type or (BookFileTypeChoices.MANUAL if content else BookFileTypeChoices.WEB),
        source_url=source_url,
        access_type=access_type,
        is_placeholder=not content,
    )
    logger.info(
        'Book added',
        extra={'event': 'book_added', 'book_id': str(book.id), 'placeholder': book.is_placeholder}
    )
    return book


@transaction.atomic
def attach_content(book_id, content='', upload=None) -> Book:
    """Store text for a placeholder (or replace the text of an existing book)."""
    book = Book.objects.select_for_update().get(id=book_id)

    file_type = book.file_type
    if upload is not None:
        content, file_type = extract_upload_text(upload)

    content = (content or '').strip()
    if not content:
        raise ValidationError('No text to attach')
    _check_content(content)

    book.content = content
    book.file_type = file_type
    book.is_placeholder = False
    book.save(update_fields=['content', 'file_type', 'is_placeholder', 'updated_at'])
    logger.info(
        'Book content attached',
        extra={'event': 'book_content_attached', 'book_id': str(book.id), 'chars': len(content)}
    )
    return book


def delete_book(book_id) -> None:
    Book.objects.get(id=book_id).delete()


def reference_texts(book_ids: Iterable, limit=None) -> List[Tuple[str, str]]:
    """
    (title, text) pairs for the selected books, each truncated to ``limit``
    characters. Books without content are skipped.
    """
    ids = [b for b in (book_ids or []) if b]
    if not ids:
        return []

    limit = limit or settings.AI_REFERENCE_TEXT_LIMIT
    books = Book.objects.filter(id__in=ids).exclude(content='').order_by('title')
    return [(book.title, book.content[:limit]) for book in books]
