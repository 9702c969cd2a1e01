"""
MinIO storage utilities for visit images and lab result files.

Uploads are best-effort per file: one failing file never aborts the batch.
Every file's outcome is reported back in an ``UploadManifest``.
"""
import uuid
from dataclasses import dataclass, field
from typing import List, Optional

from django.conf import settings
from minio import Minio
from minio.error import S3Error
from urllib3.exceptions import HTTPError

from apps.core.observability import metrics
from apps.core.observability.events import log_upload_failed


def get_minio_client():
    """Get configured MinIO client instance."""
    return Minio(
        settings.MINIO_ENDPOINT,
        access_key=settings.MINIO_ACCESS_KEY,
        secret_key=settings.MINIO_SECRET_KEY,
        secure=settings.MINIO_USE_SSL
    )


def generate_object_key(prefix: str, filename: str) -> str:
    """
    Generate unique object key for MinIO storage.

    Args:
        prefix: Folder prefix (e.g., 'visits/<id>', 'lab/<id>')
        filename: Original filename

    Returns:
        Unique object key string
    """
    unique_id = uuid.uuid4().hex[:12]
    safe_filename = "".join(c for c in filename if c.isalnum() or c in "._-")
    return f"{prefix}/{unique_id}_{safe_filename}"


@dataclass
class UploadResult:
    filename: str
    object_key: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class UploadManifest:
    """Per-file outcome of a batch upload."""
    bucket: str
    results: List[UploadResult] = field(default_factory=list)

    @property
    def stored(self) -> List[str]:
        return [r.object_key for r in self.results if r.ok]

    @property
    def failed(self) -> List[UploadResult]:
        return [r for r in self.results if not r.ok]

    @property
    def complete(self) -> bool:
        return not self.failed

    def to_dict(self):
        return {
            'bucket': self.bucket,
            'stored': self.stored,
            'failed': [{'filename': r.filename, 'error': r.error} for r in self.failed],
            'complete': self.complete,
        }


def upload_files(bucket: str, prefix: str, files, **log_context) -> UploadManifest:
    """
    Upload each file to ``bucket`` under ``prefix``, sequentially.

    ``files`` are Django uploaded files (anything with ``name``, ``size``,
    ``content_type`` and a file-like ``read``). A file that fails is logged,
    counted and recorded in the manifest; the remaining files still upload.
    """
    manifest = UploadManifest(bucket=bucket)
    if not files:
        return manifest

    client = get_minio_client()
    for upload in files:
        filename = getattr(upload, 'name', None) or 'attachment'
        object_key = generate_object_key(prefix, filename)
        try:
            client.put_object(
                bucket_name=bucket,
                object_name=object_key,
                data=upload,
                length=upload.size,
                content_type=getattr(upload, 'content_type', None) or 'application/octet-stream',
            )
        except (S3Error, HTTPError, OSError, ValueError) as e:
            metrics.uploads_total.labels(bucket=bucket, result='failed').inc()
            log_upload_failed(bucket, filename, str(e), **log_context)
            manifest.results.append(UploadResult(filename=filename, error=str(e)))
            continue

        metrics.uploads_total.labels(bucket=bucket, result='stored').inc()
        manifest.results.append(UploadResult(filename=filename, object_key=object_key))

    return manifest
