"""
Lab models: lab_request
"""
import uuid
from django.db import models


class LabRequestStatusChoices(models.TextChoices):
    """
    pending_payment -> paid (cashier) -> processing (optional) -> completed (lab)
    """
    PENDING_PAYMENT = 'pending_payment', 'Pending Payment'
    PAID = 'paid', 'Paid'
    PROCESSING = 'processing', 'Processing'
    COMPLETED = 'completed', 'Completed'


class ResultFlagChoices(models.TextChoices):
    NORMAL = 'N', 'Normal'
    HIGH = 'H', 'High'
    LOW = 'L', 'Low'
    ABNORMAL = 'A', 'Abnormal'


class LabRequest(models.Model):
    """
    Diagnostic test ordered by a doctor against a visit.

    ``structured_results``: ordered list of
        {test_name, result, unit, normal_range, flag}
    with flag in N|H|L|A, entered by the technician (possibly pre-filled
    from an AI-read report photo).
    ``result_files``: MinIO object keys in the lab results bucket.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    visit = models.ForeignKey(
        'clinical.Visit',
        on_delete=models.PROTECT,
        related_name='lab_requests'
    )
    patient = models.ForeignKey(
        'clinical.Patient',
        on_delete=models.PROTECT,
        related_name='lab_requests'
    )
    doctor = models.ForeignKey(
        'authz.Doctor',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='lab_requests'
    )
    test_name = models.CharField(max_length=255)
    price = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    status = models.CharField(
        max_length=20,
        choices=LabRequestStatusChoices.choices,
        default=LabRequestStatusChoices.PENDING_PAYMENT
    )
    technician_notes = models.TextField(blank=True)
    structured_results = models.JSONField(default=list, blank=True)
    result_files = models.JSONField(default=list, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'lab_request'
        verbose_name = 'Lab Request'
        verbose_name_plural = 'Lab Requests'
        indexes = [
            models.Index(fields=['status', 'created_at'], name='idx_lab_request_status'),
            models.Index(fields=['visit'], name='idx_lab_request_visit'),
            models.Index(fields=['completed_at'], name='idx_lab_request_completed'),
        ]

    # Statuses on the technician's worklist
    WORKLIST_STATUSES = [LabRequestStatusChoices.PAID, LabRequestStatusChoices.PROCESSING]

    def __str__(self):
        return f"{self.test_name} ({self.status})"

    @property
    def has_abnormal_results(self):
        return any(row.get('flag', 'N') != ResultFlagChoices.NORMAL for row in self.structured_results)
