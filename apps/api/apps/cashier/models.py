"""
Cashier models: payment
"""
import uuid
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models


class PaymentTypeChoices(models.TextChoices):
    VISIT_FEE = 'VISIT_FEE', 'Visit Fee'
    LAB_TEST = 'LAB_TEST', 'Lab Test'
    OTHER = 'OTHER', 'Other'


class Payment(models.Model):
    """
    Cash receipt line. Append-only: rows are inserted once and never
    updated or deleted by the application.

    ``reference_id`` is the visit id (VISIT_FEE), the lab request id
    (LAB_TEST) or a freshly generated id (OTHER). It is not a foreign key:
    the referenced table depends on the payment type.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    patient = models.ForeignKey(
        'clinical.Patient',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='payments'
    )
    cashier = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='payments_taken'
    )
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    payment_type = models.CharField(max_length=20, choices=PaymentTypeChoices.choices)
    reference_id = models.UUIDField()
    description = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'payment'
        verbose_name = 'Payment'
        verbose_name_plural = 'Payments'
        indexes = [
            models.Index(fields=['created_at'], name='idx_payment_created'),
            models.Index(fields=['payment_type', 'reference_id'], name='idx_payment_reference'),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.payment_type} {self.amount} ({self.created_at:%Y-%m-%d %H:%M})"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError('Payments are append-only and cannot be modified')
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError('Payments are append-only and cannot be deleted')
