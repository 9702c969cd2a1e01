"""
Cashier services: recording payments and the cashier's queues.

Payments are not checked against the visit fee or lab price, and paying
the same visit twice records two rows. Both are current clinic practice:
the cashier confirms on screen before submitting.
"""
import uuid
from decimal import Decimal, InvalidOperation
from typing import Optional, Tuple

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Sum

from apps.authz.context import CallerContext
from apps.cashier.models import Payment, PaymentTypeChoices
from apps.clinical.models import PaymentStatusChoices, Visit
from apps.core.clock import local_midnight
from apps.core.observability import get_sanitized_logger, metrics
from apps.core.observability.events import log_payment_recorded
from apps.lab.models import LabRequest, LabRequestStatusChoices

logger = get_sanitized_logger(__name__)


def _to_amount(value) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f'Invalid amount: {value!r}')
    if not amount.is_finite() or amount <= 0:
        raise ValidationError('Amount must be greater than zero')
    return amount.quantize(Decimal('0.01'))


def record_payment(
    ctx: CallerContext,
    payment_type: str,
    reference_id,
    amount,
    patient_id=None,
    description: str = '',
) -> Payment:
    """
    Insert one payment row. No side effects on visits or lab requests.
    """
    payment = Payment.objects.create(
        patient_id=patient_id,
        cashier=ctx.user,
        amount=_to_amount(amount),
        payment_type=payment_type,
        reference_id=reference_id,
        description=description or '',
    )
    metrics.payments_total.labels(payment_type=payment_type).inc()
    log_payment_recorded(payment, cashier_id=str(ctx.user_id))
    return payment


def process_payment(
    ctx: CallerContext,
    payment_type: str,
    reference_id=None,
    amount=None,
    patient_id=None,
    description: Optional[str] = None,
) -> Payment:
    """
    Take a payment and apply its side effect.

    - VISIT_FEE: visit.payment_status -> paid
    - LAB_TEST: lab request pending_payment -> paid
    - OTHER: nothing; ``reference_id`` is generated when not given

    Returns the inserted Payment, which is the receipt.

    Raises:
        ValidationError: unknown type, bad amount, missing reference
        Visit.DoesNotExist / LabRequest.DoesNotExist
    """
    if payment_type not in PaymentTypeChoices.values:
        raise ValidationError(f'Unknown payment type: {payment_type}')

    amount = _to_amount(amount)

    with transaction.atomic():
        if payment_type == PaymentTypeChoices.VISIT_FEE:
            if not reference_id:
                raise ValidationError('reference_id (visit id) is required for VISIT_FEE')
            visit = Visit.objects.select_for_update().get(id=reference_id)
            if visit.payment_status != PaymentStatusChoices.PAID:
                visit.payment_status = PaymentStatusChoices.PAID
                visit.save(update_fields=['payment_status', 'updated_at'])
            patient_id = patient_id or visit.patient_id

        elif payment_type == PaymentTypeChoices.LAB_TEST:
            if not reference_id:
                raise ValidationError('reference_id (lab request id) is required for LAB_TEST')
            lab_request = LabRequest.objects.select_for_update().get(id=reference_id)
            # Late payment must not pull a finished test back onto the worklist
            if lab_request.status == LabRequestStatusChoices.PENDING_PAYMENT:
                lab_request.status = LabRequestStatusChoices.PAID
                lab_request.save(update_fields=['status', 'updated_at'])
            else:
                logger.warning(
                    'Lab payment for request not awaiting payment',
                    extra={
                        'event': 'lab_payment_status_unchanged',
                        'lab_request_id': str(lab_request.id),
                        'lab_status': lab_request.status,
                    }
                )
            patient_id = patient_id or lab_request.patient_id

        else:
            reference_id = reference_id or uuid.uuid4()

        return record_payment(
            ctx,
            payment_type,
            reference_id,
            amount,
            patient_id=patient_id,
            description=description or '',
        )


# ============================================================================
# Projections
# ============================================================================

def unpaid_visits():
    """Visits still owing their fee, newest first."""
    return (
        Visit.objects
        .filter(payment_status=PaymentStatusChoices.UNPAID)
        .select_related('patient', 'doctor')
        .order_by('-created_at')
    )


def unpaid_lab_requests():
    """Lab requests awaiting payment, newest first."""
    return (
        LabRequest.objects
        .filter(status=LabRequestStatusChoices.PENDING_PAYMENT)
        .select_related('patient', 'doctor')
        .order_by('-created_at')
    )


def todays_payments(now=None) -> Tuple[object, Decimal]:
    """
    Payments taken since local midnight (newest first) and their total.
    """
    payments = (
        Payment.objects
        .filter(created_at__gte=local_midnight(now))
        .select_related('patient', 'cashier')
        .order_by('-created_at')
    )
    total = payments.aggregate(total=Sum('amount'))['total'] or Decimal('0.00')
    return payments, total
