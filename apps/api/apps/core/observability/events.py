"""
Domain events logging helpers.

Provides structured event logging for clinic workflow operations.
"""
from typing import Dict, Optional
from .logging import get_sanitized_logger, sanitize_dict

logger = get_sanitized_logger(__name__)


def log_domain_event(
    event_name: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    entity_ids: Optional[Dict[str, str]] = None,
    result: str = 'success',
    **extra_fields
):
    """
    Log a domain event with structured data.

    Args:
        event_name: Name of the event (e.g., 'visit_transition', 'payment_recorded')
        entity_type: Type of entity (e.g., 'Visit', 'Payment')
        entity_id: ID of primary entity
        entity_ids: Dictionary of related entity IDs
        result: Result of operation (success, failure, warning, ...)
        **extra_fields: Additional fields to log (will be sanitized)

    Example:
        log_domain_event(
            'payment_recorded',
            entity_type='Payment',
            entity_id=str(payment.id),
            entity_ids={'reference_id': payment.reference_id},
            payment_type='VISIT_FEE',
        )
    """
    event_data = {
        'event': event_name,
        'result': result,
    }

    if entity_type:
        event_data['entity_type'] = entity_type

    if entity_id:
        event_data['entity_id'] = entity_id

    if entity_ids:
        event_data.update(entity_ids)

    event_data.update(sanitize_dict(extra_fields))

    if result in ['failure', 'error']:
        logger.error(f'Domain event: {event_name}', extra=event_data)
    elif result in ['warning', 'blocked', 'partial']:
        logger.warning(f'Domain event: {event_name}', extra=event_data)
    else:
        logger.info(f'Domain event: {event_name}', extra=event_data)


def log_visit_transition(visit, from_status, to_status, result='success', **extra):
    """Log visit status transition event."""
    log_domain_event(
        'visit_transition',
        entity_type='Visit',
        entity_id=str(visit.id),
        entity_ids={
            'visit_id': str(visit.id),
            'patient_id': str(visit.patient_id),
        },
        result=result,
        from_status=from_status,
        to_status=to_status,
        **extra
    )


def log_payment_recorded(payment, **extra):
    """Log an inserted payment row."""
    log_domain_event(
        'payment_recorded',
        entity_type='Payment',
        entity_id=str(payment.id),
        entity_ids={
            'payment_id': str(payment.id),
            'reference_id': str(payment.reference_id),
        },
        payment_type=payment.payment_type,
        amount=str(payment.amount),
        **extra
    )


def log_lab_test_completed(lab_request, files_stored, files_failed, rows):
    """Log lab request completion."""
    log_domain_event(
        'lab_test_completed',
        entity_type='LabRequest',
        entity_id=str(lab_request.id),
        entity_ids={
            'lab_request_id': str(lab_request.id),
            'visit_id': str(lab_request.visit_id),
        },
        result='success' if not files_failed else 'partial',
        files_stored=files_stored,
        files_failed=files_failed,
        result_rows=rows,
    )


def log_upload_failed(bucket, file_name, error, **extra):
    """Log a single attachment that could not be stored."""
    log_domain_event(
        'upload_failed',
        entity_type='Attachment',
        result='warning',
        bucket=bucket,
        file_name=file_name,
        error=error,
        **extra
    )
