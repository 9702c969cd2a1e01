"""
Shared view plumbing: service errors to HTTP responses, caller context.
"""

from django.core.exceptions import ObjectDoesNotExist, ValidationError as DjangoValidationError
from rest_framework import status
from rest_framework.response import Response

from apps.ai.exceptions import AIServiceError
from apps.authz.context import CallerContext
from apps.core.observability import get_sanitized_logger, metrics
from apps.core.observability.correlation import bind_user

logger = get_sanitized_logger(__name__)


def error_response(exc, status_code=status.HTTP_400_BAD_REQUEST):
    if isinstance(exc, DjangoValidationError):
        message = ' '.join(exc.messages)
    else:
        message = str(exc)
    return Response({'error': message}, status=status_code)


class ServiceViewMixin:
    """
    Mixin for DRF views that call workflow services.

    - Django ValidationError (incl. OpenVisitExistsError, InvalidTransitionError) -> 400
    - Missing row (Model.DoesNotExist) -> 404
    - AIServiceError -> 502
    Anything else propagates to DRF / the 500 handler.
    """

    def initial(self, request, *args, **kwargs):
        super().initial(request, *args, **kwargs)
        bind_user(request.user)

    def caller(self):
        return CallerContext.from_request(self.request)

    def handle_exception(self, exc):
        if isinstance(exc, DjangoValidationError):
            return error_response(exc)

        if isinstance(exc, ObjectDoesNotExist):
            return error_response(exc, status.HTTP_404_NOT_FOUND)

        if isinstance(exc, AIServiceError):
            metrics.exceptions_total.labels(
                exception_type='AIServiceError',
                location=self.__class__.__name__
            ).inc()
            logger.warning(
                'AI service call failed',
                extra={'event': 'ai_service_error', 'action': exc.action, 'view': self.__class__.__name__}
            )
            return Response(
                {'error': str(exc), 'action': exc.action},
                status=status.HTTP_502_BAD_GATEWAY
            )

        return super().handle_exception(exc)
