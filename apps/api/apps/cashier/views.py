"""
Cashier endpoints: take payments and show what is owed.
"""
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.cashier import services
from apps.cashier.permissions import CashierPermission
from apps.cashier.serializers import (
    PaymentSerializer,
    ProcessPaymentSerializer,
    UnpaidLabRequestSerializer,
    UnpaidVisitSerializer,
)
from apps.core.api import ServiceViewMixin


class PaymentViewSet(ServiceViewMixin, viewsets.GenericViewSet):
    """
    Endpoints:
    - GET /api/v1/cashier/payments/ - today's payments (since local midnight) + total
    - POST /api/v1/cashier/payments/ - take a payment, returns the receipt
    - GET /api/v1/cashier/payments/unpaid-visits/
    - GET /api/v1/cashier/payments/unpaid-lab-requests/
    """
    permission_classes = [CashierPermission]
    serializer_class = PaymentSerializer

    def list(self, request):
        payments, total = services.todays_payments()
        return Response({
            'total': str(total),
            'count': len(payments),
            'results': PaymentSerializer(payments, many=True).data,
        })

    def create(self, request):
        serializer = ProcessPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payment = services.process_payment(self.caller(), **serializer.validated_data)
        return Response(PaymentSerializer(payment).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['get'], url_path='unpaid-visits')
    def unpaid_visits(self, request):
        return Response(UnpaidVisitSerializer(services.unpaid_visits(), many=True).data)

    @action(detail=False, methods=['get'], url_path='unpaid-lab-requests')
    def unpaid_lab_requests(self, request):
        return Response(UnpaidLabRequestSerializer(services.unpaid_lab_requests(), many=True).data)
