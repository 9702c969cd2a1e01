"""
Cashier serializers.
"""
from rest_framework import serializers

from apps.cashier.models import Payment, PaymentTypeChoices
from apps.clinical.models import Visit
from apps.lab.models import LabRequest


class PaymentSerializer(serializers.ModelSerializer):
    """Payment row; doubles as the printed receipt."""
    patient_name = serializers.CharField(source='patient.full_name', read_only=True, default=None)
    cashier_email = serializers.EmailField(source='cashier.email', read_only=True)

    class Meta:
        model = Payment
        fields = [
            'id',
            'patient',
            'patient_name',
            'cashier',
            'cashier_email',
            'amount',
            'payment_type',
            'reference_id',
            'description',
            'created_at',
        ]
        read_only_fields = fields


class ProcessPaymentSerializer(serializers.Serializer):
    payment_type = serializers.ChoiceField(choices=PaymentTypeChoices.choices)
    reference_id = serializers.UUIDField(required=False, allow_null=True)
    amount = serializers.DecimalField(max_digits=10, decimal_places=2)
    patient_id = serializers.UUIDField(required=False, allow_null=True)
    description = serializers.CharField(required=False, allow_blank=True, max_length=255, default='')

    def validate(self, attrs):
        if attrs['payment_type'] != PaymentTypeChoices.OTHER and not attrs.get('reference_id'):
            raise serializers.ValidationError({
                'reference_id': ['Required for visit fee and lab test payments']
            })
        return attrs


class UnpaidVisitSerializer(serializers.ModelSerializer):
    patient_name = serializers.CharField(source='patient.full_name', read_only=True)
    doctor_name = serializers.CharField(source='doctor.display_name', read_only=True, default=None)

    class Meta:
        model = Visit
        fields = ['id', 'patient', 'patient_name', 'doctor_name', 'fee', 'status', 'queue_number', 'created_at']
        read_only_fields = fields


class UnpaidLabRequestSerializer(serializers.ModelSerializer):
    patient_name = serializers.CharField(source='patient.full_name', read_only=True)
    doctor_name = serializers.CharField(source='doctor.display_name', read_only=True, default=None)

    class Meta:
        model = LabRequest
        fields = ['id', 'visit', 'patient', 'patient_name', 'doctor_name', 'test_name', 'price', 'created_at']
        read_only_fields = fields
