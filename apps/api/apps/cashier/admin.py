from django.contrib import admin
from .models import Payment


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    """Payments are append-only: viewable, never edited or deleted."""
    list_display = ['created_at', 'payment_type', 'amount', 'patient', 'cashier', 'reference_id']
    list_filter = ['payment_type', 'created_at']
    search_fields = ['reference_id', 'patient__full_name', 'description']
    readonly_fields = [
        'id', 'patient', 'cashier', 'amount', 'payment_type',
        'reference_id', 'description', 'created_at',
    ]

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
