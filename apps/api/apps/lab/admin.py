from django.contrib import admin
from .models import LabRequest


@admin.register(LabRequest)
class LabRequestAdmin(admin.ModelAdmin):
    list_display = ['test_name', 'patient', 'doctor', 'status', 'price', 'created_at', 'completed_at']
    list_filter = ['status', 'created_at']
    search_fields = ['test_name', 'patient__full_name']
    readonly_fields = ['id', 'created_at', 'completed_at', 'updated_at']
    raw_id_fields = ['visit', 'patient', 'doctor']
