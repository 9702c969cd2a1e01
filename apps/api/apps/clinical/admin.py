from django.contrib import admin
from .models import Diagnosis, Patient, Prescription, PrescriptionTemplate, Visit


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ['full_name', 'age', 'gender', 'phone', 'registered_at']
    list_filter = ['gender']
    search_fields = ['full_name', 'phone']
    readonly_fields = ['id', 'registered_at', 'updated_at']

    fieldsets = (
        ('Basic Info', {
            'fields': ('id', 'full_name', 'age', 'gender', 'phone')
        }),
        ('Clinical', {
            'fields': ('medical_history', 'allergies')
        }),
        ('Audit', {
            'fields': ('created_by', 'registered_at', 'updated_at')
        }),
    )


class DiagnosisInline(admin.StackedInline):
    model = Diagnosis
    extra = 0
    readonly_fields = ['id', 'created_at', 'updated_at']


@admin.register(Visit)
class VisitAdmin(admin.ModelAdmin):
    list_display = ['visit_date', 'patient', 'doctor', 'status', 'payment_status', 'queue_number']
    list_filter = ['status', 'payment_status', 'queue_date']
    search_fields = ['patient__full_name', 'doctor__display_name']
    readonly_fields = ['id', 'queue_date', 'queue_number', 'created_at', 'updated_at']
    raw_id_fields = ['patient', 'doctor', 'created_by']
    inlines = [DiagnosisInline]


@admin.register(Prescription)
class PrescriptionAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'patient', 'doctor', 'diagnosis']
    search_fields = ['patient__full_name', 'diagnosis']
    readonly_fields = ['id', 'created_at']
    raw_id_fields = ['patient', 'visit', 'doctor']


@admin.register(PrescriptionTemplate)
class PrescriptionTemplateAdmin(admin.ModelAdmin):
    list_display = ['name', 'diagnosis', 'created_by', 'updated_at']
    search_fields = ['name', 'diagnosis']
    readonly_fields = ['id', 'created_at', 'updated_at']
