"""
Clinical models: patient, visit, diagnosis, prescription, prescription_template
"""
import uuid
from django.db import models
from django.conf import settings
from django.utils import timezone

from apps.clinical.exceptions import InvalidTransitionError


# ============================================================================
# Enums
# ============================================================================

class GenderChoices(models.TextChoices):
    MALE = 'Male', 'Male'
    FEMALE = 'Female', 'Female'
    OTHER = 'Other', 'Other'


class VisitStatusChoices(models.TextChoices):
    """
    Visit status with allowed transitions:
    - waiting -> pending_lab | completed
    - pending_lab -> lab_ready
    - lab_ready -> pending_lab | completed
    - pending_review -> reviewed
    - completed, reviewed: terminal
    """
    WAITING = 'waiting', 'Waiting'
    PENDING_LAB = 'pending_lab', 'Pending Lab'
    LAB_READY = 'lab_ready', 'Lab Ready'
    PENDING_REVIEW = 'pending_review', 'Pending Review'
    REVIEWED = 'reviewed', 'Reviewed'
    COMPLETED = 'completed', 'Completed'


class PaymentStatusChoices(models.TextChoices):
    UNPAID = 'unpaid', 'Unpaid'
    PAID = 'paid', 'Paid'


# ============================================================================
# Patients
# ============================================================================

class Patient(models.Model):
    """
    Patient registered at intake.

    Indices: full_name, phone
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    full_name = models.CharField(max_length=255)
    age = models.PositiveSmallIntegerField(blank=True, null=True)
    gender = models.CharField(
        max_length=10,
        choices=GenderChoices.choices,
        blank=True
    )
    phone = models.CharField(max_length=50, blank=True)
    medical_history = models.TextField(blank=True)
    allergies = models.TextField(blank=True)
    registered_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='patients_registered'
    )

    class Meta:
        db_table = 'patient'
        verbose_name = 'Patient'
        verbose_name_plural = 'Patients'
        indexes = [
            models.Index(fields=['full_name'], name='idx_patient_name'),
            models.Index(fields=['phone'], name='idx_patient_phone'),
        ]
        ordering = ['-registered_at']

    def __str__(self):
        return self.full_name


# ============================================================================
# Visits
# ============================================================================

class Visit(models.Model):
    """
    One encounter between a patient and a doctor.

    ``queue_number`` is the same-day display number assigned by reception;
    it is unique per (doctor, queue_date). Consult and walk-in visits carry
    no queue number.

    Patient name, doctor name and diagnosis are joined at read time; the
    visit does not copy them.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    patient = models.ForeignKey(
        Patient,
        on_delete=models.PROTECT,
        related_name='visits'
    )
    doctor = models.ForeignKey(
        'authz.Doctor',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='visits'
    )
    visit_date = models.DateTimeField(default=timezone.now)
    vitals = models.JSONField(
        default=dict,
        blank=True,
        help_text='bloodPressure, heartRate, temperature, oxygenLevel, weight, glucose (all optional)'
    )
    symptoms = models.TextField(blank=True)
    status = models.CharField(
        max_length=20,
        choices=VisitStatusChoices.choices,
        default=VisitStatusChoices.WAITING
    )
    payment_status = models.CharField(
        max_length=10,
        choices=PaymentStatusChoices.choices,
        default=PaymentStatusChoices.UNPAID
    )
    fee = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    queue_date = models.DateField(null=True, blank=True)
    queue_number = models.PositiveIntegerField(null=True, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='visits_created'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'visit'
        verbose_name = 'Visit'
        verbose_name_plural = 'Visits'
        indexes = [
            models.Index(fields=['patient', 'status'], name='idx_visit_patient_status'),
            models.Index(fields=['doctor', 'created_at'], name='idx_visit_doctor_created'),
            models.Index(fields=['status'], name='idx_visit_status'),
            models.Index(fields=['payment_status'], name='idx_visit_payment_status'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['doctor', 'queue_date', 'queue_number'],
                name='uniq_visit_doctor_day_queue_number',
            ),
        ]

    ALLOWED_TRANSITIONS = {
        VisitStatusChoices.WAITING: [VisitStatusChoices.PENDING_LAB, VisitStatusChoices.COMPLETED],
        VisitStatusChoices.PENDING_LAB: [VisitStatusChoices.LAB_READY],
        VisitStatusChoices.LAB_READY: [VisitStatusChoices.PENDING_LAB, VisitStatusChoices.COMPLETED],
        VisitStatusChoices.PENDING_REVIEW: [VisitStatusChoices.REVIEWED],
        VisitStatusChoices.REVIEWED: [],  # Terminal state
        VisitStatusChoices.COMPLETED: [],  # Terminal state
    }

    # Not yet finished by a doctor; reception may not open a second one
    OPEN_STATUSES = [
        VisitStatusChoices.WAITING,
        VisitStatusChoices.PENDING_LAB,
        VisitStatusChoices.LAB_READY,
    ]

    # Shown in the doctor's waiting room and eligible for completion
    WAITING_ROOM_STATUSES = [VisitStatusChoices.WAITING, VisitStatusChoices.LAB_READY]

    CONSULT_STATUSES = [VisitStatusChoices.PENDING_REVIEW, VisitStatusChoices.REVIEWED]

    def __str__(self):
        return f"Visit {self.visit_date.date()} - {self.patient} ({self.status})"

    def transition_status(self, new_status):
        """
        Move to ``new_status`` if ALLOWED_TRANSITIONS permits it.

        Does not save. Returns the previous status.

        Raises:
            InvalidTransitionError: terminal status or transition not listed
        """
        allowed = self.ALLOWED_TRANSITIONS.get(self.status, [])
        if new_status not in allowed:
            raise InvalidTransitionError(self.status, new_status, allowed)

        old_status = self.status
        self.status = new_status
        return old_status


# ============================================================================
# Diagnoses
# ============================================================================

class Diagnosis(models.Model):
    """
    AI-generated or doctor-edited analysis of a visit. One row per visit.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    visit = models.OneToOneField(
        Visit,
        on_delete=models.CASCADE,
        related_name='diagnosis'
    )
    final_diagnosis = models.TextField(blank=True)
    ai_analysis = models.JSONField(
        null=True,
        blank=True,
        help_text='Serialized DiagnosisResult'
    )
    confidence_score = models.PositiveSmallIntegerField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'diagnosis'
        verbose_name = 'Diagnosis'
        verbose_name_plural = 'Diagnoses'

    def __str__(self):
        return f"Diagnosis for visit {self.visit_id}: {self.final_diagnosis[:50]}"


# ============================================================================
# Prescriptions
# ============================================================================

class Prescription(models.Model):
    """
    Finalized prescription written when a visit is completed.

    ``medications``: list of {name, dosage, instructions}
    ``image_keys``: MinIO object keys of images stored with the prescription
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    patient = models.ForeignKey(
        Patient,
        on_delete=models.PROTECT,
        related_name='prescriptions'
    )
    visit = models.ForeignKey(
        Visit,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='prescriptions'
    )
    doctor = models.ForeignKey(
        'authz.Doctor',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='prescriptions'
    )
    diagnosis = models.TextField(blank=True)
    medications = models.JSONField(default=list)
    notes = models.TextField(blank=True)
    lab_findings = models.TextField(blank=True)
    image_keys = models.JSONField(default=list, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'prescription'
        verbose_name = 'Prescription'
        verbose_name_plural = 'Prescriptions'
        indexes = [
            models.Index(fields=['patient', 'created_at'], name='idx_prescription_patient'),
            models.Index(fields=['created_at'], name='idx_prescription_created'),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return f"Prescription {self.created_at.date()} - {self.patient}"


class PrescriptionTemplate(models.Model):
    """Reusable medication list a doctor can load into a new prescription."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    diagnosis = models.TextField(blank=True)
    medications = models.JSONField(default=list)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='prescription_templates'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'prescription_template'
        verbose_name = 'Prescription Template'
        verbose_name_plural = 'Prescription Templates'
        ordering = ['name']

    def __str__(self):
        return self.name
