"""
AI models: ai_usage_log
"""
import uuid
from django.db import models
from django.conf import settings


class AIActionChoices(models.TextChoices):
    DIAGNOSIS = 'diagnosis', 'Diagnosis'
    OCR = 'ocr', 'Text Extraction'
    LAB_PARSE = 'lab_parse', 'Lab Report Parsing'
    SAFETY_CHECK = 'safety_check', 'Prescription Safety Check'
    PRESCRIPTION_SCAN = 'prescription_scan', 'Prescription Digitizing'
    TIMELINE = 'timeline', 'Timeline Analysis'


class AIUsageLog(models.Model):
    """
    One row per call to the AI provider, successful or not.

    Feeds the dashboard's "AI interactions" count. Holds token counts and
    timing only; prompts and replies are not stored here.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='ai_usage'
    )
    visit = models.ForeignKey(
        'clinical.Visit',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='ai_usage'
    )
    action = models.CharField(max_length=20, choices=AIActionChoices.choices)
    model = models.CharField(max_length=100)
    succeeded = models.BooleanField(default=True)
    error = models.TextField(blank=True)
    prompt_tokens = models.PositiveIntegerField(null=True, blank=True)
    completion_tokens = models.PositiveIntegerField(null=True, blank=True)
    duration_ms = models.PositiveIntegerField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'ai_usage_log'
        verbose_name = 'AI Usage Log'
        verbose_name_plural = 'AI Usage Logs'
        indexes = [
            models.Index(fields=['created_at'], name='idx_ai_usage_created'),
            models.Index(fields=['action'], name='idx_ai_usage_action'),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.action} ({self.model}) at {self.created_at}"
