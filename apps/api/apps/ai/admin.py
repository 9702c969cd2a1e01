from django.contrib import admin
from .models import AIUsageLog


@admin.register(AIUsageLog)
class AIUsageLogAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'action', 'model', 'succeeded', 'user', 'duration_ms']
    list_filter = ['action', 'succeeded', 'model']
    readonly_fields = [
        'id', 'user', 'visit', 'action', 'model', 'succeeded', 'error',
        'prompt_tokens', 'completion_tokens', 'duration_ms', 'created_at',
    ]
