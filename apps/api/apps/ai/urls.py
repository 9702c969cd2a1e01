from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import (
    AIUsageLogViewSet,
    AnalyzePatientView,
    DigitizePrescriptionView,
    ExtractTextView,
    SafetyCheckView,
    TimelineView,
)

router = DefaultRouter()
router.register(r'usage', AIUsageLogViewSet, basename='ai-usage')

urlpatterns = [
    path('analyze/', AnalyzePatientView.as_view(), name='ai-analyze'),
    path('ocr/', ExtractTextView.as_view(), name='ai-ocr'),
    path('safety-check/', SafetyCheckView.as_view(), name='ai-safety-check'),
    path('digitize-prescription/', DigitizePrescriptionView.as_view(), name='ai-digitize-prescription'),
    path('timeline/', TimelineView.as_view(), name='ai-timeline'),
    path('', include(router.urls)),
]
