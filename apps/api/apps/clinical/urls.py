"""
Clinical URLs - patients, visits, consults, prescriptions, dashboard.
"""
from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import (
    ConsultViewSet,
    DashboardView,
    PatientViewSet,
    PrescriptionTemplateViewSet,
    PrescriptionViewSet,
    VisitViewSet,
)

router = DefaultRouter()
router.register(r'patients', PatientViewSet, basename='patient')
router.register(r'visits', VisitViewSet, basename='visit')
router.register(r'consults', ConsultViewSet, basename='consult')
router.register(r'prescriptions', PrescriptionViewSet, basename='prescription')
router.register(r'prescription-templates', PrescriptionTemplateViewSet, basename='prescription-template')

urlpatterns = [
    path('dashboard/', DashboardView.as_view(), name='clinical-dashboard'),
    path('', include(router.urls)),
]
