"""
Authz URLs - doctors and the caller's own profile.
"""
from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import DoctorViewSet, MeView

router = DefaultRouter()
router.register(r'doctors', DoctorViewSet, basename='doctor')

urlpatterns = [
    path('me/', MeView.as_view(), name='me'),
    path('', include(router.urls)),
]
