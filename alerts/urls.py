"""
Alerts — URL Configuration

@file alerts/urls.py
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import NotificationViewSet

app_name = 'alerts'

router = DefaultRouter()
router.register('notifications', NotificationViewSet, basename='notification')

urlpatterns = [
    path('', include(router.urls)),
]
