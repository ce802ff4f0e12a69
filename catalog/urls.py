"""
Catalog — URL Configuration

@file catalog/urls.py
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import ItemViewSet

app_name = 'catalog'

router = DefaultRouter()
router.register('', ItemViewSet, basename='item')

urlpatterns = [
    path('', include(router.urls)),
]
