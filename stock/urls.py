"""
Stock — URL Configuration

@file stock/urls.py
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import (
    DisposeExpiredView,
    ReconcileView,
    RestockSuggestionView,
    StockBalanceView,
    StockMovementViewSet,
    StockTransferView,
)

app_name = 'stock'

router = DefaultRouter()
router.register('movements', StockMovementViewSet, basename='movement')

urlpatterns = [
    path('transfers/', StockTransferView.as_view(), name='transfer'),
    path('balances/', StockBalanceView.as_view(), name='balance'),
    path('balances/reconcile/', ReconcileView.as_view(), name='reconcile'),
    path('restock-suggestions/', RestockSuggestionView.as_view(), name='restock-suggestions'),
    path('dispose-expired/', DisposeExpiredView.as_view(), name='dispose-expired'),
    path('', include(router.urls)),
]
