"""
StockLedger — Root URL Configuration

All API endpoints are namespaced under /api/v1/.
The DRF browsable API is available for route inspection in development.

@file config/urls.py
"""

from django.contrib import admin
from django.urls import include, path
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.reverse import reverse
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

admin.site.site_header = 'StockLedger Administration'
admin.site.site_title = 'StockLedger'
admin.site.index_title = 'Inventory Ledger & Stock Alerts'


@api_view(['GET'])
@permission_classes([AllowAny])
def api_root(request, format=None):
    """StockLedger API v1 — endpoint directory."""
    return Response({
        'auth': {
            'token': reverse('api-v1:token-obtain', request=request, format=format),
            'refresh': reverse('api-v1:token-refresh', request=request, format=format),
        },
        'locations': reverse('api-v1:locations:location-list', request=request, format=format),
        'items': {
            'list': reverse('api-v1:catalog:item-list', request=request, format=format),
            'export': reverse('api-v1:catalog:item-export', request=request, format=format),
            'import': reverse('api-v1:catalog:item-import-catalog', request=request, format=format),
            'import_template': reverse('api-v1:catalog:item-import-template', request=request, format=format),
        },
        'stock': {
            'movements': reverse('api-v1:stock:movement-list', request=request, format=format),
            'transfers': reverse('api-v1:stock:transfer', request=request, format=format),
            'balances': reverse('api-v1:stock:balance', request=request, format=format),
            'reconcile': reverse('api-v1:stock:reconcile', request=request, format=format),
            'restock_suggestions': reverse('api-v1:stock:restock-suggestions', request=request, format=format),
        },
        'alerts': {
            'notifications': reverse('api-v1:alerts:notification-list', request=request, format=format),
        },
    })


api_v1_patterns = [
    path('', api_root, name='api-root'),
    path('auth/token/', TokenObtainPairView.as_view(), name='token-obtain'),
    path('auth/token/refresh/', TokenRefreshView.as_view(), name='token-refresh'),
    path('locations/', include('locations.urls', namespace='locations')),
    path('items/', include('catalog.urls', namespace='catalog')),
    path('stock/', include('stock.urls', namespace='stock')),
    path('alerts/', include('alerts.urls', namespace='alerts')),
]

urlpatterns = [
    path('admin/', admin.site.urls),

    # DRF session auth (powers the "Log in" button on the browsable API)
    path('api/auth/', include('rest_framework.urls', namespace='rest_framework')),

    # Versioned API
    path('api/v1/', include((api_v1_patterns, 'api-v1'))),
]
