"""
Catalog — Views

DRF ViewSet for the item catalog, its thresholds, and CSV/XLSX exchange.

@file catalog/views.py
"""

import csv

from django.http import HttpResponse
from django.utils import timezone
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.exceptions import BusinessRuleViolation
from core.permissions import CanManageInventory, IsInventoryManager

from .exchange import CatalogExchangeService
from .models import Item
from .serializers import (
    CatalogImportSerializer,
    ItemReadSerializer,
    ItemUpdateSerializer,
    ItemWriteSerializer,
    StockThresholdReadSerializer,
    StockThresholdWriteSerializer,
)
from .services import ItemService


class ItemViewSet(viewsets.ModelViewSet):
    """
    CRUD for the item catalog.

    List/retrieve open to any authenticated user. Writes restricted to
    inventory managers. DELETE deactivates and is refused while stock remains.
    """

    permission_classes = [IsAuthenticated, CanManageInventory]
    filterset_fields = ['category', 'is_active', 'allow_backorder']
    search_fields = ['code', 'name', 'supplier_name', 'batch_number']
    ordering_fields = ['code', 'name', 'expiry_date', 'created_at']
    ordering = ['code']

    def get_queryset(self):
        return Item.objects.all()

    def get_serializer_class(self):
        if self.action in ('list', 'retrieve'):
            return ItemReadSerializer
        if self.action in ('update', 'partial_update'):
            return ItemUpdateSerializer
        return ItemWriteSerializer

    def create(self, request, *args, **kwargs):
        ser = ItemWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        item = ItemService.create_item(actor=request.user, **ser.validated_data)
        return Response(ItemReadSerializer(item).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        ser = ItemUpdateSerializer(self.get_object(), data=request.data, partial=partial)
        ser.is_valid(raise_exception=True)
        item = ItemService.update_item(item_id=kwargs['pk'], actor=request.user, **ser.validated_data)
        return Response(ItemReadSerializer(item).data)

    def perform_destroy(self, instance):
        ItemService.deactivate_item(item_id=instance.pk, actor=self.request.user)

    @action(detail=True, methods=['post'], url_path='deactivate')
    def deactivate(self, request, pk=None):
        item = ItemService.deactivate_item(item_id=pk, actor=request.user)
        return Response({'success': True, 'data': ItemReadSerializer(item).data})

    @action(detail=True, methods=['post'], url_path='reactivate')
    def reactivate(self, request, pk=None):
        item = ItemService.reactivate_item(item_id=pk, actor=request.user)
        return Response({'success': True, 'data': ItemReadSerializer(item).data})

    # --- Thresholds ---

    @action(detail=True, methods=['get', 'put'], url_path='thresholds')
    def thresholds(self, request, pk=None):
        item = self.get_object()

        if request.method == 'GET':
            ser = StockThresholdReadSerializer(
                item.thresholds.select_related('location').order_by('location__code'),
                many=True,
            )
            return Response({'success': True, 'data': ser.data})

        ser = StockThresholdWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        threshold = ItemService.set_threshold(
            item_id=item.pk,
            location_id=ser.validated_data['location'],
            min_level=ser.validated_data['min_level'],
            max_level=ser.validated_data.get('max_level'),
            actor=request.user,
        )
        return Response({'success': True, 'data': StockThresholdReadSerializer(threshold).data})

    # --- Expiry ---

    @action(detail=False, methods=['get'], url_path='expiring')
    def expiring(self, request):
        days = request.query_params.get('days')
        if days and not days.isdigit():
            raise BusinessRuleViolation('days must be a non-negative integer.')
        items = ItemService.get_expiring(days=int(days) if days else None)
        page = self.paginate_queryset(items)
        if page is not None:
            ser = ItemReadSerializer(page, many=True)
            return self.get_paginated_response(ser.data)
        ser = ItemReadSerializer(items, many=True)
        return Response({'success': True, 'data': ser.data})

    # --- Import / export ---

    @action(detail=False, methods=['get'], url_path='export')
    def export(self, request):
        response = HttpResponse(
            CatalogExchangeService.export_catalog_csv(),
            content_type='text/csv; charset=utf-8',
        )
        filename = f'inventory-{timezone.localdate().isoformat()}.csv'
        response['Content-Disposition'] = f'attachment; filename="{filename}"'
        return response

    @action(detail=False, methods=['get'], url_path='import-template')
    def import_template(self, request):
        response = HttpResponse(content_type='text/csv; charset=utf-8')
        response['Content-Disposition'] = 'attachment; filename="inventory-template.csv"'
        csv.writer(response, lineterminator='\n').writerows(CatalogExchangeService.template_rows())
        return response

    @action(
        detail=False, methods=['post'], url_path='import',
        permission_classes=[IsAuthenticated, IsInventoryManager],
        parser_classes=[MultiPartParser, FormParser],
    )
    def import_catalog(self, request):
        ser = CatalogImportSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        upload = ser.validated_data['file']
        rows = CatalogExchangeService.read_upload(upload.name, upload.read())
        result = CatalogExchangeService.import_catalog(rows, actor=request.user)
        return Response({'success': True, 'data': result.as_dict()})
