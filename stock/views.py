"""
Stock — Views

HTTP surface of the movement ledger and balance projection. Every write
goes through LedgerService; nothing here touches StockBalance directly.

@file stock/views.py
"""

from rest_framework import mixins, status, viewsets
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from catalog.services import ItemService
from core.permissions import IsInventoryManager
from locations.services import LocationService

from .serializers import (
    BalanceQuerySerializer,
    MovementQuerySerializer,
    ReconcileQuerySerializer,
    ReconcileResultSerializer,
    RestockQuerySerializer,
    RestockSuggestionSerializer,
    StockMovementReadSerializer,
    StockMovementWriteSerializer,
    StockTransferSerializer,
)
from .services import BalanceService, LedgerService


class StockMovementViewSet(mixins.ListModelMixin, viewsets.GenericViewSet):
    """
    GET  /stock/movements/?item=&location=&since=&limit= — newest first
    POST /stock/movements/ — record a receipt, issue, consumption or adjustment
    """

    permission_classes = [IsAuthenticated]
    serializer_class = StockMovementReadSerializer
    filter_backends = []

    def get_queryset(self):
        params = MovementQuerySerializer(data=self.request.query_params)
        params.is_valid(raise_exception=True)
        return LedgerService.list_movements(
            item_id=params.validated_data['item'],
            location_id=params.validated_data.get('location'),
            since=params.validated_data.get('since'),
            limit=params.validated_data.get('limit'),
        )

    def create(self, request):
        ser = StockMovementWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data
        movement = LedgerService.record_movement(
            item_id=data['item'],
            location_id=data['location'],
            quantity=data['quantity'],
            movement_type=data['movement_type'],
            unit_cost=data.get('unit_cost'),
            reference_type=data.get('reference_type', ''),
            reference_id=data.get('reference_id') or None,
            notes=data.get('notes', ''),
            actor=request.user,
        )
        return Response(
            {'success': True, 'data': StockMovementReadSerializer(movement).data},
            status=status.HTTP_201_CREATED,
        )


class StockTransferView(APIView):
    """POST /stock/transfers/ — move stock between two locations atomically."""
    permission_classes = [IsAuthenticated]

    def post(self, request):
        ser = StockTransferSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data
        out_movement, in_movement = LedgerService.record_transfer(
            item_id=data['item'],
            from_location_id=data['from_location'],
            to_location_id=data['to_location'],
            quantity=data['quantity'],
            reference_type=data.get('reference_type', ''),
            reference_id=data.get('reference_id') or None,
            notes=data.get('notes', ''),
            actor=request.user,
        )
        return Response(
            {
                'success': True,
                'data': {
                    'transfer_group': str(out_movement.transfer_group),
                    'movements': StockMovementReadSerializer([out_movement, in_movement], many=True).data,
                },
            },
            status=status.HTTP_201_CREATED,
        )


class StockBalanceView(APIView):
    """
    GET /stock/balances/?item=&location= — one balance, or every location
    of the item plus the total when location is omitted.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        params = BalanceQuerySerializer(data=request.query_params)
        params.is_valid(raise_exception=True)
        item = ItemService.get_item(params.validated_data['item'])
        location_id = params.validated_data.get('location')

        if location_id is not None:
            location = LocationService.get_location(location_id)
            return Response({
                'success': True,
                'data': {
                    'item': str(item.pk),
                    'location': str(location.pk),
                    'quantity': BalanceService.get_balance(item.pk, location.pk),
                },
            })

        balances = BalanceService.get_balances(item.pk)
        return Response({
            'success': True,
            'data': {
                'item': str(item.pk),
                'balances': {str(loc): qty for loc, qty in balances.items()},
                'total': BalanceService.get_total(item.pk),
            },
        })


class ReconcileView(APIView):
    """
    GET /stock/balances/reconcile/?item=&location= — compare one balance with
    its ledger replay, or sweep every pair when no parameters are given.
    """
    permission_classes = [IsAuthenticated, IsInventoryManager]

    def get(self, request):
        params = ReconcileQuerySerializer(data=request.query_params)
        params.is_valid(raise_exception=True)
        item_id = params.validated_data.get('item')

        if item_id is not None:
            result = BalanceService.reconcile(item_id, params.validated_data['location'])
            return Response({'success': True, 'data': ReconcileResultSerializer(result).data})

        results = BalanceService.reconcile_all()
        drifted = [r for r in results if not r.matches]
        return Response({
            'success': True,
            'data': {
                'checked': len(results),
                'drifted': ReconcileResultSerializer(drifted, many=True).data,
            },
        })


class RestockSuggestionView(APIView):
    """GET /stock/restock-suggestions/?location= — pairs at or below minimum."""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        params = RestockQuerySerializer(data=request.query_params)
        params.is_valid(raise_exception=True)
        suggestions = BalanceService.restock_suggestions(
            location_id=params.validated_data.get('location'),
        )
        return Response({
            'success': True,
            'data': RestockSuggestionSerializer(suggestions, many=True).data,
        })


class DisposeExpiredView(APIView):
    """POST /stock/dispose-expired/ — write off stock of expired items."""
    permission_classes = [IsAuthenticated, IsInventoryManager]

    def post(self, request):
        movements = LedgerService.dispose_expired_stock(actor=request.user)
        return Response({
            'success': True,
            'data': StockMovementReadSerializer(movements, many=True).data,
        })
