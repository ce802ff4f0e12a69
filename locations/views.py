"""
Locations — Views

DRF ViewSet for the storage location registry.

@file locations/views.py
"""

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.permissions import CanManageInventory

from .models import Location
from .serializers import (
    LocationReadSerializer,
    LocationUpdateSerializer,
    LocationWriteSerializer,
)
from .services import LocationService


class LocationViewSet(viewsets.ModelViewSet):
    """
    CRUD for storage locations.

    DELETE is a soft deactivation and is refused while the location
    still holds stock.
    """

    permission_classes = [IsAuthenticated, CanManageInventory]
    filterset_fields = ['is_active', 'is_primary']
    search_fields = ['code', 'name']
    ordering_fields = ['code', 'name', 'created_at']
    ordering = ['-is_primary', 'code']

    def get_queryset(self):
        return Location.objects.all()

    def get_serializer_class(self):
        if self.action in ('list', 'retrieve'):
            return LocationReadSerializer
        if self.action in ('update', 'partial_update'):
            return LocationUpdateSerializer
        return LocationWriteSerializer

    def create(self, request, *args, **kwargs):
        ser = LocationWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        location = LocationService.create_location(actor=request.user, **ser.validated_data)
        return Response(LocationReadSerializer(location).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        ser = LocationUpdateSerializer(self.get_object(), data=request.data, partial=partial)
        ser.is_valid(raise_exception=True)
        location = LocationService.update_location(
            location_id=kwargs['pk'], actor=request.user, **ser.validated_data,
        )
        return Response(LocationReadSerializer(location).data)

    def perform_destroy(self, instance):
        LocationService.deactivate_location(location_id=instance.pk, actor=self.request.user)

    @action(detail=True, methods=['post'], url_path='set-primary')
    def set_primary(self, request, pk=None):
        location = LocationService.set_primary(location_id=pk, actor=request.user)
        return Response({'success': True, 'data': LocationReadSerializer(location).data})

    @action(detail=True, methods=['post'], url_path='deactivate')
    def deactivate(self, request, pk=None):
        location = LocationService.deactivate_location(location_id=pk, actor=request.user)
        return Response({'success': True, 'data': LocationReadSerializer(location).data})

    @action(detail=True, methods=['post'], url_path='reactivate')
    def reactivate(self, request, pk=None):
        location = LocationService.reactivate_location(location_id=pk, actor=request.user)
        return Response({'success': True, 'data': LocationReadSerializer(location).data})
