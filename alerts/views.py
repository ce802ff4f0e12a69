"""
Alerts — Views

@file alerts/views.py
"""

from rest_framework import mixins, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from .serializers import NotificationQuerySerializer, NotificationReadSerializer
from .services import AlertService


class NotificationViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """
    Stock notifications, critical first then newest.

    Filters: unresolved_only (default true), min_priority, item, location.
    """

    permission_classes = [IsAuthenticated]
    serializer_class = NotificationReadSerializer
    filter_backends = []

    def get_queryset(self):
        if self.action != 'list':
            return AlertService.list_notifications(unresolved_only=False)
        params = NotificationQuerySerializer(data=self.request.query_params)
        params.is_valid(raise_exception=True)
        return AlertService.list_notifications(
            unresolved_only=params.validated_data['unresolved_only'],
            min_priority=params.validated_data.get('min_priority'),
            item_id=params.validated_data.get('item'),
            location_id=params.validated_data.get('location'),
        )

    @action(detail=True, methods=['post'], url_path='acknowledge')
    def acknowledge(self, request, pk=None):
        notification = AlertService.acknowledge(pk, actor=request.user)
        return Response({
            'success': True,
            'data': NotificationReadSerializer(notification).data,
        })
