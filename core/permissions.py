"""
Core — Permissions

Read access is open to any authenticated user. Catalog and registry
writes require staff status or membership of the inventory manager group
(settings.INVENTORY_MANAGER_GROUP).

@file core/permissions.py
"""

from django.conf import settings
from rest_framework.permissions import BasePermission


def is_inventory_manager(user) -> bool:
    if not user or not user.is_authenticated:
        return False
    if user.is_superuser or user.is_staff:
        return True
    return user.groups.filter(name=settings.INVENTORY_MANAGER_GROUP).exists()


class CanManageInventory(BasePermission):
    """Read is open to authenticated users; write requires inventory managers."""

    def has_permission(self, request, view):
        if request.method in ('GET', 'HEAD', 'OPTIONS'):
            return bool(request.user and request.user.is_authenticated)
        return is_inventory_manager(request.user)


class IsInventoryManager(BasePermission):
    """Every method requires an inventory manager (reconcile, import)."""

    def has_permission(self, request, view):
        return is_inventory_manager(request.user)
