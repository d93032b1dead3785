from rest_framework import permissions

from .policy import can


def require(capability):
    """Build a DRF permission class that checks a global capability."""

    class CapabilityPermission(permissions.BasePermission):
        message = f"You don't have permission to {capability.replace('_', ' ')}."

        def has_permission(self, request, view):
            return can(request.user, capability)

    CapabilityPermission.__name__ = f"Require{capability.title().replace('_', '')}"
    return CapabilityPermission


class TaskActionPermission(permissions.BasePermission):
    """Object level check for task scoped actions.

    Views set ``task_action`` to the policy action guarding the object.
    """

    def has_object_permission(self, request, view, obj):
        action = getattr(view, 'task_action', None)
        if action is None:
            return True
        task = getattr(obj, 'task', obj)
        return can(request.user, action, task)
