# taskcrm/activity/middleware.py
from threading import local

from django.utils.deprecation import MiddlewareMixin

_active = local()


class ActivityLogMiddleware(MiddlewareMixin):
    """Stores the current request for signal handlers."""

    def __call__(self, request):
        _active.request = request
        try:
            return super().__call__(request)
        finally:
            del _active.request


def get_current_user():
    """The authenticated user of the request being served, if any."""
    request = getattr(_active, 'request', None)
    user = getattr(request, 'user', None)
    if user is not None and user.is_authenticated:
        return user
    return None
