from django.utils import timezone


class ActionContext:
    """The acting user and the clock reading a command runs against."""

    def __init__(self, actor, now=None):
        self.actor = actor
        self.now = now if now is not None else timezone.now()

    @classmethod
    def from_request(cls, request):
        return cls(request.user, timezone.now())

    @property
    def today(self):
        return timezone.localtime(self.now).date()

    def __repr__(self):
        return f"ActionContext(actor={self.actor!r}, now={self.now.isoformat()})"
