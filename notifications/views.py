# taskcrm/notifications/views.py
from rest_framework import generics, permissions, status
from rest_framework.exceptions import NotFound
from rest_framework.response import Response
from rest_framework.views import APIView
from drf_yasg.utils import swagger_auto_schema
from drf_yasg import openapi

from .models import Notification
from .serializers import NotificationSerializer
from .services import NotificationDispatcher


class NotificationListView(generics.ListAPIView):
    """The current user's notifications, newest first. ``?unread=true`` keeps unread ones."""
    serializer_class = NotificationSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        queryset = Notification.objects.filter(user=self.request.user).select_related('from_user')
        unread = self.request.query_params.get('unread')
        if unread and unread.lower() in ('1', 'true', 'yes'):
            queryset = queryset.filter(is_read=False)
        return queryset


class NotificationMarkReadView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def patch(self, request, pk):
        notification = NotificationDispatcher().mark_read(pk, request.user)
        if notification is None:
            raise NotFound("Notification not found")
        return Response(NotificationSerializer(notification).data)


class NotificationMarkAllReadView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    @swagger_auto_schema(
        operation_description="Mark every notification of the current user as read",
        responses={
            200: openapi.Response(
                description="Number of notifications updated",
                schema=openapi.Schema(
                    type=openapi.TYPE_OBJECT,
                    properties={'updated': openapi.Schema(type=openapi.TYPE_INTEGER)}
                )
            )
        }
    )
    def post(self, request):
        updated = NotificationDispatcher().mark_all_read(request.user)
        return Response({'updated': updated}, status=status.HTTP_200_OK)
