from rest_framework import serializers

from .models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    from_user_name = serializers.CharField(source='from_user.name', read_only=True, default=None)

    class Meta:
        model = Notification
        fields = [
            'id', 'user', 'type', 'title', 'message', 'task', 'project',
            'from_user', 'from_user_name', 'is_read', 'created_at',
        ]
        read_only_fields = fields
