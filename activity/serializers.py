# taskcrm/activity/serializers.py
from rest_framework import serializers
from .models import ActivityLog


class ActivityLogSerializer(serializers.ModelSerializer):
    user = serializers.StringRelatedField(read_only=True)
    content_type = serializers.StringRelatedField(read_only=True)
    content_object = serializers.SerializerMethodField()

    class Meta:
        model = ActivityLog
        fields = [
            'id',
            'user',
            'action',
            'timestamp',
            'content_type',
            'object_id',
            'content_object',
            'project_id',
            'from_state',
            'to_state',
            'comment_text',
            'changes',
        ]
        read_only_fields = fields

    def get_content_object(self, obj):
        # String form of the tracked object, or None once it is deleted
        content_object = obj.safe_content_object
        return str(content_object) if content_object else None
