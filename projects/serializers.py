# taskcrm/projects/serializers.py
from django.contrib.auth import get_user_model
from rest_framework import serializers

from departments.models import Department
from tasks.metrics import completion_rate
from .models import Project

User = get_user_model()


class ProjectSerializer(serializers.ModelSerializer):
    created_by_email = serializers.CharField(source='created_by.email', read_only=True, default=None)
    department_name = serializers.SerializerMethodField()
    members = serializers.PrimaryKeyRelatedField(
        queryset=User.objects.filter(is_active=True),
        many=True,
        required=False
    )
    task_count = serializers.SerializerMethodField()
    completion_rate = serializers.SerializerMethodField()

    class Meta:
        model = Project
        fields = [
            'id', 'name', 'description', 'department', 'department_name', 'status',
            'start_date', 'end_date', 'color', 'created_by', 'created_by_email',
            'members', 'task_count', 'completion_rate', 'created_at', 'updated_at'
        ]
        read_only_fields = ['created_by', 'created_at', 'updated_at']

    def get_department_name(self, obj):
        return Department.label_for(obj.department)

    def get_task_count(self, obj):
        return obj.tasks.count()

    def get_completion_rate(self, obj):
        return completion_rate(obj.tasks.all())

    def validate_department(self, value):
        if not Department.objects.filter(code=value).exists():
            raise serializers.ValidationError("Unknown department")
        return value

    def validate(self, data):
        """Validate date consistency"""
        start_date = data.get('start_date', getattr(self.instance, 'start_date', None))
        end_date = data.get('end_date', getattr(self.instance, 'end_date', None))

        if start_date and end_date and start_date > end_date:
            raise serializers.ValidationError(
                {"end_date": "End date must be after start date"}
            )

        return data
