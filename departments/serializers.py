from rest_framework import serializers

from .models import Department


class DepartmentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Department
        fields = ['id', 'code', 'name', 'color']

    def validate_color(self, value):
        if not (len(value) == 7 and value.startswith('#')):
            raise serializers.ValidationError("Color must be a hex value like #1a2b3c")
        return value
