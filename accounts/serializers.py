import logging

from django.contrib.auth import get_user_model
from rest_framework import serializers
from rest_framework.exceptions import AuthenticationFailed

from departments.models import Department
from .models import Role
from .policy import MANAGE_USERS, can

logger = logging.getLogger(__name__)

User = get_user_model()

INVALID_CREDENTIALS = "Invalid email or password."
ACCOUNT_DEACTIVATED = "Account is deactivated. Please contact admin."


class UserLoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)

    def validate(self, attrs):
        email = attrs.get("email")
        password = attrs.get("password")

        user = User.objects.filter(email__iexact=email).first()

        if user is None or not user.check_password(password):
            logger.warning(f"Failed login for {email}")
            raise AuthenticationFailed(INVALID_CREDENTIALS)

        if not user.is_active:
            logger.warning(f"Login attempt on deactivated account {user.pk}")
            raise AuthenticationFailed(ACCOUNT_DEACTIVATED)

        attrs["user"] = user
        return attrs


class UserSerializer(serializers.ModelSerializer):
    name = serializers.CharField(read_only=True)

    class Meta:
        model = User
        fields = [
            'id', 'email', 'first_name', 'last_name', 'name', 'role',
            'department', 'position', 'is_active', 'date_joined', 'last_login'
        ]
        read_only_fields = ['is_active', 'date_joined', 'last_login']

    def validate_department(self, value):
        if value and not Department.objects.filter(code=value).exists():
            raise serializers.ValidationError("Unknown department")
        return value

    def validate_role(self, value):
        request = self.context.get('request')
        if value == Role.ADMIN and request is not None and not can(request.user, MANAGE_USERS):
            raise serializers.ValidationError("Only admins can grant the admin role.")
        return value


class UserCreateSerializer(UserSerializer):
    password = serializers.CharField(write_only=True, min_length=8)

    class Meta(UserSerializer.Meta):
        fields = UserSerializer.Meta.fields + ['password']
        extra_kwargs = {
            'first_name': {'required': True},
            'last_name': {'required': True},
        }

    def create(self, validated_data):
        password = validated_data.pop('password')
        return User.objects.create_user(password=password, **validated_data)


class ProfileSerializer(serializers.ModelSerializer):
    """What users may change about themselves."""

    class Meta:
        model = User
        fields = ['id', 'email', 'first_name', 'last_name', 'role', 'department', 'position']
        read_only_fields = ['email', 'role', 'department']