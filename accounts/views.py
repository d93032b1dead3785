import logging

from django.contrib.auth import get_user_model
from django.contrib.auth.models import update_last_login
from drf_yasg import openapi
from drf_yasg.utils import swagger_auto_schema
from rest_framework import filters, generics, permissions, status
from rest_framework.exceptions import NotFound, PermissionDenied
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken

from tasks.store import TaskStore
from .permissions import require
from .policy import INVITE_USERS, MANAGE_USERS
from .serializers import ProfileSerializer, UserCreateSerializer, UserLoginSerializer, UserSerializer

logger = logging.getLogger(__name__)

User = get_user_model()


class UserLoginView(APIView):
    permission_classes = [permissions.AllowAny]

    @swagger_auto_schema(
        request_body=UserLoginSerializer,
        responses={
            status.HTTP_200_OK: openapi.Response(
                description="Login successful",
                schema=openapi.Schema(
                    type=openapi.TYPE_OBJECT,
                    properties={
                        "message": openapi.Schema(type=openapi.TYPE_STRING),
                        "access_token": openapi.Schema(type=openapi.TYPE_STRING),
                        "refresh_token": openapi.Schema(type=openapi.TYPE_STRING),
                        "user": openapi.Schema(type=openapi.TYPE_OBJECT),
                    },
                ),
            ),
            status.HTTP_401_UNAUTHORIZED: "Invalid credentials or deactivated account",
        },
        operation_description="Authenticate user and return JWT tokens",
    )
    def post(self, request):
        serializer = UserLoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user = serializer.validated_data["user"]
        update_last_login(None, user)
        logger.info(f"User {user.pk} logged in")

        # Generate JWT tokens
        refresh = RefreshToken.for_user(user)

        return Response(
            {
                "message": "Login successful",
                "access_token": str(refresh.access_token),
                "refresh_token": str(refresh),
                "user": UserSerializer(user).data,
            },
            status=status.HTTP_200_OK,
        )


class LogoutView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    @swagger_auto_schema(
        operation_summary="Logout user",
        operation_description="Logs out a user by blacklisting their refresh token.",
        request_body=openapi.Schema(
            type=openapi.TYPE_OBJECT,
            required=["refresh"],
            properties={
                "refresh": openapi.Schema(
                    type=openapi.TYPE_STRING,
                    description="Refresh token to be blacklisted"
                )
            }
        ),
        responses={
            200: openapi.Response(description="Successfully logged out"),
            400: openapi.Response(description="Invalid or missing refresh token")
        }
    )
    def post(self, request):
        refresh_token = request.data.get("refresh")
        if not refresh_token:
            return Response({'detail': 'Refresh token is required.'}, status=status.HTTP_400_BAD_REQUEST)
        try:
            RefreshToken(refresh_token).blacklist()
        except TokenError:
            return Response({"error": "Invalid refresh token."}, status=status.HTTP_400_BAD_REQUEST)
        return Response({"message": "Successfully logged out."}, status=status.HTTP_200_OK)


class ProfileDetailView(generics.RetrieveUpdateAPIView):
    serializer_class = ProfileSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_object(self):
        return self.request.user


class UserListCreateView(generics.ListCreateAPIView):
    queryset = User.objects.all()
    filter_backends = [filters.SearchFilter]
    search_fields = ['email', 'first_name', 'last_name']

    def get_permissions(self):
        if self.request.method in permissions.SAFE_METHODS:
            return [permissions.IsAuthenticated()]
        return [permissions.IsAuthenticated(), require(INVITE_USERS)()]

    def get_serializer_class(self):
        if self.request.method == 'POST':
            return UserCreateSerializer
        return UserSerializer

    def get_queryset(self):
        queryset = super().get_queryset()
        role = self.request.query_params.get('role')
        department = self.request.query_params.get('department')
        active = self.request.query_params.get('is_active')
        if role:
            queryset = queryset.filter(role=role)
        if department:
            queryset = queryset.filter(department=department)
        if active is not None:
            queryset = queryset.filter(is_active=active.lower() in ('1', 'true', 'yes'))
        return queryset

    def perform_create(self, serializer):
        user = serializer.save()
        logger.info(f"User {user.pk} created by user {self.request.user.pk}")


class UserDetailView(generics.RetrieveUpdateDestroyAPIView):
    queryset = User.objects.all()
    serializer_class = UserSerializer

    def get_permissions(self):
        if self.request.method in permissions.SAFE_METHODS:
            return [permissions.IsAuthenticated()]
        return [permissions.IsAuthenticated(), require(MANAGE_USERS)()]

    def perform_destroy(self, instance):
        if instance.pk == self.request.user.pk:
            raise PermissionDenied("You cannot delete your own account.")
        TaskStore().delete_user(instance.pk)


class UserActivationView(APIView):
    """POST activates, DELETE deactivates."""
    permission_classes = [permissions.IsAuthenticated, require(MANAGE_USERS)]

    def get_user(self, pk):
        user = TaskStore().users.get(pk)
        if user is None:
            raise NotFound("User not found")
        return user

    def post(self, request, pk):
        user = self.get_user(pk)
        user.is_active = True
        user.save(update_fields=['is_active'])
        logger.info(f"User {user.pk} activated by user {request.user.pk}")
        return Response(UserSerializer(user).data)

    def delete(self, request, pk):
        user = self.get_user(pk)
        if user.pk == request.user.pk:
            raise PermissionDenied("You cannot deactivate your own account.")
        user.is_active = False
        user.save(update_fields=['is_active'])
        logger.info(f"User {user.pk} deactivated by user {request.user.pk}")
        return Response(UserSerializer(user).data)
