from django.urls import path
from rest_framework_simplejwt.views import TokenRefreshView

from .views import (
    UserLoginView, LogoutView, ProfileDetailView,
    UserListCreateView, UserDetailView, UserActivationView,
)

urlpatterns = [
    path("login/", UserLoginView.as_view(), name="login"),
    path("token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),  # Refresh token endpoint
    path('logout/', LogoutView.as_view(), name='logout'),
    path('profile/', ProfileDetailView.as_view(), name='profile-detail'),
    path('users/', UserListCreateView.as_view(), name='user-list-create'),
    path('users/<int:pk>/', UserDetailView.as_view(), name='user-detail'),
    path('users/<int:pk>/active/', UserActivationView.as_view(), name='user-activation'),
]
