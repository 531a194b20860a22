"""
E-Learning Application URL Configuration

URL Structure:
- /api/elearning/token/: Authentication endpoints (JWT cookie management)
- /api/elearning/users/me/: Current user projection

Author: DSP Development Team
Version: 1.1.0
"""

from typing import List
from django.urls import path, URLPattern
from rest_framework_simplejwt.views import TokenVerifyView

from .users import views as user_views

app_name = "elearning"

urlpatterns: List[URLPattern] = [
    path("token/", user_views.CustomTokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("token/refresh/", user_views.CustomTokenRefreshView.as_view(), name="token_refresh"),
    path("token/verify/", TokenVerifyView.as_view(), name="token_verify"),
    path("users/me/", user_views.CurrentUserView.as_view(), name="current-user"),
]
