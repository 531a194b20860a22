"""
E-Learning Users Views Package

Authentication views for the course storefront (JWT cookies, current user).

Author: DSP Development Team
Version: 1.1.0
"""

from .auth_views import (
    CustomTokenObtainPairView,
    CustomTokenRefreshView,
    CurrentUserView,
)
