"""
E-Learning Authentication Views

JWT issuance for the storefront. Tokens are stored in HTTP-only cookies and
read back by ``backend.custom_auth.JWTAuthentication``.

Views:
- CustomTokenObtainPairView: Login, sets access/refresh cookies
- CustomTokenRefreshView: Rotates tokens from the refresh cookie
- CurrentUserView: Returns the authenticated user's projection

Author: DSP Development Team
Version: 1.1.0
"""

from django.conf import settings
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.serializers import TokenRefreshSerializer
from rest_framework_simplejwt.views import TokenObtainPairView

from ..serializers import CustomTokenObtainPairSerializer, UserSerializer


def _set_token_cookies(response: Response, access: str = None, refresh: str = None) -> None:
    if refresh:
        response.set_cookie(
            "refresh_token",
            refresh,
            httponly=True,
            secure=not settings.DEBUG,
            samesite="Lax",
            path="/",
            max_age=settings.SIMPLE_JWT["REFRESH_TOKEN_LIFETIME"],
        )
    if access:
        response.set_cookie(
            "access_token",
            access,
            httponly=True,
            secure=not settings.DEBUG,
            samesite="Lax",
            path="/",
            max_age=settings.SIMPLE_JWT["ACCESS_TOKEN_LIFETIME"],
        )


class CustomTokenObtainPairView(TokenObtainPairView):
    """
    Extends SimpleJWT's TokenObtainPairView to store JWT tokens in HTTP-only
    cookies instead of returning them in the response body.
    """

    serializer_class = CustomTokenObtainPairSerializer

    def post(self, request, *args, **kwargs):
        response = super().post(request, *args, **kwargs)
        if response.status_code == status.HTTP_200_OK:
            refresh = response.data.pop("refresh", None)
            access = response.data.pop("access", None)
            _set_token_cookies(response, access=access, refresh=refresh)
        return response


class CustomTokenRefreshView(APIView):
    """
    Refreshes JWT tokens from the ``refresh_token`` cookie and rewrites both
    cookies.
    """

    authentication_classes = []

    def post(self, request: Request) -> Response:
        refresh_token = request.COOKIES.get("refresh_token")
        if not refresh_token:
            return Response(
                {"detail": "Refresh token not provided"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        serializer = TokenRefreshSerializer(data={"refresh": refresh_token})
        try:
            serializer.is_valid(raise_exception=True)
        except TokenError as e:
            return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        data = serializer.validated_data
        response = Response(status=status.HTTP_200_OK)
        _set_token_cookies(response, access=data.get("access"), refresh=data.get("refresh"))
        return response


class CurrentUserView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request: Request) -> Response:
        return Response(UserSerializer(request.user).data)
