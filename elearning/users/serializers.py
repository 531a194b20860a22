"""
E-Learning User Serializers

Serializers:
- CustomTokenObtainPairSerializer: JWT token carrying the storefront role
- UserSerializer: Read-only user projection including profile data

Author: DSP Development Team
Version: 1.1.0
"""

from django.contrib.auth.models import User
from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer
from rest_framework_simplejwt.tokens import RefreshToken

from .models import Profile


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    """
    JWT token serializer that adds the username and storefront role to the
    token payload so the frontend can show admin screens without an extra
    round trip. Authorization is always re-checked server side.
    """

    @classmethod
    def get_token(cls, user: User) -> RefreshToken:
        token = super().get_token(user)
        profile, _ = Profile.objects.get_or_create(user=user)

        token["username"] = user.username
        token["role"] = profile.role
        return token


class UserSerializer(serializers.ModelSerializer):
    name = serializers.CharField(source="profile.display_name", read_only=True)
    role = serializers.CharField(source="profile.role", read_only=True)

    class Meta:
        model = User
        fields = ["id", "username", "email", "name", "role"]
        read_only_fields = fields
