"""
E-Learning Application Django Admin Configuration

The admin interface is organized into logical sections:
- User Management: User administration with profile (name, role) integration
- Course Catalogue: Course administration

Author: DSP Development Team
Version: 1.1.0
"""

from typing import Optional
from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.contrib.auth.models import User
from django.utils.translation import gettext_lazy as _
from django.db.models import QuerySet
from django.http import HttpRequest

from .models import Profile, Course

# --- User Management Administration ---


class ProfileInline(admin.StackedInline):
    """
    Inline admin configuration for user profiles.

    Allows editing the display name and storefront role directly within
    the user admin interface.
    """

    model = Profile
    can_delete = False
    verbose_name_plural = "Profile Information"
    fk_name = "user"
    fields = ("name", "role")

    def get_extra(
        self, request: HttpRequest, obj: Optional[User] = None, **kwargs
    ) -> int:
        """Return 0 extra forms since profile should exist or be created automatically."""
        return 0


class UserAdmin(BaseUserAdmin):
    """
    User administration interface with profile integration.
    """

    inlines = (ProfileInline,)
    list_display = (
        "username",
        "email",
        "first_name",
        "last_name",
        "is_active",
        "get_role",
    )
    list_select_related = ("profile",)
    list_filter = (
        "is_staff",
        "is_active",
        "profile__role",
        "date_joined",
    )
    search_fields = ("username", "first_name", "last_name", "email", "profile__name")
    ordering = ("username",)

    @admin.display(description=_("Role"))
    def get_role(self, instance: User) -> Optional[str]:
        try:
            return instance.profile.get_role_display()
        except Profile.DoesNotExist:
            return None

    def get_queryset(self, request: HttpRequest) -> QuerySet:
        return super().get_queryset(request).select_related("profile")


admin.site.unregister(User)
admin.site.register(User, UserAdmin)

# --- Course Catalogue Administration ---


@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    list_display = ("title", "price", "currency", "status", "updated_at")
    list_filter = ("status", "currency")
    search_fields = ("title", "description")
    ordering = ("title",)
