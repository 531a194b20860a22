"""
E-Learning User Management Models

This module defines the user-related models for the course storefront,
extending Django's built-in User model with a profile that carries the
display name and the role used to gate administrative payment actions.

Models:
- Profile: Extended user information (display name, role)

Features:
- Automatic profile creation for new users
- Role-based checks for admin-only endpoints (bank transfer approval)
- Proper signal handling for profile lifecycle management

Author: DSP Development Team
Version: 1.1.0
"""

from django.db import models
from django.conf import settings
from django.db.models.signals import post_save
from django.dispatch import receiver
from django.utils.translation import gettext_lazy as _


class Profile(models.Model):
    """
    Extended user profile model for the course storefront.

    Attributes:
        user: One-to-one relationship with Django User model
        name: Display name used on invoices and emails
        role: Either ``student`` or ``admin``

    The profile is automatically created when a new user is registered
    and maintains a one-to-one relationship with the User model.
    """

    class Role(models.TextChoices):
        STUDENT = "student", _("Student")
        ADMIN = "admin", _("Admin")

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="profile",
        verbose_name=_("User"),
        help_text=_("Associated user account"),
    )

    name = models.CharField(
        max_length=150,
        blank=True,
        verbose_name=_("Display Name"),
        help_text=_("Name shown on invoices and notification emails"),
    )

    role = models.CharField(
        max_length=10,
        choices=Role.choices,
        default=Role.STUDENT,
        verbose_name=_("Role"),
        help_text=_("Admins may approve or reject bank transfer payments"),
    )

    class Meta:
        verbose_name = _("User Profile")
        verbose_name_plural = _("User Profiles")
        db_table = "elearning_profile"

    def __str__(self) -> str:
        return f"{self.user.username} Profile"

    def __repr__(self) -> str:
        return f"<Profile(user={self.user.username}, role={self.role})>"

    @property
    def is_admin(self) -> bool:
        return self.role == self.Role.ADMIN

    @property
    def display_name(self) -> str:
        """
        Name used in customer-facing documents.

        Falls back to the user's full name, then the username.
        """
        return self.name or self.user.get_full_name() or self.user.username


def is_admin_user(user) -> bool:
    """
    Check whether a user may perform admin payment actions.

    Args:
        user: Django User instance (may be anonymous)

    Returns:
        True only for authenticated users whose profile role is ``admin``
    """
    if not user or not user.is_authenticated:
        return False
    profile = getattr(user, "profile", None)
    return bool(profile and profile.is_admin)


# --- Signal Handlers for Automatic Profile Management ---


@receiver(post_save, sender=settings.AUTH_USER_MODEL)
def create_user_profile(sender, instance, created: bool, **kwargs) -> None:
    """
    Automatically create a user profile when a new user is created.

    Args:
        sender: The User model class
        instance: The actual User instance that was saved
        created: Boolean indicating if this is a new instance
        **kwargs: Additional signal arguments
    """
    if created:
        Profile.objects.get_or_create(user=instance)
