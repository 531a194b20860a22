"""
E-Learning Application Configuration

This module contains the Django application configuration for the E-Learning system.

The E-Learning application owns the course catalogue and user profiles. The
payment subsystem (``core.payments``) reads both but never writes them.

Author: DSP Development Team
Version: 1.1.0
"""

from django.apps import AppConfig


class ElearningConfig(AppConfig):
    """
    Configuration class for the E-Learning Django application.

    Attributes:
        default_auto_field: Default primary key field type for models
        name: Application name for Django registration
        verbose_name: Human-readable application name for admin interface
    """

    default_auto_field: str = "django.db.models.BigAutoField"
    name: str = "elearning"
    verbose_name: str = "E-Learning System"
