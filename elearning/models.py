"""
E-Learning Application Models Registry

This module serves as the central models registry for the E-Learning application.
It imports and exposes all models from the logical submodules (users, courses)
to ensure they are properly registered with Django's ORM system.

Architecture:
- users/: User profile and role models
- courses/: Course catalogue models

Author: DSP Development Team
Version: 1.1.0
"""

# Import all user-related models for registration with Django ORM
from .users.models import *

# Import all course-related models for registration with Django ORM
from .courses.models import *
