"""
E-Learning Package

Course catalogue and user profiles for the course storefront.

Structure:
- users/: User profiles, roles and JWT authentication views
- courses/: Course catalogue
- management/: Django Management Commands (course seeding)

Author: DSP Development Team
Version: 1.1.0
"""
