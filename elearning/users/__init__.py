"""
E-Learning Users Package

User profiles (display name, storefront role) and JWT authentication views.

Structure:
- models.py: Profile model and signal handlers
- serializers.py: Token and user serializers
- views/: Authentication views

Author: DSP Development Team
Version: 1.1.0
"""
