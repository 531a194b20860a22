"""
Core integration apps for the storefront backend.
"""
