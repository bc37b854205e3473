"""
Utility modules for the maintenance scheduling backend.

This package contains shared helpers used across the application, including
datetime utilities and half-open interval arithmetic.
"""
