"""
Tests for authentication app.

This package contains test modules for:
- test_models.py: User model tests (names, billing fields)
- test_managers.py: UserManager tests

Usage:
    pytest authentication/tests/
    pytest authentication/tests/test_models.py
"""
