"""
Authentication application.

Provides the email-based User model that owns billing customers. The user
supplies everything billing needs to know about a person: the email address
receipts are sent to, the name printed on them, free-form extra billing
information and the preferred locale for notices.

Usage:
    from authentication.models import User

    user = User.objects.create_user(email="user@example.com", password="...")
"""
