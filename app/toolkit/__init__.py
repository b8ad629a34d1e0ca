"""
Toolkit - Shared utilities & services.

This app provides user-facing utilities shared by the other apps:
- EmailService: Template-based email composition and delivery
- Helper functions: absolute URLs for outgoing links, PII masking

Key components:
    - services/email.py: EmailService class
    - helpers.py: absolute_url, mask_email

Usage:
    from toolkit.services.email import EmailService
    from toolkit.helpers import absolute_url, mask_email

Note:
    - This app has no models.
    - For model-layer patterns, see core/ (BaseModel, model_mixins).
"""
