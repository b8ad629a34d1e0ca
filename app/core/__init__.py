"""
Core Application - Infrastructure & Base Classes

Generic, reusable building blocks shared by the domain apps.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - UUIDPrimaryKeyMixin: UUID as primary key
    - MetadataMixin: Flexible JSON metadata storage

Exceptions (import from core.exceptions):
    - BaseApplicationError: Root of the application exception hierarchy
"""
