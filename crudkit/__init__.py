"""
crudkit: CRUD controllers and request-to-query translation for FastAPI apps.
"""

__version__ = "0.1.0"
