"""
Database package.

- base: declarative base, mixins and portable column types
- connection: async engine, sessions and the FastAPI session dependency
- models: ORM models for users, vendors, products and orders
"""

__all__ = []
