"""
Database package initialization.

Submodules:
- base: declarative base and mixins
- connection: async engine, session factory and FastAPI dependency
- models: ORM models for every storefront table
"""

__all__ = []
