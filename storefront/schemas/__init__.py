"""Pydantic request and response schemas for the storefront API."""
