"""
Core package for shared utilities.

Configuration, structured logging, error taxonomy and token handling
shared by the API layer and the services.
"""
