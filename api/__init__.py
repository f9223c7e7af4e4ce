"""
FastAPI RESTful API for the catalog.

This module provides a JSON REST API for:
- Books and their reviews
- Products
- Users
- Per-client rate limiting
"""
