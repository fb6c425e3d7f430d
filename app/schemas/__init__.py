"""
Schemas module - Request/Response schemas for API endpoints.

Every schema lives in app.schemas.schemas; documents read from MongoDB
are returned as serialized dicts.
"""
